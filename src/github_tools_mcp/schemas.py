"""Tool registry: the public contract surface.

Each tool is declared once as a ToolSchema. The MCP-facing JSON Schemas in TOOL_METADATA
are derived from these declarations, so the validator and the advertised schemas cannot drift.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .errors import unknown_tool

STRING = "string"
INTEGER = "integer"
BOOLEAN = "boolean"
ARRAY = "array"

# GitHub's hard ceiling for per_page on every list/search endpoint.
MAX_PER_PAGE = 100


@dataclass(frozen=True, slots=True)
class ArgumentSpec:
    """One declared tool argument."""

    name: str
    kind: str
    required: bool = False
    default: Any = None
    enum: tuple[str, ...] | None = None
    minimum: int | None = None
    maximum: int | None = None
    min_length: int | None = None
    description: str | None = None

    def json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.kind}
        if self.kind == ARRAY:
            schema["items"] = {"type": STRING}
        if self.enum is not None:
            schema["enum"] = list(self.enum)
        if self.minimum is not None:
            schema["minimum"] = self.minimum
        if self.maximum is not None:
            schema["maximum"] = self.maximum
        if self.min_length is not None:
            schema["minLength"] = self.min_length
        if self.default is not None:
            schema["default"] = self.default
        if self.description:
            schema["description"] = self.description
        return schema


@dataclass(frozen=True, slots=True)
class ToolSchema:
    """Static declaration of one tool."""

    name: str
    description: str
    arguments: tuple[ArgumentSpec, ...]
    read_only: bool = True
    result_key: str | None = None

    def argument(self, name: str) -> ArgumentSpec | None:
        for spec in self.arguments:
            if spec.name == name:
                return spec
        return None

    @property
    def required(self) -> tuple[str, ...]:
        return tuple(a.name for a in self.arguments if a.required)

    def input_schema(self) -> dict[str, Any]:
        """Render the JSON Schema advertised over MCP."""
        return {
            "type": "object",
            "required": list(self.required),
            "properties": {a.name: a.json_schema() for a in self.arguments},
            "additionalProperties": False,
        }


def _str(name: str, *, required: bool = False, description: str | None = None, **kw: Any) -> ArgumentSpec:
    if required:
        kw.setdefault("min_length", 1)
    return ArgumentSpec(name=name, kind=STRING, required=required, description=description, **kw)


def _int(name: str, *, required: bool = False, description: str | None = None, **kw: Any) -> ArgumentSpec:
    return ArgumentSpec(name=name, kind=INTEGER, required=required, description=description, **kw)


def _bool(name: str, description: str | None = None) -> ArgumentSpec:
    return ArgumentSpec(name=name, kind=BOOLEAN, description=description)


def _list(name: str, description: str | None = None) -> ArgumentSpec:
    return ArgumentSpec(name=name, kind=ARRAY, description=description)


def _enum(name: str, values: tuple[str, ...], *, required: bool = False, default: str | None = None,
          description: str | None = None) -> ArgumentSpec:
    return ArgumentSpec(name=name, kind=STRING, required=required, default=default, enum=values,
                        description=description)


def _number(name: str, description: str) -> ArgumentSpec:
    return _int(name, required=True, minimum=1, description=description)


_OWNER = _str("owner", required=True, description="Repository owner (user or organization)")
_REPO = _str("repo", required=True, description="Repository name")
_PAGE = _int("page", minimum=1, description="Page number (1-based)")
_PER_PAGE = _int("per_page", minimum=1, maximum=MAX_PER_PAGE, description="Results per page (max 100)")
_QUERY = _str("query", required=True, description="GitHub search query syntax")
_ORDER = _enum("order", ("asc", "desc"), description="Sort order")

_OPEN_CLOSED = ("open", "closed")
_OPEN_CLOSED_ALL = ("open", "closed", "all")


_SCHEMAS: tuple[ToolSchema, ...] = (
    # Issues
    ToolSchema(
        name="create_issue",
        description="Create a new issue in a GitHub repository with optional body, labels and assignees.",
        arguments=(
            _OWNER,
            _REPO,
            _str("title", required=True),
            _str("body", description="Markdown body"),
            _list("labels", "Label names; labels must already exist"),
            _list("assignees", "Logins of collaborators to assign"),
        ),
        read_only=False,
    ),
    ToolSchema(
        name="get_issue",
        description="Get a single issue by number, including body, labels and assignees.",
        arguments=(_OWNER, _REPO, _number("issue_number", "Issue number")),
    ),
    ToolSchema(
        name="list_issues",
        description=(
            "List issues in a repository filtered by state and labels. "
            "Multiple labels are combined with AND. Pull requests are excluded."
        ),
        arguments=(
            _OWNER,
            _REPO,
            _enum("state", _OPEN_CLOSED_ALL, default="open"),
            _list("labels", "Only issues carrying ALL of these labels"),
            _enum("sort", ("created", "updated", "comments")),
            _enum("direction", ("asc", "desc")),
            _str("since", description="Only issues updated at or after this ISO 8601 timestamp"),
            _PAGE,
            _PER_PAGE,
        ),
        result_key="issues",
    ),
    ToolSchema(
        name="update_issue",
        description=(
            "Update an existing issue. Only provided fields change. labels and assignees REPLACE the "
            "current values; pass [] to clear them."
        ),
        arguments=(
            _OWNER,
            _REPO,
            _number("issue_number", "Issue number"),
            _str("title"),
            _str("body"),
            _enum("state", _OPEN_CLOSED),
            _list("labels", "Replaces all labels; [] clears"),
            _list("assignees", "Replaces all assignees; [] clears"),
        ),
        read_only=False,
    ),
    ToolSchema(
        name="search_issues",
        description="Search issues and pull requests across GitHub using search query syntax.",
        arguments=(
            _QUERY,
            _enum("sort", ("comments", "reactions", "created", "updated", "interactions")),
            _ORDER,
            _PAGE,
            _PER_PAGE,
        ),
        result_key="items",
    ),
    ToolSchema(
        name="add_issue_comment",
        description="Add a comment to an issue or pull request.",
        arguments=(_OWNER, _REPO, _number("issue_number", "Issue or pull request number"),
                   _str("body", required=True)),
        read_only=False,
    ),
    ToolSchema(
        name="get_issue_comments",
        description="List comments on an issue or pull request.",
        arguments=(_OWNER, _REPO, _number("issue_number", "Issue or pull request number"), _PAGE, _PER_PAGE),
        result_key="comments",
    ),
    # Pull requests
    ToolSchema(
        name="create_pull_request",
        description="Open a pull request from a head branch into a base branch.",
        arguments=(
            _OWNER,
            _REPO,
            _str("title", required=True),
            _str("head", required=True, description="Branch with the changes (or owner:branch for forks)"),
            _str("base", required=True, description="Branch to merge into"),
            _str("body"),
            _bool("draft", "Open as a draft pull request"),
            _bool("maintainer_can_modify"),
        ),
        read_only=False,
    ),
    ToolSchema(
        name="update_pull_request",
        description="Update a pull request's title, body, state, base branch or maintainer permissions.",
        arguments=(
            _OWNER,
            _REPO,
            _number("pr_number", "Pull request number"),
            _str("title"),
            _str("body"),
            _enum("state", _OPEN_CLOSED),
            _str("base", min_length=1),
            _bool("maintainer_can_modify"),
        ),
        read_only=False,
    ),
    ToolSchema(
        name="merge_pull_request",
        description="Merge a pull request. Pass sha to refuse the merge if the head moved.",
        arguments=(
            _OWNER,
            _REPO,
            _number("pr_number", "Pull request number"),
            _str("commit_title"),
            _str("commit_message"),
            _str("sha", min_length=1, description="Expected head SHA"),
            _enum("merge_method", ("merge", "squash", "rebase")),
        ),
        read_only=False,
    ),
    ToolSchema(
        name="get_pull_request_status",
        description=(
            "Get merge readiness of a pull request: state, mergeability, combined commit status and "
            "check runs for the head commit. mergeable is null while GitHub is still computing it."
        ),
        arguments=(_OWNER, _REPO, _number("pr_number", "Pull request number")),
    ),
    ToolSchema(
        name="get_pull_request_files",
        description="List files changed in a pull request with per-file additions and deletions.",
        arguments=(_OWNER, _REPO, _number("pr_number", "Pull request number"), _PAGE, _PER_PAGE),
        result_key="files",
    ),
    ToolSchema(
        name="get_pull_request_reviews",
        description="List reviews submitted on a pull request.",
        arguments=(_OWNER, _REPO, _number("pull_number", "Pull request number"), _PAGE, _PER_PAGE),
        result_key="reviews",
    ),
    ToolSchema(
        name="create_pull_request_review",
        description="Submit a review on a pull request: APPROVE, REQUEST_CHANGES or COMMENT.",
        arguments=(
            _OWNER,
            _REPO,
            _number("pull_number", "Pull request number"),
            _enum("event", ("APPROVE", "REQUEST_CHANGES", "COMMENT"), required=True),
            _str("body", description="Required by GitHub for REQUEST_CHANGES and COMMENT"),
            _str("commit_id", min_length=1),
        ),
        read_only=False,
    ),
    ToolSchema(
        name="add_pull_request_review_comment",
        description=(
            "Add an inline review comment to a pull request. Provide path+line for a single-line "
            "comment, path+start_line+line for a multi-line comment, or only in_reply_to to reply "
            "to an existing review comment."
        ),
        arguments=(
            _OWNER,
            _REPO,
            _number("pull_number", "Pull request number"),
            _str("body", required=True),
            _str("commit_id", min_length=1, description="Commit to comment on (defaults to PR head on GitHub)"),
            _str("path", min_length=1, description="File path relative to the repository root"),
            _int("line", minimum=1, description="Line (last line for multi-line comments)"),
            _enum("side", ("LEFT", "RIGHT")),
            _int("start_line", minimum=1, description="First line of a multi-line comment"),
            _enum("start_side", ("LEFT", "RIGHT")),
            _int("in_reply_to", minimum=1, description="Review comment id to reply to"),
        ),
        read_only=False,
    ),
    ToolSchema(
        name="request_copilot_review",
        description="Request an automated review of a pull request from GitHub Copilot.",
        arguments=(_OWNER, _REPO, _number("pull_number", "Pull request number")),
        read_only=False,
    ),
    ToolSchema(
        name="list_pull_requests",
        description="List pull requests in a repository filtered by state, head and base.",
        arguments=(
            _OWNER,
            _REPO,
            _enum("state", _OPEN_CLOSED_ALL, default="open"),
            _str("head", min_length=1, description="Filter by head as user:ref-name"),
            _str("base", min_length=1, description="Filter by base branch"),
            _enum("sort", ("created", "updated", "popularity", "long-running")),
            _enum("direction", ("asc", "desc")),
            _PAGE,
            _PER_PAGE,
        ),
        result_key="pull_requests",
    ),
    # Repositories
    ToolSchema(
        name="create_repository",
        description="Create a repository for the authenticated user.",
        arguments=(
            _str("name", required=True),
            _str("description"),
            _bool("private"),
            _bool("auto_init", "Create an initial commit with an empty README"),
        ),
        read_only=False,
    ),
    ToolSchema(
        name="fork_repository",
        description="Fork a repository into the authenticated account or an organization.",
        arguments=(_OWNER, _REPO, _str("organization", min_length=1)),
        read_only=False,
    ),
    ToolSchema(
        name="list_branches",
        description="List branches of a repository.",
        arguments=(_OWNER, _REPO, _bool("protected", "Only protected (true) or unprotected (false) branches"),
                   _PAGE, _PER_PAGE),
        result_key="branches",
    ),
    ToolSchema(
        name="create_branch",
        description="Create a branch pointing at a commit SHA.",
        arguments=(
            _OWNER,
            _REPO,
            _str("branch_name", required=True),
            _str("sha", required=True, description="Commit SHA the new branch points at"),
        ),
        read_only=False,
    ),
    ToolSchema(
        name="delete_branch",
        description="Delete a branch.",
        arguments=(_OWNER, _REPO, _str("branch_name", required=True)),
        read_only=False,
    ),
    ToolSchema(
        name="list_commits",
        description="List commits of a repository, optionally filtered by ref, path, author and date range.",
        arguments=(
            _OWNER,
            _REPO,
            _str("sha", min_length=1, description="Branch name or SHA to start listing from"),
            _str("path", min_length=1, description="Only commits touching this path"),
            _str("author", min_length=1, description="GitHub login or email"),
            _str("since", description="ISO 8601 timestamp"),
            _str("until", description="ISO 8601 timestamp"),
            _PAGE,
            _PER_PAGE,
        ),
        result_key="commits",
    ),
    ToolSchema(
        name="get_commit",
        description="Get a commit with its stats and changed files.",
        arguments=(_OWNER, _REPO, _str("commit_sha", required=True), _PAGE, _PER_PAGE),
    ),
    ToolSchema(
        name="get_file_contents",
        description="Read a UTF-8 file (size-limited) or list a directory at an optional ref.",
        arguments=(_OWNER, _REPO, _str("path", required=True), _str("ref", min_length=1)),
    ),
    # Search
    ToolSchema(
        name="search_code",
        description="Search code across GitHub using search query syntax.",
        arguments=(_QUERY, _enum("sort", ("indexed",)), _ORDER, _PAGE, _PER_PAGE),
        result_key="items",
    ),
    ToolSchema(
        name="search_repositories",
        description="Search repositories across GitHub using search query syntax.",
        arguments=(
            _QUERY,
            _enum("sort", ("stars", "forks", "help-wanted-issues", "updated")),
            _ORDER,
            _PAGE,
            _PER_PAGE,
        ),
        result_key="items",
    ),
    ToolSchema(
        name="search_users",
        description="Search users and organizations across GitHub using search query syntax.",
        arguments=(_QUERY, _enum("sort", ("followers", "repositories", "joined")), _ORDER, _PAGE, _PER_PAGE),
        result_key="items",
    ),
    # Users
    ToolSchema(
        name="get_me",
        description="Get the profile of the authenticated user.",
        arguments=(),
    ),
)

TOOL_SCHEMAS: dict[str, ToolSchema] = {s.name: s for s in _SCHEMAS}

TOOL_METADATA: dict[str, dict[str, Any]] = {
    s.name: {"description": s.description, "inputSchema": s.input_schema(), "readOnly": s.read_only}
    for s in _SCHEMAS
}


def lookup(name: str) -> ToolSchema:
    """Return the schema for a tool name.

    Raises:
        ToolError: UnknownTool if no tool has that name.
    """
    schema = TOOL_SCHEMAS.get(name)
    if schema is None:
        raise unknown_tool(name, sorted(TOOL_SCHEMAS))
    return schema
