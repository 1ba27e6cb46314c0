"""Map validated tool arguments onto outbound GitHub REST requests.

Everything here is pure: no network, no clock. Builders trust ToolArguments to be validated
and only encode per-endpoint quirks (replace semantics, comma-joined filters, comment shapes).
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from .errors import ambiguous_request, unknown_tool
from .validation import ToolArguments

COPILOT_REVIEWER = "copilot-pull-request-reviewer[bot]"


@dataclass(frozen=True, slots=True)
class OutboundRequest:
    """One GitHub REST call."""

    method: str
    path: str
    params: dict[str, str] | None = None
    json_body: dict[str, Any] | None = None


class ReviewCommentShape(enum.Enum):
    """The mutually exclusive request shapes of a pull request review comment."""

    REPLY = "reply"
    MULTI_LINE = "multi_line"
    SINGLE_LINE = "single_line"


_LOCATION_ARGS = ("path", "line", "side", "start_line", "start_side", "commit_id")


def classify_review_comment(args: ToolArguments) -> ReviewCommentShape:
    """Select exactly one review comment shape from the argument combination.

    Raises:
        ToolError: AmbiguousRequest when the combination is contradictory or insufficient.
    """
    if args.present("in_reply_to"):
        conflicting = [name for name in _LOCATION_ARGS if args.present(name)]
        if conflicting:
            raise ambiguous_request(
                "in_reply_to cannot be combined with " + ", ".join(conflicting),
                hint="Replies inherit the location of the comment they answer",
            )
        return ReviewCommentShape.REPLY

    has_path = args.present("path")
    has_line = args.present("line")
    if not has_path and not has_line:
        raise ambiguous_request(
            "Provide in_reply_to, or path with line",
            hint="path+line for a single line, path+start_line+line for a range",
        )
    if not has_path:
        raise ambiguous_request("line requires path")
    if not has_line:
        raise ambiguous_request("path requires line", hint="For a range also set start_line")

    if args.present("start_line"):
        if args["start_line"] > args["line"]:
            raise ambiguous_request("start_line must not be after line")
        return ReviewCommentShape.MULTI_LINE
    if args.present("start_side"):
        raise ambiguous_request("start_side requires start_line")
    return ReviewCommentShape.SINGLE_LINE


def _seg(value: str) -> str:
    return quote(value, safe="")


def _repo_path(args: ToolArguments) -> str:
    return f"/repos/{_seg(args['owner'])}/{_seg(args['repo'])}"


def _copy(args: ToolArguments, *names: str) -> dict[str, Any]:
    """Copy provided arguments verbatim, skipping absent ones."""
    return {name: args[name] for name in names if args.present(name)}


def _query(args: ToolArguments, *names: str) -> dict[str, str] | None:
    params: dict[str, str] = {}
    for name in names:
        if not args.present(name):
            continue
        value = args[name]
        if isinstance(value, bool):
            params[name] = "true" if value else "false"
        else:
            params[name] = str(value)
    return params or None


def _build_create_issue(args: ToolArguments) -> OutboundRequest:
    return OutboundRequest(
        method="POST",
        path=f"{_repo_path(args)}/issues",
        json_body=_copy(args, "title", "body", "labels", "assignees"),
    )


def _build_get_issue(args: ToolArguments) -> OutboundRequest:
    return OutboundRequest(method="GET", path=f"{_repo_path(args)}/issues/{args['issue_number']}")


def _build_list_issues(args: ToolArguments) -> OutboundRequest:
    params = _query(args, "state", "sort", "direction", "since", "page", "per_page") or {}
    if args.present("labels") and args["labels"]:
        # A single comma-separated labels parameter matches issues carrying every label.
        params["labels"] = ",".join(args["labels"])
    return OutboundRequest(method="GET", path=f"{_repo_path(args)}/issues", params=params or None)


def _build_update_issue(args: ToolArguments) -> OutboundRequest:
    return OutboundRequest(
        method="PATCH",
        path=f"{_repo_path(args)}/issues/{args['issue_number']}",
        json_body=_copy(args, "title", "body", "state", "labels", "assignees"),
    )


def _build_search(kind: str) -> Callable[[ToolArguments], OutboundRequest]:
    def build(args: ToolArguments) -> OutboundRequest:
        params = {"q": args["query"]}
        params.update(_query(args, "sort", "order", "page", "per_page") or {})
        return OutboundRequest(method="GET", path=f"/search/{kind}", params=params)

    return build


def _build_add_issue_comment(args: ToolArguments) -> OutboundRequest:
    return OutboundRequest(
        method="POST",
        path=f"{_repo_path(args)}/issues/{args['issue_number']}/comments",
        json_body={"body": args["body"]},
    )


def _build_get_issue_comments(args: ToolArguments) -> OutboundRequest:
    return OutboundRequest(
        method="GET",
        path=f"{_repo_path(args)}/issues/{args['issue_number']}/comments",
        params=_query(args, "page", "per_page"),
    )


def _build_create_pull_request(args: ToolArguments) -> OutboundRequest:
    return OutboundRequest(
        method="POST",
        path=f"{_repo_path(args)}/pulls",
        json_body=_copy(args, "title", "head", "base", "body", "draft", "maintainer_can_modify"),
    )


def _build_update_pull_request(args: ToolArguments) -> OutboundRequest:
    return OutboundRequest(
        method="PATCH",
        path=f"{_repo_path(args)}/pulls/{args['pr_number']}",
        json_body=_copy(args, "title", "body", "state", "base", "maintainer_can_modify"),
    )


def _build_merge_pull_request(args: ToolArguments) -> OutboundRequest:
    return OutboundRequest(
        method="PUT",
        path=f"{_repo_path(args)}/pulls/{args['pr_number']}/merge",
        json_body=_copy(args, "commit_title", "commit_message", "sha", "merge_method"),
    )


def _build_get_pull_request(args: ToolArguments) -> OutboundRequest:
    return OutboundRequest(method="GET", path=f"{_repo_path(args)}/pulls/{args['pr_number']}")


def status_requests(owner: str, repo: str, sha: str) -> tuple[OutboundRequest, OutboundRequest]:
    """Sub-resource calls for a pull request head commit: combined status and check runs."""
    base = f"/repos/{_seg(owner)}/{_seg(repo)}/commits/{_seg(sha)}"
    return (
        OutboundRequest(method="GET", path=f"{base}/status"),
        OutboundRequest(method="GET", path=f"{base}/check-runs", params={"per_page": "100"}),
    )


def _build_get_pull_request_files(args: ToolArguments) -> OutboundRequest:
    return OutboundRequest(
        method="GET",
        path=f"{_repo_path(args)}/pulls/{args['pr_number']}/files",
        params=_query(args, "page", "per_page"),
    )


def _build_get_pull_request_reviews(args: ToolArguments) -> OutboundRequest:
    return OutboundRequest(
        method="GET",
        path=f"{_repo_path(args)}/pulls/{args['pull_number']}/reviews",
        params=_query(args, "page", "per_page"),
    )


def _build_create_pull_request_review(args: ToolArguments) -> OutboundRequest:
    return OutboundRequest(
        method="POST",
        path=f"{_repo_path(args)}/pulls/{args['pull_number']}/reviews",
        json_body=_copy(args, "event", "body", "commit_id"),
    )


def _build_add_pull_request_review_comment(args: ToolArguments) -> OutboundRequest:
    shape = classify_review_comment(args)
    pulls = f"{_repo_path(args)}/pulls/{args['pull_number']}"

    if shape is ReviewCommentShape.REPLY:
        return OutboundRequest(
            method="POST",
            path=f"{pulls}/comments/{args['in_reply_to']}/replies",
            json_body={"body": args["body"]},
        )

    body = _copy(args, "body", "commit_id", "path", "line", "side")
    if shape is ReviewCommentShape.MULTI_LINE:
        body.update(_copy(args, "start_line", "start_side"))
    return OutboundRequest(method="POST", path=f"{pulls}/comments", json_body=body)


def _build_request_copilot_review(args: ToolArguments) -> OutboundRequest:
    return OutboundRequest(
        method="POST",
        path=f"{_repo_path(args)}/pulls/{args['pull_number']}/requested_reviewers",
        json_body={"reviewers": [COPILOT_REVIEWER]},
    )


def _build_list_pull_requests(args: ToolArguments) -> OutboundRequest:
    return OutboundRequest(
        method="GET",
        path=f"{_repo_path(args)}/pulls",
        params=_query(args, "state", "head", "base", "sort", "direction", "page", "per_page"),
    )


def _build_create_repository(args: ToolArguments) -> OutboundRequest:
    return OutboundRequest(
        method="POST",
        path="/user/repos",
        json_body=_copy(args, "name", "description", "private", "auto_init"),
    )


def _build_fork_repository(args: ToolArguments) -> OutboundRequest:
    return OutboundRequest(
        method="POST",
        path=f"{_repo_path(args)}/forks",
        json_body=_copy(args, "organization"),
    )


def _build_list_branches(args: ToolArguments) -> OutboundRequest:
    return OutboundRequest(
        method="GET",
        path=f"{_repo_path(args)}/branches",
        params=_query(args, "protected", "page", "per_page"),
    )


def _build_create_branch(args: ToolArguments) -> OutboundRequest:
    return OutboundRequest(
        method="POST",
        path=f"{_repo_path(args)}/git/refs",
        json_body={"ref": f"refs/heads/{args['branch_name']}", "sha": args["sha"]},
    )


def _build_delete_branch(args: ToolArguments) -> OutboundRequest:
    # Branch names keep their slashes in the ref path.
    return OutboundRequest(
        method="DELETE",
        path=f"{_repo_path(args)}/git/refs/heads/{quote(args['branch_name'], safe='/')}",
    )


def _build_list_commits(args: ToolArguments) -> OutboundRequest:
    return OutboundRequest(
        method="GET",
        path=f"{_repo_path(args)}/commits",
        params=_query(args, "sha", "path", "author", "since", "until", "page", "per_page"),
    )


def _build_get_commit(args: ToolArguments) -> OutboundRequest:
    return OutboundRequest(
        method="GET",
        path=f"{_repo_path(args)}/commits/{_seg(args['commit_sha'])}",
        params=_query(args, "page", "per_page"),
    )


def _build_get_file_contents(args: ToolArguments) -> OutboundRequest:
    path = quote(args["path"].strip("/"), safe="/")
    return OutboundRequest(
        method="GET",
        path=f"{_repo_path(args)}/contents/{path}",
        params=_query(args, "ref"),
    )


def _build_get_me(_args: ToolArguments) -> OutboundRequest:
    return OutboundRequest(method="GET", path="/user")


_BUILDERS: dict[str, Callable[[ToolArguments], OutboundRequest]] = {
    "create_issue": _build_create_issue,
    "get_issue": _build_get_issue,
    "list_issues": _build_list_issues,
    "update_issue": _build_update_issue,
    "search_issues": _build_search("issues"),
    "add_issue_comment": _build_add_issue_comment,
    "get_issue_comments": _build_get_issue_comments,
    "create_pull_request": _build_create_pull_request,
    "update_pull_request": _build_update_pull_request,
    "merge_pull_request": _build_merge_pull_request,
    "get_pull_request_status": _build_get_pull_request,
    "get_pull_request_files": _build_get_pull_request_files,
    "get_pull_request_reviews": _build_get_pull_request_reviews,
    "create_pull_request_review": _build_create_pull_request_review,
    "add_pull_request_review_comment": _build_add_pull_request_review_comment,
    "request_copilot_review": _build_request_copilot_review,
    "list_pull_requests": _build_list_pull_requests,
    "create_repository": _build_create_repository,
    "fork_repository": _build_fork_repository,
    "list_branches": _build_list_branches,
    "create_branch": _build_create_branch,
    "delete_branch": _build_delete_branch,
    "list_commits": _build_list_commits,
    "get_commit": _build_get_commit,
    "get_file_contents": _build_get_file_contents,
    "search_code": _build_search("code"),
    "search_repositories": _build_search("repositories"),
    "search_users": _build_search("users"),
    "get_me": _build_get_me,
}


def build(tool_name: str, args: ToolArguments) -> OutboundRequest:
    """Build the outbound request for a validated tool call."""
    builder = _BUILDERS.get(tool_name)
    if builder is None:
        raise unknown_tool(tool_name, sorted(_BUILDERS))
    return builder(args)
