"""Shape raw GitHub responses into the documented tool result contracts.

Projection picks fields explicitly so that upstream additions never leak into results and
upstream renames surface here rather than in callers. All functions are pure.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from .errors import unexpected_response, unknown_tool

Projector = Callable[[Any, Any], dict[str, Any]]


def _login(user: Any) -> str | None:
    if isinstance(user, dict) and isinstance(user.get("login"), str):
        return user["login"]
    return None


def _names(items: Any, key: str) -> list[str]:
    out: list[str] = []
    if not isinstance(items, list):
        return out
    for it in items:
        if isinstance(it, dict) and isinstance(it.get(key), str):
            out.append(it[key])
        elif isinstance(it, str):
            out.append(it)
    return out


def _obj(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise unexpected_response(what)
    return data


def _array(data: Any, what: str) -> list[dict[str, Any]]:
    if not isinstance(data, list):
        raise unexpected_response(what)
    return [it for it in data if isinstance(it, dict)]


def envelope(key: str, items: list[dict[str, Any]], **extra: Any) -> dict[str, Any]:
    """Wrap a list result with an explicit count."""
    out: dict[str, Any] = dict(extra)
    out[key] = items
    out["count"] = len(items)
    return out


def _repo_of(args: Any) -> dict[str, Any]:
    return {"owner": args["owner"], "repo": args["repo"]}


# Resources


def issue_summary(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "number": data.get("number"),
        "title": data.get("title"),
        "state": data.get("state"),
        "author": _login(data.get("user")),
        "labels": _names(data.get("labels"), "name"),
        "assignees": _names(data.get("assignees"), "login"),
        "comments": data.get("comments"),
        "created_at": data.get("created_at"),
        "updated_at": data.get("updated_at"),
        "url": data.get("html_url"),
    }


def issue_detail(data: dict[str, Any]) -> dict[str, Any]:
    out = issue_summary(data)
    out["body"] = data.get("body")
    out["closed_at"] = data.get("closed_at")
    out["is_pull_request"] = "pull_request" in data
    return out


def comment(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": data.get("id"),
        "author": _login(data.get("user")),
        "body": data.get("body"),
        "created_at": data.get("created_at"),
        "updated_at": data.get("updated_at"),
        "url": data.get("html_url"),
    }


def _ref(data: Any) -> str | None:
    if isinstance(data, dict) and isinstance(data.get("ref"), str):
        return data["ref"]
    return None


def pull_request_summary(data: dict[str, Any]) -> dict[str, Any]:
    head = data.get("head")
    return {
        "number": data.get("number"),
        "title": data.get("title"),
        "state": data.get("state"),
        "draft": data.get("draft"),
        "author": _login(data.get("user")),
        "head": _ref(head),
        "head_sha": head.get("sha") if isinstance(head, dict) else None,
        "base": _ref(data.get("base")),
        "created_at": data.get("created_at"),
        "updated_at": data.get("updated_at"),
        "url": data.get("html_url"),
    }


def pull_request_detail(data: dict[str, Any]) -> dict[str, Any]:
    out = pull_request_summary(data)
    out["body"] = data.get("body")
    out["merged"] = data.get("merged")
    out["maintainer_can_modify"] = data.get("maintainer_can_modify")
    return out


def repository(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "full_name": data.get("full_name"),
        "name": data.get("name"),
        "owner": _login(data.get("owner")),
        "description": data.get("description"),
        "private": data.get("private"),
        "fork": data.get("fork"),
        "default_branch": data.get("default_branch"),
        "language": data.get("language"),
        "stars": data.get("stargazers_count"),
        "forks": data.get("forks_count"),
        "url": data.get("html_url"),
        "clone_url": data.get("clone_url"),
        "updated_at": data.get("updated_at"),
    }


def commit_summary(data: dict[str, Any]) -> dict[str, Any]:
    inner = data.get("commit") if isinstance(data.get("commit"), dict) else {}
    author = inner.get("author") if isinstance(inner.get("author"), dict) else {}
    return {
        "sha": data.get("sha"),
        "message": inner.get("message"),
        "author_name": author.get("name"),
        "author_email": author.get("email"),
        "author_login": _login(data.get("author")),
        "date": author.get("date"),
        "url": data.get("html_url"),
    }


def changed_file(data: dict[str, Any]) -> dict[str, Any]:
    out = {
        "filename": data.get("filename"),
        "status": data.get("status"),
        "additions": data.get("additions"),
        "deletions": data.get("deletions"),
        "changes": data.get("changes"),
    }
    if "previous_filename" in data:
        out["previous_filename"] = data.get("previous_filename")
    if "patch" in data:
        out["patch"] = data.get("patch")
    return out


def review(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": data.get("id"),
        "author": _login(data.get("user")),
        "state": data.get("state"),
        "body": data.get("body"),
        "commit_id": data.get("commit_id"),
        "submitted_at": data.get("submitted_at"),
        "url": data.get("html_url"),
    }


def user(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "login": data.get("login"),
        "id": data.get("id"),
        "type": data.get("type"),
        "url": data.get("html_url"),
        "avatar_url": data.get("avatar_url"),
    }


# Pull request status


def mergeability(mergeable: Any) -> str:
    """Name GitHub's tri-state mergeable flag. null means GitHub is still computing it."""
    if mergeable is True:
        return "mergeable"
    if mergeable is False:
        return "conflicting"
    return "computing"


def combined_status(data: dict[str, Any]) -> dict[str, Any]:
    contexts = []
    for st in data.get("statuses") or []:
        if isinstance(st, dict):
            contexts.append(
                {
                    "context": st.get("context"),
                    "state": st.get("state"),
                    "description": st.get("description"),
                    "target_url": st.get("target_url"),
                }
            )
    return {"state": data.get("state"), "total_count": data.get("total_count", len(contexts)), "contexts": contexts}


def check_runs(data: dict[str, Any]) -> dict[str, Any]:
    runs = []
    for run in data.get("check_runs") or []:
        if isinstance(run, dict):
            runs.append(
                {
                    "name": run.get("name"),
                    "status": run.get("status"),
                    "conclusion": run.get("conclusion"),
                    "url": run.get("html_url"),
                }
            )
    return {"total_count": data.get("total_count", len(runs)), "runs": runs}


def merge_pull_request_status(
    pr: Any,
    *,
    status: Any = None,
    checks: Any = None,
) -> dict[str, Any]:
    """Merge a pull request with its optional head-commit sub-resources.

    A sub-resource that is None is omitted from the result. Each sub-resource lands under its
    own key, so the merge does not depend on fetch order.
    """
    data = _obj(pr, "pull request")
    head = data.get("head") if isinstance(data.get("head"), dict) else {}
    out: dict[str, Any] = {
        "number": data.get("number"),
        "title": data.get("title"),
        "state": data.get("state"),
        "draft": data.get("draft"),
        "merged": data.get("merged"),
        "mergeable": data.get("mergeable"),
        "mergeability": mergeability(data.get("mergeable")),
        "mergeable_state": data.get("mergeable_state"),
        "head": head.get("ref"),
        "head_sha": head.get("sha"),
        "base": _ref(data.get("base")),
        "url": data.get("html_url"),
    }
    if status is not None:
        out["status"] = combined_status(_obj(status, "commit status"))
    if checks is not None:
        out["checks"] = check_runs(_obj(checks, "check runs"))
    return out


# Per-tool projectors: (raw, args) -> payload


def _p_create_issue(raw: Any, args: Any) -> dict[str, Any]:
    return {**_repo_of(args), **issue_detail(_obj(raw, "issue"))}


def _p_list_issues(raw: Any, args: Any) -> dict[str, Any]:
    issues = [issue_summary(it) for it in _array(raw, "issues") if "pull_request" not in it]
    return envelope("issues", issues, **_repo_of(args))


def _search(item: Callable[[dict[str, Any]], dict[str, Any]]) -> Projector:
    def project_search(raw: Any, args: Any) -> dict[str, Any]:
        data = _obj(raw, "search")
        items = [item(it) for it in data.get("items") or [] if isinstance(it, dict)]
        return envelope(
            "items",
            items,
            query=args["query"],
            total_count=data.get("total_count"),
            incomplete_results=data.get("incomplete_results", False),
        )

    return project_search


def _search_issue(data: dict[str, Any]) -> dict[str, Any]:
    out = issue_summary(data)
    out["is_pull_request"] = "pull_request" in data
    return out


def _code_hit(data: dict[str, Any]) -> dict[str, Any]:
    repo = data.get("repository") if isinstance(data.get("repository"), dict) else {}
    return {
        "name": data.get("name"),
        "path": data.get("path"),
        "sha": data.get("sha"),
        "repository": repo.get("full_name"),
        "url": data.get("html_url"),
    }


def _p_add_issue_comment(raw: Any, args: Any) -> dict[str, Any]:
    return {**_repo_of(args), "issue_number": args["issue_number"], **comment(_obj(raw, "comment"))}


def _p_get_issue_comments(raw: Any, args: Any) -> dict[str, Any]:
    comments = [comment(it) for it in _array(raw, "comments")]
    return envelope("comments", comments, **_repo_of(args), issue_number=args["issue_number"])


def _p_pull_request(raw: Any, args: Any) -> dict[str, Any]:
    return {**_repo_of(args), **pull_request_detail(_obj(raw, "pull request"))}


def _p_merge_pull_request(raw: Any, args: Any) -> dict[str, Any]:
    data = _obj(raw, "merge")
    return {
        **_repo_of(args),
        "pr_number": args["pr_number"],
        "merged": data.get("merged"),
        "sha": data.get("sha"),
        "message": data.get("message"),
    }


def _p_get_pull_request_files(raw: Any, args: Any) -> dict[str, Any]:
    files = [changed_file(it) for it in _array(raw, "pull request files")]
    return envelope(
        "files",
        files,
        **_repo_of(args),
        pr_number=args["pr_number"],
        additions=sum(f["additions"] or 0 for f in files),
        deletions=sum(f["deletions"] or 0 for f in files),
    )


def _p_get_pull_request_reviews(raw: Any, args: Any) -> dict[str, Any]:
    reviews = [review(it) for it in _array(raw, "reviews")]
    return envelope("reviews", reviews, **_repo_of(args), pull_number=args["pull_number"])


def _p_create_pull_request_review(raw: Any, args: Any) -> dict[str, Any]:
    return {**_repo_of(args), "pull_number": args["pull_number"], "event": args["event"],
            **review(_obj(raw, "review"))}


def _p_add_pull_request_review_comment(raw: Any, args: Any) -> dict[str, Any]:
    data = _obj(raw, "review comment")
    return {
        **_repo_of(args),
        "pull_number": args["pull_number"],
        "id": data.get("id"),
        "path": data.get("path"),
        "line": data.get("line"),
        "start_line": data.get("start_line"),
        "side": data.get("side"),
        "in_reply_to_id": data.get("in_reply_to_id"),
        "body": data.get("body"),
        "author": _login(data.get("user")),
        "url": data.get("html_url"),
    }


def _p_request_copilot_review(raw: Any, args: Any) -> dict[str, Any]:
    requested: list[str] = []
    if isinstance(raw, dict):
        requested = _names(raw.get("requested_reviewers"), "login")
    return {**_repo_of(args), "pull_number": args["pull_number"], "requested": True,
            "requested_reviewers": requested}


def _p_list_pull_requests(raw: Any, args: Any) -> dict[str, Any]:
    prs = [pull_request_summary(it) for it in _array(raw, "pull requests")]
    return envelope("pull_requests", prs, **_repo_of(args))


def _p_repository(raw: Any, _args: Any) -> dict[str, Any]:
    return repository(_obj(raw, "repository"))


def _p_list_branches(raw: Any, args: Any) -> dict[str, Any]:
    branches = []
    for it in _array(raw, "branches"):
        head = it.get("commit") if isinstance(it.get("commit"), dict) else {}
        branches.append({"name": it.get("name"), "sha": head.get("sha"), "protected": it.get("protected")})
    return envelope("branches", branches, **_repo_of(args))


def _p_create_branch(raw: Any, args: Any) -> dict[str, Any]:
    data = _obj(raw, "ref")
    target = data.get("object") if isinstance(data.get("object"), dict) else {}
    return {**_repo_of(args), "branch_name": args["branch_name"], "ref": data.get("ref"), "sha": target.get("sha")}


def _p_delete_branch(_raw: Any, args: Any) -> dict[str, Any]:
    return {**_repo_of(args), "branch_name": args["branch_name"], "deleted": True}


def _p_list_commits(raw: Any, args: Any) -> dict[str, Any]:
    commits = [commit_summary(it) for it in _array(raw, "commits")]
    return envelope("commits", commits, **_repo_of(args))


def _p_get_commit(raw: Any, args: Any) -> dict[str, Any]:
    data = _obj(raw, "commit")
    stats = data.get("stats") if isinstance(data.get("stats"), dict) else {}
    files = [changed_file(it) for it in data.get("files") or [] if isinstance(it, dict)]
    return {
        **_repo_of(args),
        **commit_summary(data),
        "parents": _names(data.get("parents"), "sha"),
        "stats": {
            "additions": stats.get("additions"),
            "deletions": stats.get("deletions"),
            "total": stats.get("total"),
        },
        "files": files,
        "file_count": len(files),
    }


def _p_get_me(raw: Any, _args: Any) -> dict[str, Any]:
    data = _obj(raw, "user")
    out = user(data)
    out.update(
        {
            "name": data.get("name"),
            "email": data.get("email"),
            "company": data.get("company"),
            "public_repos": data.get("public_repos"),
            "followers": data.get("followers"),
            "created_at": data.get("created_at"),
        }
    )
    return out


_PROJECTORS: dict[str, Projector] = {
    "create_issue": _p_create_issue,
    "get_issue": _p_create_issue,
    "list_issues": _p_list_issues,
    "update_issue": _p_create_issue,
    "search_issues": _search(_search_issue),
    "add_issue_comment": _p_add_issue_comment,
    "get_issue_comments": _p_get_issue_comments,
    "create_pull_request": _p_pull_request,
    "update_pull_request": _p_pull_request,
    "merge_pull_request": _p_merge_pull_request,
    "get_pull_request_files": _p_get_pull_request_files,
    "get_pull_request_reviews": _p_get_pull_request_reviews,
    "create_pull_request_review": _p_create_pull_request_review,
    "add_pull_request_review_comment": _p_add_pull_request_review_comment,
    "request_copilot_review": _p_request_copilot_review,
    "list_pull_requests": _p_list_pull_requests,
    "create_repository": _p_repository,
    "fork_repository": _p_repository,
    "list_branches": _p_list_branches,
    "create_branch": _p_create_branch,
    "delete_branch": _p_delete_branch,
    "list_commits": _p_list_commits,
    "get_commit": _p_get_commit,
    "search_code": _search(_code_hit),
    "search_repositories": _search(repository),
    "search_users": _search(user),
    "get_me": _p_get_me,
}


def project(tool_name: str, raw: Any, args: Any) -> dict[str, Any]:
    """Project a raw GitHub response into the tool's result payload.

    get_pull_request_status and get_file_contents are assembled in the dispatcher: the first
    needs follow-up calls and the second enforces configured limits.
    """
    projector = _PROJECTORS.get(tool_name)
    if projector is None:
        raise unknown_tool(tool_name, sorted(_PROJECTORS))
    return projector(raw, args)
