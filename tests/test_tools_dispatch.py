"""End-to-end dispatch tests.

A real GitHubClient runs against httpx.MockTransport routes, so each test exercises validation,
request building, the HTTP layer, projection and audit together.
"""

from __future__ import annotations

import asyncio
import base64
import json
import time
from dataclasses import dataclass, field
from typing import Any

import github_tools_mcp.tools as tools
import httpx
import pytest
from github_tools_mcp.audit import AuditEvent
from github_tools_mcp.config import AppConfig, LimitsConfig
from github_tools_mcp.errors import CONFIG, ToolError
from github_tools_mcp.github_client import GitHubClient

Route = tuple[str, str]


@dataclass
class DummyAudit:
    events: list[AuditEvent] = field(default_factory=list)

    def write_event(self, event: AuditEvent) -> None:
        self.events.append(event)

    def measure_start(self) -> float:
        return time.monotonic()

    def measure_duration_ms(self, start: float) -> int:
        return int((time.monotonic() - start) * 1000)


class Routes:
    """Maps (method, path) onto canned responses and records every request."""

    def __init__(self, routes: dict[Route, httpx.Response]) -> None:
        self._routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self._routes:
            raise AssertionError(f"Unexpected GitHub call: {key}")
        return self._routes[key]

    def body(self, index: int = 0) -> Any:
        return json.loads(self.requests[index].content)


def _install(
    monkeypatch: pytest.MonkeyPatch,
    routes: dict[Route, httpx.Response],
    *,
    limits: LimitsConfig | None = None,
) -> tuple[Routes, DummyAudit]:
    handler = Routes(routes)
    audit = DummyAudit()
    cfg = AppConfig(token="tok", limits=limits or LimitsConfig())
    github = GitHubClient(token=cfg.token, limits=cfg.limits, transport=httpx.MockTransport(handler))
    runtime = tools.Runtime(config=cfg, audit=audit, github=github)  # type: ignore[arg-type]
    monkeypatch.setattr(tools, "initialize_runtime_from_env", lambda: runtime)
    return handler, audit


_PR = {
    "number": 7,
    "title": "Add login",
    "state": "open",
    "draft": False,
    "merged": False,
    "mergeable": True,
    "mergeable_state": "clean",
    "head": {"ref": "feature", "sha": "abc123"},
    "base": {"ref": "main"},
}
_STATUS_PATH = "/repos/octo/hello/commits/abc123/status"
_CHECKS_PATH = "/repos/octo/hello/commits/abc123/check-runs"


@pytest.mark.asyncio
async def test_create_issue_returns_number_and_label_names(monkeypatch: pytest.MonkeyPatch) -> None:
    routes, audit = _install(
        monkeypatch,
        {
            ("POST", "/repos/octo/hello/issues"): httpx.Response(
                201,
                json={"number": 101, "title": "Crash", "state": "open", "labels": [{"name": "bug"}]},
            )
        },
    )

    out = await tools.dispatch_tool(
        "create_issue", {"owner": "octo", "repo": "hello", "title": "Crash", "labels": ["bug"]}
    )

    assert out["ok"] is True
    assert out["number"] == 101
    assert out["labels"] == ["bug"]
    assert routes.body() == {"title": "Crash", "labels": ["bug"]}
    assert len(audit.events) == 1
    assert audit.events[0].outcome == "succeeded"
    assert audit.events[0].target == "octo/hello"
    assert audit.events[0].correlation_id == out["correlation_id"]


@pytest.mark.asyncio
async def test_list_issues_sends_joined_labels(monkeypatch: pytest.MonkeyPatch) -> None:
    routes, _ = _install(monkeypatch, {("GET", "/repos/octo/hello/issues"): httpx.Response(200, json=[])})

    out = await tools.dispatch_tool(
        "list_issues", {"owner": "octo", "repo": "hello", "labels": ["bug", "priority-high"]}
    )

    assert out["ok"] is True
    assert out["issues"] == []
    assert out["count"] == 0
    params = routes.requests[0].url.params
    assert params["labels"] == "bug,priority-high"
    assert params["state"] == "open"


@pytest.mark.asyncio
async def test_update_issue_with_empty_labels_clears_them(monkeypatch: pytest.MonkeyPatch) -> None:
    routes, _ = _install(
        monkeypatch,
        {("PATCH", "/repos/octo/hello/issues/3"): httpx.Response(200, json={"number": 3, "labels": []})},
    )

    out = await tools.dispatch_tool("update_issue", {"owner": "octo", "repo": "hello", "issue_number": 3, "labels": []})

    assert out["ok"] is True
    assert routes.body() == {"labels": []}


@pytest.mark.asyncio
async def test_merge_with_stale_sha_is_upstream_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    _, audit = _install(
        monkeypatch,
        {
            ("PUT", "/repos/octo/hello/pulls/7/merge"): httpx.Response(
                409, json={"message": "Head branch was modified. Review and try the merge again."}
            )
        },
    )

    out = await tools.dispatch_tool("merge_pull_request", {"owner": "octo", "repo": "hello", "pr_number": 7, "sha": "old"})

    assert out["ok"] is False
    assert out["kind"] == "upstream-failure"
    assert out["code"] == "UpstreamFailure"
    assert out["status_code"] == 409
    assert "Head branch was modified" in out["hint"]
    assert audit.events[0].outcome == "failed"
    assert audit.events[0].status_code == 409


@pytest.mark.asyncio
async def test_moved_issue_is_upstream_failure_not_empty_result(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(
        monkeypatch,
        {("GET", "/repos/octo/hello/issues/1"): httpx.Response(301, json={"message": "Moved Permanently"})},
    )

    out = await tools.dispatch_tool("get_issue", {"owner": "octo", "repo": "hello", "issue_number": 1})

    assert out["ok"] is False
    assert out["code"] == "UpstreamFailure"
    assert out["status_code"] == 301
    assert "number" not in out


@pytest.mark.asyncio
async def test_validation_failure_makes_no_network_call(monkeypatch: pytest.MonkeyPatch) -> None:
    routes, audit = _install(monkeypatch, {})

    out = await tools.dispatch_tool("list_issues", {"owner": "octo", "repo": "hello", "per_page": 101})

    assert out["ok"] is False
    assert out["kind"] == "validation"
    assert out["code"] == "InvalidValue"
    assert routes.requests == []
    assert audit.events[0].outcome == "rejected"
    assert audit.events[0].error_code == "InvalidValue"


@pytest.mark.asyncio
async def test_missing_argument_names_the_field(monkeypatch: pytest.MonkeyPatch) -> None:
    routes, _ = _install(monkeypatch, {})

    out = await tools.dispatch_tool("create_issue", {"owner": "octo", "repo": "hello"})

    assert out["code"] == "MissingArgument"
    assert out["details"] == {"argument": "title"}
    assert routes.requests == []


@pytest.mark.asyncio
async def test_ambiguous_review_comment_makes_no_network_call(monkeypatch: pytest.MonkeyPatch) -> None:
    routes, audit = _install(monkeypatch, {})

    out = await tools.dispatch_tool(
        "add_pull_request_review_comment",
        {"owner": "octo", "repo": "hello", "pull_number": 7, "body": "nit", "in_reply_to": 5, "line": 3},
    )

    assert out["ok"] is False
    assert out["kind"] == "ambiguous-request"
    assert routes.requests == []
    assert audit.events[0].outcome == "rejected"


@pytest.mark.asyncio
async def test_review_comment_reply(monkeypatch: pytest.MonkeyPatch) -> None:
    routes, _ = _install(
        monkeypatch,
        {
            ("POST", "/repos/octo/hello/pulls/7/comments/5/replies"): httpx.Response(
                201, json={"id": 9, "in_reply_to_id": 5, "body": "done"}
            )
        },
    )

    out = await tools.dispatch_tool(
        "add_pull_request_review_comment",
        {"owner": "octo", "repo": "hello", "pull_number": 7, "body": "done", "in_reply_to": 5},
    )

    assert out["ok"] is True
    assert out["in_reply_to_id"] == 5
    assert routes.body() == {"body": "done"}


@pytest.mark.asyncio
async def test_unknown_tool(monkeypatch: pytest.MonkeyPatch) -> None:
    routes, audit = _install(monkeypatch, {})

    out = await tools.dispatch_tool("delete_repository", {"owner": "octo", "repo": "hello"})

    assert out["ok"] is False
    assert out["kind"] == "unknown-tool"
    assert "correlation_id" in out
    assert routes.requests == []
    assert audit.events[0].outcome == "rejected"


@pytest.mark.asyncio
async def test_credentials_in_arguments_are_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    routes, audit = _install(monkeypatch, {})
    pat = "ghp_" + "z" * 36

    out = await tools.dispatch_tool("create_issue", {"owner": "octo", "repo": "hello", "title": "t", "body": pat})

    assert out["code"] == "CredentialRejected"
    assert pat not in json.dumps(out)
    assert routes.requests == []
    assert audit.events[0].outcome == "rejected"


@pytest.mark.asyncio
async def test_free_text_starting_with_bearer_is_accepted(monkeypatch: pytest.MonkeyPatch) -> None:
    routes, _ = _install(
        monkeypatch,
        {
            ("POST", "/repos/octo/hello/issues"): httpx.Response(
                201, json={"number": 102, "title": "Bearer token auth fails on refresh", "labels": []}
            )
        },
    )

    out = await tools.dispatch_tool(
        "create_issue", {"owner": "octo", "repo": "hello", "title": "Bearer token auth fails on refresh"}
    )

    assert out["ok"] is True
    assert out["number"] == 102
    assert routes.body() == {"title": "Bearer token auth fails on refresh"}


@pytest.mark.asyncio
async def test_pull_request_status_merges_sub_resources(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(
        monkeypatch,
        {
            ("GET", "/repos/octo/hello/pulls/7"): httpx.Response(200, json=_PR),
            ("GET", _STATUS_PATH): httpx.Response(200, json={"state": "pending", "total_count": 0, "statuses": []}),
            ("GET", _CHECKS_PATH): httpx.Response(
                200, json={"total_count": 1, "check_runs": [{"name": "ci", "status": "in_progress"}]}
            ),
        },
    )

    out = await tools.dispatch_tool("get_pull_request_status", {"owner": "octo", "repo": "hello", "pr_number": 7})

    assert out["ok"] is True
    assert out["mergeability"] == "mergeable"
    assert out["status"]["state"] == "pending"
    assert out["checks"]["runs"][0]["name"] == "ci"


@pytest.mark.asyncio
async def test_pull_request_status_omits_unavailable_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(
        monkeypatch,
        {
            ("GET", "/repos/octo/hello/pulls/7"): httpx.Response(200, json={**_PR, "mergeable": None}),
            ("GET", _STATUS_PATH): httpx.Response(200, json={"state": "success", "statuses": []}),
            ("GET", _CHECKS_PATH): httpx.Response(403, json={"message": "Resource not accessible by integration"}),
        },
    )

    out = await tools.dispatch_tool("get_pull_request_status", {"owner": "octo", "repo": "hello", "pr_number": 7})

    assert out["ok"] is True
    assert "checks" not in out
    assert out["status"]["state"] == "success"
    assert out["mergeable"] is None
    assert out["mergeability"] == "computing"


@pytest.mark.asyncio
async def test_pull_request_status_fails_when_checks_are_rate_limited(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(
        monkeypatch,
        {
            ("GET", "/repos/octo/hello/pulls/7"): httpx.Response(200, json=_PR),
            ("GET", _STATUS_PATH): httpx.Response(200, json={"state": "success", "statuses": []}),
            ("GET", _CHECKS_PATH): httpx.Response(
                403,
                headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1700000000"},
                json={"message": "API rate limit exceeded"},
            ),
        },
    )

    out = await tools.dispatch_tool("get_pull_request_status", {"owner": "octo", "repo": "hello", "pr_number": 7})

    assert out["ok"] is False
    assert out["kind"] == "upstream-failure"
    assert out["status_code"] == 403
    assert out["details"] == {"rate_limited": True}


@pytest.mark.asyncio
async def test_pull_request_status_fails_on_sub_resource_server_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(
        monkeypatch,
        {
            ("GET", "/repos/octo/hello/pulls/7"): httpx.Response(200, json=_PR),
            ("GET", _STATUS_PATH): httpx.Response(500, json={"message": "oops"}),
            ("GET", _CHECKS_PATH): httpx.Response(200, json={"total_count": 0, "check_runs": []}),
        },
    )

    out = await tools.dispatch_tool("get_pull_request_status", {"owner": "octo", "repo": "hello", "pr_number": 7})

    assert out["ok"] is False
    assert out["status_code"] == 500


@pytest.mark.asyncio
async def test_pull_request_status_not_found(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, {("GET", "/repos/octo/hello/pulls/7"): httpx.Response(404, json={"message": "Not Found"})})

    out = await tools.dispatch_tool("get_pull_request_status", {"owner": "octo", "repo": "hello", "pr_number": 7})

    assert out["ok"] is False
    assert out["status_code"] == 404


@pytest.mark.asyncio
async def test_get_file_contents_decodes_utf8(monkeypatch: pytest.MonkeyPatch) -> None:
    content = base64.b64encode("print('hi')\n".encode("utf-8")).decode("ascii")
    _install(
        monkeypatch,
        {
            ("GET", "/repos/octo/hello/contents/src/app.py"): httpx.Response(
                200,
                json={"type": "file", "path": "src/app.py", "sha": "s", "size": 12, "encoding": "base64",
                      "content": content},
            )
        },
    )

    out = await tools.dispatch_tool("get_file_contents", {"owner": "octo", "repo": "hello", "path": "src/app.py"})

    assert out["ok"] is True
    assert out["content"] == "print('hi')\n"
    assert out["type"] == "file"


@pytest.mark.asyncio
async def test_get_file_contents_enforces_size_limit(monkeypatch: pytest.MonkeyPatch) -> None:
    content = base64.b64encode(b"a" * 64).decode("ascii")
    _install(
        monkeypatch,
        {
            ("GET", "/repos/octo/hello/contents/big.txt"): httpx.Response(
                200, json={"type": "file", "path": "big.txt", "encoding": "base64", "content": content}
            )
        },
        limits=LimitsConfig(get_file_max_bytes=16),
    )

    out = await tools.dispatch_tool("get_file_contents", {"owner": "octo", "repo": "hello", "path": "big.txt"})

    assert out["ok"] is False
    assert out["code"] == "InvalidValue"


@pytest.mark.asyncio
async def test_get_file_contents_rejects_binary(monkeypatch: pytest.MonkeyPatch) -> None:
    content = base64.b64encode(b"\xff\xfe\x00\x01").decode("ascii")
    _install(
        monkeypatch,
        {
            ("GET", "/repos/octo/hello/contents/logo.png"): httpx.Response(
                200, json={"type": "file", "path": "logo.png", "encoding": "base64", "content": content}
            )
        },
    )

    out = await tools.dispatch_tool("get_file_contents", {"owner": "octo", "repo": "hello", "path": "logo.png"})

    assert out["code"] == "InvalidValue"
    assert "Binary" in out["message"]


@pytest.mark.asyncio
async def test_get_file_contents_lists_directory(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(
        monkeypatch,
        {
            ("GET", "/repos/octo/hello/contents/src"): httpx.Response(
                200, json=[{"name": "app.py", "path": "src/app.py", "type": "file", "size": 12}]
            )
        },
    )

    out = await tools.dispatch_tool("get_file_contents", {"owner": "octo", "repo": "hello", "path": "src"})

    assert out["type"] == "dir"
    assert out["count"] == 1
    assert out["entries"][0]["name"] == "app.py"


@pytest.mark.asyncio
async def test_delete_branch_no_content(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, {("DELETE", "/repos/octo/hello/git/refs/heads/feature/x"): httpx.Response(204)})

    out = await tools.dispatch_tool("delete_branch", {"owner": "octo", "repo": "hello", "branch_name": "feature/x"})

    assert out["ok"] is True
    assert out["deleted"] is True


@pytest.mark.asyncio
async def test_concurrent_invocations_are_independent(monkeypatch: pytest.MonkeyPatch) -> None:
    _, audit = _install(
        monkeypatch,
        {
            ("GET", "/user"): httpx.Response(200, json={"login": "alice", "id": 1}),
            ("GET", "/repos/octo/hello/issues/1"): httpx.Response(404, json={"message": "Not Found"}),
        },
    )

    me, missing = await asyncio.gather(
        tools.dispatch_tool("get_me", {}),
        tools.dispatch_tool("get_issue", {"owner": "octo", "repo": "hello", "issue_number": 1}),
    )

    assert me["ok"] is True
    assert me["login"] == "alice"
    assert missing["ok"] is False
    assert missing["status_code"] == 404
    assert me["correlation_id"] != missing["correlation_id"]
    assert len(audit.events) == 2


@pytest.mark.asyncio
async def test_config_error_is_reported_and_audited(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    def _fail() -> tools.Runtime:
        raise ToolError(code=CONFIG, message="Missing required configuration (GITHUB_TOKEN)")

    monkeypatch.setattr(tools, "initialize_runtime_from_env", _fail)

    out = await tools.dispatch_tool("get_me", {})

    assert out["ok"] is False
    assert out["kind"] == "config"
    event = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
    assert event["outcome"] == "rejected"
    assert event["operation"] == "get_me"


@pytest.mark.asyncio
async def test_unexpected_exception_is_internal_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _, audit = _install(monkeypatch, {})

    async def _boom(*_args: Any) -> dict[str, Any]:
        raise RuntimeError("boom")

    monkeypatch.setattr(tools, "_run", _boom)

    out = await tools.dispatch_tool("get_me", {})

    assert out["ok"] is False
    assert out["kind"] == "internal"
    assert "boom" not in json.dumps(out)
    assert audit.events[0].outcome == "failed"


def test_initialize_runtime_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(tools, "_RUNTIME", None)
    monkeypatch.setenv("GITHUB_TOKEN", "tok")
    for name in ("GITHUB_API_URL", "GITHUB_TOOLS_MCP_TIMEOUT_S", "GITHUB_TOOLS_MCP_AUDIT_LOG_PATH"):
        monkeypatch.delenv(name, raising=False)

    first = tools.initialize_runtime_from_env()
    second = tools.initialize_runtime_from_env()

    assert first is second
    asyncio.run(tools.shutdown_runtime())
    assert tools._RUNTIME is None  # pylint: disable=protected-access
