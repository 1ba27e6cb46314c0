"""Tool dispatch layer.

This module:
- builds a per-server runtime from host-provided config
- creates a correlation_id per invocation
- rejects credential-like input and validates arguments before any network call
- runs the tool (one GitHub call, or the composite pull request status fetch)
- writes exactly one audit event per invocation
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any

from .audit import FAILED, REJECTED, SUCCEEDED, AuditLogger, build_event, new_correlation_id
from .config import AppConfig, load_config_from_env
from .errors import ToolError, error_kind, internal_error, invalid_value, tool_error_to_result, unexpected_response
from .github_client import GitHubClient
from .projection import envelope, merge_pull_request_status, project
from .request_builder import OutboundRequest, build, status_requests
from .safety import enforce_max_bytes, redact_text, validate_no_secrets
from .schemas import lookup
from .validation import ToolArguments, validate

logger = logging.getLogger(__name__)

# Sub-resource statuses that mean "not available for this commit" rather than failure.
_OPTIONAL_STATUS_CODES = frozenset({403, 404, 422})

_REJECTED_KINDS = frozenset({"validation", "ambiguous-request", "unknown-tool", "config"})


@dataclass(frozen=True, slots=True)
class Runtime:
    """Per-server runtime dependencies shared across tool calls."""

    config: AppConfig
    audit: AuditLogger
    github: GitHubClient


_RUNTIME: Runtime | None = None


def initialize_runtime_from_env() -> Runtime:
    """Initialize and cache runtime from environment.

    Called at server startup (fail-fast), and can also be used lazily.
    """
    global _RUNTIME  # pylint: disable=global-statement
    if _RUNTIME is not None:
        return _RUNTIME

    config = load_config_from_env()
    audit = AuditLogger(
        sink_path=config.audit_log_path,
        max_bytes=config.audit_max_bytes,
        max_backups=config.audit_max_backups,
    )
    github = GitHubClient(token=config.token, limits=config.limits, api_base_url=config.api_base_url)

    _RUNTIME = Runtime(config=config, audit=audit, github=github)
    logger.info("Runtime initialized (api=%s)", config.api_base_url)
    return _RUNTIME


async def shutdown_runtime() -> None:
    """Release the cached runtime's connection pool and audit sink."""
    global _RUNTIME  # pylint: disable=global-statement
    runtime, _RUNTIME = _RUNTIME, None
    if runtime is None:
        return
    await runtime.github.aclose()
    runtime.audit.close()


async def _optional(runtime: Runtime, request: OutboundRequest) -> Any:
    try:
        return await runtime.github.send(request)
    except ToolError as err:
        rate_limited = bool(err.details and err.details.get("rate_limited"))
        if err.status_code in _OPTIONAL_STATUS_CODES and not rate_limited:
            logger.info("Omitting %s (status %s)", request.path, err.status_code)
            return None
        raise


async def _tool_get_pull_request_status(runtime: Runtime, args: ToolArguments) -> dict[str, Any]:
    pr = await runtime.github.send(build("get_pull_request_status", args))
    if not isinstance(pr, dict):
        raise unexpected_response("pull request")

    head = pr.get("head") if isinstance(pr.get("head"), dict) else {}
    sha = head.get("sha")
    status = checks = None
    if isinstance(sha, str) and sha:
        status_req, checks_req = status_requests(args["owner"], args["repo"], sha)
        status, checks = await asyncio.gather(_optional(runtime, status_req), _optional(runtime, checks_req))

    return {"owner": args["owner"], "repo": args["repo"], **merge_pull_request_status(pr, status=status, checks=checks)}


def _decode_file(data: dict[str, Any], *, max_bytes: int) -> str:
    encoding = data.get("encoding")
    content_b64 = data.get("content")
    if encoding == "none" or (isinstance(data.get("size"), int) and data["size"] > max_bytes):
        raise invalid_value("path", f"file exceeds size limit of {max_bytes} bytes")
    if encoding != "base64" or not isinstance(content_b64, str):
        raise unexpected_response("file content")

    try:
        decoded = base64.b64decode(content_b64.encode("utf-8"), validate=False)
    except binascii.Error as exc:
        raise unexpected_response("file content") from exc
    enforce_max_bytes(data=decoded, max_bytes=max_bytes, what="file")

    try:
        return decoded.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise invalid_value("path", "Binary file content is not supported") from exc


async def _tool_get_file_contents(runtime: Runtime, args: ToolArguments) -> dict[str, Any]:
    data = await runtime.github.send(build("get_file_contents", args))
    repo = {"owner": args["owner"], "repo": args["repo"]}

    if isinstance(data, list):
        entries = [
            {"name": it.get("name"), "path": it.get("path"), "type": it.get("type"), "size": it.get("size")}
            for it in data
            if isinstance(it, dict)
        ]
        return envelope("entries", entries, **repo, path=args["path"], type="dir")

    if not isinstance(data, dict):
        raise unexpected_response("file")
    if data.get("type") != "file":
        raise invalid_value("path", f"Path is a {data.get('type', 'unknown')}, not a file")

    out: dict[str, Any] = {
        **repo,
        "type": "file",
        "path": data.get("path", args["path"]),
        "sha": data.get("sha"),
        "size": data.get("size"),
        "encoding": "utf-8",
        "content": _decode_file(data, max_bytes=runtime.config.limits.get_file_max_bytes),
    }
    if args.present("ref"):
        out["ref"] = args["ref"]
    return out


_CUSTOM_TOOLS = {
    "get_pull_request_status": _tool_get_pull_request_status,
    "get_file_contents": _tool_get_file_contents,
}


async def _run(runtime: Runtime, name: str, args: ToolArguments) -> dict[str, Any]:
    custom = _CUSTOM_TOOLS.get(name)
    if custom is not None:
        return await custom(runtime, args)
    raw = await runtime.github.send(build(name, args))
    return project(name, raw, args)


def _target_from_args(arguments: Any) -> str | None:
    if not isinstance(arguments, dict):
        return None
    owner = arguments.get("owner")
    repo = arguments.get("repo")
    if isinstance(owner, str) and isinstance(repo, str) and owner and repo:
        return redact_text(f"{owner}/{repo}")
    return None


def _write_audit(
    runtime: Runtime | None,
    *,
    correlation_id: str,
    name: str,
    target: str | None,
    outcome: str,
    start: float | None,
    err: ToolError | None = None,
    error_code: str | None = None,
) -> None:
    audit = runtime.audit if runtime is not None else AuditLogger(sink_path=None)
    audit.write_event(
        build_event(
            correlation_id=correlation_id,
            operation=name,
            target=target,
            outcome=outcome,
            error_code=err.code if err is not None else error_code,
            status_code=err.status_code if err is not None else None,
            duration_ms=audit.measure_duration_ms(start) if start is not None else None,
        )
    )


async def dispatch_tool(name: str, arguments: Any) -> dict[str, Any]:
    """Dispatch a tool call.

    Always returns an envelope that includes correlation_id. Failures are returned as
    {"ok": false, "kind", "code", "message", ...} rather than raised.
    """
    correlation_id = new_correlation_id()
    target = _target_from_args(arguments)

    runtime: Runtime | None = None
    start: float | None = None

    try:
        runtime = initialize_runtime_from_env()
        start = runtime.audit.measure_start()

        validate_no_secrets(arguments)
        schema = lookup(name)
        args = validate(schema, arguments)

        result = await _run(runtime, name, args)

        _write_audit(runtime, correlation_id=correlation_id, name=name, target=target, outcome=SUCCEEDED, start=start)
        out: dict[str, Any] = {"ok": True, "correlation_id": correlation_id}
        out.update(result)
        return out

    except ToolError as err:
        outcome = REJECTED if error_kind(err.code) in _REJECTED_KINDS else FAILED
        logger.info("Tool %s %s: %s", name, outcome, err.code)
        _write_audit(runtime, correlation_id=correlation_id, name=name, target=target, outcome=outcome,
                     start=start, err=err)
        result = tool_error_to_result(err)
        result["correlation_id"] = correlation_id
        return result
    except Exception:  # pylint: disable=broad-exception-caught
        logger.exception("Tool %s raised an unexpected error", name)
        _write_audit(runtime, correlation_id=correlation_id, name=name, target=target, outcome=FAILED,
                     start=start, error_code="Internal")
        result = internal_error("Internal error")
        result["correlation_id"] = correlation_id
        return result
