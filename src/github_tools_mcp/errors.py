"""Tool error types and serialization helpers.

Every failure a caller can observe is a ToolError with a stable code. Codes group into a
small set of kinds so agents can branch on the category without parsing messages.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

MISSING_ARGUMENT = "MissingArgument"
TYPE_MISMATCH = "TypeMismatch"
INVALID_ENUM_VALUE = "InvalidEnumValue"
INVALID_VALUE = "InvalidValue"
UNEXPECTED_ARGUMENT = "UnexpectedArgument"
CREDENTIAL_REJECTED = "CredentialRejected"
AMBIGUOUS_REQUEST = "AmbiguousRequest"
UNKNOWN_TOOL = "UnknownTool"
UPSTREAM_FAILURE = "UpstreamFailure"
CONFIG = "Config"
INTERNAL = "Internal"

_KIND_BY_CODE: dict[str, str] = {
    MISSING_ARGUMENT: "validation",
    TYPE_MISMATCH: "validation",
    INVALID_ENUM_VALUE: "validation",
    INVALID_VALUE: "validation",
    UNEXPECTED_ARGUMENT: "validation",
    CREDENTIAL_REJECTED: "validation",
    AMBIGUOUS_REQUEST: "ambiguous-request",
    UNKNOWN_TOOL: "unknown-tool",
    UPSTREAM_FAILURE: "upstream-failure",
    CONFIG: "config",
    INTERNAL: "internal",
}


@dataclass(frozen=True, slots=True, eq=False)
class ToolError(Exception):
    """An error safe to return to agents.

    Messages must never include the configured token.
    """

    code: str
    message: str
    hint: str | None = None
    status_code: int | None = None
    details: dict[str, Any] | None = None

    @property
    def kind(self) -> str:
        return error_kind(self.code)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


def error_kind(code: str) -> str:
    """Map an error code onto its caller-facing kind."""
    return _KIND_BY_CODE.get(code, "internal")


def missing_argument(name: str) -> ToolError:
    return ToolError(
        code=MISSING_ARGUMENT,
        message=f"Missing required argument: {name}",
        details={"argument": name},
    )


def type_mismatch(name: str, *, expected: str, actual: str) -> ToolError:
    return ToolError(
        code=TYPE_MISMATCH,
        message=f"Argument '{name}' must be {expected}, got {actual}",
        details={"argument": name, "expected": expected, "actual": actual},
    )


def invalid_enum_value(name: str, allowed: tuple[str, ...]) -> ToolError:
    return ToolError(
        code=INVALID_ENUM_VALUE,
        message=f"Argument '{name}' must be one of: {', '.join(allowed)}",
        details={"argument": name, "allowed": list(allowed)},
    )


def invalid_value(name: str, message: str) -> ToolError:
    return ToolError(code=INVALID_VALUE, message=message, details={"argument": name})


def ambiguous_request(message: str, hint: str | None = None) -> ToolError:
    return ToolError(code=AMBIGUOUS_REQUEST, message=message, hint=hint)


def unknown_tool(name: str, available: list[str]) -> ToolError:
    return ToolError(
        code=UNKNOWN_TOOL,
        message=f"Unknown tool: {name}",
        hint=f"Available tools: {', '.join(available)}",
    )


def upstream_failure(message: str, *, status_code: int | None = None, hint: str | None = None) -> ToolError:
    return ToolError(code=UPSTREAM_FAILURE, message=message, hint=hint, status_code=status_code)


def unexpected_response(what: str) -> ToolError:
    """Upstream answered 2xx but not with the documented shape."""
    return upstream_failure(f"Unexpected {what} response from GitHub")


def tool_error_to_result(err: ToolError) -> dict[str, Any]:
    """Convert a ToolError into the standard tool envelope."""
    out = to_error_result(code=err.code, message=err.message, hint=err.hint)
    if err.status_code is not None:
        out["status_code"] = err.status_code
    if err.details:
        out["details"] = dict(err.details)
    return out


def to_error_result(*, code: str, message: str, hint: str | None = None) -> dict[str, Any]:
    """Build a standard tool error envelope."""
    out: dict[str, Any] = {"ok": False, "kind": error_kind(code), "code": code, "message": message}
    if hint:
        out["hint"] = hint
    return out


def internal_error(message: str = "Internal error") -> dict[str, Any]:
    """Error for unexpected failures."""
    return to_error_result(code=INTERNAL, message=message)
