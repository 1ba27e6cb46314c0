"""Safety helpers.

The GitHub credential is configured once by the host. Tool arguments can never carry or
override it, so an argument that looks like a credential is rejected outright and the
suspected value is never echoed back.
"""

from __future__ import annotations

import re
from typing import Any

from .errors import CREDENTIAL_REJECTED, ToolError, invalid_value

_CRED_FIELD_NAMES = {
    "token",
    "access_token",
    "github_token",
    "authorization",
    "password",
    "private_key",
    "credentials",
}

_TOKEN_RE = re.compile(r"\b(?:gh[pousr]_[A-Za-z0-9]{20,}|github_pat_[A-Za-z0-9_]{20,})\b")
_BEARER_RE = re.compile(r"bearer\s+\S{20,}$", re.IGNORECASE)


def looks_like_secret_value(value: str) -> bool:
    """Return True if the value looks like a credential.

    - the whole value is a bearer credential ('Bearer ' followed by a token-length word)
    - a full-length GitHub token embedded anywhere in the text

    Free text that merely starts with "Bearer" or mentions a token prefix is allowed.
    """
    if not isinstance(value, str):
        return False
    if _BEARER_RE.match(value.strip()):
        return True
    return bool(_TOKEN_RE.search(value))


def validate_no_secrets(obj: Any) -> None:
    """Reject agent-provided input that appears to contain credentials."""
    if isinstance(obj, dict):
        for k, v in obj.items():
            if str(k).strip().lower() in _CRED_FIELD_NAMES:
                raise ToolError(
                    code=CREDENTIAL_REJECTED,
                    message="Credential-like arguments are not allowed",
                    hint="The GitHub token is configured by the host and cannot be passed per call",
                )
            validate_no_secrets(v)
        return
    if isinstance(obj, list):
        for item in obj:
            validate_no_secrets(item)
        return
    if isinstance(obj, str) and looks_like_secret_value(obj):
        raise ToolError(code=CREDENTIAL_REJECTED, message="Credential-like values are not allowed")


def enforce_max_bytes(*, data: bytes, max_bytes: int, what: str) -> None:
    """Enforce an upper bound on byte payloads."""
    if len(data) > max_bytes:
        raise invalid_value(what, f"{what} exceeds size limit of {max_bytes} bytes")


def redact_text(text: str | None) -> str | None:
    """Return a representation safe for logs."""
    if text is None:
        return None
    return _TOKEN_RE.sub("<redacted>", text)
