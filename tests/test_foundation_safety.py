"""Safety and error helper tests."""

from __future__ import annotations

import pytest
from github_tools_mcp.errors import (ToolError, error_kind, internal_error, invalid_value, tool_error_to_result,
                                     upstream_failure)
from github_tools_mcp.safety import enforce_max_bytes, looks_like_secret_value, redact_text, validate_no_secrets

_PAT = "ghp_" + "x" * 36


@pytest.mark.parametrize(
    "value",
    [_PAT, "github_pat_" + "a" * 30, "Bearer " + "k" * 40, f"please use {_PAT} here"],
)
def test_secret_values_are_detected(value: str) -> None:
    assert looks_like_secret_value(value)


@pytest.mark.parametrize(
    "value",
    [
        "octo",
        "fix: handle ghost users",
        "ghp",
        "bearer-of-news",
        "Bearer token auth fails on refresh",
        "ghp_ tokens should be rotated monthly",
    ],
)
def test_ordinary_values_pass(value: str) -> None:
    assert not looks_like_secret_value(value)


def test_credential_field_names_are_rejected() -> None:
    with pytest.raises(ToolError) as exc:
        validate_no_secrets({"owner": "o", "token": "anything"})

    assert exc.value.code == "CredentialRejected"
    assert exc.value.kind == "validation"


def test_nested_secret_values_are_rejected_without_echo() -> None:
    with pytest.raises(ToolError) as exc:
        validate_no_secrets({"labels": ["bug", _PAT]})

    assert _PAT not in exc.value.message
    assert _PAT not in (exc.value.hint or "")


def test_enforce_max_bytes() -> None:
    enforce_max_bytes(data=b"a" * 10, max_bytes=10, what="file")
    with pytest.raises(ToolError) as exc:
        enforce_max_bytes(data=b"a" * 11, max_bytes=10, what="file")

    assert exc.value.code == "InvalidValue"


def test_redact_text() -> None:
    assert redact_text(None) is None
    assert redact_text(f"token={_PAT}") == "token=<redacted>"


def test_error_envelope_shape() -> None:
    result = tool_error_to_result(upstream_failure("GitHub request failed with status 409", status_code=409, hint="x"))

    assert result == {
        "ok": False,
        "kind": "upstream-failure",
        "code": "UpstreamFailure",
        "message": "GitHub request failed with status 409",
        "hint": "x",
        "status_code": 409,
    }


def test_error_envelope_includes_details() -> None:
    result = tool_error_to_result(invalid_value("per_page", "Argument 'per_page' must be <= 100"))

    assert result["details"] == {"argument": "per_page"}
    assert "status_code" not in result


def test_unknown_codes_map_to_internal() -> None:
    assert error_kind("Whatever") == "internal"
    assert internal_error()["kind"] == "internal"


def test_tool_error_str_and_hashable() -> None:
    err = invalid_value("page", "bad page")
    assert str(err) == "InvalidValue: bad page"
    assert hash(err) == hash(err)
