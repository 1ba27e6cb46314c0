"""Configuration loading for github-tools-mcp.

Configuration is supplied by the host environment (e.g., MCP client config), not by the agent.
The token is a secret and must never be emitted to agents, logs, or audit events.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from .errors import CONFIG, ToolError

DEFAULT_API_BASE_URL = "https://api.github.com"


@dataclass(frozen=True, slots=True)
class LimitsConfig:
    """Network and payload limits."""

    # Network. Applied to every GitHub call; there are no retries.
    total_timeout_s: float = 30.0
    connect_timeout_s: float = 5.0
    read_timeout_s: float = 30.0

    # Payload limits
    get_file_max_bytes: int = 100 * 1024


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Process-wide configuration, built once at startup."""

    token: str = field(repr=False)
    api_base_url: str = DEFAULT_API_BASE_URL
    audit_log_path: Path | None = None
    audit_max_bytes: int = 5 * 1024 * 1024
    audit_max_backups: int = 2
    limits: LimitsConfig = field(default_factory=LimitsConfig)


def _parse_api_base_url(value: str | None) -> str:
    if not value:
        return DEFAULT_API_BASE_URL
    url = value.strip().rstrip("/")
    if not url.startswith("https://"):
        raise ToolError(code=CONFIG, message="GITHUB_API_URL must be an https:// URL")
    return url


def _parse_timeout(value: str | None) -> float | None:
    if value is None or not value.strip():
        return None
    try:
        timeout = float(value)
    except ValueError as exc:
        raise ToolError(code=CONFIG, message="GITHUB_TOOLS_MCP_TIMEOUT_S must be a number") from exc
    if timeout <= 0:
        raise ToolError(code=CONFIG, message="GITHUB_TOOLS_MCP_TIMEOUT_S must be positive")
    return timeout


def load_config_from_env() -> AppConfig:
    """Load and validate configuration from environment variables.

    Raises:
        ToolError: If configuration is missing/invalid.
    """
    token = os.getenv("GITHUB_TOKEN") or os.getenv("GITHUB_PERSONAL_ACCESS_TOKEN")
    if not token or not token.strip():
        raise ToolError(
            code=CONFIG,
            message="Missing required configuration (GITHUB_TOKEN or GITHUB_PERSONAL_ACCESS_TOKEN)",
        )

    api_base_url = _parse_api_base_url(os.getenv("GITHUB_API_URL"))

    limits = LimitsConfig()
    timeout = _parse_timeout(os.getenv("GITHUB_TOOLS_MCP_TIMEOUT_S"))
    if timeout is not None:
        limits = LimitsConfig(
            total_timeout_s=timeout,
            connect_timeout_s=min(limits.connect_timeout_s, timeout),
            read_timeout_s=timeout,
        )

    audit_path_raw = os.getenv("GITHUB_TOOLS_MCP_AUDIT_LOG_PATH")
    audit_path: Path | None = None
    if audit_path_raw:
        p = Path(audit_path_raw)
        if not p.is_absolute():
            raise ToolError(code=CONFIG, message="GITHUB_TOOLS_MCP_AUDIT_LOG_PATH must be an absolute path when set")
        audit_path = p

    return AppConfig(
        token=token.strip(),
        api_base_url=api_base_url,
        audit_log_path=audit_path,
        limits=limits,
    )
