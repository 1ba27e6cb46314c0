"""Structured audit logging.

Exactly one event is written per tool invocation. Events name the operation and its target
but never carry argument values or the configured token.
"""

from __future__ import annotations

import json
import logging
import sys
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

SUCCEEDED = "succeeded"
REJECTED = "rejected"
FAILED = "failed"


def new_correlation_id() -> str:
    """Generate a random correlation id for tracing one invocation."""
    return uuid.uuid4().hex


def _now_rfc3339() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class AuditEvent:
    """A single audit event."""

    timestamp: str
    correlation_id: str
    operation: str
    target: str | None
    outcome: str
    error_code: str | None
    status_code: int | None
    duration_ms: int | None

    def to_dict(self) -> dict:
        payload: dict = {
            "timestamp": self.timestamp,
            "correlation_id": self.correlation_id,
            "operation": self.operation,
            "outcome": self.outcome,
        }
        if self.target is not None:
            payload["target"] = self.target
        if self.error_code is not None:
            payload["error_code"] = self.error_code
        if self.status_code is not None:
            payload["status_code"] = self.status_code
        if self.duration_ms is not None:
            payload["duration_ms"] = self.duration_ms
        return payload


class AuditLogger:
    """Writes audit events as JSONL to stderr and optionally to a rotating file."""

    def __init__(
        self,
        *,
        sink_path: Path | None,
        max_bytes: int = 5 * 1024 * 1024,
        max_backups: int = 2,
    ) -> None:
        """Create an audit logger.

        Failures writing the optional file sink must not break tool execution.
        """
        self._sink_path = sink_path
        self._file_logger: logging.Logger | None = None
        if sink_path is not None:
            self._file_logger = logging.getLogger(f"github_tools_mcp.audit.{id(self)}")
            self._file_logger.propagate = False
            self._file_logger.setLevel(logging.INFO)
            try:
                sink_path.parent.mkdir(parents=True, exist_ok=True)
                handler = RotatingFileHandler(
                    sink_path,
                    maxBytes=max_bytes,
                    backupCount=max_backups,
                    encoding="utf-8",
                    delay=True,
                )
            except OSError:
                logging.getLogger(__name__).warning("Audit file sink unavailable; writing to stderr only")
                self._file_logger = None
            else:
                handler.setFormatter(logging.Formatter("%(message)s"))
                self._file_logger.addHandler(handler)

    def write_event(self, event: AuditEvent) -> None:
        """Write an audit event to stderr and optionally to a JSONL file."""
        line = json.dumps(event.to_dict(), sort_keys=True, separators=(",", ":"))
        print(line, file=sys.stderr)
        if self._file_logger is not None:
            self._file_logger.info(line)

    def close(self) -> None:
        if self._file_logger is None:
            return
        for handler in list(self._file_logger.handlers):
            handler.close()
            self._file_logger.removeHandler(handler)

    def measure_start(self) -> float:
        """Return a monotonic start timestamp for duration measurement."""
        return time.monotonic()

    def measure_duration_ms(self, start: float) -> int:
        """Convert a monotonic start timestamp into elapsed milliseconds."""
        return int((time.monotonic() - start) * 1000)


def build_event(
    *,
    correlation_id: str,
    operation: str,
    target: str | None,
    outcome: str,
    error_code: str | None = None,
    status_code: int | None = None,
    duration_ms: int | None = None,
) -> AuditEvent:
    """Construct an audit event."""
    return AuditEvent(
        timestamp=_now_rfc3339(),
        correlation_id=correlation_id,
        operation=operation,
        target=target,
        outcome=outcome,
        error_code=error_code,
        status_code=status_code,
        duration_ms=duration_ms,
    )
