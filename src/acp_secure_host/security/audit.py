"""Audit logging for tool calls.

Provides an append-only audit trail in JSON Lines format for every tool
call the peer makes and every call refused by the whitelist.
"""

from __future__ import annotations

import json
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# Patterns for sensitive argument keys
SENSITIVE_PATTERNS = [
    re.compile(r"password", re.IGNORECASE),
    re.compile(r"secret", re.IGNORECASE),
    re.compile(r"api[_-]?key", re.IGNORECASE),
    re.compile(r"token", re.IGNORECASE),
    re.compile(r"auth", re.IGNORECASE),
    re.compile(r"credential", re.IGNORECASE),
    re.compile(r"private[_-]?key", re.IGNORECASE),
]


def _get_timestamp() -> str:
    """Get current UTC timestamp in ISO 8601 format."""
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def _is_sensitive_key(key: str) -> bool:
    """Check if a key name indicates sensitive data."""
    return any(pattern.search(key) for pattern in SENSITIVE_PATTERNS)


def sanitize_params(params: Any) -> Any:
    """Redact values stored under sensitive keys.

    Args:
        params: Tool params (nested dicts are processed recursively).

    Returns:
        A sanitized copy; non-dict values are returned unchanged.
    """
    if not isinstance(params, dict):
        return params
    sanitized = {}
    for key, value in params.items():
        if _is_sensitive_key(str(key)):
            sanitized[key] = "[REDACTED]"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_params(value)
        else:
            sanitized[key] = value
    return sanitized


class AuditLogger:
    """Append-only audit logger with JSON Lines format.

    The log file is flushed after each write.
    """

    def __init__(self, log_path: Path) -> None:
        """Initialize the audit logger.

        Args:
            log_path: Path to the audit log file.
        """
        self._log_path = log_path
        self._log_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(log_path, "a", encoding="utf-8")  # noqa: SIM115

    def _write_line(self, data: dict[str, Any]) -> None:
        if self._file.closed:
            return
        self._file.write(json.dumps(data, default=str) + "\n")
        self._file.flush()

    def log_request(self, tool_name: str, params: dict[str, Any]) -> None:
        """Log an accepted tool call.

        Args:
            tool_name: Name of the tool being invoked.
            params: Tool params (will be sanitized).
        """
        self._write_line(
            {
                "type": "request",
                "timestamp": _get_timestamp(),
                "tool_name": tool_name,
                "params": sanitize_params(params),
            }
        )

    def log_response(self, tool_name: str, status: str, duration_ms: float) -> None:
        """Log the outcome of a tool call.

        Args:
            tool_name: Name of the tool.
            status: Result status (success/error).
            duration_ms: Execution time in milliseconds.
        """
        self._write_line(
            {
                "type": "response",
                "timestamp": _get_timestamp(),
                "tool_name": tool_name,
                "result_status": status,
                "execution_time_ms": duration_ms,
            }
        )

    def log_security_event(self, event_type: str, details: dict[str, Any]) -> None:
        """Log a security-related event.

        Args:
            event_type: Type of security event (tool_rejected, etc.).
            details: Additional details about the event.
        """
        self._write_line(
            {
                "type": "security",
                "timestamp": _get_timestamp(),
                "event_type": event_type,
                "details": details,
            }
        )

    def close(self) -> None:
        """Close the log file."""
        if self._file and not self._file.closed:
            self._file.close()

    def __enter__(self) -> AuditLogger:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit."""
        self.close()
