"""Tests for audit logging."""

import json
from pathlib import Path

from acp_secure_host.security.audit import AuditLogger, sanitize_params


class TestSanitizeParams:
    """Tests for sensitive value redaction."""

    def test_redacts_sensitive_keys(self):
        """Should redact passwords, tokens and keys."""
        result = sanitize_params(
            {"password": "x", "api_key": "y", "AuthToken": "z", "query": "weather"}
        )

        assert result == {
            "password": "[REDACTED]",
            "api_key": "[REDACTED]",
            "AuthToken": "[REDACTED]",
            "query": "weather",
        }

    def test_redacts_nested_dicts(self):
        """Should process nested objects recursively."""
        result = sanitize_params({"db": {"host": "h", "secret": "s"}})

        assert result == {"db": {"host": "h", "secret": "[REDACTED]"}}

    def test_leaves_non_dict_params_alone(self):
        """Should return non-object params unchanged."""
        assert sanitize_params([1, 2]) == [1, 2]

    def test_does_not_mutate_input(self):
        """Should return a copy."""
        params = {"token": "abc"}

        sanitize_params(params)

        assert params == {"token": "abc"}


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_creates_log_directory_if_missing(self, tmp_path: Path):
        """Should create the log directory if it doesn't exist."""
        log_path = tmp_path / "subdir" / "audit.log"

        logger = AuditLogger(log_path)

        assert log_path.parent.exists()
        logger.close()

    def test_log_request_writes_line(self, tmp_path: Path):
        """Should write a request event with sanitized params."""
        log_path = tmp_path / "audit.log"
        with AuditLogger(log_path) as logger:
            logger.log_request("search", {"q": "x", "token": "t"})

        entry = json.loads(log_path.read_text())
        assert entry["type"] == "request"
        assert entry["tool_name"] == "search"
        assert entry["params"] == {"q": "x", "token": "[REDACTED]"}
        assert entry["timestamp"].endswith("Z")

    def test_log_response_writes_line(self, tmp_path: Path):
        """Should write status and duration."""
        log_path = tmp_path / "audit.log"
        with AuditLogger(log_path) as logger:
            logger.log_response("search", "error", 12.5)

        entry = json.loads(log_path.read_text())
        assert entry["result_status"] == "error"
        assert entry["execution_time_ms"] == 12.5

    def test_appends_to_existing_file(self, tmp_path: Path):
        """Should never truncate an existing log."""
        log_path = tmp_path / "audit.log"
        with AuditLogger(log_path) as logger:
            logger.log_security_event("tool_rejected", {"tool": "a"})
        with AuditLogger(log_path) as logger:
            logger.log_security_event("tool_rejected", {"tool": "b"})

        lines = log_path.read_text().splitlines()
        assert [json.loads(line)["details"]["tool"] for line in lines] == ["a", "b"]

    def test_writes_after_close_are_ignored(self, tmp_path: Path):
        """Should not fail when written to after close."""
        log_path = tmp_path / "audit.log"
        logger = AuditLogger(log_path)
        logger.close()

        logger.log_request("late", {})
        logger.close()

        assert log_path.read_text() == ""
