"""Tests for JSON Schema checks."""

import pytest

from acp_secure_host.security.validator import ValidationError, check_schema, validate_arguments

SCHEMA = {
    "type": "object",
    "properties": {
        "query": {"type": "string"},
        "limit": {"type": "integer", "minimum": 1},
    },
    "required": ["query"],
}


class TestCheckSchema:
    """Tests for check_schema()."""

    def test_accepts_valid_schema(self):
        """Should accept a well-formed schema."""
        check_schema(SCHEMA)

    def test_rejects_invalid_schema(self):
        """Should raise ValueError for an invalid schema."""
        with pytest.raises(ValueError, match="Invalid tool input schema"):
            check_schema({"type": "banana"})

    def test_rejects_non_object_schema(self):
        """Should require a mapping."""
        with pytest.raises(ValueError):
            check_schema(["type", "object"])


class TestValidateArguments:
    """Tests for validate_arguments()."""

    def test_accepts_valid_arguments(self):
        """Should pass valid params."""
        validate_arguments(SCHEMA, {"query": "weather", "limit": 3})

    def test_reports_missing_required_field(self):
        """Should report the missing field at the root."""
        with pytest.raises(ValidationError, match="at 'root'.*'query' is a required property"):
            validate_arguments(SCHEMA, {"limit": 3})

    def test_reports_field_path(self):
        """Should name the failing field."""
        with pytest.raises(ValidationError, match="at 'limit'"):
            validate_arguments(SCHEMA, {"query": "q", "limit": 0})
