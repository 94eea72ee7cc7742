"""JSON Schema checks for tool schemas and tool params."""

from __future__ import annotations

from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError


class ValidationError(Exception):
    """Raised when tool params fail schema validation."""

    pass


def check_schema(schema: dict[str, Any]) -> None:
    """Check that a tool input schema is itself a valid JSON Schema.

    Args:
        schema: Schema supplied at tool registration.

    Raises:
        ValueError: If the schema is invalid.
    """
    if not isinstance(schema, dict):
        raise ValueError("Tool input schema must be an object")
    try:
        Draft202012Validator.check_schema(schema)
    except SchemaError as e:
        raise ValueError(f"Invalid tool input schema: {e.message}") from e


def validate_arguments(schema: dict[str, Any], arguments: Any) -> None:
    """Validate tool params against the tool's input schema.

    Args:
        schema: JSON Schema for the tool's input.
        arguments: Params received from the peer.

    Raises:
        ValidationError: If validation fails (first error is reported).
    """
    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(arguments), key=lambda e: list(e.path))
    if errors:
        error = errors[0]
        path = ".".join(str(p) for p in error.path) if error.path else "root"
        raise ValidationError(f"Schema validation failed at '{path}': {error.message}")
