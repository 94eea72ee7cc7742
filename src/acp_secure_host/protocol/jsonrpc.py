"""JSON-RPC 2.0 envelopes for the agent client protocol.

Builds outgoing request/response envelopes and classifies inbound
messages read from the peer's output stream.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

# JSON-RPC 2.0 error code for every error answer
INTERNAL_ERROR = -32603

# Inbound methods
INITIALIZE = "initialize"
SESSION_UPDATE = "session/update"
TOOL_METHOD_PREFIX = "tools/"

# Outbound methods
SESSION_NEW = "session/new"
SESSION_PROMPT = "session/prompt"


class MessageKind(Enum):
    """Classification of an inbound message."""

    INITIALIZE_REQUEST = "initialize-request"
    SUCCESS_RESPONSE = "success-response"
    ERROR_RESPONSE = "error-response"
    TOOL_INVOCATION = "tool-invocation-request"
    SESSION_UPDATE = "session-update-notification"
    UNRECOGNIZED = "unrecognized"


def format_request(
    msg_id: int, method: str, params: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Build a JSON-RPC request envelope.

    Args:
        msg_id: Correlation id assigned by the request correlator.
        method: Method name.
        params: Method parameters.

    Returns:
        Request message dictionary.
    """
    return {
        "jsonrpc": "2.0",
        "id": msg_id,
        "method": method,
        "params": params if params is not None else {},
    }


def format_response(msg_id: int | str | None, result: Any) -> dict[str, Any]:
    """Build a successful JSON-RPC response envelope.

    Args:
        msg_id: Request ID to echo back.
        result: Result payload.

    Returns:
        Response message dictionary.
    """
    return {
        "jsonrpc": "2.0",
        "id": msg_id,
        "result": result,
    }


def format_error(
    msg_id: int | str | None, message: str, code: int = INTERNAL_ERROR
) -> dict[str, Any]:
    """Build a JSON-RPC error response envelope.

    Args:
        msg_id: Request ID to echo back.
        message: Human-readable error message.
        code: Error code (internal error unless stated otherwise).

    Returns:
        Error response message dictionary.
    """
    return {
        "jsonrpc": "2.0",
        "id": msg_id,
        "error": {
            "code": code,
            "message": message,
        },
    }


def encode_message(message: dict[str, Any]) -> bytes:
    """Serialize a message as a single newline-terminated line."""
    return (json.dumps(message, separators=(",", ":")) + "\n").encode("utf-8")


def classify_message(message: dict[str, Any]) -> MessageKind:
    """Classify an inbound message into exactly one kind.

    Messages carrying a method are requests or notifications and are
    classified by method name. Messages without a method are responses
    when they carry an id plus a result or an error.

    Args:
        message: Parsed JSON object.

    Returns:
        The message kind.
    """
    method = message.get("method")
    if isinstance(method, str):
        if method == INITIALIZE:
            return MessageKind.INITIALIZE_REQUEST
        if method.startswith(TOOL_METHOD_PREFIX):
            return MessageKind.TOOL_INVOCATION
        if method == SESSION_UPDATE:
            return MessageKind.SESSION_UPDATE
        return MessageKind.UNRECOGNIZED

    if isinstance(message.get("id"), int | str):
        if "error" in message:
            return MessageKind.ERROR_RESPONSE
        if "result" in message:
            return MessageKind.SUCCESS_RESPONSE

    return MessageKind.UNRECOGNIZED


def tool_name_from_method(method: str) -> str:
    """Extract the tool name from a ``tools/<name>`` method."""
    return method[len(TOOL_METHOD_PREFIX) :]


def error_message(message: dict[str, Any]) -> str:
    """Extract the error text from an error response."""
    error = message.get("error")
    if isinstance(error, dict):
        return str(error.get("message", ""))
    return str(error)
