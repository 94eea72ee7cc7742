"""Tool descriptors and call log records."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

ToolHandler = Callable[[dict[str, Any]], Awaitable[Any] | Any]


def get_timestamp() -> str:
    """Get current UTC timestamp in ISO 8601 format."""
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class CallStatus(Enum):
    """Status of a tool call in the call log."""

    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ToolDescriptor:
    """A whitelisted tool and its bound handler."""

    name: str
    description: str
    input_schema: dict[str, Any]
    handler: ToolHandler | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the tool list format sent to the peer.

        Returns:
            Dictionary with name, description and inputSchema.
        """
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


@dataclass
class ToolCallRecord:
    """An accepted tool call."""

    timestamp: str
    tool_name: str
    params: dict[str, Any]
    status: CallStatus = CallStatus.EXECUTING
    result: Any = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        data = {
            "timestamp": self.timestamp,
            "toolName": self.tool_name,
            "params": self.params,
            "status": self.status.value,
        }
        if self.status == CallStatus.COMPLETED:
            data["result"] = self.result
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class RejectedCallRecord:
    """A tool call refused because the name is not whitelisted."""

    timestamp: str
    attempted_tool: str
    reason: str
    available_tools: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "timestamp": self.timestamp,
            "attemptedTool": self.attempted_tool,
            "reason": self.reason,
            "availableTools": self.available_tools,
        }
