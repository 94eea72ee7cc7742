"""Tool whitelist, invoker and call logs."""

from acp_secure_host.tools.base import (
    CallStatus,
    RejectedCallRecord,
    ToolCallRecord,
    ToolDescriptor,
)
from acp_secure_host.tools.registry import (
    ToolError,
    ToolInputError,
    ToolNotWhitelistedError,
    ToolRegistry,
    ToolResultError,
    UnboundToolError,
)

__all__ = [
    "CallStatus",
    "RejectedCallRecord",
    "ToolCallRecord",
    "ToolDescriptor",
    "ToolError",
    "ToolInputError",
    "ToolNotWhitelistedError",
    "ToolRegistry",
    "ToolResultError",
    "UnboundToolError",
]
