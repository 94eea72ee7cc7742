"""Tool whitelist and invoker.

Only tools registered here may be executed by the peer. Every accepted call
is appended to the call log, every refused call to the rejected log.
"""

from __future__ import annotations

import inspect
import json
import logging
import time
from typing import Any

from acp_secure_host.security.audit import AuditLogger
from acp_secure_host.security.validator import ValidationError, check_schema, validate_arguments
from acp_secure_host.tools.base import (
    CallStatus,
    RejectedCallRecord,
    ToolCallRecord,
    ToolDescriptor,
    ToolHandler,
    get_timestamp,
)

logger = logging.getLogger(__name__)


class ToolError(Exception):
    """Base class for tool call failures reported to the peer."""

    pass


class ToolNotWhitelistedError(ToolError):
    """Raised when a tool name is not in the whitelist."""

    pass


class UnboundToolError(ToolError):
    """Raised when a whitelisted tool has no handler bound."""

    pass


class ToolInputError(ToolError):
    """Raised when tool params do not match the tool's input schema."""

    pass


class ToolResultError(ToolError):
    """Raised when a handler returns a result that cannot be sent as JSON."""

    pass


class ToolRegistry:
    """Whitelist of callable tools.

    Maintains the tool descriptors, enforces the whitelist on every call
    and keeps the append-only call and rejection logs.
    """

    def __init__(
        self,
        audit_logger: AuditLogger | None = None,
        validate_input: bool = False,
    ) -> None:
        """Initialize the registry.

        Args:
            audit_logger: Optional on-disk audit trail.
            validate_input: Validate params against the tool schema before calling.
        """
        self._tools: dict[str, ToolDescriptor] = {}
        self._audit_logger = audit_logger
        self._validate_input = validate_input
        self.call_log: list[ToolCallRecord] = []
        self.rejected_log: list[RejectedCallRecord] = []

    @property
    def whitelist(self) -> list[str]:
        """Names of all whitelisted tools, in registration order."""
        return list(self._tools)

    def register(
        self,
        name: str,
        description: str,
        input_schema: dict[str, Any],
        handler: ToolHandler | None = None,
    ) -> ToolDescriptor:
        """Whitelist a tool and bind its handler.

        Registering an existing name replaces the prior descriptor.

        Args:
            name: Tool name.
            description: Human-readable description.
            input_schema: JSON Schema of the tool's params.
            handler: Callable receiving the params dict, sync or async.

        Returns:
            The stored descriptor.

        Raises:
            ValueError: If the input schema is not a valid JSON Schema.
        """
        check_schema(input_schema)
        descriptor = ToolDescriptor(
            name=name,
            description=description,
            input_schema=input_schema,
            handler=handler,
        )
        self._tools[name] = descriptor
        logger.debug("Registered tool %s", name)
        return descriptor

    def get(self, name: str) -> ToolDescriptor | None:
        """Get a tool descriptor by name."""
        return self._tools.get(name)

    def list_tools(self) -> list[dict[str, Any]]:
        """List all whitelisted tools in wire format."""
        return [tool.to_dict() for tool in self._tools.values()]

    def validate(self, name: str) -> None:
        """Check a tool name against the whitelist.

        A refusal is appended to the rejected log with a snapshot of the
        whitelist at that instant.

        Args:
            name: Tool name requested by the peer.

        Raises:
            ToolNotWhitelistedError: If the name is not whitelisted.
        """
        if name in self._tools:
            return

        available = self.whitelist
        self.rejected_log.append(
            RejectedCallRecord(
                timestamp=get_timestamp(),
                attempted_tool=name,
                reason="Not in whitelist",
                available_tools=available,
            )
        )
        if self._audit_logger:
            self._audit_logger.log_security_event(
                "tool_rejected",
                {"tool": name, "reason": "Not in whitelist", "available_tools": available},
            )
        logger.warning("Rejected call to non-whitelisted tool %s", name)
        raise ToolNotWhitelistedError(
            f"Tool not available. Only these tools are available: {', '.join(available)}"
        )

    async def invoke(self, name: str, params: dict[str, Any]) -> Any:
        """Execute a whitelisted tool.

        Args:
            name: Tool name.
            params: Tool params.

        Returns:
            The handler's result.

        Raises:
            ToolNotWhitelistedError: If the name is not whitelisted.
            ToolInputError: If input validation is enabled and params are invalid.
            UnboundToolError: If no handler is bound to the name.
            ToolResultError: If the handler's result cannot be serialized to JSON.
            Exception: Whatever the handler raises, after the record is marked failed.
        """
        self.validate(name)
        tool = self._tools[name]

        if self._validate_input:
            try:
                validate_arguments(tool.input_schema, params)
            except ValidationError as e:
                raise ToolInputError(f"Invalid params for tool {name}: {e}") from e

        record = ToolCallRecord(timestamp=get_timestamp(), tool_name=name, params=params)
        self.call_log.append(record)
        if self._audit_logger:
            self._audit_logger.log_request(name, params)

        start = time.monotonic()
        try:
            if tool.handler is None:
                raise UnboundToolError(f"Unknown tool: {name}")
            result = tool.handler(params)
            if inspect.isawaitable(result):
                result = await result
            try:
                json.dumps(result)
            except (TypeError, ValueError) as e:
                raise ToolResultError(f"Tool {name} returned a non-JSON result: {e}") from e
        except Exception as e:
            record.status = CallStatus.FAILED
            record.error = str(e)
            self._log_result(name, "error", start)
            raise

        record.status = CallStatus.COMPLETED
        record.result = result
        self._log_result(name, "success", start)
        return result

    def recent_calls(self, limit: int) -> list[ToolCallRecord]:
        """Return the last ``limit`` call log entries."""
        if limit <= 0:
            return []
        return self.call_log[-limit:]

    def _log_result(self, name: str, status: str, start: float) -> None:
        if self._audit_logger:
            duration_ms = (time.monotonic() - start) * 1000
            self._audit_logger.log_response(name, status, duration_ms)
