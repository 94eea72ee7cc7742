"""Session lifecycle management.

Tracks the session state machine (unstarted, starting, ready, closed) and
answers the peer's initialize handshake.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

DEFAULT_PROTOCOL_VERSION = "1.0"


class SessionState(Enum):
    """Session lifecycle states."""

    UNSTARTED = "unstarted"
    STARTING = "starting"
    READY = "ready"
    CLOSED = "closed"


class ProtocolError(Exception):
    """Raised when session constraints are violated."""

    pass


class NoActiveSessionError(ProtocolError):
    """Raised when a prompt is sent without a ready session."""

    pass


class InitializationTimeoutError(ProtocolError):
    """Raised when the peer does not create a session before the deadline."""

    pass


class SessionCreationError(ProtocolError):
    """Raised when the peer rejects session creation or omits the session id."""

    pass


class PeerExitedError(ProtocolError):
    """Raised when the peer exits while a session is being started."""

    pass


@dataclass
class SessionLifecycle:
    """Session state and handshake answers.

    The session id is assigned by the peer in its response to session/new.
    """

    server_info: dict[str, str] = field(
        default_factory=lambda: {"name": "acp-secure-host", "version": "1.0.0"}
    )
    protocol_version: str = DEFAULT_PROTOCOL_VERSION
    instruction: str = ""
    state: SessionState = SessionState.UNSTARTED
    session_id: str | None = None
    working_directory: str | None = None

    @property
    def is_ready(self) -> bool:
        """Check if a session is ready for prompts."""
        return self.state == SessionState.READY

    @property
    def is_running(self) -> bool:
        """Check if a session is starting or ready."""
        return self.state in (SessionState.STARTING, SessionState.READY)

    def require_ready(self) -> str:
        """Assert that a session is ready.

        Returns:
            The active session id.

        Raises:
            NoActiveSessionError: If no session is ready.
        """
        if self.state != SessionState.READY or self.session_id is None:
            raise NoActiveSessionError("No active session. Call start() first.")
        return self.session_id

    def begin_start(self, working_directory: str) -> None:
        """Transition to STARTING for a new session."""
        self.state = SessionState.STARTING
        self.session_id = None
        self.working_directory = working_directory

    def mark_ready(self, session_id: str) -> None:
        """Record the peer-assigned session id and transition to READY."""
        self.session_id = session_id
        self.state = SessionState.READY

    def reset(self, closed: bool = False) -> None:
        """Forget the session.

        Args:
            closed: Mark the lifecycle CLOSED instead of UNSTARTED.
        """
        self.session_id = None
        self.state = SessionState.CLOSED if closed else SessionState.UNSTARTED

    def handle_initialize(self, tools: list[dict[str, Any]]) -> dict[str, Any]:
        """Build the answer to the peer's initialize request.

        Answering does not change the session state.

        Args:
            tools: Descriptors of every whitelisted tool.

        Returns:
            Initialize response result.
        """
        names = [tool["name"] for tool in tools]
        result: dict[str, Any] = {
            "protocolVersion": self.protocol_version,
            "serverInfo": self.server_info,
            "tools": tools,
            "securityConfiguration": {
                "toolWhitelistEnabled": True,
                "allowedTools": names,
                "rejectionBehavior": "strict",
            },
            "agentCapabilities": [
                {"type": "tool", "name": name, "whitelisted": True} for name in names
            ],
        }
        if self.instruction:
            result["instructions"] = self.instruction
        return result
