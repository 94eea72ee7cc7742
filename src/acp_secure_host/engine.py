"""ACP engine - host side of the agent client protocol.

Integrates the transport, request correlator, tool registry and peer
process into one engine that drives a single agent session.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from acp_secure_host.config import EngineConfig
from acp_secure_host.events import EventEmitter, EventKind, Listener
from acp_secure_host.process import PeerProcess, SpawnError
from acp_secure_host.protocol.correlator import TIMED_OUT, RequestCorrelator
from acp_secure_host.protocol.jsonrpc import (
    SESSION_NEW,
    SESSION_PROMPT,
    MessageKind,
    classify_message,
    error_message,
    format_error,
    format_request,
    format_response,
    tool_name_from_method,
)
from acp_secure_host.protocol.lifecycle import (
    InitializationTimeoutError,
    PeerExitedError,
    ProtocolError,
    SessionCreationError,
    SessionLifecycle,
    SessionState,
)
from acp_secure_host.protocol.transport import LineFramer, StreamTransport
from acp_secure_host.security.audit import AuditLogger
from acp_secure_host.tools.base import ToolCallRecord, ToolDescriptor, ToolHandler
from acp_secure_host.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class PromptError(ProtocolError):
    """Raised when the peer answers a prompt with an error response."""

    pass


@dataclass
class ProcessResult:
    """Outcome of AcpEngine.process()."""

    text: str
    result: Any
    recent_calls: list[dict[str, Any]] = field(default_factory=list)
    call_log: list[dict[str, Any]] = field(default_factory=list)

    @property
    def timed_out(self) -> bool:
        """Check if the prompt settled by timeout."""
        return self.result is TIMED_OUT

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "text": self.text,
            "result": None if self.timed_out else self.result,
            "timedOut": self.timed_out,
            "recentCalls": self.recent_calls,
            "callLog": self.call_log,
        }


class AcpEngine:
    """Host-side ACP engine.

    Provides:
    - Peer process spawning and the session handshake
    - Prompt requests correlated with their responses
    - Whitelisted tool execution on behalf of the peer
    - Host events for session readiness, updates, stderr, errors and exit
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        """Initialize the engine.

        Args:
            config: Engine configuration (defaults apply when omitted).
        """
        self._config = config or EngineConfig()

        if self._config.audit_log_file:
            self._audit_logger: AuditLogger | None = AuditLogger(
                Path(self._config.audit_log_file)
            )
        else:
            self._audit_logger = None

        self._registry = ToolRegistry(
            audit_logger=self._audit_logger,
            validate_input=self._config.validate_input,
        )
        self._lifecycle = SessionLifecycle(
            server_info=self._config.server_info,
            protocol_version=self._config.protocol_version,
            instruction=self._config.instruction,
        )
        self._correlator = RequestCorrelator()
        self._framer = LineFramer()
        self._transport = StreamTransport()
        self._process = PeerProcess(
            on_stdout=self.feed_output,
            on_stderr=self._handle_stderr,
            on_exit=self._handle_exit,
            pty_wrapper=self._config.pty_wrapper,
            terminal_type=self._config.terminal_type,
        )
        self.events = EventEmitter()

        self._ready: asyncio.Future[str] | None = None
        self._settle_handle: asyncio.TimerHandle | None = None
        self._shutdown: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def config(self) -> EngineConfig:
        """Engine configuration."""
        return self._config

    @property
    def registry(self) -> ToolRegistry:
        """Tool whitelist and call logs."""
        return self._registry

    @property
    def state(self) -> SessionState:
        """Current session state."""
        return self._lifecycle.state

    @property
    def session_id(self) -> str | None:
        """Peer-assigned id of the active session."""
        return self._lifecycle.session_id

    @property
    def call_log(self) -> list[ToolCallRecord]:
        """Accepted tool calls, in order."""
        return self._registry.call_log

    @property
    def stats(self) -> dict[str, int]:
        """Counters for detecting a misbehaving peer."""
        return {
            "discarded_lines": self._framer.discarded,
            "dropped_writes": self._transport.dropped,
            "pending_requests": self._correlator.pending_count,
        }

    def on(self, kind: EventKind, listener: Listener) -> Listener:
        """Subscribe to an engine event."""
        return self.events.on(kind, listener)

    def register_tool(
        self,
        name: str,
        description: str,
        input_schema: dict[str, Any],
        handler: ToolHandler | None = None,
    ) -> ToolDescriptor:
        """Whitelist a tool the peer may call.

        Args:
            name: Tool name (the peer calls it as ``tools/<name>``).
            description: Description shown to the peer.
            input_schema: JSON Schema of the tool's params.
            handler: Callable receiving the params dict, sync or async.

        Returns:
            The stored tool descriptor.
        """
        return self._registry.register(name, description, input_schema, handler)

    # ------------------------------------------------------------------ #
    # Session control
    # ------------------------------------------------------------------ #

    async def start(self, command: list[str] | None = None, cwd: str | None = None) -> str | None:
        """Spawn the peer and create a session.

        Does nothing if a session is already starting or ready.

        Args:
            command: Peer program and arguments (defaults to the configured command).
            cwd: Session working directory (defaults to the configured directory).

        Returns:
            The session id assigned by the peer.

        Raises:
            SpawnError: If the peer process cannot be started.
            InitializationTimeoutError: If no session is created before the deadline.
            SessionCreationError: If the peer refuses to create a session.
            PeerExitedError: If the peer exits before the session is ready.
        """
        if self._shutdown is not None:
            # The previous peer must be gone before a new one is spawned
            shutdown, self._shutdown = self._shutdown, None
            await shutdown

        if self._lifecycle.is_running:
            return self._lifecycle.session_id

        working_directory = self._config.resolve_working_directory(cwd)
        self._lifecycle.begin_start(working_directory)
        self._framer.reset()

        loop = asyncio.get_running_loop()
        ready: asyncio.Future[str] = loop.create_future()
        self._ready = ready

        try:
            stdin = await self._process.spawn(
                command or self._config.peer_command, working_directory
            )
        except SpawnError as e:
            self._ready = None
            self._lifecycle.reset()
            logger.error("Could not start peer: %s", e)
            self.events.emit(EventKind.ERROR, e)
            raise

        self._transport.attach(stdin)
        self._settle_handle = loop.call_later(self._config.settle_delay, self._create_session)

        try:
            return await asyncio.wait_for(ready, timeout=self._config.startup_timeout)
        except TimeoutError:
            raise InitializationTimeoutError(
                f"Peer did not create a session within {self._config.startup_timeout} seconds"
            ) from None
        except SessionCreationError:
            await self.stop()
            raise
        finally:
            if self._ready is ready:
                self._ready = None

    async def send_prompt(self, text: str) -> Any:
        """Send a prompt to the active session.

        Args:
            text: User prompt text.

        Returns:
            The peer's result, or TIMED_OUT if it did not answer in time.

        Raises:
            NoActiveSessionError: If no session is ready.
            PromptError: If the peer answers with an error response.
        """
        session_id = self._lifecycle.require_ready()

        msg_id = self._correlator.next_id()
        settled = self._correlator.wait_for(msg_id, self._config.prompt_timeout)
        self._transport.write_message(
            format_request(
                msg_id,
                SESSION_PROMPT,
                {
                    "sessionId": session_id,
                    "prompt": [{"type": "text", "text": self.build_prompt(text)}],
                },
            )
        )

        try:
            response = await settled
        except asyncio.CancelledError:
            self._correlator.discard(msg_id)
            raise

        if response is TIMED_OUT:
            logger.warning(
                "Prompt %s timed out after %s seconds", msg_id, self._config.prompt_timeout
            )
            return TIMED_OUT
        if "error" in response:
            raise PromptError(error_message(response))
        return response.get("result")

    async def process(
        self,
        text: str,
        command: list[str] | None = None,
        cwd: str | None = None,
        recent_calls: int | None = None,
    ) -> ProcessResult:
        """Start a session if needed, then send one prompt.

        Args:
            text: User prompt text.
            command: Peer command used if a session must be started.
            cwd: Working directory used if a session must be started.
            recent_calls: Size of the recent call window (defaults to config).

        Returns:
            ProcessResult with the prompt result and the call logs.
        """
        if not self._lifecycle.is_running:
            await self.start(command, cwd)

        result = await self.send_prompt(text)

        window = self._config.recent_calls if recent_calls is None else recent_calls
        return ProcessResult(
            text=text,
            result=result,
            recent_calls=[record.to_dict() for record in self._registry.recent_calls(window)],
            call_log=[record.to_dict() for record in self._registry.call_log],
        )

    async def stop(self) -> None:
        """Terminate the peer and forget the session, whatever the state."""
        self._cancel_settle()
        self._fail_start(PeerExitedError("Session stopped before it was ready"))
        self._transport.attach(None)
        self._framer.reset()
        self._lifecycle.reset(closed=True)
        await self._process.terminate()
        if self._shutdown is not None:
            shutdown, self._shutdown = self._shutdown, None
            await shutdown

    async def close(self) -> None:
        """Stop the peer and close the audit trail."""
        await self.stop()
        if self._audit_logger:
            self._audit_logger.close()

    async def __aenter__(self) -> AcpEngine:
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    def build_prompt(self, text: str) -> str:
        """Prefix the user text with the instruction and the tool list.

        Args:
            text: User prompt text.

        Returns:
            Prompt text sent to the peer.
        """
        parts = []
        if self._config.instruction:
            parts.append(self._config.instruction)

        tools = self._registry.list_tools()
        if tools:
            lines = ["Available tools:"]
            for tool in tools:
                lines.append(f"- {tool['name']}: {tool['description']}")
                lines.append(f"  Input schema: {json.dumps(tool['inputSchema'])}")
            parts.append("\n".join(lines))

        parts.append(text)
        return "\n\n".join(parts)

    def _create_session(self) -> None:
        self._settle_handle = None
        if self._lifecycle.state != SessionState.STARTING:
            return

        msg_id = self._correlator.next_id()
        self._correlator.register(
            msg_id, self._handle_session_created, self._config.startup_timeout
        )
        self._transport.write_message(
            format_request(
                msg_id,
                SESSION_NEW,
                {"cwd": self._lifecycle.working_directory, "mcpServers": []},
            )
        )

    def _handle_session_created(self, response: Any) -> None:
        if self._lifecycle.state != SessionState.STARTING:
            return

        if response is TIMED_OUT:
            self._abandon_start()
            return

        if "error" in response:
            error = SessionCreationError(f"Peer refused session: {error_message(response)}")
            self.events.emit(EventKind.ERROR, error)
            self._fail_start(error)
            return

        result = response.get("result")
        session_id = result.get("sessionId") if isinstance(result, dict) else None
        if not session_id:
            error = SessionCreationError("Peer did not return a session id")
            self.events.emit(EventKind.ERROR, error)
            self._fail_start(error)
            return

        self._lifecycle.mark_ready(str(session_id))
        logger.info("Session %s ready", session_id)
        if self._ready is not None and not self._ready.done():
            self._ready.set_result(str(session_id))
        self.events.emit(EventKind.SESSION_READY, str(session_id))

    def _abandon_start(self) -> None:
        error = InitializationTimeoutError(
            f"Peer did not answer session/new within {self._config.startup_timeout} seconds"
        )
        logger.warning("%s, stopping peer", error)
        self.events.emit(EventKind.ERROR, error)
        self._fail_start(error)
        self._transport.attach(None)
        self._lifecycle.reset()
        self._shutdown = asyncio.create_task(self._process.terminate())

    def _spawn_task(self, coro: Any) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _fail_start(self, error: Exception) -> None:
        ready = self._ready
        self._ready = None
        if ready is not None and not ready.done():
            ready.set_exception(error)

    def _cancel_settle(self) -> None:
        if self._settle_handle is not None:
            self._settle_handle.cancel()
            self._settle_handle = None

    # ------------------------------------------------------------------ #
    # Inbound traffic
    # ------------------------------------------------------------------ #

    def feed_output(self, chunk: bytes) -> None:
        """Handle raw bytes read from the peer's stdout.

        Args:
            chunk: Bytes as read; lines may be split across chunks.
        """
        for message in self._framer.feed(chunk):
            self._dispatch(message)

    def _dispatch(self, message: dict[str, Any]) -> None:
        kind = classify_message(message)

        if kind == MessageKind.INITIALIZE_REQUEST:
            result = self._lifecycle.handle_initialize(self._registry.list_tools())
            self._transport.write_message(format_response(message.get("id"), result))

        elif kind in (MessageKind.SUCCESS_RESPONSE, MessageKind.ERROR_RESPONSE):
            if not self._correlator.settle(message["id"], message):
                logger.debug("Ignoring response for unknown request id %s", message["id"])

        elif kind == MessageKind.TOOL_INVOCATION:
            self._spawn_task(self._handle_tool_call(message))

        elif kind == MessageKind.SESSION_UPDATE:
            self.events.emit(EventKind.UPDATE, message.get("params"))

        else:
            logger.debug("Ignoring unrecognized message: %s", message.get("method"))

    async def _handle_tool_call(self, message: dict[str, Any]) -> None:
        msg_id = message.get("id")
        name = tool_name_from_method(message["method"])
        params = message.get("params")
        if params is None:
            params = {}

        try:
            result = await self._registry.invoke(name, params)
        except Exception as e:
            # Every tool failure is reported to the peer, never to the host
            logger.warning("Tool call %s failed: %s", name, e)
            response = format_error(msg_id, str(e))
        else:
            response = format_response(msg_id, result)

        if msg_id is not None:
            self._transport.write_message(response)

    def _handle_stderr(self, chunk: bytes) -> None:
        text = chunk.decode("utf-8", errors="replace")
        logger.debug("Peer stderr: %s", text.rstrip())
        self.events.emit(EventKind.STDERR, text)

    def _handle_exit(self, returncode: int | None) -> None:
        self.events.emit(EventKind.PROCESS_CLOSED, returncode)
        if self._process.running:
            # A newer peer is already running
            return

        self._cancel_settle()
        self._fail_start(
            PeerExitedError(f"Peer exited with code {returncode} before the session was ready")
        )
        self._transport.attach(None)
        if self._lifecycle.state != SessionState.CLOSED:
            self._lifecycle.reset()
