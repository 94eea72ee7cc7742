"""Protocol layer: JSON-RPC envelopes, framing, correlation and session state."""

from acp_secure_host.protocol.correlator import TIMED_OUT, RequestCorrelator
from acp_secure_host.protocol.jsonrpc import (
    INTERNAL_ERROR,
    MessageKind,
    classify_message,
    format_error,
    format_request,
    format_response,
)
from acp_secure_host.protocol.lifecycle import (
    InitializationTimeoutError,
    NoActiveSessionError,
    PeerExitedError,
    ProtocolError,
    SessionCreationError,
    SessionLifecycle,
    SessionState,
)
from acp_secure_host.protocol.transport import LineFramer, StreamTransport

__all__ = [
    "INTERNAL_ERROR",
    "InitializationTimeoutError",
    "LineFramer",
    "MessageKind",
    "NoActiveSessionError",
    "PeerExitedError",
    "ProtocolError",
    "RequestCorrelator",
    "SessionCreationError",
    "SessionLifecycle",
    "SessionState",
    "StreamTransport",
    "TIMED_OUT",
    "classify_message",
    "format_error",
    "format_request",
    "format_response",
]
