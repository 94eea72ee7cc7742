"""acp-secure-host: expose whitelisted tools to an agent over the agent client protocol."""

from acp_secure_host.config import ConfigLoadError, EngineConfig, load_config
from acp_secure_host.engine import AcpEngine, ProcessResult, PromptError
from acp_secure_host.events import EventKind
from acp_secure_host.process import SpawnError
from acp_secure_host.protocol import (
    TIMED_OUT,
    InitializationTimeoutError,
    NoActiveSessionError,
    SessionState,
)
from acp_secure_host.tools import ToolNotWhitelistedError, UnboundToolError

__version__ = "1.0.0"

__all__ = [
    "AcpEngine",
    "ConfigLoadError",
    "EngineConfig",
    "EventKind",
    "InitializationTimeoutError",
    "NoActiveSessionError",
    "ProcessResult",
    "PromptError",
    "SessionState",
    "SpawnError",
    "TIMED_OUT",
    "ToolNotWhitelistedError",
    "UnboundToolError",
    "load_config",
]
