"""Engine configuration loader.

Loads engine settings from a YAML file. Every setting has a default, so an
engine can also be built without any configuration file.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_PTY_WRAPPER = ["script", "-qfec"]


class ConfigLoadError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


def expand_env_vars(value: str) -> str:
    """Expand environment variables in a string.

    Supports ${VAR_NAME} syntax. Unknown variables are left unchanged.

    Args:
        value: String potentially containing environment variable references.

    Returns:
        String with known environment variables expanded.
    """
    pattern = re.compile(r"\$\{([^}]+)\}")

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is not None:
            return env_value
        if var_name == "HOME":
            return os.path.expanduser("~")
        return match.group(0)

    return pattern.sub(replacer, value)


@dataclass
class EngineConfig:
    """Engine configuration.

    Timeouts and delays are in seconds.
    """

    version: str = "1"

    # Handshake settings
    protocol_version: str = "1.0"
    server_name: str = "acp-secure-host"
    server_version: str = "1.0.0"
    instruction: str = ""

    # Session settings
    startup_timeout: float = 30.0
    prompt_timeout: float = 120.0
    settle_delay: float = 1.0
    working_directory: str = ""
    recent_calls: int = 10

    # Peer process settings
    peer_command: list[str] = field(default_factory=list)
    pty_wrapper: list[str] = field(default_factory=lambda: list(DEFAULT_PTY_WRAPPER))
    terminal_type: str = "dumb"

    # Tool settings
    validate_input: bool = False

    # Audit settings
    audit_log_file: str = ""

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> EngineConfig:
        """Create an EngineConfig from a configuration dictionary.

        Args:
            config: Dictionary parsed from YAML configuration.

        Returns:
            EngineConfig with all settings populated.
        """
        server = config.get("server", {})
        session = config.get("session", {})
        peer = config.get("peer", {})
        tools = config.get("tools", {})
        audit = config.get("audit", {})

        command = peer.get("command", [])
        if isinstance(command, str):
            command = [command]
        wrapper = peer.get("pty_wrapper", DEFAULT_PTY_WRAPPER)

        return cls(
            version=str(config.get("version", "1")),
            protocol_version=str(server.get("protocol_version", "1.0")),
            server_name=server.get("name", "acp-secure-host"),
            server_version=str(server.get("version", "1.0.0")),
            instruction=server.get("instruction", "") or "",
            startup_timeout=float(session.get("startup_timeout", 30.0)),
            prompt_timeout=float(session.get("prompt_timeout", 120.0)),
            settle_delay=float(session.get("settle_delay", 1.0)),
            working_directory=expand_env_vars(session.get("working_directory", "") or ""),
            recent_calls=int(session.get("recent_calls", 10)),
            peer_command=[str(arg) for arg in command],
            pty_wrapper=[str(arg) for arg in wrapper or []],
            terminal_type=peer.get("terminal_type", "dumb"),
            validate_input=bool(tools.get("validate_input", False)),
            audit_log_file=expand_env_vars(audit.get("log_file", "") or ""),
        )

    @property
    def server_info(self) -> dict[str, str]:
        """Server identity announced in the initialize response."""
        return {"name": self.server_name, "version": self.server_version}

    def resolve_working_directory(self, override: str | None = None) -> str:
        """Get the session working directory.

        Args:
            override: Directory given by the caller, if any.

        Returns:
            Absolute working directory path.
        """
        directory = override or self.working_directory or os.getcwd()
        return str(Path(directory).expanduser().resolve())


def load_config(path: Path) -> EngineConfig:
    """Load engine configuration from a YAML file.

    Args:
        path: Path to the configuration YAML file.

    Returns:
        EngineConfig instance.

    Raises:
        ConfigLoadError: If the file cannot be found, parsed, or validated.
    """
    if not path.exists():
        raise ConfigLoadError(f"Config file not found: {path}")

    try:
        with open(path) as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Failed to parse config YAML: {e}") from e

    if not isinstance(config, dict):
        raise ConfigLoadError("Config must be a YAML mapping")

    if "version" not in config:
        raise ConfigLoadError("Config must include 'version' field")

    try:
        return EngineConfig.from_dict(config)
    except (AttributeError, TypeError, ValueError) as e:
        raise ConfigLoadError(f"Invalid config value: {e}") from e
