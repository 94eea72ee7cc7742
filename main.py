#!/usr/bin/env python3
"""acp-secure-host - demo entry point.

Spawns an agent CLI, exposes a whitelisted ``echo`` tool to it, sends a
single prompt and prints the outcome as JSON.

================================================================================
DEVELOPER GUIDE: Registering Tools
================================================================================

Tools are registered on the engine before the session starts:

    engine.register_tool(
        "read_ticket",
        "Read a support ticket by id",
        {
            "type": "object",
            "properties": {"ticket_id": {"type": "string"}},
            "required": ["ticket_id"],
        },
        read_ticket,  # sync or async callable taking the params dict
    )

The peer calls a tool with a ``tools/<name>`` request. Any other name is
refused, recorded in ``engine.registry.rejected_log`` and answered with an
error response. Accepted calls are recorded in ``engine.call_log``.

Set ``tools.validate_input: true`` in the config to check params against
the tool's JSON Schema before the handler runs, and ``audit.log_file`` to
keep an on-disk audit trail.

================================================================================
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from acp_secure_host import AcpEngine, ConfigLoadError, EngineConfig, EventKind, load_config
from acp_secure_host.process import SpawnError
from acp_secure_host.protocol import ProtocolError

logger = logging.getLogger("acp_secure_host")


def echo(params: dict[str, Any]) -> dict[str, Any]:
    """Return the params unchanged."""
    return params


async def run(config: EngineConfig, prompt: str, command: list[str], cwd: str | None) -> int:
    """Run one prompt against the peer.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    async with AcpEngine(config) as engine:
        engine.register_tool(
            "echo",
            "Echo the given params back",
            {"type": "object", "additionalProperties": True},
            echo,
        )
        engine.on(EventKind.UPDATE, lambda params: logger.info("Update: %s", json.dumps(params)))
        engine.on(EventKind.ERROR, lambda error: logger.error("Engine error: %s", error))

        try:
            outcome = await engine.process(prompt, command=command or None, cwd=cwd)
        except (SpawnError, ProtocolError) as e:
            logger.error("%s", e)
            return 1

        print(json.dumps(outcome.to_dict(), indent=2, default=str))
        return 2 if outcome.timed_out else 0


def main() -> int:
    """Parse arguments and run the demo.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        description="acp-secure-host demo runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Path to engine config YAML file (defaults apply when omitted)",
    )
    parser.add_argument("--cwd", default=None, help="Session working directory")
    parser.add_argument("--prompt", "-p", required=True, help="Prompt text to send")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Peer command (after --)")

    args = parser.parse_args()

    # Protocol traffic uses the peer's pipes; diagnostics go to stderr
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[ACP] %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config) if args.config else EngineConfig()
    except ConfigLoadError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    command = args.command[1:] if args.command[:1] == ["--"] else args.command
    command = command or config.peer_command
    if not command:
        print("Error: no peer command given", file=sys.stderr)
        return 1

    try:
        return asyncio.run(run(config, args.prompt, command, args.cwd))
    except KeyboardInterrupt:
        return 130  # Standard exit code for SIGINT


if __name__ == "__main__":
    sys.exit(main())
