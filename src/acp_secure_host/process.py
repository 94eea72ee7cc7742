"""Peer process lifecycle.

Spawns the agent CLI with piped standard streams, pumps its stdout and
stderr into callbacks, and reports when it exits.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shlex
from collections.abc import Callable

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 65536

# Seconds to wait after SIGTERM before SIGKILL
TERMINATE_WAIT = 5.0


class SpawnError(Exception):
    """Raised when the peer process cannot be started."""

    pass


def wrap_command(command: list[str], pty_wrapper: list[str]) -> list[str]:
    """Wrap a command so it runs attached to a pseudo-terminal.

    With the default ``script -qfec`` wrapper the command is passed as a
    single shell-quoted argument and the typescript goes to /dev/null.

    Args:
        command: Peer program and arguments.
        pty_wrapper: Wrapper argv prefix; empty to run the command directly.

    Returns:
        Final argv to execute.
    """
    if not pty_wrapper:
        return list(command)
    return [*pty_wrapper, shlex.join(command), "/dev/null"]


class PeerProcess:
    """Owns the single peer subprocess of an engine.

    Output is delivered through callbacks: ``on_stdout`` and ``on_stderr``
    receive raw byte chunks, ``on_exit`` receives the return code once both
    output streams reach EOF and the process has been reaped.
    """

    def __init__(
        self,
        on_stdout: Callable[[bytes], None],
        on_stderr: Callable[[bytes], None],
        on_exit: Callable[[int | None], None],
        pty_wrapper: list[str] | None = None,
        terminal_type: str = "dumb",
    ) -> None:
        """Initialize the process manager.

        Args:
            on_stdout: Called with each stdout chunk.
            on_stderr: Called with each stderr chunk.
            on_exit: Called with the return code when the process exits.
            pty_wrapper: Wrapper argv prefix (empty or None to disable).
            terminal_type: Value forced into the child's TERM variable.
        """
        self._on_stdout = on_stdout
        self._on_stderr = on_stderr
        self._on_exit = on_exit
        self._pty_wrapper = list(pty_wrapper or [])
        self._terminal_type = terminal_type
        self._process: asyncio.subprocess.Process | None = None
        self._watch_task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        """Check if a peer process is alive."""
        return self._process is not None and self._process.returncode is None

    @property
    def pid(self) -> int | None:
        """PID of the live peer process, if any."""
        return self._process.pid if self._process is not None else None

    async def spawn(self, command: list[str], cwd: str) -> asyncio.StreamWriter:
        """Start the peer process.

        Args:
            command: Peer program and arguments.
            cwd: Working directory for the peer.

        Returns:
            The peer's stdin stream.

        Raises:
            SpawnError: If the process cannot be started.
        """
        if not command:
            raise SpawnError("No peer command configured")

        argv = wrap_command(command, self._pty_wrapper)
        env = {**os.environ, "TERM": self._terminal_type}
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=env,
            )
        except OSError as e:
            raise SpawnError(f"Failed to start {argv[0]}: {e}") from e

        logger.info("Started peer process %s (pid %s)", argv[0], process.pid)
        self._process = process
        self._watch_task = asyncio.create_task(self._watch(process))
        assert process.stdin is not None
        return process.stdin

    async def terminate(self) -> None:
        """Terminate the peer process if present: SIGTERM, then SIGKILL."""
        process = self._process
        self._process = None
        if process is None or process.returncode is not None:
            return

        with contextlib.suppress(ProcessLookupError):
            process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=TERMINATE_WAIT)
        except TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
        logger.info("Terminated peer process (pid %s)", process.pid)

        # Let the watcher drain the pipes and report the exit
        watch_task = self._watch_task
        if watch_task is not None and not watch_task.done():
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(asyncio.shield(watch_task), timeout=TERMINATE_WAIT)

    async def _watch(self, process: asyncio.subprocess.Process) -> None:
        assert process.stdout is not None and process.stderr is not None
        await asyncio.gather(
            self._pump(process.stdout, self._on_stdout),
            self._pump(process.stderr, self._on_stderr),
        )
        returncode = await process.wait()
        logger.info("Peer process exited with code %s", returncode)
        if self._process is process:
            self._process = None
        self._on_exit(returncode)

    @staticmethod
    async def _pump(stream: asyncio.StreamReader, callback: Callable[[bytes], None]) -> None:
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:  # EOF
                return
            callback(chunk)
