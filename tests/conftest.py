"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

from acp_secure_host.config import EngineConfig
from acp_secure_host.engine import AcpEngine


class FakeWriter:
    """Stands in for the peer's stdin stream."""

    def __init__(self) -> None:
        self.data = b""
        self.closed = False

    def write(self, data: bytes) -> None:
        self.data += data

    def is_closing(self) -> bool:
        return self.closed

    @property
    def messages(self) -> list[dict[str, Any]]:
        return [json.loads(line) for line in self.data.decode().splitlines() if line]


def encode(message: dict[str, Any]) -> bytes:
    """Encode a message the way the peer writes it."""
    return (json.dumps(message) + "\n").encode()


async def wait_until(predicate: Callable[[], Any], timeout: float = 2.0) -> None:
    """Poll until the predicate holds, yielding to the event loop."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture
def fast_config(tmp_path: Path) -> EngineConfig:
    """Config with short timeouts and no terminal wrapper."""
    return EngineConfig(
        startup_timeout=1.0,
        prompt_timeout=1.0,
        settle_delay=0.0,
        working_directory=str(tmp_path),
        pty_wrapper=[],
    )


@pytest.fixture
def fake_writer() -> FakeWriter:
    """Fake peer stdin."""
    return FakeWriter()


@pytest.fixture
def engine(fast_config: EngineConfig, fake_writer: FakeWriter) -> AcpEngine:
    """Engine whose peer process is replaced by a fake stdin."""
    engine = AcpEngine(fast_config)
    engine._process.spawn = AsyncMock(return_value=fake_writer)
    engine._process.terminate = AsyncMock()
    return engine


@pytest.fixture
def start_session(
    engine: AcpEngine, fake_writer: FakeWriter
) -> Callable[..., Awaitable[str | None]]:
    """Start the engine and answer session/new on behalf of the peer."""

    async def start(session_id: str = "sess-1") -> str | None:
        def session_requests() -> list[dict[str, Any]]:
            return [m for m in fake_writer.messages if m.get("method") == "session/new"]

        sent = len(session_requests())
        task = asyncio.create_task(engine.start(["fake-agent"]))
        await wait_until(lambda: len(session_requests()) > sent)
        request = session_requests()[-1]
        engine.feed_output(
            encode({"jsonrpc": "2.0", "id": request["id"], "result": {"sessionId": session_id}})
        )
        return await task

    return start
