"""Request correlation with exactly-once settlement.

Outgoing requests get monotonically increasing ids. Each id is settled once,
by whichever comes first of the matching response or its timeout.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


class _TimedOut:
    """Sentinel type for a request whose deadline elapsed."""

    def __repr__(self) -> str:
        return "TIMED_OUT"


TIMED_OUT = _TimedOut()


@dataclass
class PendingRequest:
    """A request waiting for settlement."""

    id: int
    on_settle: Callable[[Any], None]
    timer: asyncio.TimerHandle | None = None


class RequestCorrelator:
    """Pairs outgoing requests with their responses.

    Ids are never reused for the lifetime of the correlator, including
    across sessions.
    """

    def __init__(self) -> None:
        """Initialize the correlator."""
        self._last_id = 0
        self._pending: dict[int, PendingRequest] = {}

    @property
    def pending_count(self) -> int:
        """Number of requests awaiting settlement."""
        return len(self._pending)

    def is_pending(self, msg_id: int) -> bool:
        """Check if a request id is awaiting settlement."""
        return msg_id in self._pending

    def next_id(self) -> int:
        """Return the next request id (starting at 1)."""
        self._last_id += 1
        return self._last_id

    def register(self, msg_id: int, on_settle: Callable[[Any], None], timeout: float) -> None:
        """Store a pending request and arm its timeout.

        Args:
            msg_id: Request id.
            on_settle: Called once with the response message or TIMED_OUT.
            timeout: Seconds before the request settles as TIMED_OUT.

        Raises:
            ValueError: If the id is already pending.
        """
        if msg_id in self._pending:
            raise ValueError(f"Request id already pending: {msg_id}")

        loop = asyncio.get_running_loop()
        entry = PendingRequest(id=msg_id, on_settle=on_settle)
        entry.timer = loop.call_later(timeout, self.settle, msg_id, TIMED_OUT)
        self._pending[msg_id] = entry

    def wait_for(self, msg_id: int, timeout: float) -> asyncio.Future[Any]:
        """Register a request and return a future resolved on settlement.

        Args:
            msg_id: Request id.
            timeout: Seconds before the future resolves to TIMED_OUT.

        Returns:
            Future holding the response message or TIMED_OUT.
        """
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

        def resolve(value: Any) -> None:
            if not future.done():
                future.set_result(value)

        self.register(msg_id, resolve, timeout)
        return future

    def settle(self, msg_id: Any, value: Any) -> bool:
        """Settle a pending request.

        The entry is removed before the callback runs, so a later settle for
        the same id (late response or fired timer) is a no-op.

        Args:
            msg_id: Request id.
            value: Response message or TIMED_OUT.

        Returns:
            True if a pending request was settled.
        """
        entry = self._pending.pop(msg_id, None)
        if entry is None:
            return False

        if entry.timer is not None:
            entry.timer.cancel()
        if value is TIMED_OUT:
            logger.debug("Request %s timed out", msg_id)

        entry.on_settle(value)
        return True

    def discard(self, msg_id: Any) -> bool:
        """Forget a pending request without settling it.

        Used when the waiter gave up; a later response for the id is ignored.

        Returns:
            True if a pending request was removed.
        """
        entry = self._pending.pop(msg_id, None)
        if entry is None:
            return False
        if entry.timer is not None:
            entry.timer.cancel()
        return True
