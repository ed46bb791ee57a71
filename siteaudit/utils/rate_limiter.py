"""Per-origin politeness gate enforcing a minimum spacing between fetches."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Optional

logger = logging.getLogger(__name__)


class PolitenessGate:
    """Serialize fetch starts per origin with a fixed minimum interval.

    The interval is measured between consecutive fetch *starts*, so it holds
    exactly regardless of how long each fetch takes.

    Usage::

        gate = PolitenessGate(delay_ms=500)
        async with gate.slot("https://example.com"):
            await fetch(url)
    """

    def __init__(
        self,
        delay_ms: int = 500,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        name: str = "crawler",
    ) -> None:
        self._delay_s = max(delay_ms, 0) / 1000.0
        self._clock = clock
        self._sleep = sleep
        self._name = name
        self._last_start: dict[str, float] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def delay_ms(self) -> int:
        return int(round(self._delay_s * 1000))

    def set_delay_ms(self, delay_ms: int) -> None:
        self._delay_s = max(delay_ms, 0) / 1000.0

    def _wait_time(self, origin: str) -> float:
        """Seconds left in the politeness window for *origin*."""
        last = self._last_start.get(origin)
        if last is None:
            return 0.0
        return max(0.0, self._delay_s - (self._clock() - last))

    def _record(self, origin: str) -> None:
        self._last_start[origin] = self._clock()

    async def acquire(self, origin: str, cancel_event: Optional[asyncio.Event] = None) -> bool:
        """Wait until *origin* may be fetched again, then mark the start.

        Returns False, without marking a start, if *cancel_event* is set
        before or during the wait.
        """
        lock = self._locks.setdefault(origin, asyncio.Lock())
        async with lock:
            while True:
                if cancel_event is not None and cancel_event.is_set():
                    return False
                wait = self._wait_time(origin)
                if wait <= 0:
                    break
                logger.debug("PolitenessGate(%s) sleeping %.3fs for %s", self._name, wait, origin)
                await self._pause(wait, cancel_event)
            self._record(origin)
            return True

    async def _pause(self, wait: float, cancel_event: Optional[asyncio.Event]) -> None:
        if cancel_event is None:
            await self._sleep(wait)
            return
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=wait)
        except asyncio.TimeoutError:
            pass

    def slot(self, origin: str, cancel_event: Optional[asyncio.Event] = None) -> "_GateSlot":
        return _GateSlot(self, origin, cancel_event)


class _GateSlot:
    def __init__(self, gate: PolitenessGate, origin: str, cancel_event: Optional[asyncio.Event]) -> None:
        self._gate = gate
        self._origin = origin
        self._cancel_event = cancel_event
        self.acquired = False

    async def __aenter__(self):
        self.acquired = await self._gate.acquire(self._origin, self._cancel_event)
        return self

    async def __aexit__(self, *args):
        pass
