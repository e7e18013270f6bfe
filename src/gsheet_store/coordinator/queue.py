from __future__ import annotations

import asyncio
from typing import Literal, Optional

from loguru import logger

from gsheet_client.models import Sample
from gsheet_client.utils import utc_now

from .types import BackpressureCallback, QueueFullError, ReceivedSample

OverflowStrategy = Literal["block", "error"]


class IntakeQueue:
    """Bounded channel between producers and the engine worker.

    Each sample is stamped with its receipt time on ``put``. A full queue blocks
    the producer ('block') or raises QueueFullError ('error'). High/low
    watermark callbacks fire once per crossing.
    """

    def __init__(
        self,
        capacity: int,
        high_watermark: int | None = None,
        low_watermark: int | None = None,
        *,
        overflow_strategy: OverflowStrategy = "block",
        on_high: Optional[BackpressureCallback] = None,
        on_low: Optional[BackpressureCallback] = None,
    ):
        if capacity <= 0:
            raise ValueError("capacity must be > 0")

        self._capacity = capacity
        self._q: asyncio.Queue[ReceivedSample] = asyncio.Queue(maxsize=capacity)

        self._high_wm = (
            high_watermark if high_watermark is not None else max(1, int(0.8 * capacity))
        )
        self._low_wm = low_watermark if low_watermark is not None else int(0.5 * capacity)
        self._overflow = overflow_strategy
        self._on_high = on_high
        self._on_low = on_low
        self._high_fired = False

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def size(self) -> int:
        return self._q.qsize()

    async def put(self, sample: Sample) -> None:
        """Stamp and enqueue a sample according to the overflow strategy."""
        item = ReceivedSample(sample=sample, received_at=utc_now())
        if self._overflow == "error":
            try:
                self._q.put_nowait(item)
            except asyncio.QueueFull:
                raise QueueFullError("intake queue is full") from None
        else:
            await self._q.put(item)
        await self._maybe_signal_high()

    async def get(self, timeout: float | None = None) -> ReceivedSample:
        """Get the next sample; raises asyncio.TimeoutError when ``timeout`` elapses."""
        if timeout is None:
            item = await self._q.get()
        else:
            item = await asyncio.wait_for(self._q.get(), timeout=timeout)
        await self._maybe_signal_low()
        return item

    async def _maybe_signal_high(self) -> None:
        if not self._high_fired and self.size >= self._high_wm:
            self._high_fired = True
            logger.warning(f"intake queue above high watermark ({self.size}/{self._capacity})")
            if self._on_high:
                await self._on_high()

    async def _maybe_signal_low(self) -> None:
        if self._high_fired and self.size <= self._low_wm:
            self._high_fired = False
            logger.info(f"intake queue recovered ({self.size}/{self._capacity})")
            if self._on_low:
                await self._on_low()
