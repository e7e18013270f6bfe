"""
Intake contract consumed by the wire-protocol decoder.

The decoder parses remote-write payloads into label sets and (timestamp, value)
points; this module turns those into Samples and enqueues them in order.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Mapping, Protocol

from gsheet_client.models import Sample


class SampleSink(Protocol):
    """Anything with an async ``enqueue(sample)``, e.g. BatchEngine."""

    async def enqueue(self, sample: Sample) -> None: ...


def samples_from_series(
    labels: Mapping[str, str], points: Iterable[tuple[int, float]]
) -> list[Sample]:
    """Expand one series into Samples.

    Args:
        labels: full label set including ``__name__``
        points: ``(timestamp_ms, value)`` pairs
    """
    label_set = dict(labels)
    return [
        Sample.from_labels(
            label_set,
            value,
            datetime.fromtimestamp(ts_ms / 1000.0, tz=timezone.utc),
        )
        for ts_ms, value in points
    ]


class SampleIntake:
    """Feeds decoded samples to the engine, blocking while its queue is full."""

    def __init__(self, sink: SampleSink):
        self._sink = sink

    async def enqueue(self, sample: Sample) -> None:
        await self._sink.enqueue(sample)

    async def put(self, samples: Iterable[Sample]) -> int:
        """Enqueue samples in order; returns how many were handed over."""
        n = 0
        for s in samples:
            await self._sink.enqueue(s)
            n += 1
        return n

    async def put_series(
        self, labels: Mapping[str, str], points: Iterable[tuple[int, float]]
    ) -> int:
        return await self.put(samples_from_series(labels, points))
