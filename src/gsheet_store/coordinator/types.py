from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable

from gsheet_client.models import Sample

BackpressureCallback = Callable[[], Awaitable[None]]


class QueueFullError(Exception):
    """Raised by the intake queue in 'error' overflow mode."""

    pass


class StartupError(Exception):
    """Initial policy fetch or eviction failed; the engine must not serve."""

    pass


@dataclass(frozen=True)
class ReceivedSample:
    """A sample stamped with its wall-clock receipt time."""

    sample: Sample
    received_at: datetime


@dataclass(frozen=True)
class EngineHealth:
    running: bool
    buffer_size: int
    buffer_capacity: int
    queue_size: int
    queue_capacity: int
    sink_at_capacity: bool
    allowed_metrics: int
