"""Batch Engine

Intake queue → single worker → rate-limited batch writes with:
- IntakeQueue (bounded, blocking, watermark signals)
- EternalRetry / BoundedRetry policies
- BatchEngine event loop (size/time flushing, policy refresh, eviction)
- SampleIntake for protocol decoders
- Environment-based settings
"""

from .types import EngineHealth, QueueFullError, ReceivedSample, StartupError
from .policy import BoundedRetry, EternalRetry, RetryPolicy
from .queue import IntakeQueue
from .engine import BatchEngine
from .intake import SampleIntake, samples_from_series
from .settings import EngineRuntimeSettings

__all__ = [
    # types
    "EngineHealth",
    "QueueFullError",
    "ReceivedSample",
    "StartupError",
    # policies
    "RetryPolicy",
    "EternalRetry",
    "BoundedRetry",
    # runtime
    "IntakeQueue",
    "BatchEngine",
    "SampleIntake",
    "samples_from_series",
    "EngineRuntimeSettings",
]
