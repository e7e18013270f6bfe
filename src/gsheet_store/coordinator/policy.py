"""
Retry policies for flush delivery.

EternalRetry is the production policy: fixed backoff, no attempt ceiling, no
jitter. BoundedRetry gives up after ``max_attempts`` and re-raises the last
error; tests swap it in to keep failing scenarios finite.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from loguru import logger

from gsheet_store.metrics.registry import RETRY_ATTEMPTS_TOTAL

R = TypeVar("R")
Sleep = Callable[[float], Awaitable[None]]


class RetryPolicy(ABC):
    """Runs an async operation until it succeeds or the policy gives up."""

    @abstractmethod
    async def run(self, op: Callable[[], Awaitable[R]]) -> R: ...


@dataclass
class EternalRetry(RetryPolicy):
    """Invoke, on failure sleep ``backoff`` seconds, invoke again; forever."""

    backoff: float = 2.0
    sleep: Sleep = asyncio.sleep

    async def run(self, op: Callable[[], Awaitable[R]]) -> R:
        attempt = 0
        while True:
            try:
                return await op()
            except Exception:
                attempt += 1
                RETRY_ATTEMPTS_TOTAL.inc()
                await self.sleep(self.backoff)
                logger.info(f"retry attempt #{attempt}")


@dataclass
class BoundedRetry(RetryPolicy):
    """Fixed-backoff retry that re-raises after ``max_attempts`` invocations."""

    max_attempts: int = 3
    backoff: float = 0.0
    sleep: Sleep = asyncio.sleep

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    async def run(self, op: Callable[[], Awaitable[R]]) -> R:
        attempt = 1
        while True:
            try:
                return await op()
            except Exception:
                if attempt >= self.max_attempts:
                    raise
                RETRY_ATTEMPTS_TOTAL.inc()
                await self.sleep(self.backoff)
                logger.info(f"retry attempt #{attempt}/{self.max_attempts - 1}")
                attempt += 1
