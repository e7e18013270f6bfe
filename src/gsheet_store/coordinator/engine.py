"""
Batch engine: the single worker that owns the sample buffer.

One asyncio task multiplexes four event sources, first-ready-wins:

- sample arrival from the intake queue (filter, buffer, flush when full)
- the flush deadline (flush whatever is buffered, then rearm)
- the policy refresh tick (replace the allow-list/retention policy)
- the eviction tick (delete aged rows from the sink)

A flush is driven through a retry policy (eternal by default) and stalls the
worker until it succeeds: no new samples are buffered and no timer fires
meanwhile. Buffered samples are only discarded after a successful write.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Optional

from loguru import logger

from gsheet_client.client import DeliveryClient
from gsheet_client.errors import SinkCapacityError
from gsheet_client.models import Policy, Sample
from gsheet_store.metrics.registry import (
    FLUSH_ATTEMPTS_TOTAL,
    FLUSH_BATCH_SIZE,
    POLICY_REFRESH_TOTAL,
    ROWS_EVICTED_TOTAL,
    SAMPLES_DROPPED_TOTAL,
    SAMPLES_RECEIVED_TOTAL,
    SINK_AT_CAPACITY,
)

from .policy import EternalRetry, RetryPolicy
from .queue import IntakeQueue
from .settings import EngineRuntimeSettings
from .types import EngineHealth, ReceivedSample, StartupError


def _next_tick(scheduled: float, period: float, now: float) -> float:
    """Advance a ticker; ticks missed while the worker was stalled are dropped."""
    scheduled += period
    if scheduled <= now:
        scheduled = now + period
    return scheduled


class BatchEngine:
    """
    Buffers samples and delivers them to the sink in rate-limited batches.

    Example:
        engine = BatchEngine(client, buffer_size=500)
        async with engine:              # startup: policy fetch + eviction
            await engine.enqueue(sample)

    ``run()`` is the blocking alternative to ``start()``; both raise
    StartupError when the initial policy fetch or eviction fails.
    """

    def __init__(
        self,
        client: DeliveryClient,
        *,
        buffer_size: int = 500,
        queue: Optional[IntakeQueue] = None,
        queue_capacity: int = 500,
        request_timeout: float = 120.0,
        flush_interval: float = 5.0,
        policy_refresh_interval: float = 60.0,
        eviction_interval: float = 20.0,
        policy_timeout: float = 10.0,
        eviction_timeout: float = 30.0,
        stale_after: float = 300.0,
        retry_policy: Optional[RetryPolicy] = None,
        retry_backoff: float = 2.0,
    ):
        if buffer_size <= 0:
            raise ValueError("buffer_size must be > 0")

        self._client = client
        self._buffer_size = buffer_size
        self._queue = queue or IntakeQueue(queue_capacity)
        self._request_timeout = request_timeout
        self._flush_interval = flush_interval
        self._policy_interval = policy_refresh_interval
        self._eviction_interval = eviction_interval
        self._policy_timeout = policy_timeout
        self._eviction_timeout = eviction_timeout
        self._stale_after = timedelta(seconds=stale_after)
        self._retry = retry_policy or EternalRetry(backoff=retry_backoff)

        self._buffer: list[Sample] = []
        self._policy = Policy(allowed_metric_names=frozenset())
        self._sink_at_capacity = False
        self._flush_deadline = 0.0
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(
        cls,
        client: DeliveryClient,
        settings: Optional[EngineRuntimeSettings] = None,
        *,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> "BatchEngine":
        cfg = settings or EngineRuntimeSettings()
        return cls(
            client,
            buffer_size=cfg.buffer_size,
            queue_capacity=cfg.queue_capacity,
            request_timeout=cfg.request_timeout,
            flush_interval=cfg.flush_interval,
            policy_refresh_interval=cfg.policy_refresh_interval,
            eviction_interval=cfg.eviction_interval,
            policy_timeout=cfg.policy_timeout,
            eviction_timeout=cfg.eviction_timeout,
            stale_after=cfg.stale_after,
            retry_policy=retry_policy,
            retry_backoff=cfg.retry_backoff,
        )

    # ---------- state ----------

    @property
    def policy(self) -> Policy:
        return self._policy

    @property
    def sink_at_capacity(self) -> bool:
        return self._sink_at_capacity

    @property
    def buffered(self) -> list[Sample]:
        """Snapshot of the buffer in insertion order."""
        return list(self._buffer)

    @property
    def queue(self) -> IntakeQueue:
        return self._queue

    def health(self) -> EngineHealth:
        return EngineHealth(
            running=self._running,
            buffer_size=len(self._buffer),
            buffer_capacity=self._buffer_size,
            queue_size=self._queue.size,
            queue_capacity=self._queue.capacity,
            sink_at_capacity=self._sink_at_capacity,
            allowed_metrics=len(self._policy.allowed_metric_names),
        )

    # ---------- intake ----------

    async def enqueue(self, sample: Sample) -> None:
        """Hand a sample to the worker; blocks while the intake queue is full."""
        SAMPLES_RECEIVED_TOTAL.inc()
        await self._queue.put(sample)

    # ---------- lifecycle ----------

    async def run(self) -> None:
        """Start up, then process events until cancelled or a fatal error."""
        await self._startup()
        await self._loop()

    async def start(self) -> None:
        """Start up, then run the event loop as a background task."""
        if self._task is not None:
            return
        await self._startup()
        self._task = asyncio.create_task(self._loop(), name="gsheet-batch-engine")

    async def stop(self) -> None:
        """Cancel the event loop, abandoning any in-flight retry.

        Samples still buffered or queued are not delivered.
        """
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        if self._buffer:
            logger.warning(f"engine stopped with {len(self._buffer)} undelivered samples")

    async def __aenter__(self) -> "BatchEngine":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def _startup(self) -> None:
        try:
            policy = await self._client.fetch_policy(timeout=self._policy_timeout)
        except Exception as exc:
            raise StartupError(f"initial policy fetch failed: {exc}") from exc
        self._apply_policy(policy)

        try:
            retired = await self._client.evict(timeout=self._eviction_timeout)
        except Exception as exc:
            raise StartupError(f"initial eviction failed: {exc}") from exc
        self._record_evicted(retired)

    async def _loop(self) -> None:
        loop = asyncio.get_running_loop()
        now = loop.time()
        self._flush_deadline = now + self._flush_interval
        next_policy = now + self._policy_interval
        next_eviction = now + self._eviction_interval

        self._running = True
        logger.info(
            f"batch engine started (buffer={self._buffer_size}, "
            f"flush every {self._flush_interval}s)"
        )
        try:
            while True:
                now = loop.time()
                if now >= self._flush_deadline:
                    logger.debug("flush timer triggered")
                    await self._flush()
                    self._rearm_flush_timer()
                    continue
                if now >= next_policy:
                    logger.debug("fetching policy")
                    await self._refresh_policy()
                    next_policy = _next_tick(next_policy, self._policy_interval, loop.time())
                    continue
                if now >= next_eviction:
                    await self._evict()
                    next_eviction = _next_tick(
                        next_eviction, self._eviction_interval, loop.time()
                    )
                    continue

                timeout = min(self._flush_deadline, next_policy, next_eviction) - now
                try:
                    item = await self._queue.get(timeout=timeout)
                except asyncio.TimeoutError:
                    continue
                await self._on_sample(item)
        finally:
            self._running = False

    # ---------- event handlers ----------

    async def _on_sample(self, item: ReceivedSample) -> None:
        sample = item.sample
        if not self._policy.allows(sample.metric_name):
            SAMPLES_DROPPED_TOTAL.labels(reason="filtered").inc()
            return
        if item.received_at - sample.timestamp > self._stale_after:
            SAMPLES_DROPPED_TOTAL.labels(reason="stale").inc()
            return

        self._buffer.append(sample)
        if len(self._buffer) >= self._buffer_size:
            logger.debug("buffer filled")
            await self._flush()
            self._rearm_flush_timer()

    async def _flush(self) -> None:
        if not self._buffer:
            return
        batch = list(self._buffer)

        async def _attempt() -> None:
            make_room = self._sink_at_capacity
            logger.info(f"sending request of {len(batch)} (make_room={make_room})")
            try:
                await self._client.write(batch, make_room, timeout=self._request_timeout)
            except SinkCapacityError as exc:
                FLUSH_ATTEMPTS_TOTAL.labels(outcome="capacity").inc()
                self._mark_at_capacity()
                logger.error(f"sink at capacity, making room on next attempt: {exc}")
                raise
            except Exception as exc:
                FLUSH_ATTEMPTS_TOTAL.labels(outcome="error").inc()
                logger.error(f"failed to send batch to sink: {exc}")
                raise
            FLUSH_ATTEMPTS_TOTAL.labels(outcome="success").inc()

        await self._retry.run(_attempt)
        self._buffer = []
        FLUSH_BATCH_SIZE.observe(len(batch))

    async def _refresh_policy(self) -> None:
        try:
            policy = await self._client.fetch_policy(timeout=self._policy_timeout)
        except Exception as exc:
            POLICY_REFRESH_TOTAL.labels(outcome="error").inc()
            logger.error(f"failed to get policy, keeping previous one: {exc}")
            return
        self._apply_policy(policy)

    async def _evict(self) -> None:
        try:
            retired = await self._client.evict(timeout=self._eviction_timeout)
        except Exception as exc:
            logger.error(f"error trying to retire rows: {exc}")
            return
        self._record_evicted(retired)

    # ---------- helpers ----------

    def _rearm_flush_timer(self) -> None:
        self._flush_deadline = asyncio.get_running_loop().time() + self._flush_interval

    def _apply_policy(self, policy: Policy) -> None:
        POLICY_REFRESH_TOTAL.labels(outcome="success").inc()
        self._policy = policy
        if not policy.allowed_metric_names:
            logger.warning("policy allows no metrics; all samples will be dropped")
        else:
            logger.debug(
                f"policy refreshed: {len(policy.allowed_metric_names)} metrics, "
                f"retire after {policy.retire_after}"
            )

    def _mark_at_capacity(self) -> None:
        if not self._sink_at_capacity:
            logger.warning("sink reported its cell ceiling; every flush will now make room first")
        self._sink_at_capacity = True
        SINK_AT_CAPACITY.set(1)

    def _record_evicted(self, retired: int) -> None:
        ROWS_EVICTED_TOTAL.inc(retired)
        logger.info(f"retired {retired} rows")
