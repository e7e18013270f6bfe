from __future__ import annotations

import asyncio
import re
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

from loguru import logger

from .errors import (
    EvictionError,
    PolicyFetchError,
    SinkCallError,
    map_sink_error,
)
from .models import DEFAULT_RETIRE_AFTER, Policy, Sample
from .ratelimit import TokenBucketLimiter
from .rows import LabelColumnMap, RowFormat, RowMapper
from .transport import SheetTransport
from .utils import parse_duration

R = TypeVar("R")

DEFAULT_CONFIG_RANGE = "Config!A:B"
DEFAULT_CUTOFF_CELL = "Internal!B1"
NOTHING_TO_EVICT = "#N/A"

_METRIC_SEPARATORS = re.compile(r"[,\n]")


def parse_policy(values: Sequence[Sequence[Any]]) -> Policy:
    """Build a Policy from the two-column key/value region.

    Recognised keys are METRICS and RETIRE_AFTER (case-insensitive); other keys
    and rows with fewer than two cells are ignored. A missing or unparseable
    RETIRE_AFTER falls back to 10 minutes.
    """
    metrics: list[str] = []
    retire_after = DEFAULT_RETIRE_AFTER
    for row in values:
        if len(row) < 2:
            continue
        key = str(row[0]).strip().upper()
        raw = str(row[1])
        if key == "METRICS":
            metrics = [m.strip() for m in _METRIC_SEPARATORS.split(raw.lower()) if m.strip()]
        elif key == "RETIRE_AFTER":
            parsed = parse_duration(raw)
            retire_after = parsed if parsed is not None else DEFAULT_RETIRE_AFTER
    return Policy(allowed_metric_names=frozenset(metrics), retire_after=retire_after)


def parse_cutoff(values: Sequence[Sequence[Any]]) -> int:
    """Row index up to which rows have aged out; 0 means nothing to evict."""
    if not values or not values[0]:
        return 0
    raw = str(values[0][0]).strip()
    if raw in ("", NOTHING_TO_EVICT):
        return 0
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        number = float(raw)
    except ValueError:
        raise EvictionError(f"cutoff cell is not a row number: {raw!r}") from None
    if not number.is_integer():
        raise EvictionError(f"cutoff cell is not a row number: {raw!r}")
    return int(number)


class DeliveryClient:
    """
    Rate-limited batch writer against a tabular sink.

    Also reads the filtering/retention policy from the sink and evicts aged
    rows. Every outbound call first takes a token from the shared limiter.

    Usage:
        transport = GoogleSheetsTransport("spreadsheet-id", access_token="...")
        client = DeliveryClient(transport)
        policy = await client.fetch_policy(timeout=10)
        await client.write(samples, make_room=False, timeout=120)
        retired = await client.evict(timeout=30)
    """

    def __init__(
        self,
        transport: SheetTransport,
        *,
        limiter: Optional[TokenBucketLimiter] = None,
        row_format: RowFormat = "columns",
        columns: Optional[LabelColumnMap] = None,
        config_range: str = DEFAULT_CONFIG_RANGE,
        cutoff_cell: str = DEFAULT_CUTOFF_CELL,
    ):
        self.transport = transport
        self.limiter = limiter or TokenBucketLimiter(rate=1.0, burst=60)
        self.mapper = RowMapper(row_format, columns)
        self.config_range = config_range
        self.cutoff_cell = cutoff_cell

    @property
    def columns(self) -> LabelColumnMap:
        return self.mapper.columns

    async def aclose(self) -> None:
        await self.transport.aclose()

    # ---------- operations ----------

    async def write(
        self, samples: Sequence[Sample], make_room: bool = False, *, timeout: Optional[float] = None
    ) -> None:
        """Append one row per sample.

        With ``make_room`` the same request first deletes as many leading rows
        as the batch is long.

        Raises:
            RateLimitWaitError: no token before the deadline
            SinkCapacityError: the workbook cell ceiling was hit
            SinkCallError: any other failure, including the deadline expiring
        """
        if not samples:
            return
        rows = self.mapper.rows(samples)
        delete_leading = len(rows) if make_room else 0

        async def _call(deadline: Optional[float]) -> None:
            await self.limiter.wait(deadline)
            await self.transport.append_rows(rows, delete_leading=delete_leading)

        try:
            await self._bounded(_call, timeout)
        except asyncio.TimeoutError as exc:
            raise SinkCallError(f"write of {len(rows)} rows timed out after {timeout}s") from exc
        except Exception as exc:
            mapped = map_sink_error(exc)
            if mapped is exc:
                raise
            raise mapped from exc

    async def fetch_policy(self, *, timeout: Optional[float] = None) -> Policy:
        """Read the policy region. Raises PolicyFetchError on any failure."""

        async def _call(deadline: Optional[float]) -> list[list[Any]]:
            await self.limiter.wait(deadline)
            return await self.transport.read_range(self.config_range)

        try:
            values = await self._bounded(_call, timeout)
        except asyncio.TimeoutError as exc:
            raise PolicyFetchError(f"policy fetch timed out after {timeout}s") from exc
        except Exception as exc:
            raise PolicyFetchError(str(exc) or type(exc).__name__) from exc
        return parse_policy(values)

    async def evict(self, *, timeout: Optional[float] = None) -> int:
        """Sort rows oldest-first and delete those before the sink's cutoff cell.

        Returns the number of rows deleted. Raises EvictionError on any failure.
        """

        async def _call(deadline: Optional[float]) -> int:
            await self.limiter.wait(deadline)
            await self.transport.sort_by_first_column()

            await self.limiter.wait(deadline)
            cutoff = parse_cutoff(await self.transport.read_range(self.cutoff_cell))
            if cutoff <= 0:
                return 0

            await self.limiter.wait(deadline)
            await self.transport.delete_rows(0, cutoff)
            return cutoff

        try:
            deleted = await self._bounded(_call, timeout)
        except EvictionError:
            raise
        except asyncio.TimeoutError as exc:
            raise EvictionError(f"eviction timed out after {timeout}s") from exc
        except Exception as exc:
            raise EvictionError(str(exc) or type(exc).__name__) from exc
        if deleted:
            logger.debug(f"evicted rows [0, {deleted})")
        return deleted

    # ---------- internals ----------

    async def _bounded(
        self, op: Callable[[Optional[float]], Awaitable[R]], timeout: Optional[float]
    ) -> R:
        if timeout is None:
            return await op(None)
        deadline = self.limiter.clock() + timeout
        return await asyncio.wait_for(op(deadline), timeout=timeout)
