"""
Fixtures for delivery client and batch engine unit tests.

FakeSheet is an in-memory stand-in for the spreadsheet: it records every call
and can be told to fail specific operations.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Sequence

import pytest

from gsheet_client import DeliveryClient, Sample, SheetTransport, TokenBucketLimiter
from gsheet_client.client import DEFAULT_CONFIG_RANGE, DEFAULT_CUTOFF_CELL

CAPACITY_MESSAGE = (
    "Invalid requests[1].appendCells: This action would increase the number of cells "
    "in the workbook above the limit of 10000000 cells."
)


class FakeSheet(SheetTransport):
    def __init__(self) -> None:
        self.rows: list[list[Any]] = []
        self.config_rows: list[list[Any]] = [["METRICS", "cpu_usage"], ["RETIRE_AFTER", "10m"]]
        self.cutoff: list[list[Any]] = [["#N/A"]]
        self.calls: list[tuple] = []
        # exceptions raised (and consumed) by successive append calls
        self.append_errors: list[Exception] = []
        self.always_fail_append: Exception | None = None
        self.config_error: Exception | None = None
        self.sort_error: Exception | None = None
        self.delete_error: Exception | None = None
        self.closed = False

    @property
    def appends(self) -> list[tuple]:
        return [c for c in self.calls if c[0] == "append"]

    async def append_rows(self, rows: Sequence[Sequence[Any]], *, delete_leading: int = 0) -> None:
        self.calls.append(("append", len(rows), delete_leading))
        if self.always_fail_append is not None:
            raise self.always_fail_append
        if self.append_errors:
            raise self.append_errors.pop(0)
        if delete_leading:
            del self.rows[:delete_leading]
        self.rows.extend(list(r) for r in rows)

    async def delete_rows(self, start: int, end: int) -> None:
        self.calls.append(("delete", start, end))
        if self.delete_error is not None:
            raise self.delete_error
        del self.rows[start:end]

    async def read_range(self, a1_range: str) -> list[list[Any]]:
        self.calls.append(("read", a1_range))
        if a1_range == DEFAULT_CONFIG_RANGE:
            if self.config_error is not None:
                raise self.config_error
            return [list(r) for r in self.config_rows]
        if a1_range == DEFAULT_CUTOFF_CELL:
            return [list(r) for r in self.cutoff]
        return []

    async def sort_by_first_column(self) -> None:
        self.calls.append(("sort",))
        if self.sort_error is not None:
            raise self.sort_error
        self.rows.sort(key=lambda r: str(r[0]))

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def sheet():
    return FakeSheet()


@pytest.fixture
def fast_limiter():
    """Limiter generous enough never to delay a test."""
    return TokenBucketLimiter(rate=10_000.0, burst=10_000)


@pytest.fixture
def client(sheet, fast_limiter):
    return DeliveryClient(sheet, limiter=fast_limiter)


@pytest.fixture
def make_sample():
    def _make(name: str = "cpu_usage", value: float = 1.0, ts: datetime | None = None, **labels):
        return Sample(
            metric_name=name,
            labels=labels,
            value=value,
            timestamp=ts or datetime.now(timezone.utc),
        )

    return _make


@pytest.fixture
def capacity_message():
    return CAPACITY_MESSAGE


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.01) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(interval)
    return predicate()


@pytest.fixture
def eventually():
    """Poll a predicate until it holds or a timeout elapses."""
    return wait_until
