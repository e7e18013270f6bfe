"""
Demo script for the BatchEngine.

Runs the engine against an in-memory sheet that prints each request, shows
size- and time-triggered flushes, metric filtering, and room-making after a
simulated cell-ceiling error.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Sequence

from loguru import logger

from gsheet_client import DeliveryClient, SheetsAPIError, SheetTransport
from gsheet_store.coordinator import BatchEngine, EternalRetry, SampleIntake

CELL_LIMIT = (
    "This action would increase the number of cells in the workbook "
    "above the limit of 10000000 cells."
)


class PrintSheet(SheetTransport):
    """In-memory sheet that logs every call and hits its ceiling once."""

    def __init__(self, ceiling_after: int = 2):
        self.rows: list[list[Any]] = []
        self._appends = 0
        self._ceiling_after = ceiling_after

    async def append_rows(self, rows: Sequence[Sequence[Any]], *, delete_leading: int = 0) -> None:
        self._appends += 1
        if self._appends == self._ceiling_after:
            raise SheetsAPIError(400, CELL_LIMIT)
        if delete_leading:
            del self.rows[:delete_leading]
        self.rows.extend(list(r) for r in rows)
        logger.info(
            f"PrintSheet appended {len(rows)} rows (deleted {delete_leading}), "
            f"now {len(self.rows)} rows"
        )

    async def delete_rows(self, start: int, end: int) -> None:
        del self.rows[start:end]

    async def read_range(self, a1_range: str) -> list[list[Any]]:
        if a1_range.startswith("Config"):
            return [["METRICS", "cpu_usage\nmem_free"], ["RETIRE_AFTER", "10m"]]
        return [["#N/A"]]

    async def sort_by_first_column(self) -> None:
        self.rows.sort(key=lambda r: str(r[0]))


async def main():
    sheet = PrintSheet()
    client = DeliveryClient(sheet)
    engine = BatchEngine(
        client,
        buffer_size=50,
        flush_interval=0.5,
        retry_policy=EternalRetry(backoff=0.2),
    )
    intake = SampleIntake(engine)

    async with engine:
        now_ms = int(datetime.now(timezone.utc).timestamp() * 1000)
        for i in range(120):
            name = ["cpu_usage", "mem_free", "ignored_metric"][i % 3]
            await intake.put_series(
                {"__name__": name, "instance": f"host-{i % 4}", "job": "node"},
                [(now_ms + i, float(i))],
            )

        await asyncio.sleep(1.5)
        h = engine.health()
        logger.info(
            f"Final health: buffer={h.buffer_size}/{h.buffer_capacity} "
            f"queue={h.queue_size}/{h.queue_capacity} at_capacity={h.sink_at_capacity}"
        )

    logger.info(f"Label columns: {client.columns.keys()}")
    logger.info(f"Sheet holds {len(sheet.rows)} rows")


if __name__ == "__main__":
    asyncio.run(main())
