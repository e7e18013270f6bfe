"""
Sample → sink row mapping.

Two output formats are supported:

- ``columns`` (default): ``[iso timestamp, name, value, label columns...]`` where
  each label key owns a fixed column assigned on first sight by LabelColumnMap.
- ``text``: ``[received unix, sample unix, name, value, "k: v" lines]``, all
  labels folded into one free-text cell.

NaN values become empty cells since the sink cannot store NaN.
"""

from __future__ import annotations

import math
import threading
from datetime import datetime
from typing import Literal, Optional, Sequence, Union

from .models import Sample
from .utils import unix_seconds, utc_now

CellValue = Optional[Union[str, float]]
Row = list[CellValue]
RowFormat = Literal["columns", "text"]

# timestamp, metric name, value
LABEL_COLUMN_OFFSET = 3


class LabelColumnMap:
    """Append-only registry of label key → column index in first-seen order.

    Indices never change once assigned and the map is never compacted.
    """

    def __init__(self) -> None:
        self._index: dict[str, int] = {}
        self._lock = threading.Lock()

    def index_of(self, key: str) -> int:
        idx = self._index.get(key)
        if idx is not None:
            return idx
        with self._lock:
            idx = self._index.get(key)
            if idx is None:
                idx = len(self._index)
                self._index[key] = idx
            return idx

    def keys(self) -> list[str]:
        """Label keys in column order."""
        return list(self._index)

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, key: object) -> bool:
        return key in self._index


def _value_cell(value: float) -> CellValue:
    return None if math.isnan(value) else float(value)


class RowMapper:
    """Maps samples to rows in the configured format."""

    def __init__(self, row_format: RowFormat = "columns", columns: LabelColumnMap | None = None):
        if row_format not in ("columns", "text"):
            raise ValueError(f"unknown row format: {row_format!r}")
        self.row_format: RowFormat = row_format
        self.columns = columns or LabelColumnMap()

    def rows(self, samples: Sequence[Sample], received_at: datetime | None = None) -> list[Row]:
        now = received_at or utc_now()
        if self.row_format == "text":
            return [self._text_row(s, now) for s in samples]
        return [self._columns_row(s) for s in samples]

    def _columns_row(self, s: Sample) -> Row:
        row: Row = [s.timestamp.isoformat(), s.metric_name, _value_cell(s.value)]
        for key, val in s.labels.items():
            col = LABEL_COLUMN_OFFSET + self.columns.index_of(key)
            if col >= len(row):
                row.extend([None] * (col + 1 - len(row)))
            row[col] = val
        return row

    @staticmethod
    def _text_row(s: Sample, received_at: datetime) -> Row:
        dims = sorted(f"{k}: {v}" for k, v in s.labels.items())
        return [
            unix_seconds(received_at),
            unix_seconds(s.timestamp),
            s.metric_name,
            _value_cell(s.value),
            "\n".join(dims),
        ]
