"""
Unit tests for LabelColumnMap and the two row formats.
"""

import math
from datetime import datetime, timezone

import pytest

from gsheet_client.rows import LABEL_COLUMN_OFFSET, LabelColumnMap, RowMapper

TS = datetime(2024, 3, 1, 12, 0, 30, tzinfo=timezone.utc)


def test_indices_assigned_in_first_seen_order():
    cols = LabelColumnMap()
    assert cols.index_of("job") == 0
    assert cols.index_of("instance") == 1
    assert cols.index_of("env") == 2
    assert cols.keys() == ["job", "instance", "env"]


def test_known_key_keeps_its_index():
    cols = LabelColumnMap()
    cols.index_of("job")
    cols.index_of("instance")
    assert cols.index_of("job") == 0
    assert cols.index_of("instance") == 1
    assert len(cols) == 2
    assert "job" in cols
    assert "missing" not in cols


def test_columns_row_layout(make_sample):
    mapper = RowMapper("columns")
    row = mapper.rows([make_sample("cpu_usage", 0.5, ts=TS, job="node", instance="a:9100")])[0]

    assert row[0] == TS.isoformat()
    assert row[1] == "cpu_usage"
    assert row[2] == 0.5
    assert row[LABEL_COLUMN_OFFSET + mapper.columns.index_of("job")] == "node"
    assert row[LABEL_COLUMN_OFFSET + mapper.columns.index_of("instance")] == "a:9100"


def test_columns_are_stable_across_samples(make_sample):
    """A label that stops appearing keeps its column; gaps are blank."""
    mapper = RowMapper("columns")
    first, second = mapper.rows(
        [
            make_sample(ts=TS, job="node", instance="a"),
            make_sample(ts=TS, env="prod"),
        ]
    )
    assert first[3:] == ["node", "a"]
    # env is the third label ever seen
    assert second[3:] == [None, None, "prod"]
    assert mapper.columns.keys() == ["job", "instance", "env"]


def test_nan_value_becomes_empty_cell(make_sample):
    mapper = RowMapper("columns")
    row = mapper.rows([make_sample(value=math.nan, ts=TS)])[0]
    assert row[2] is None


def test_text_row_layout(make_sample):
    received = datetime(2024, 3, 1, 12, 1, 0, tzinfo=timezone.utc)
    mapper = RowMapper("text")
    row = mapper.rows([make_sample("up", 1.0, ts=TS, job="node", env="prod")], received_at=received)[0]

    assert row == [
        float(int(received.timestamp())),
        float(int(TS.timestamp())),
        "up",
        1.0,
        "env: prod\njob: node",
    ]
    assert len(mapper.columns) == 0


def test_text_row_nan_and_no_labels(make_sample):
    row = RowMapper("text").rows([make_sample(value=math.nan, ts=TS)], received_at=TS)[0]
    assert row[3] is None
    assert row[4] == ""


def test_unknown_row_format_rejected():
    with pytest.raises(ValueError, match="unknown row format"):
        RowMapper("wide")
