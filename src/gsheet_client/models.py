"""
Pydantic data models shared by the delivery client and the batch engine.

Samples are immutable once produced; a Policy is replaced wholesale on refresh.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

METRIC_NAME_LABEL = "__name__"
DEFAULT_RETIRE_AFTER = timedelta(minutes=10)


class Sample(BaseModel):
    """One metric observation. ``value`` may be NaN."""

    model_config = ConfigDict(frozen=True)

    metric_name: str
    labels: dict[str, str] = Field(default_factory=dict)
    value: float
    timestamp: datetime

    @field_validator("timestamp")
    def _utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @field_validator("labels")
    def _drop_name_label(cls, v: dict[str, str]) -> dict[str, str]:
        return {k: v_ for k, v_ in v.items() if k != METRIC_NAME_LABEL}

    @classmethod
    def from_labels(cls, labels: dict[str, str], value: float, timestamp: datetime) -> "Sample":
        """Build a sample from a full label set carrying ``__name__``."""
        return cls(
            metric_name=labels.get(METRIC_NAME_LABEL, ""),
            labels=labels,
            value=value,
            timestamp=timestamp,
        )


class Policy(BaseModel):
    """Allow-list of metric names plus the retention window, read from the sink."""

    model_config = ConfigDict(frozen=True)

    allowed_metric_names: frozenset[str] = frozenset()
    retire_after: timedelta = DEFAULT_RETIRE_AFTER

    @field_validator("allowed_metric_names")
    def _lower(cls, v: frozenset[str]) -> frozenset[str]:
        return frozenset(name.lower() for name in v)

    def allows(self, metric_name: str) -> bool:
        return metric_name.lower() in self.allowed_metric_names
