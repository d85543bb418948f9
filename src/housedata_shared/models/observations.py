"""
models/observations.py — Long-format records produced by the transforms.

Observation is one (region, period, metric) value with its trailing
percent changes. MergedRecord folds several single-metric streams into one
row per (region, period). DimensionRecord describes a region and carries no
periods.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Observation(BaseModel):
    """One reshaped panel cell."""

    model_config = ConfigDict(frozen=True)

    region_key: str
    period: date
    metric: str
    value: int | float
    yoy_pct: float | None = None
    mom_pct: float | None = None
    # Not part of the identity; shared by every observation of a panel row
    attributes: dict[str, str | None] = Field(default_factory=dict)

    @property
    def key(self) -> tuple[str, date]:
        return self.region_key, self.period

    def to_insert_dict(
        self,
        *,
        region_field: str = "zip",
        value_field: str | None = None,
        include_derived: bool = True,
    ) -> dict[str, Any]:
        row: dict[str, Any] = {
            region_field: self.region_key,
            "date": self.period.isoformat(),
            value_field or self.metric: self.value,
        }
        if include_derived:
            row["yoy_pct"] = self.yoy_pct
            row["mom_pct"] = self.mom_pct
        row.update(self.attributes)
        return row


class MergedRecord(BaseModel):
    """
    One (region, period) row built from several single-metric streams.

    Primary key is (region_key, period).
    """

    region_key: str
    period: date
    metrics: dict[str, int | float] = Field(default_factory=dict)

    @property
    def key(self) -> tuple[str, date]:
        return self.region_key, self.period

    def to_insert_dict(
        self,
        *,
        region_field: str = "zip",
        metric_fields: Iterable[str] = (),
    ) -> dict[str, Any]:
        """
        Serialize for upsert. Every name in metric_fields is present (None
        when this record lacks it) so all rows of a batch share one shape.
        """
        row: dict[str, Any] = {
            region_field: self.region_key,
            "date": self.period.isoformat(),
        }
        row.update({name: None for name in metric_fields})
        row.update(self.metrics)
        return row


class MergeConflict(BaseModel):
    """A metric cell written more than once for the same key."""

    model_config = ConfigDict(frozen=True)

    region_key: str
    period: date
    metric: str
    streams: tuple[str, ...]


class DimensionRecord(BaseModel):
    """Matches the zip_codes table row. Primary key is zip."""

    region_key: str
    city: str | None = None
    county: str | None = None
    state: str | None = None
    metro: str | None = None

    @property
    def is_complete(self) -> bool:
        return all(v is not None for v in (self.city, self.county, self.state, self.metro))

    def to_insert_dict(self, *, region_field: str = "zip") -> dict[str, Any]:
        return {
            region_field: self.region_key,
            "city": self.city,
            "county": self.county,
            "state": self.state,
            "metro": self.metro,
        }
