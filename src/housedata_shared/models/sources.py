"""
models/sources.py — Static per-source configuration.

Each wide-format panel declares where it lives, which table it loads into,
the columns that identify a row for upsert, and how its cells are read.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# "value" streams carry derived ratios and load into their own table;
# "metric" streams contribute one field to a merged multi-metric table.
SourceKind = Literal["value", "metric"]
NumericDomain = Literal["integer", "float"]


class SourceSpec(BaseModel):
    """One wide-format panel source."""

    model_config = ConfigDict(frozen=True)

    key: str                        # e.g. "zhvi_zip"
    name: str                       # e.g. "ZHVI ZIP"
    path: str                       # relative to settings.zillow_base_url
    table: str
    kind: SourceKind = "value"
    field: str = "value"            # value column, or metric name for metric streams
    numeric_domain: NumericDomain = "integer"
    identity_column: str = "RegionName"
    region_field: str = "zip"
    conflict_columns: tuple[str, ...] = ("zip", "date")
    # Panel column -> record field, copied onto every observation of the row
    attribute_columns: dict[str, str] = Field(default_factory=dict)
    # Set on sources whose attributes seed the region dimension table
    dimension_table: str | None = None

    @property
    def derives_changes(self) -> bool:
        return self.kind == "value"
