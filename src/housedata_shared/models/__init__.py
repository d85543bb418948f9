"""
housedata_shared.models — Pydantic models for panels, records, and runs.

These models are used by:
- transforms: validate panel rows and carry reshaped/merged records
- loaders: serialize rows for Supabase via .to_insert_dict()
- reporting: RunStats counters
"""

from housedata_shared.models.observations import (
    DimensionRecord,
    MergeConflict,
    MergedRecord,
    Observation,
)
from housedata_shared.models.panel import PanelRow, RawPanelRow
from housedata_shared.models.run import RunStats
from housedata_shared.models.sources import NumericDomain, SourceKind, SourceSpec

__all__ = [
    "RawPanelRow",
    "PanelRow",
    "Observation",
    "MergedRecord",
    "MergeConflict",
    "DimensionRecord",
    "RunStats",
    "SourceSpec",
    "SourceKind",
    "NumericDomain",
]
