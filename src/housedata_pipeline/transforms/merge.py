"""
transforms/merge.py — Multi-stream merge by (region, period) and region dimensions.

Metric-only panels (inventory, sales, days on market, ...) each contribute
one field to the same market_metrics row. merge_streams() folds them into a
single MergedRecord per (region_key, period).

Each metric cell has exactly one writer. If two streams (or one stream
twice) write the same metric for the same key, the cell is dropped from the
record and reported as a MergeConflict. Dropping rather than keeping either
value makes the merged output independent of stream order.

extract_dimensions() builds one DimensionRecord per region from the
attribute columns carried on observations. It is first-writer-wins: the
first stream with a non-null attribute for a region sets it, and later
streams only fill attributes that are still null. Unlike the metric merge
this IS sensitive to stream order.

Usage:
    from housedata_pipeline.transforms.merge import MetricStream, merge_streams

    result = merge_streams([
        MetricStream("inventory_zip", "inventory", inventory_obs),
        MetricStream("sales_zip", "sales", sales_obs),
    ])
    result.records, result.conflicts
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date

import structlog

from housedata_shared.errors import MergeConflictError
from housedata_shared.models import DimensionRecord, MergeConflict, MergedRecord, Observation

log = structlog.get_logger(__name__)

Key = tuple[str, date]

DIMENSION_FIELDS: tuple[str, ...] = tuple(
    name for name in DimensionRecord.model_fields if name != "region_key"
)


@dataclass
class MetricStream:
    """Observations of a single metric from one source."""

    name: str
    metric: str
    observations: Sequence[Observation]


@dataclass
class MergeResult:
    records: list[MergedRecord] = field(default_factory=list)
    conflicts: list[MergeConflict] = field(default_factory=list)


def merge_streams(streams: Sequence[MetricStream], *, strict: bool = False) -> MergeResult:
    """
    Fold single-metric streams into one record per (region_key, period).

    Args:
        streams: Streams to merge; each stream contributes only its metric.
        strict:  Raise on the first conflict instead of reporting it.

    Returns:
        MergeResult with records sorted by (region_key, period) and the
        conflicting cells that were left out of them.

    Raises:
        MergeConflictError: strict=True and a metric cell was written twice.
    """
    shared = [m for m, n in Counter(s.metric for s in streams).items() if n > 1]
    if shared:
        log.warning("metric_in_multiple_streams", metrics=sorted(shared))

    cells: dict[Key, dict[str, tuple[int | float, str]]] = {}
    conflicted: dict[tuple[Key, str], list[str]] = {}

    for stream in streams:
        for obs in stream.observations:
            key = obs.key
            metrics = cells.setdefault(key, {})
            cell = (key, stream.metric)

            if cell in conflicted:
                conflicted[cell].append(stream.name)
                continue

            if stream.metric in metrics:
                _, first_writer = metrics.pop(stream.metric)
                conflicted[cell] = [first_writer, stream.name]
                if strict:
                    raise MergeConflictError(
                        f"{stream.metric} for {key[0]} {key[1].isoformat()} written by "
                        f"{first_writer} and {stream.name}"
                    )
                continue

            metrics[stream.metric] = (obs.value, stream.name)

    records = [
        MergedRecord(
            region_key=region_key,
            period=period,
            metrics={metric: value for metric, (value, _) in sorted(metrics.items())},
        )
        for (region_key, period), metrics in sorted(cells.items())
        if metrics
    ]
    conflicts = [
        MergeConflict(region_key=k[0], period=k[1], metric=metric, streams=tuple(names))
        for (k, metric), names in sorted(conflicted.items())
    ]

    if conflicts:
        log.warning(
            "merge_conflicts",
            conflicts=len(conflicts),
            metrics=sorted({c.metric for c in conflicts}),
        )
    log.info(
        "merge_complete",
        streams=len(streams),
        records=len(records),
        conflicts=len(conflicts),
    )
    return MergeResult(records=records, conflicts=conflicts)


def extract_dimensions(streams: Iterable[Sequence[Observation]]) -> list[DimensionRecord]:
    """
    Build one DimensionRecord per region, first-writer-wins per attribute.

    Args:
        streams: Observation streams in priority order (the richest panel
                 first). Only the attributes named in DimensionRecord are
                 read.

    Returns:
        Dimension records sorted by region_key. Regions for which no stream
        supplied any attribute are left out.
    """
    dims: dict[str, DimensionRecord] = {}

    for observations in streams:
        for obs in observations:
            existing = dims.get(obs.region_key)
            if existing is not None and existing.is_complete:
                continue

            attrs = {f: obs.attributes.get(f) for f in DIMENSION_FIELDS}
            if existing is None:
                if any(v is not None for v in attrs.values()):
                    dims[obs.region_key] = DimensionRecord(region_key=obs.region_key, **attrs)
                continue

            updates = {
                f: v for f, v in attrs.items()
                if v is not None and getattr(existing, f) is None
            }
            if updates:
                dims[obs.region_key] = existing.model_copy(update=updates)

    log.info("dimensions_extracted", regions=len(dims))
    return [dims[k] for k in sorted(dims)]
