"""
pipelines/zillow.py — Zillow Research panel pipeline.

Phases, run in order within one coroutine:

  retrieve+transform — per source: fetch the panel, parse it, reshape it to
                       observations. One panel is finished before the next
                       is fetched.
  merge              — fold metric-only streams into market_metrics rows;
                       extract zip_codes dimension rows from the ZIP-level
                       value panels.
  load               — upsert every record set in batches.
  report             — persist the run's data-quality report.

Ingests into:
  - zhvi_monthly / zhvi_monthly_city / zhvi_monthly_county
  - zori_monthly / zori_monthly_city
  - market_metrics (inventory, sales, price cuts, days on market, sale-to-list)
  - zip_codes

Each fetch and the load phase run under a timeout. A timed-out phase is
recorded in RunStats.failed_phases; batches already applied stay applied.
No single source or batch failure aborts the run. Only retrieving no
source at all, or a metric conflict under strict_merge, raises PipelineError
after the report has been written.

Usage:
    from housedata_pipeline.pipelines.zillow import run
    result = await run()                                  # every source
    result = await run(sources=["zhvi_zip", "sales_zip"]) # a subset
    result = await run(regions=["32937"], dry_run=True)   # no DB writes
"""

from __future__ import annotations

import asyncio
from collections.abc import Collection, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from housedata_shared.config import DerivationMode, settings
from housedata_shared.constants import (
    DIMENSION_CONFLICT_COLUMNS,
    MARKET_METRICS_TABLE,
    SOURCES,
    ZIP_CODES_TABLE,
    ZIP_CONFLICT_COLUMNS,
)
from housedata_shared.errors import (
    MalformedTableError,
    MergeConflictError,
    PipelineError,
    RetrievalError,
)
from housedata_shared.models import (
    DimensionRecord,
    MergeConflict,
    MergedRecord,
    Observation,
    RunStats,
    SourceSpec,
)
from housedata_pipeline.loaders.supabase_loader import LoadResult, SupabaseLoader
from housedata_pipeline.reporting.run_report import RunReporter
from housedata_pipeline.sources.base import PanelSource
from housedata_pipeline.sources.zillow import ZillowSource
from housedata_pipeline.transforms.merge import MetricStream, extract_dimensions, merge_streams
from housedata_pipeline.transforms.panel_parser import PanelTable
from housedata_pipeline.transforms.reshape import reshape_table
from housedata_pipeline.utils.logging import bind_run_context, clear_run_context

log = structlog.get_logger(__name__, pipeline="zillow")


@dataclass
class TransformOutput:
    """Observations per source, in registry order."""

    value_streams: list[tuple[SourceSpec, list[Observation]]] = field(default_factory=list)
    metric_streams: list[MetricStream] = field(default_factory=list)


@dataclass
class MergeOutput:
    records: list[MergedRecord]
    conflicts: list[MergeConflict]
    dimensions: list[DimensionRecord]
    metric_fields: list[str]


@dataclass
class TableLoad:
    """One terminal record set ready for the loader."""

    table: str
    rows: list[dict[str, Any]]
    conflict_columns: tuple[str, ...]


@dataclass
class PipelineResult:
    stats: RunStats
    tables: dict[str, LoadResult]
    conflicts: list[MergeConflict]
    report_path: Path | None = None


def resolve_sources(keys: Sequence[str] | None) -> list[SourceSpec]:
    """Map source keys to specs, skipping unknown keys. None selects every source."""
    if not keys:
        return list(SOURCES.values())
    specs: list[SourceSpec] = []
    for key in keys:
        spec = SOURCES.get(key.strip().lower())
        if spec is None:
            log.warning("unknown_source", source=key)
            continue
        specs.append(spec)
    return specs


# ---------------------------------------------------------------------------
# Phase: retrieve + transform
# ---------------------------------------------------------------------------

async def _fetch(
    source: PanelSource,
    spec: SourceSpec,
    stats: RunStats,
    timeout_s: float,
) -> bytes | None:
    stats.downloads_attempted += 1
    try:
        content = await asyncio.wait_for(source.fetch(spec), timeout=timeout_s)
    except asyncio.TimeoutError:
        log.error("phase_timeout", phase="retrieve", source_key=spec.key, timeout_s=timeout_s)
        stats.failed_phases.append(f"retrieve:{spec.key}")
        return None
    except RetrievalError as exc:
        log.error("source_skipped", source_key=spec.key, error=str(exc))
        return None
    stats.downloads_succeeded += 1
    return content


def _transform(
    spec: SourceSpec,
    content: bytes,
    stats: RunStats,
    *,
    mode: DerivationMode,
    regions: Collection[str] | None,
) -> list[Observation] | None:
    try:
        table = PanelTable.from_bytes(content)
    except MalformedTableError as exc:
        stats.parse_errors += 1
        log.error("malformed_table", source_key=spec.key, error=str(exc))
        return None
    return reshape_table(table, spec, stats, mode=mode, regions=regions)


async def retrieve_and_transform(
    source: PanelSource,
    specs: Sequence[SourceSpec],
    stats: RunStats,
    *,
    mode: DerivationMode,
    regions: Collection[str] | None = None,
    timeout_s: float | None = None,
) -> TransformOutput:
    """Fetch, parse, and reshape each source in turn."""
    output = TransformOutput()
    for spec in specs:
        content = await _fetch(source, spec, stats, timeout_s or settings.retrieve_timeout_s)
        if content is None:
            continue

        observations = _transform(spec, content, stats, mode=mode, regions=regions)
        if observations is None:
            continue

        if spec.kind == "metric":
            output.metric_streams.append(MetricStream(spec.key, spec.field, observations))
        else:
            output.value_streams.append((spec, observations))
    return output


# ---------------------------------------------------------------------------
# Phase: merge
# ---------------------------------------------------------------------------

def merge(output: TransformOutput, stats: RunStats, *, strict: bool = False) -> MergeOutput:
    """Merge metric streams and extract region dimensions."""
    merged = merge_streams(output.metric_streams, strict=strict)
    stats.merge_conflicts += len(merged.conflicts)

    # Registry order puts the richest ZIP panel (ZHVI) first
    dimension_streams = [
        observations
        for spec, observations in output.value_streams
        if spec.dimension_table == ZIP_CODES_TABLE
    ]
    dimensions = extract_dimensions(dimension_streams)

    metric_fields = list(dict.fromkeys(s.metric for s in output.metric_streams))
    return MergeOutput(
        records=merged.records,
        conflicts=merged.conflicts,
        dimensions=dimensions,
        metric_fields=metric_fields,
    )


def plan_loads(output: TransformOutput, merged: MergeOutput, stats: RunStats) -> list[TableLoad]:
    """
    Serialize every terminal record set. Dimensions load first so region
    rows exist before the facts that reference them.
    """
    loads: list[TableLoad] = []

    if merged.dimensions:
        loads.append(
            TableLoad(
                table=ZIP_CODES_TABLE,
                rows=[d.to_insert_dict() for d in merged.dimensions],
                conflict_columns=DIMENSION_CONFLICT_COLUMNS,
            )
        )

    by_table: dict[str, TableLoad] = {}
    for spec, observations in output.value_streams:
        if not observations:
            continue
        load = by_table.setdefault(
            spec.table,
            TableLoad(table=spec.table, rows=[], conflict_columns=spec.conflict_columns),
        )
        load.rows.extend(
            obs.to_insert_dict(region_field=spec.region_field, value_field=spec.field)
            for obs in observations
        )
    loads.extend(by_table.values())

    if merged.records:
        loads.append(
            TableLoad(
                table=MARKET_METRICS_TABLE,
                rows=[
                    r.to_insert_dict(metric_fields=merged.metric_fields)
                    for r in merged.records
                ],
                conflict_columns=ZIP_CONFLICT_COLUMNS,
            )
        )

    stats.records_transformed += sum(len(load.rows) for load in loads)
    return loads


# ---------------------------------------------------------------------------
# Phase: load
# ---------------------------------------------------------------------------

async def load_tables(
    loader: SupabaseLoader,
    loads: Sequence[TableLoad],
    stats: RunStats,
    results: dict[str, LoadResult],
) -> None:
    """Load tables one after another; results is filled as each table finishes."""
    for load in loads:
        results[load.table] = await loader.upsert(
            load.table,
            load.rows,
            conflict_columns=load.conflict_columns,
            stats=stats,
        )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

async def run(
    *,
    sources: Sequence[str] | None = None,
    regions: Collection[str] | None = None,
    mode: DerivationMode | None = None,
    batch_size: int | None = None,
    dry_run: bool = False,
    strict_merge: bool = False,
    source: PanelSource | None = None,
    loader: SupabaseLoader | None = None,
    reporter: RunReporter | None = None,
) -> PipelineResult:
    """
    Run the Zillow panel pipeline end to end.

    Args:
        sources:      Source keys to run (default: all registered sources).
        regions:      Only keep rows for these region keys (e.g. ["32937"]).
        mode:         "ordinal" or "calendar" derivation (default: settings).
        batch_size:   Rows per upsert (default: settings.batch_size).
        dry_run:      Transform but do not write to Supabase.
        strict_merge: Fail the run on a conflicting metric cell instead of
                      dropping and reporting it.
        source:       Panel retrieval collaborator (default: ZillowSource).
        loader:       Batch loader (default: SupabaseLoader).
        reporter:     Report writer (default: RunReporter).

    Returns:
        PipelineResult with the final stats and per-table LoadResults.

    Raises:
        PipelineError: no source could be retrieved, or strict_merge hit a
            conflicting metric cell.
    """
    stats = RunStats()
    derivation = mode or settings.derivation_mode
    specs = resolve_sources(sources)
    region_set = {r.strip() for r in regions} if regions else None

    bind_run_context(run_date=stats.run_date, mode=derivation, dry_run=dry_run)
    try:
        return await _run_phases(
            specs,
            stats,
            mode=derivation,
            regions=region_set,
            batch_size=batch_size,
            dry_run=dry_run,
            strict_merge=strict_merge,
            source=source or ZillowSource(),
            loader=loader,
            reporter=reporter or RunReporter(),
        )
    finally:
        clear_run_context()


async def _run_phases(
    specs: Sequence[SourceSpec],
    stats: RunStats,
    *,
    mode: DerivationMode,
    regions: Collection[str] | None,
    batch_size: int | None,
    dry_run: bool,
    strict_merge: bool,
    source: PanelSource,
    loader: SupabaseLoader | None,
    reporter: RunReporter,
) -> PipelineResult:
    log.info(
        "pipeline_start",
        sources=[s.key for s in specs],
        regions=sorted(regions) if regions else None,
    )

    output = await retrieve_and_transform(source, specs, stats, mode=mode, regions=regions)

    results: dict[str, LoadResult] = {}

    if stats.downloads_succeeded == 0:
        log.error("no_sources_retrieved", attempted=stats.downloads_attempted)
        report_path = reporter.write(stats, tables=results)
        raise PipelineError(
            f"no sources retrieved ({stats.downloads_attempted} attempted); report: {report_path}"
        )

    try:
        merged = merge(output, stats, strict=strict_merge)
    except MergeConflictError as exc:
        log.error("merge_conflict", error=str(exc))
        stats.merge_conflicts += 1
        stats.failed_phases.append("merge")
        report_path = reporter.write(stats, tables=results)
        raise PipelineError(f"{exc}; report: {report_path}") from exc
    loads = plan_loads(output, merged, stats)

    if dry_run:
        for load in loads:
            log.info("dry_run_skip", table=load.table, rows=len(load.rows))
            results[load.table] = LoadResult(table=load.table)
    else:
        loader = loader or SupabaseLoader(batch_size=batch_size)
        try:
            await asyncio.wait_for(
                load_tables(loader, loads, stats, results),
                timeout=settings.load_timeout_s,
            )
        except asyncio.TimeoutError:
            log.error(
                "phase_timeout",
                phase="load",
                timeout_s=settings.load_timeout_s,
                tables_done=list(results),
            )
            stats.failed_phases.append("load")

    report_path = reporter.write(stats, tables=results)
    log.info(
        "pipeline_complete",
        records_transformed=stats.records_transformed,
        records_loaded=stats.records_loaded,
        tables={t: r.records_loaded for t, r in results.items()},
    )
    return PipelineResult(
        stats=stats,
        tables=results,
        conflicts=merged.conflicts,
        report_path=report_path,
    )
