"""
transforms/reshape.py — Wide-to-long reshaping with trailing percent changes.

Every panel row becomes one Observation per period whose cell holds a
usable non-zero number. Value streams (ZHVI, ZORI) also get year-over-year
and month-over-month percent changes computed against the same row's
earlier periods.

Offsets are resolved in one of two modes:

  "ordinal"  — the row's own sorted period list: YoY looks 12 columns back,
               MoM 1 column back. Matches how the panels have always been
               read. On a row with gaps the "12 periods back" column need not
               be 12 calendar months back.
  "calendar" — the period exactly 12 / 1 calendar months earlier, matched
               by (year, month). Gaps yield null changes instead of shifted
               ones.

Usage:
    from housedata_pipeline.transforms.reshape import reshape_row, reshape_table

    observations = reshape_row(row, metric="value", numeric_domain="integer")
    observations = reshape_table(table, SOURCES["zhvi_zip"], stats)
"""

from __future__ import annotations

import math
from collections.abc import Collection
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

import structlog

from housedata_shared.config import DerivationMode
from housedata_shared.errors import ParseValueError
from housedata_shared.models import NumericDomain, Observation, PanelRow, RunStats, SourceSpec
from housedata_shared.time_utils import month_key
from housedata_pipeline.transforms.panel_parser import PanelTable

log = structlog.get_logger(__name__)

YOY_OFFSET = 12
MOM_OFFSET = 1
PCT_QUANTUM = Decimal("0.01")

Number = int | float


def parse_value(raw: str | None, numeric_domain: NumericDomain = "integer") -> Number | None:
    """
    Read one panel cell in the metric's numeric domain.

    Integer metrics are truncated toward zero, so "0.4" reads as 0.
    Returns None for empty, non-numeric, or non-finite cells.
    """
    if raw is None:
        return None
    try:
        number = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    if numeric_domain == "integer":
        return int(number)
    return number


def percent_change(current: Number | None, previous: Number | None) -> float | None:
    """
    ((current - previous) / previous) * 100 rounded to 2 places; None when undefined.

    Ties round away from zero on the exact binary value, so 3.125 stores as
    3.13 rather than the banker's 3.12 that round() gives.
    """
    if not current or not previous:
        return None
    pct = ((current - previous) / previous) * 100
    if not math.isfinite(pct):
        return None
    return float(Decimal(pct).quantize(PCT_QUANTUM, rounding=ROUND_HALF_UP))


def _ordinal_previous(
    values: list[Number | None],
    index: int,
    offset: int,
) -> Number | None:
    if index - offset < 0:
        return None
    return values[index - offset]


def reshape_row(
    row: PanelRow,
    *,
    metric: str,
    numeric_domain: NumericDomain = "integer",
    derive_changes: bool = True,
    mode: DerivationMode = "ordinal",
) -> list[Observation]:
    """
    Reshape one validated panel row into observations.

    Args:
        row:            Validated panel row (periods sorted ascending).
        metric:         Metric name stamped on each observation.
        numeric_domain: "integer" for counts/prices, "float" for ratios.
        derive_changes: Compute yoy_pct / mom_pct.
        mode:           "ordinal" or "calendar" offset resolution.

    Returns:
        Observations in period order. Empty, non-numeric and zero cells are
        skipped without error.
    """
    periods: list[date] = row.period_list
    values = [parse_value(row.periods[p], numeric_domain) for p in periods]

    by_month: dict[tuple[int, int], Number | None] = {}
    if derive_changes and mode == "calendar":
        by_month = {month_key(p): v for p, v in zip(periods, values)}

    observations: list[Observation] = []
    for i, (period, value) in enumerate(zip(periods, values)):
        if not value:
            continue

        yoy_pct: float | None = None
        mom_pct: float | None = None
        if derive_changes:
            if mode == "calendar":
                yoy_prev = by_month.get(month_key(period, months_back=YOY_OFFSET))
                mom_prev = by_month.get(month_key(period, months_back=MOM_OFFSET))
            else:
                yoy_prev = _ordinal_previous(values, i, YOY_OFFSET)
                mom_prev = _ordinal_previous(values, i, MOM_OFFSET)
            yoy_pct = percent_change(value, yoy_prev)
            mom_pct = percent_change(value, mom_prev)

        observations.append(
            Observation(
                region_key=row.region_key,
                period=period,
                metric=metric,
                value=value,
                yoy_pct=yoy_pct,
                mom_pct=mom_pct,
                attributes=row.attributes,
            )
        )
    return observations


def reshape_table(
    table: PanelTable,
    spec: SourceSpec,
    stats: RunStats,
    *,
    mode: DerivationMode = "ordinal",
    regions: Collection[str] | None = None,
) -> list[Observation]:
    """
    Reshape every row of a parsed panel according to its source spec.

    Rows without a region key are dropped and counted as parse errors; they
    never abort the table.

    Args:
        table:   Parsed panel.
        spec:    Source configuration (identity column, metric, domain).
        stats:   Run counters; rows_parsed and parse_errors are updated.
        mode:    Offset resolution for derived changes.
        regions: If set, only rows for these region keys are kept.
    """
    table_log = log.bind(source_key=spec.key, mode=mode)
    if spec.identity_column not in table.columns:
        table_log.warning("identity_column_missing", identity_column=spec.identity_column)

    present = set(table.attribute_columns)
    attribute_columns = {
        col: fld for col, fld in spec.attribute_columns.items() if col in present
    }
    observations: list[Observation] = []
    n_rows = 0
    n_errors = 0

    for raw in table.rows():
        n_rows += 1
        stats.rows_parsed += 1
        try:
            row = PanelRow.from_raw(
                raw,
                identity_column=spec.identity_column,
                attribute_columns=attribute_columns,
                period_columns=table.period_columns,
            )
        except ParseValueError as exc:
            n_errors += 1
            stats.parse_errors += 1
            table_log.debug("row_dropped", row=n_rows, error=str(exc))
            continue

        if regions is not None and row.region_key not in regions:
            continue

        observations.extend(
            reshape_row(
                row,
                metric=spec.field,
                numeric_domain=spec.numeric_domain,
                derive_changes=spec.derives_changes,
                mode=mode,
            )
        )

    if n_errors:
        table_log.warning("rows_dropped", dropped=n_errors, rows=n_rows)
    table_log.info("reshape_complete", rows=n_rows, observations=len(observations))
    return observations
