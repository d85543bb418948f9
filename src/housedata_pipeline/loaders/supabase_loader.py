"""
loaders/supabase_loader.py — Batched idempotent upsert loader.

Every record set the pipeline produces goes through this module. The loader:
  - Accepts polars DataFrames or sequences of dicts
  - Splits records into fixed-size batches (default 1000)
  - Applies each batch as one upsert (INSERT … ON CONFLICT DO UPDATE)
  - Handles partial failures: logs failed batches and continues
  - Returns a LoadResult with records_loaded and records_failed counts

Batches are applied in order, one at a time. A failed batch never rolls
back an earlier one, so records_loaded is a lower bound; running the same
input again converges because every write is an upsert.

Usage:
    from housedata_pipeline.loaders.supabase_loader import SupabaseLoader

    loader = SupabaseLoader()
    result = await loader.upsert(
        table="zhvi_monthly",
        records=rows,
        conflict_columns=["zip", "date"],
        stats=stats,
    )
    print(result.records_loaded, result.records_failed)
"""

from __future__ import annotations

import asyncio
import math
import time
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Protocol

import polars as pl
import structlog

from housedata_shared.config import settings
from housedata_shared.db import get_supabase_client
from housedata_shared.errors import LoadError
from housedata_shared.models import RunStats

log = structlog.get_logger(__name__)

BATCH_SIZE = 1000    # rows per upsert request

Records = pl.DataFrame | Sequence[Mapping[str, Any]]


class TargetStore(Protocol):
    """Anything that can apply one atomic upsert."""

    def upsert(
        self,
        table: str,
        records: list[dict[str, Any]],
        conflict_columns: Sequence[str],
    ) -> None:
        ...


class SupabaseStore:
    """TargetStore backed by the Supabase REST API (service role)."""

    def __init__(self, client: Any | None = None) -> None:
        self._client = client if client is not None else get_supabase_client()

    def upsert(
        self,
        table: str,
        records: list[dict[str, Any]],
        conflict_columns: Sequence[str],
    ) -> None:
        try:
            self._client.table(table).upsert(
                records,
                on_conflict=",".join(conflict_columns),
            ).execute()
        except Exception as exc:
            raise LoadError(str(exc)) from exc


@dataclass
class LoadBatch:
    """One slice of a record set awaiting upsert."""

    table: str
    conflict_columns: tuple[str, ...]
    index: int
    total: int
    records: list[dict[str, Any]]

    def __len__(self) -> int:
        return len(self.records)


@dataclass
class LoadResult:
    """Summary of a loader upsert operation."""

    table: str
    records_loaded: int = 0
    records_failed: int = 0
    batches_total: int = 0
    batches_failed: int = 0
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return self.records_failed == 0

    @property
    def status(self) -> str:
        if self.records_failed == 0:
            return "success"
        if self.records_loaded > 0:
            return "partial_failure"
        return "failure"


def partition(
    table: str,
    records: list[dict[str, Any]],
    conflict_columns: Sequence[str],
    batch_size: int = BATCH_SIZE,
) -> Iterator[LoadBatch]:
    """
    Split records into ordered batches of at most batch_size.

    N records yield ceil(N / batch_size) batches; the last holds the
    remainder (or a full batch when N divides evenly).
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    total = math.ceil(len(records) / batch_size)
    for idx in range(total):
        start = idx * batch_size
        yield LoadBatch(
            table=table,
            conflict_columns=tuple(conflict_columns),
            index=idx,
            total=total,
            records=records[start : start + batch_size],
        )


class SupabaseLoader:
    """
    Applies record sets to the target store in batches.

    Uses the service role key so RLS is bypassed for ETL writes.
    """

    def __init__(
        self,
        store: TargetStore | None = None,
        batch_size: int | None = None,
    ) -> None:
        self._store = store if store is not None else SupabaseStore()
        self._batch_size = batch_size or settings.batch_size or BATCH_SIZE

    @property
    def batch_size(self) -> int:
        return self._batch_size

    # ------------------------------------------------------------------
    # Core upsert
    # ------------------------------------------------------------------

    async def upsert(
        self,
        table: str,
        records: Records,
        conflict_columns: Sequence[str],
        *,
        stats: RunStats | None = None,
        ignore_columns: Sequence[str] | None = None,
    ) -> LoadResult:
        """
        Upsert all records into a table, batch by batch.

        Date values are serialized to ISO strings. Null values are sent as
        explicit nulls so an upsert overwrites every non-key field. Records
        missing a conflict column are rejected before any batch is sent.

        Args:
            table:            Target table name.
            records:          polars DataFrame or sequence of row dicts.
            conflict_columns: Columns that identify uniqueness for upsert.
            stats:            Run counters, updated after every batch.
            ignore_columns:   Columns to exclude from the insert dict.

        Returns:
            LoadResult with counts and error list.
        """
        result = LoadResult(table=table)
        t0 = time.monotonic()

        rows = self._to_dicts(records, ignore_columns=ignore_columns or [])
        if not rows:
            log.warning("upsert_empty_records", table=table)
            return result

        rows = self._reject_keyless(rows, conflict_columns, result, stats)

        loader_log = log.bind(table=table, total_rows=len(rows))
        loader_log.info("upsert_start", batch_size=self._batch_size)

        batches = list(partition(table, rows, conflict_columns, self._batch_size))
        result.batches_total = len(batches)

        for batch in batches:
            try:
                await asyncio.to_thread(
                    self._store.upsert,
                    batch.table,
                    batch.records,
                    batch.conflict_columns,
                )
            except Exception as exc:
                error_msg = f"Batch {batch.index + 1}/{batch.total}: {exc}"
                loader_log.error("batch_failed", batch=batch.index + 1, error=str(exc))
                result.records_failed += len(batch)
                result.batches_failed += 1
                result.errors.append(error_msg)
                if stats is not None:
                    stats.records_failed += len(batch)
                    stats.load_errors += 1
                continue

            result.records_loaded += len(batch)
            if stats is not None:
                stats.records_loaded += len(batch)
            loader_log.debug(
                "batch_loaded",
                batch=batch.index + 1,
                n_batches=batch.total,
                batch_size=len(batch),
            )

        result.duration_ms = int((time.monotonic() - t0) * 1000)
        loader_log.info(
            "upsert_complete",
            records_loaded=result.records_loaded,
            records_failed=result.records_failed,
            duration_ms=result.duration_ms,
            status=result.status,
        )
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _reject_keyless(
        rows: list[dict[str, Any]],
        conflict_columns: Sequence[str],
        result: LoadResult,
        stats: RunStats | None,
    ) -> list[dict[str, Any]]:
        """Drop rows with a missing or null conflict column, counting them as failed."""
        valid = [r for r in rows if all(r.get(c) is not None for c in conflict_columns)]
        rejected = len(rows) - len(valid)
        if rejected:
            error = LoadError(
                f"{rejected} record(s) missing conflict columns {list(conflict_columns)}"
            )
            log.error("records_rejected", table=result.table, rejected=rejected, error=str(error))
            result.records_failed += rejected
            result.errors.append(str(error))
            if stats is not None:
                stats.records_failed += rejected
        return valid

    @staticmethod
    def _to_dicts(
        records: Records,
        *,
        ignore_columns: Sequence[str],
    ) -> list[dict[str, Any]]:
        """
        Convert records to a JSON-serialisable list of dicts.

        - Date and datetime values → ISO string
        - Ignored columns dropped
        """
        ignore_set = set(ignore_columns)

        if isinstance(records, pl.DataFrame):
            if records.is_empty():
                return []
            cols = [c for c in records.columns if c not in ignore_set]
            df_sub = records.select(cols)

            cast_exprs = []
            for col_name in df_sub.columns:
                dtype = df_sub[col_name].dtype
                if dtype == pl.Date:
                    cast_exprs.append(pl.col(col_name).cast(pl.String).alias(col_name))
                elif dtype == pl.Datetime:
                    cast_exprs.append(
                        pl.col(col_name).dt.strftime("%Y-%m-%dT%H:%M:%SZ").alias(col_name)
                    )
            if cast_exprs:
                df_sub = df_sub.with_columns(cast_exprs)
            return df_sub.to_dicts()

        return [
            {
                k: v.isoformat() if isinstance(v, (date, datetime)) else v
                for k, v in row.items()
                if k not in ignore_set
            }
            for row in records
        ]
