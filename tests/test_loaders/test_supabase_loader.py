"""
tests/test_loaders/test_supabase_loader.py — Tests for the batched upsert loader.

The target store is the in-memory FakeStore from conftest; SupabaseStore is
exercised against a MagicMock client.
"""

from __future__ import annotations

import math
from datetime import date

import polars as pl
import pytest

from housedata_shared.errors import LoadError
from housedata_shared.models import RunStats
from housedata_pipeline.loaders.supabase_loader import (
    LoadResult,
    SupabaseLoader,
    SupabaseStore,
    partition,
)

CONFLICT = ("zip", "date")


def _records(n: int) -> list[dict]:
    return [
        {"zip": f"{i:05d}", "date": "2024-01-31", "value": 100_000 + i, "yoy_pct": None}
        for i in range(n)
    ]


# ---------------------------------------------------------------------------
# partition()
# ---------------------------------------------------------------------------

class TestPartition:
    @pytest.mark.parametrize(
        "n,batch_size,expected",
        [
            (2500, 1000, [1000, 1000, 500]),
            (2000, 1000, [1000, 1000]),
            (1, 1000, [1]),
            (0, 1000, []),
            (5, 2, [2, 2, 1]),
        ],
    )
    def test_batch_sizes(self, n: int, batch_size: int, expected: list[int]):
        batches = list(partition("t", _records(n), CONFLICT, batch_size))
        assert [len(b) for b in batches] == expected
        assert len(batches) == math.ceil(n / batch_size)

    def test_preserves_order_and_indexes(self):
        records = _records(5)
        batches = list(partition("t", records, CONFLICT, 2))
        assert [b.index for b in batches] == [0, 1, 2]
        assert all(b.total == 3 for b in batches)
        assert [r for b in batches for r in b.records] == records
        assert batches[0].conflict_columns == CONFLICT

    def test_rejects_non_positive_batch_size(self):
        with pytest.raises(ValueError):
            list(partition("t", _records(3), CONFLICT, 0))


# ---------------------------------------------------------------------------
# SupabaseLoader.upsert()
# ---------------------------------------------------------------------------

class TestLoaderUpsert:
    @pytest.mark.asyncio
    async def test_one_call_per_batch(self, store):
        loader = SupabaseLoader(store=store, batch_size=1000)
        result = await loader.upsert("zhvi_monthly", _records(2500), CONFLICT)

        assert [size for _, size in store.calls] == [1000, 1000, 500]
        assert result.records_loaded == 2500
        assert result.records_failed == 0
        assert result.batches_total == 3
        assert result.status == "success"
        assert result.success

    @pytest.mark.asyncio
    async def test_failed_batch_does_not_stop_later_batches(self, failing_store):
        store = failing_store(1)
        stats = RunStats()
        loader = SupabaseLoader(store=store, batch_size=2)

        result = await loader.upsert("zhvi_monthly", _records(5), CONFLICT, stats=stats)

        assert len(store.calls) == 3
        assert result.records_loaded == 3
        assert result.records_failed == 2
        assert result.batches_failed == 1
        assert result.status == "partial_failure"
        assert "Batch 2/3" in result.errors[0]
        # Batch 1 stays applied; batch 2 never reached the table
        assert set(store.tables["zhvi_monthly"]) == {
            ("00000", "2024-01-31"), ("00001", "2024-01-31"), ("00004", "2024-01-31"),
        }
        assert stats.records_loaded == 3
        assert stats.records_failed == 2
        assert stats.load_errors == 1

    @pytest.mark.asyncio
    async def test_all_batches_failed(self, failing_store):
        loader = SupabaseLoader(store=failing_store(0, 1), batch_size=2)
        result = await loader.upsert("t", _records(4), CONFLICT)
        assert result.records_loaded == 0
        assert result.status == "failure"

    @pytest.mark.asyncio
    async def test_idempotent(self, store):
        loader = SupabaseLoader(store=store, batch_size=3)
        records = _records(7)

        await loader.upsert("zhvi_monthly", records, CONFLICT)
        first = {k: dict(v) for k, v in store.tables["zhvi_monthly"].items()}
        await loader.upsert("zhvi_monthly", records, CONFLICT)

        assert store.tables["zhvi_monthly"] == first
        assert len(first) == 7

    @pytest.mark.asyncio
    async def test_upsert_overwrites_with_explicit_nulls(self, store):
        loader = SupabaseLoader(store=store)
        await loader.upsert("t", [{"zip": "32937", "date": "2024-01-31", "yoy_pct": 4.0}], CONFLICT)
        await loader.upsert("t", [{"zip": "32937", "date": "2024-01-31", "yoy_pct": None}], CONFLICT)
        assert store.rows("t") == [{"zip": "32937", "date": "2024-01-31", "yoy_pct": None}]

    @pytest.mark.asyncio
    async def test_keyless_records_rejected(self, store):
        stats = RunStats()
        records = _records(3) + [{"zip": None, "date": "2024-01-31", "value": 1}, {"value": 2}]
        loader = SupabaseLoader(store=store)

        result = await loader.upsert("t", records, CONFLICT, stats=stats)

        assert result.records_loaded == 3
        assert result.records_failed == 2
        assert result.batches_failed == 0
        assert stats.records_failed == 2
        assert stats.load_errors == 0
        assert len(store.rows("t")) == 3

    @pytest.mark.asyncio
    async def test_empty_records(self, store):
        result = await SupabaseLoader(store=store).upsert("t", [], CONFLICT)
        assert result == LoadResult(table="t")
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_dates_serialized(self, store):
        records = [{"zip": "32937", "date": date(2024, 1, 31), "value": 1}]
        await SupabaseLoader(store=store).upsert("t", records, CONFLICT)
        assert store.rows("t")[0]["date"] == "2024-01-31"

    @pytest.mark.asyncio
    async def test_dataframe_input(self, store):
        df = pl.DataFrame({
            "zip": ["32937", "10001"],
            "date": [date(2024, 1, 31), date(2024, 1, 31)],
            "value": [313000, 930000],
            "scratch": ["x", "y"],
        })
        loader = SupabaseLoader(store=store)
        result = await loader.upsert("t", df, CONFLICT, ignore_columns=["scratch"])

        assert result.records_loaded == 2
        row = store.tables["t"][("32937", "2024-01-31")]
        assert row == {"zip": "32937", "date": "2024-01-31", "value": 313000}

    @pytest.mark.asyncio
    async def test_empty_dataframe(self, store):
        result = await SupabaseLoader(store=store).upsert("t", pl.DataFrame(), CONFLICT)
        assert result.records_loaded == 0
        assert store.calls == []

    def test_batch_size_defaults_to_settings(self, store):
        assert SupabaseLoader(store=store).batch_size == 1000
        assert SupabaseLoader(store=store, batch_size=50).batch_size == 50


# ---------------------------------------------------------------------------
# SupabaseStore
# ---------------------------------------------------------------------------

class TestSupabaseStore:
    def test_upsert_calls_client(self, mock_supabase_client):
        store = SupabaseStore(client=mock_supabase_client)
        records = _records(2)

        store.upsert("zhvi_monthly", records, CONFLICT)

        mock_supabase_client.table.assert_called_once_with("zhvi_monthly")
        mock_supabase_client.table.return_value.upsert.assert_called_once_with(
            records, on_conflict="zip,date"
        )
        mock_supabase_client.table.return_value.upsert.return_value.execute.assert_called_once()

    def test_client_error_becomes_load_error(self, mock_supabase_client):
        mock_supabase_client.table.return_value.upsert.return_value.execute.side_effect = (
            RuntimeError("violates check constraint")
        )
        store = SupabaseStore(client=mock_supabase_client)
        with pytest.raises(LoadError, match="check constraint"):
            store.upsert("zhvi_monthly", _records(1), CONFLICT)

    @pytest.mark.asyncio
    async def test_loader_over_mock_client(self, mock_supabase_client):
        loader = SupabaseLoader(store=SupabaseStore(client=mock_supabase_client), batch_size=2)
        result = await loader.upsert("zip_codes", [{"zip": "32937", "city": None}], ("zip",))
        assert result.records_loaded == 1
        mock_supabase_client.table.return_value.upsert.assert_called_once_with(
            [{"zip": "32937", "city": None}], on_conflict="zip"
        )
