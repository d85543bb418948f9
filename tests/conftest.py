"""
tests/conftest.py — Shared pytest fixtures for the pipeline test suite.

Provides:
  fixture_path()        — resolves paths to tests/fixtures/
  panel_bytes()         — raw bytes of a fixture panel by source key
  mock_supabase_client  — MagicMock of the Supabase client (no real DB calls)
  store, failing_store  — in-memory TargetStore (FakeStore) with upsert semantics
  mock_http             — configured respx router for faking HTTP responses
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
import respx

from housedata_shared.errors import LoadError

FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def fixture_path() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def panel_bytes() -> Callable[[str], bytes]:
    """Return a loader for tests/fixtures/<source_key>_sample.csv."""

    def _load(source_key: str) -> bytes:
        return (FIXTURES_DIR / f"{source_key}_sample.csv").read_bytes()

    return _load


# ---------------------------------------------------------------------------
# Supabase client mock
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_supabase_client() -> MagicMock:
    """
    A MagicMock that simulates the supabase.Client interface.

    The .table().upsert().execute() chain returns empty data by default.
    Override in individual tests: mock_supabase_client.table.return_value...
    """
    client = MagicMock()

    default_result = MagicMock()
    default_result.data = []
    default_result.count = 0

    (
        client.table.return_value
        .upsert.return_value
        .execute.return_value
    ) = default_result

    return client


# ---------------------------------------------------------------------------
# In-memory target store
# ---------------------------------------------------------------------------

class FakeStore:
    """
    TargetStore that keeps rows in dicts keyed by their conflict columns.

    Each upsert call is one batch. Batches whose call number (0-based) is in
    fail_calls raise LoadError and leave the tables untouched.
    """

    def __init__(self, fail_calls: Sequence[int] = ()) -> None:
        self.tables: dict[str, dict[tuple, dict[str, Any]]] = {}
        self.calls: list[tuple[str, int]] = []
        self._fail_calls = set(fail_calls)

    def upsert(
        self,
        table: str,
        records: list[dict[str, Any]],
        conflict_columns: Sequence[str],
    ) -> None:
        call_no = len(self.calls)
        self.calls.append((table, len(records)))
        if call_no in self._fail_calls:
            raise LoadError(f"simulated rejection of call {call_no}")

        rows = self.tables.setdefault(table, {})
        for record in records:
            key = tuple(record[c] for c in conflict_columns)
            rows[key] = {**rows.get(key, {}), **record}

    def rows(self, table: str) -> list[dict[str, Any]]:
        return list(self.tables.get(table, {}).values())


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def failing_store() -> Callable[..., FakeStore]:
    """Build a FakeStore that rejects the given upsert calls."""

    def _make(*fail_calls: int) -> FakeStore:
        return FakeStore(fail_calls=fail_calls)

    return _make


# ---------------------------------------------------------------------------
# respx HTTP mock router
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_http():
    """
    Activate the respx mock router for all httpx requests.

    Usage in tests:
        def test_something(mock_http):
            mock_http.get("https://...").mock(return_value=httpx.Response(200, content=b"..."))
    """
    with respx.mock(assert_all_called=False) as router:
        yield router
