"""
models/run.py — Run-scoped counters.

A fresh RunStats is created for every pipeline run and passed explicitly
to each phase; nothing here is module-level state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class RunStats:
    """Counters collected across one pipeline run."""

    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    downloads_attempted: int = 0
    downloads_succeeded: int = 0
    rows_parsed: int = 0
    parse_errors: int = 0
    records_transformed: int = 0
    merge_conflicts: int = 0
    records_loaded: int = 0
    records_failed: int = 0
    load_errors: int = 0
    failed_phases: list[str] = field(default_factory=list)
    finished_at: datetime | None = None

    @property
    def downloads_failed(self) -> int:
        return self.downloads_attempted - self.downloads_succeeded

    @property
    def run_date(self) -> str:
        return self.started_at.date().isoformat()

    def finish(self) -> None:
        if self.finished_at is None:
            self.finished_at = datetime.now(timezone.utc)

    def as_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "downloads_attempted": self.downloads_attempted,
            "downloads_succeeded": self.downloads_succeeded,
            "downloads_failed": self.downloads_failed,
            "rows_parsed": self.rows_parsed,
            "parse_errors": self.parse_errors,
            "records_transformed": self.records_transformed,
            "merge_conflicts": self.merge_conflicts,
            "records_loaded": self.records_loaded,
            "records_failed": self.records_failed,
            "load_errors": self.load_errors,
            "failed_phases": list(self.failed_phases),
        }
