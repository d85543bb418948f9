"""
reporting/run_report.py — Run-level data quality report.

Turns the final RunStats of a run into a structured summary, logs it,
prints a console table, and persists it as JSON keyed by the run's start
date:

    <reports_dir>/data_load_<YYYY-MM-DD>.json

A second run on the same day overwrites that day's report.

Usage:
    from housedata_pipeline.reporting.run_report import RunReporter

    reporter = RunReporter()
    path = reporter.write(stats, tables={"zhvi_monthly": result})
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog

from housedata_shared.config import settings
from housedata_shared.models import RunStats

log = structlog.get_logger(__name__)

REPORT_PREFIX = "data_load_"


def success_rate(stats: RunStats) -> float:
    """records_loaded / records_transformed as a percentage; 0.0 when nothing was transformed."""
    if stats.records_transformed <= 0:
        return 0.0
    return round(stats.records_loaded / stats.records_transformed * 100, 2)


def build_report(
    stats: RunStats,
    *,
    tables: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Build the JSON-serialisable report for a run.

    Args:
        stats:  Final run counters.
        tables: Optional {table -> LoadResult} for a per-table breakdown.
    """
    finished = stats.finished_at or stats.started_at
    runtime_s = round((finished - stats.started_at).total_seconds(), 1)

    report: dict[str, Any] = {
        "run_date": stats.run_date,
        "started_at": stats.started_at.isoformat(),
        "finished_at": finished.isoformat(),
        "runtime_seconds": runtime_s,
        "downloads": {
            "attempted": stats.downloads_attempted,
            "succeeded": stats.downloads_succeeded,
            "failed": stats.downloads_failed,
        },
        "parsing": {
            "rows": stats.rows_parsed,
            "errors": stats.parse_errors,
        },
        "transform": {
            "records": stats.records_transformed,
            "merge_conflicts": stats.merge_conflicts,
        },
        "loading": {
            "loaded": stats.records_loaded,
            "failed": stats.records_failed,
            "batch_errors": stats.load_errors,
        },
        "failed_phases": list(stats.failed_phases),
        "summary": {
            "total_downloads": stats.downloads_attempted,
            "total_records_transformed": stats.records_transformed,
            "total_records_loaded": stats.records_loaded,
            "success_rate": f"{success_rate(stats):.2f}%",
        },
    }
    if tables:
        report["tables"] = {
            name: {
                "loaded": r.records_loaded,
                "failed": r.records_failed,
                "batches_failed": r.batches_failed,
                "status": r.status,
            }
            for name, r in tables.items()
        }
    return report


class RunReporter:
    """Writes one JSON report per run date."""

    def __init__(self, reports_dir: Path | None = None) -> None:
        self._reports_dir = Path(reports_dir) if reports_dir is not None else settings.report_dir

    def report_path(self, run_date: str) -> Path:
        return self._reports_dir / f"{REPORT_PREFIX}{run_date}.json"

    def write(
        self,
        stats: RunStats,
        *,
        tables: Mapping[str, Any] | None = None,
        echo: bool = True,
    ) -> Path:
        """
        Finalize stats, persist the report, and emit the summary.

        Returns:
            Path of the written JSON report.
        """
        stats.finish()
        report = build_report(stats, tables=tables)

        path = self.report_path(stats.run_date)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(report, indent=2))

        log.info(
            "run_report_written",
            path=str(path),
            runtime_seconds=report["runtime_seconds"],
            records_transformed=stats.records_transformed,
            records_loaded=stats.records_loaded,
            success_rate=report["summary"]["success_rate"],
            failed_phases=stats.failed_phases,
        )
        if echo:
            print(format_summary(report, path))
        return path

    def load(self, run_date: str) -> dict[str, Any]:
        """Read a previously written report. Raises FileNotFoundError if absent."""
        return json.loads(self.report_path(run_date).read_text())

    def latest(self) -> dict[str, Any] | None:
        paths = sorted(self._reports_dir.glob(f"{REPORT_PREFIX}*.json"))
        if not paths:
            return None
        return json.loads(paths[-1].read_text())


def format_summary(report: Mapping[str, Any], path: Path | None = None) -> str:
    """Render the console summary block for a report."""
    rule = "━" * 40
    downloads = report["downloads"]
    lines = [
        rule,
        "DATA LOAD SUMMARY",
        rule,
        f"Runtime:      {report['runtime_seconds']}s",
        f"Downloads:    {downloads['succeeded']} success, {downloads['failed']} failed",
        f"Parsed:       {report['parsing']['rows']:,} rows ({report['parsing']['errors']} errors)",
        f"Transformed:  {report['transform']['records']:,} records",
        f"Loaded:       {report['loading']['loaded']:,} records",
        f"Success rate: {report['summary']['success_rate']}",
    ]
    if report.get("failed_phases"):
        lines.append(f"Failed:       {', '.join(report['failed_phases'])}")
    if path is not None:
        lines.append(f"Report:       {path}")
    lines.append(rule)
    return "\n".join(lines)
