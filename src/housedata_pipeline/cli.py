"""
cli.py — Click CLI entrypoint for the housedata pipeline.

Usage:
    housedata run
    housedata run --source zhvi_zip --source sales_zip
    housedata run --region 32937 --dry-run
    housedata run --derivation calendar
    housedata sources
    housedata report 2024-02-01
"""

from __future__ import annotations

import asyncio
import json
import sys

import click
import structlog

from housedata_shared.config import settings
from housedata_shared.constants import SOURCES
from housedata_shared.errors import PipelineError

log = structlog.get_logger(__name__)


@click.group()
@click.option(
    "--log-level",
    default=settings.log_level,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Log level",
)
@click.option(
    "--log-format",
    default=settings.log_format,
    type=click.Choice(["json", "console"]),
    help="Log renderer",
)
def main(log_level: str, log_format: str) -> None:
    """housedata ETL pipeline."""
    from housedata_pipeline.utils.logging import configure_logging

    configure_logging(log_level=log_level, log_format=log_format)


@main.command()
@click.option(
    "--source",
    "sources",
    multiple=True,
    type=click.Choice(sorted(SOURCES), case_sensitive=False),
    help="Source to run (repeatable). Default: all sources.",
)
@click.option(
    "--region",
    "regions",
    multiple=True,
    help="Only keep rows for this region key, e.g. a ZIP (repeatable).",
)
@click.option(
    "--derivation",
    type=click.Choice(["ordinal", "calendar"]),
    default=None,
    help="How YoY/MoM offsets are resolved (default: settings.derivation_mode).",
)
@click.option("--batch-size", type=click.IntRange(min=1), default=None, help="Rows per upsert.")
@click.option("--strict-merge", is_flag=True, help="Fail the run (exit 1) on the first metric merge conflict.")
@click.option("--dry-run", is_flag=True, help="Transform but do not write to Supabase.")
def run(
    sources: tuple[str, ...],
    regions: tuple[str, ...],
    derivation: str | None,
    batch_size: int | None,
    strict_merge: bool,
    dry_run: bool,
) -> None:
    """Download, transform, and load Zillow Research panels."""
    from housedata_pipeline.pipelines.zillow import run as run_zillow

    log.info("pipeline_dispatch", sources=list(sources), dry_run=dry_run)
    try:
        result = asyncio.run(
            run_zillow(
                sources=list(sources) or None,
                regions=list(regions) or None,
                mode=derivation,  # type: ignore[arg-type]
                batch_size=batch_size,
                dry_run=dry_run,
                strict_merge=strict_merge,
            )
        )
    except PipelineError as exc:
        click.echo(f"Pipeline failed: {exc}", err=True)
        sys.exit(1)

    if result.stats.failed_phases or result.stats.load_errors:
        sys.exit(2)


@main.command()
def sources() -> None:
    """List the registered panel sources."""
    for key, spec in SOURCES.items():
        click.echo(f"  {key:18s} {spec.kind:7s} {spec.table:22s} {spec.field}")


@main.command()
@click.argument("run_date", required=False)
def report(run_date: str | None) -> None:
    """Show the report for RUN_DATE (YYYY-MM-DD), or the latest one."""
    from housedata_pipeline.reporting.run_report import RunReporter, format_summary

    reporter = RunReporter()
    if run_date:
        try:
            data = reporter.load(run_date)
        except FileNotFoundError:
            click.echo(f"No report for {run_date}", err=True)
            sys.exit(1)
    else:
        data = reporter.latest()
        if data is None:
            click.echo("No reports found.")
            return
    click.echo(format_summary(data))
    if data.get("tables"):
        click.echo(json.dumps(data["tables"], indent=2))


if __name__ == "__main__":
    main()
