"""
housedata_pipeline — ETL for wide-format regional housing panels.

Architecture:
  sources/     — panel retrieval (Zillow Research CSVs over HTTP)
  transforms/  — panel parsing, wide-to-long reshaping, multi-stream merge
  loaders/     — idempotent batched Supabase upserts
  reporting/   — run-level data quality report
  pipelines/   — orchestrators that wire sources -> transforms -> loaders
  utils/       — structlog configuration, exponential-backoff retry decorator

Quick start:
    from housedata_pipeline.pipelines.zillow import run
    import asyncio
    result = asyncio.run(run(dry_run=True))

CLI:
    housedata run --dry-run
    housedata run --source zhvi_zip --region 32937
    housedata report
"""

__version__ = "0.1.0"
