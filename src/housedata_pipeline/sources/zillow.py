"""
sources/zillow.py — Zillow Research public CSV source adapter.

Zillow publishes every research series as a wide CSV: one row per region
(RegionID, RegionName, State, City, Metro, CountyName, ...) followed by one
column per month-end date.

Each download is kept as a dated raw copy under settings.raw_dir:
    data/raw/<source_key>_<YYYY-MM-DD>.csv
A copy from the same day is reused instead of downloading again. Copies are
written to a ".part" file first and renamed into place, so an interrupted
write never leaves a truncated CSV for the cache to pick up. Days are UTC,
matching the run date on the report.

Usage:
    source = ZillowSource()
    content = await source.fetch(SOURCES["zhvi_zip"])
"""

from __future__ import annotations

from datetime import date
from pathlib import Path

import httpx
import structlog

from housedata_shared.config import settings
from housedata_shared.models import SourceSpec
from housedata_shared.time_utils import utc_today
from housedata_pipeline.sources.base import PanelSource
from housedata_pipeline.utils.retry import with_retry

log = structlog.get_logger(__name__)

_HEADERS: dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/csv,text/plain;q=0.9,*/*;q=0.8",
    "Referer": "https://www.zillow.com/research/data/",
}


class ZillowSource(PanelSource):
    """Downloads Zillow Research CSV panels."""

    name = "Zillow"

    def __init__(
        self,
        *,
        base_url: str | None = None,
        raw_dir: Path | None = None,
        timeout: float | None = None,
        use_cache: bool = True,
    ) -> None:
        super().__init__()
        self._base_url = (base_url or settings.zillow_base_url).rstrip("/")
        self._raw_dir = raw_dir if raw_dir is not None else settings.raw_dir
        self._timeout = timeout or settings.http_timeout
        self._use_cache = use_cache

    def url_for(self, spec: SourceSpec) -> str:
        return f"{self._base_url}/{spec.path.lstrip('/')}"

    def raw_path(self, spec: SourceSpec, on: date | None = None) -> Path:
        stamp = (on or utc_today()).isoformat()
        return self._raw_dir / f"{spec.key}_{stamp}.csv"

    @with_retry(max_attempts=3, base_delay=2.0)
    async def _download(self, url: str) -> bytes:
        async with httpx.AsyncClient(
            timeout=self._timeout,
            headers=_HEADERS,
            follow_redirects=True,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.content

    async def extract(self, spec: SourceSpec) -> bytes:
        dest = self.raw_path(spec)
        if self._use_cache and dest.is_file():
            self._log.info("raw_cache_hit", source_key=spec.key, path=str(dest))
            return dest.read_bytes()

        url = self.url_for(spec)
        self._log.info("zillow_download", source_key=spec.key, url=url)
        content = await self._download(url)

        if content:
            dest.parent.mkdir(parents=True, exist_ok=True)
            partial = dest.with_name(dest.name + ".part")
            partial.write_bytes(content)
            partial.replace(dest)
        return content
