"""
sources/base.py — Abstract base class for panel source adapters.

Each concrete source must implement:
  extract() — fetch the raw bytes of one panel

The fetch() method wraps extract() with timing, structured logging, and
error translation: whatever goes wrong while retrieving a panel surfaces
as a single RetrievalError so the pipeline can skip that source and carry
on with the rest.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod

import structlog

from housedata_shared.errors import RetrievalError
from housedata_shared.models import SourceSpec

log = structlog.get_logger(__name__)


class PanelSource(ABC):
    """Abstract base for wide-format panel retrieval."""

    # Override in subclass; used for logging
    name: str = "unknown"

    def __init__(self) -> None:
        self._log = log.bind(source_name=self.name)

    @abstractmethod
    async def extract(self, spec: SourceSpec) -> bytes:
        """
        Fetch the raw panel for one source.

        Implementations may raise any exception; fetch() translates it.
        """
        ...

    async def fetch(self, spec: SourceSpec) -> bytes:
        """
        Retrieve one panel with timing and structured logging.

        Raises:
            RetrievalError: the panel could not be retrieved or was empty.
        """
        fetch_log = self._log.bind(source_key=spec.key)
        fetch_log.info("fetch_start")
        t0 = time.monotonic()

        try:
            content = await self.extract(spec)
        except RetrievalError:
            raise
        except Exception as exc:
            fetch_log.error(
                "fetch_failed",
                error=str(exc),
                duration_ms=int((time.monotonic() - t0) * 1000),
            )
            raise RetrievalError(f"{spec.name}: {exc}") from exc

        if not content:
            raise RetrievalError(f"{spec.name}: empty response")

        fetch_log.info(
            "fetch_complete",
            size_mb=round(len(content) / 1_048_576, 2),
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
        return content
