"""
transforms/panel_parser.py — Wide-format panel parsing.

Turns the raw bytes of a delimited panel into RawPanelRow mappings, one per
region. Period columns are told apart from identity/attribute columns by
their header alone (strict YYYY-MM-DD); cell values are left as text.

Usage:
    from housedata_pipeline.transforms.panel_parser import PanelTable

    table = PanelTable.from_bytes(content)          # raises MalformedTableError
    table.period_columns                            # ["2000-01-31", ...]
    for row in table.rows():
        row["RegionName"], row["2024-01-31"]
"""

from __future__ import annotations

import io
from collections import Counter
from collections.abc import Iterator
from types import MappingProxyType

import polars as pl
import structlog

from housedata_shared.errors import MalformedTableError
from housedata_shared.models import RawPanelRow
from housedata_shared.time_utils import is_period_column

log = structlog.get_logger(__name__)


def period_columns(columns: list[str]) -> list[str]:
    """
    Return the period columns of a header, sorted ascending.

    Lexicographic order is chronological because the labels are fixed-width.
    """
    return sorted(c for c in columns if is_period_column(c))


def _decode(content: bytes | str, encoding: str) -> str:
    text = content if isinstance(content, str) else content.decode(encoding)
    # Drop a UTF-8 BOM and any blank lines before the header
    return text.lstrip("\ufeff").lstrip("\r\n")


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class PanelTable:
    """A parsed panel: validated header plus lazily produced rows."""

    def __init__(self, columns: list[str], frame: pl.DataFrame) -> None:
        self.columns = columns
        self.period_columns = period_columns(columns)
        self._frame = frame

    @property
    def attribute_columns(self) -> list[str]:
        return [c for c in self.columns if not is_period_column(c)]

    @classmethod
    def from_bytes(
        cls,
        content: bytes | str,
        *,
        delimiter: str = ",",
        encoding: str = "utf-8",
    ) -> "PanelTable":
        """
        Parse a delimited panel.

        Args:
            content:   Raw file content.
            delimiter: Single-character field separator.
            encoding:  Encoding of content when given as bytes.

        Raises:
            MalformedTableError: missing header, blank column name, duplicate
                                 column names, or undecodable content.
        """
        try:
            text = _decode(content, encoding)
        except (UnicodeDecodeError, LookupError) as exc:
            raise MalformedTableError(f"cannot decode panel as {encoding}: {exc}") from exc

        if not text.strip():
            raise MalformedTableError("panel has no header row")

        columns = cls._read_header(text, delimiter)

        frame = pl.read_csv(
            io.StringIO(text),
            has_header=True,
            separator=delimiter,
            infer_schema_length=0,
            truncate_ragged_lines=True,
        )
        # Header names are whitespace-trimmed like every other cell
        frame = frame.rename(dict(zip(frame.columns, columns)))
        log.debug(
            "panel_parsed",
            rows=len(frame),
            columns=len(columns),
            period_columns=sum(1 for c in columns if is_period_column(c)),
        )
        return cls(columns, frame)

    @staticmethod
    def _read_header(text: str, delimiter: str) -> list[str]:
        # Read the header as a data row so polars does not rename duplicates
        header = pl.read_csv(
            io.StringIO(text),
            has_header=False,
            n_rows=1,
            separator=delimiter,
            infer_schema_length=0,
            truncate_ragged_lines=True,
        )
        if header.is_empty():
            raise MalformedTableError("panel has no header row")

        names = [_clean(v) for v in header.row(0)]
        if any(name is None for name in names):
            raise MalformedTableError("panel header contains a blank column name")

        duplicates = sorted(name for name, n in Counter(names).items() if n > 1)
        if duplicates:
            raise MalformedTableError(f"duplicate column names in header: {duplicates}")

        return [name for name in names if name is not None]

    def rows(self) -> Iterator[RawPanelRow]:
        """Yield rows in file order, skipping rows with every cell empty."""
        for raw in self._frame.iter_rows(named=True):
            row = {k: _clean(v) for k, v in raw.items()}
            if all(v is None for v in row.values()):
                continue
            yield MappingProxyType(row)

    def __iter__(self) -> Iterator[RawPanelRow]:
        return self.rows()
