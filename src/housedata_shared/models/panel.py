"""
models/panel.py — Validated wide-format panel rows.

A RawPanelRow is whatever the parser read from one line of the table: a
read-only mapping from header name to stripped cell text (None when empty).
PanelRow is the validated form that the reshaper consumes.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date

from pydantic import BaseModel, ConfigDict

from housedata_shared.errors import ParseValueError
from housedata_shared.time_utils import is_period_column, parse_period

RawPanelRow = Mapping[str, str | None]


class PanelRow(BaseModel):
    """
    One region's row with an explicit identity, its period cells, and an
    attribute bag for everything else.

    periods is ordered ascending by period; cells keep their raw text so the
    reshaper decides the numeric domain.
    """

    model_config = ConfigDict(frozen=True)

    region_key: str
    periods: dict[date, str | None]
    attributes: dict[str, str | None]

    @classmethod
    def from_raw(
        cls,
        raw: RawPanelRow,
        *,
        identity_column: str,
        attribute_columns: Mapping[str, str] | None = None,
        period_columns: Iterable[str] | None = None,
    ) -> "PanelRow":
        """
        Validate a RawPanelRow.

        Args:
            raw:               Row mapping from the panel parser.
            identity_column:   Header holding the region key.
            attribute_columns: Panel header -> attribute name to keep. When
                               None, every non-period, non-identity column is
                               kept under its own header.
            period_columns:    Pre-sorted period headers (saves re-scanning
                               the header on every row).

        Raises:
            ParseValueError: identity column missing or empty.
        """
        region_key = raw.get(identity_column)
        if region_key is None or not str(region_key).strip():
            raise ParseValueError(f"row has no value for identity column {identity_column!r}")

        if period_columns is None:
            period_columns = sorted(c for c in raw if is_period_column(c))

        periods: dict[date, str | None] = {}
        for label in period_columns:
            period = parse_period(label)
            if period is not None:
                periods[period] = raw.get(label)

        attributes: dict[str, str | None]
        if attribute_columns is None:
            attributes = {
                k: v for k, v in raw.items()
                if k != identity_column and not is_period_column(k)
            }
        else:
            attributes = {field: raw.get(col) for col, field in attribute_columns.items()}

        return cls(
            region_key=str(region_key).strip(),
            periods=dict(sorted(periods.items())),
            attributes=attributes,
        )

    @property
    def period_list(self) -> list[date]:
        return list(self.periods)
