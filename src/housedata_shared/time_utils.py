"""
time_utils.py — Period column parsing and month arithmetic.

Zillow panels name their period columns with ISO dates ("2024-01-31"),
usually month-end. Calendar-distance lookups therefore compare periods by
(year, month) rather than by exact day.

Usage:
    from housedata_shared.time_utils import is_period_column, parse_period, month_key

    is_period_column("2024-01-31")                  # True
    parse_period("2024-01-31")                      # date(2024, 1, 31)
    month_key(date(2024, 1, 31), months_back=12)    # (2023, 1)
    utc_today()                                     # date in UTC
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone

from dateutil.relativedelta import relativedelta

PERIOD_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def is_period_column(name: str) -> bool:
    """Return True if a column name is a strict YYYY-MM-DD period label."""
    return bool(PERIOD_PATTERN.match(name))


def parse_period(raw: str) -> date | None:
    """
    Parse a YYYY-MM-DD period label into a date.

    Returns None for labels that match the pattern but are not real dates
    (e.g. "2024-13-01").
    """
    if not is_period_column(raw):
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return None


def month_key(d: date, *, months_back: int = 0) -> tuple[int, int]:
    """Return the (year, month) of d shifted back by months_back calendar months."""
    shifted = d - relativedelta(months=months_back)
    return shifted.year, shifted.month


def utc_today() -> date:
    """Today's date in UTC; raw copies and run reports share this clock."""
    return datetime.now(timezone.utc).date()
