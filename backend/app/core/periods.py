"""Helpers for ``YYYY-MM`` month periods."""
import re
from datetime import datetime
from typing import Tuple

from dateutil.relativedelta import relativedelta

_PERIOD_RE = re.compile(r"^(\d{4})-(\d{2})$")


def parse_period(period: str) -> Tuple[int, int]:
    """Return ``(year, month)`` for a ``YYYY-MM`` string, or raise ValueError."""
    match = _PERIOD_RE.match((period or "").strip())
    if not match:
        raise ValueError(f"Invalid month '{period}', expected YYYY-MM")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month '{period}', expected YYYY-MM")
    return year, month


def period_bounds(period: str) -> Tuple[datetime, datetime]:
    """Half-open ``[start, end)`` datetime range covering the month."""
    year, month = parse_period(period)
    start = datetime(year, month, 1)
    return start, start + relativedelta(months=1)


def period_of(value: datetime) -> str:
    return value.strftime("%Y-%m")


def period_display(period: str) -> str:
    year, month = parse_period(period)
    return datetime(year, month, 1).strftime("%B %Y")
