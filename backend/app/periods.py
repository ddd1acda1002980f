"""Reporting periods understood by the sheets pipeline.

Each period maps to one tab of the source spreadsheet and to a date window
relative to "now". Free-form period codes only exist at the HTTP/CLI
boundary; everything past :meth:`Period.parse` works with the enum.
"""

from __future__ import annotations

import enum
from calendar import monthrange
from datetime import datetime, timedelta, timezone


class Period(str, enum.Enum):
    """Closed set of reporting windows."""

    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_MONTH = "1m"
    LAST_3_MONTHS = "3m"
    LAST_6_MONTHS = "6m"
    LAST_YEAR = "1y"

    @classmethod
    def default(cls) -> "Period":
        return cls.LAST_30_DAYS

    @classmethod
    def parse(cls, code: str | "Period" | None) -> "Period":
        """Resolve an external period code, falling back to ``30d``."""

        if isinstance(code, Period):
            return code
        try:
            return cls((code or "").strip())
        except ValueError:
            return cls.default()

    @property
    def sheet_name(self) -> str:
        return _SHEET_NAMES[self]

    def window_start(self, now: datetime | None = None) -> datetime:
        """Return the first instant covered by the period."""

        reference = now or datetime.now(timezone.utc)
        days, months = _WINDOW_RULES[self]
        if days:
            return reference - timedelta(days=days)
        return _subtract_months(reference, months)


_SHEET_NAMES: dict[Period, str] = {
    Period.LAST_7_DAYS: "7d",
    Period.LAST_30_DAYS: "DASHBOARD",
    Period.LAST_MONTH: "1m",
    Period.LAST_3_MONTHS: "3m",
    Period.LAST_6_MONTHS: "6m",
    Period.LAST_YEAR: "1y",
}

# (days, calendar months) subtracted from "now"
_WINDOW_RULES: dict[Period, tuple[int, int]] = {
    Period.LAST_7_DAYS: (7, 0),
    Period.LAST_30_DAYS: (30, 0),
    Period.LAST_MONTH: (0, 1),
    Period.LAST_3_MONTHS: (0, 3),
    Period.LAST_6_MONTHS: (0, 6),
    Period.LAST_YEAR: (0, 12),
}


def _subtract_months(value: datetime, months: int) -> datetime:
    month_index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
