"""Label canonicalisation and value coercion for spreadsheet cells.

Every helper here is total: spreadsheet cells are free text typed by people,
so unparseable input yields the documented default instead of an error.
"""

from __future__ import annotations

import re
import unicodedata
from datetime import date, datetime, timezone
from typing import Any

import pandas as pd

AFFIRMATIVE_VALUES = frozenset({"sim", "yes", "true", "1"})

_WHITESPACE_RE = re.compile(r"\s+")
_INVALID_KEY_CHARS_RE = re.compile(r"[^a-z0-9_]")
_NON_DIGITS_RE = re.compile(r"[^0-9]")
_HAS_DIGIT_RE = re.compile(r"\d")
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{1,2}-\d{1,2}")


def normalize_label(label: str) -> str:
    """Return the lookup key for a spreadsheet label.

    ``"Flag Urgente"`` and ``"flag   urgênte"`` both become ``"flag_urgente"``.
    """

    value = unicodedata.normalize("NFD", (label or "").lower())
    value = "".join(ch for ch in value if not unicodedata.combining(ch))
    value = _WHITESPACE_RE.sub("_", value)
    return _INVALID_KEY_CHARS_RE.sub("", value)


def parse_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if value is None:
        return 0
    digits = _NON_DIGITS_RE.sub("", str(value))
    if not digits:
        return 0
    try:
        return int(digits)
    except ValueError:
        # Longer than the interpreter allows converting from text.
        return 0


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    normalized = str(value).strip().lower()
    if not normalized:
        return False
    return normalized in AFFIRMATIVE_VALUES or "sim" in normalized


def parse_datetime(value: Any) -> datetime | None:
    """Parse a calendar date/time, returning ``None`` when it cannot be read.

    Day-first is assumed for ambiguous ``dd/mm/yyyy`` values, matching the
    spreadsheet locale; ``yyyy-mm-dd`` values are always read
    year-month-day. Naive results are interpreted as UTC.
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if not text or not _HAS_DIGIT_RE.search(text):
            return None
        try:
            timestamp = pd.to_datetime(
                text, errors="coerce", dayfirst=not _ISO_DATE_RE.match(text)
            )
        except (ValueError, TypeError, OverflowError):
            return None
        if pd.isna(timestamp):
            return None
        parsed = timestamp.to_pydatetime()

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
