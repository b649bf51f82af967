"""
Date parsing for OCR-extracted values.

Known layouts are tried first, in a fixed order, so the caller can tell a
"recognized format" from a lucky fallback parse. Ambiguity is resolved by
order: slash dates are read month-first, dash and dot dates day-first.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import NamedTuple, Optional


class ParsedDate(NamedTuple):
    value: date
    format_name: str
    recognized: bool  # False when only the fallback parser understood it


# (display name, shape regex, strptime patterns); order matters
_KNOWN_FORMATS: list[tuple[str, re.Pattern[str], tuple[str, ...]]] = [
    ("YYYY-MM-DD", re.compile(r"^\d{4}-\d{2}-\d{2}$"), ("%Y-%m-%d",)),
    ("MM/DD/YYYY", re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$"), ("%m/%d/%Y",)),
    ("MM/DD/YY", re.compile(r"^\d{1,2}/\d{1,2}/\d{2}$"), ("%m/%d/%y",)),
    ("DD.MM.YYYY", re.compile(r"^\d{1,2}\.\d{1,2}\.\d{4}$"), ("%d.%m.%Y",)),
    ("DD-MM-YYYY", re.compile(r"^\d{1,2}-\d{1,2}-\d{4}$"), ("%d-%m-%Y",)),
    ("Month DD YYYY", re.compile(r"^[A-Za-z]{3,9}\s+\d{1,2},?\s+\d{4}$"), ("%B %d %Y", "%b %d %Y")),
    ("DD-MMM-YYYY", re.compile(r"^\d{1,2}-[A-Za-z]{3}-\d{4}$"), ("%d-%b-%Y",)),
]

_FALLBACK_FORMATS: tuple[str, ...] = (
    "%Y/%m/%d",
    "%d/%m/%Y",
    "%m-%d-%Y",
    "%d %B %Y",
    "%d %b %Y",
    "%B %d %Y",
    "%b %d %Y",
    "%Y%m%d",
)


def _tidy(raw: str) -> str:
    return re.sub(r"\s+", " ", raw.replace(",", " ")).strip()


def _strptime(text: str, patterns: tuple[str, ...]) -> Optional[date]:
    for pattern in patterns:
        try:
            return datetime.strptime(text, pattern).date()
        except ValueError:
            continue
    return None


def parse_date(raw: object) -> Optional[ParsedDate]:
    """Parse a date string, reporting which layout matched.

    Returns None when nothing understands the value. Never raises.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return ParsedDate(raw.date(), "datetime", True)
    if isinstance(raw, date):
        return ParsedDate(raw, "date", True)

    text = str(raw).strip()
    if not text:
        return None

    for name, shape, patterns in _KNOWN_FORMATS:
        if shape.match(text):
            parsed = _strptime(_tidy(text), patterns)
            if parsed is not None:
                return ParsedDate(parsed, name, True)

    # ── Fallback: ISO timestamps, then a wider set of layouts ──────
    try:
        return ParsedDate(datetime.fromisoformat(text.replace("Z", "+00:00")).date(), "fallback", False)
    except ValueError:
        pass

    parsed = _strptime(_tidy(text), _FALLBACK_FORMATS)
    if parsed is not None:
        return ParsedDate(parsed, "fallback", False)
    return None


def to_date(raw: object) -> Optional[date]:
    """Just the date, or None."""
    parsed = parse_date(raw)
    return parsed.value if parsed else None
