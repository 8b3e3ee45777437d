"""Normalization helpers.

Centralizes defensive parsing and placeholder handling for provider results
and persisted rows.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Any

# Strings the provider and the scraper use for "not available".
PLACEHOLDERS = frozenset({"", "--", "N/A", "n/a", "NaN", "nan"})

_MONEY_STRIP = re.compile(r"[^0-9.\-]+")

_DATETIME_FORMATS = (
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d %b %Y",
    "%d %B %Y",
    "%Y/%m/%d",
)


def is_placeholder(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and value.strip() in PLACEHOLDERS:
        return True
    return isinstance(value, float) and math.isnan(value)


def safe_float(value: Any) -> float | None:
    if is_placeholder(value) or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def safe_money(value: Any) -> float | None:
    """Parse a currency amount such as ``12.5``, ``"$1,234.50"`` or ``"AUD 3.10"``."""
    if isinstance(value, str) and not is_placeholder(value):
        value = _MONEY_STRIP.sub("", value)
    return safe_float(value)


def safe_str(value: Any) -> str | None:
    if is_placeholder(value):
        return None
    text = str(value).strip()
    return text if text else None


def safe_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if is_placeholder(value):
        return None
    if isinstance(value, (int, float)):
        return bool(value)
    normalized = str(value).strip().lower()
    if normalized in {"1", "true", "yes", "y", "paid"}:
        return True
    if normalized in {"0", "false", "no", "n", "unpaid"}:
        return False
    return None


def parse_datetime(value: Any) -> datetime | None:
    """Parse a provider or persisted timestamp into a naive local datetime.

    Accepts ``datetime``/``date`` objects, ISO 8601 strings (with or without
    offset; the offset is dropped, wall-clock time kept) and the Australian
    day-first forms the toll websites print (``05/06/2024``,
    ``05/06/2024 13:45``, ``5 Jun 2024``).
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = safe_str(value)
    if text is None:
        return None
    iso = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        return datetime.fromisoformat(iso).replace(tzinfo=None)
    except ValueError:
        pass
    for fmt in _DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def parse_date(value: Any) -> date | None:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    parsed = parse_datetime(value)
    return parsed.date() if parsed is not None else None
