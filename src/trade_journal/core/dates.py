"""Conversion between ISO dates and the provider's 8-digit ``YYYYMMDD`` form."""
from __future__ import annotations

from datetime import date, datetime

ISO_FORMAT = "%Y-%m-%d"
UPSTREAM_FORMAT = "%Y%m%d"


def to_upstream_date(value: "str | date") -> str:
    """``"2024-01-15"`` -> ``"20240115"``.

    Raises ValueError for anything that is not a real calendar date.
    """
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return value.strftime(UPSTREAM_FORMAT)
    return datetime.strptime(str(value).strip(), ISO_FORMAT).strftime(UPSTREAM_FORMAT)


def from_upstream_date(value: "str | int") -> str:
    """``"20240115"`` -> ``"2024-01-15"``."""
    s = str(value).strip()
    if len(s) != 8 or not s.isdigit():
        raise ValueError(f"Not an 8-digit YYYYMMDD date: {value!r}")
    return datetime.strptime(s, UPSTREAM_FORMAT).strftime(ISO_FORMAT)


def normalize_iso_date(value: "str | date | None") -> "str | None":
    """Validate/normalize an optional ISO date; blank strings count as absent."""
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return from_upstream_date(to_upstream_date(value))
