"""Number, duration and date formatting for report lines."""

from __future__ import annotations

import datetime
import re

MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

_ISO_DATE_RE = re.compile(r"^(\d+)-(\d+)-(\d+)$")


def format_number(n: float | None) -> str:
    """Format as a thousands-grouped integer: 1234567.8 -> '1,234,568'."""
    if n is None:
        return "0"
    return f"{n:,.0f}"


def format_time(seconds: float | None) -> str:
    """Format seconds as 'S.Ds' under a minute, else 'Mm S.Ds'."""
    if seconds is None or seconds < 0:
        return "0s"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds // 60)
    return f"{minutes}m {seconds - minutes * 60:.1f}s"


def format_date_short(value: datetime.date | str | None) -> str:
    """Render a calendar day as 'Mon-DD', e.g. '2025-01-02' -> 'Jan-02'."""
    if value is None:
        return "?"
    if isinstance(value, datetime.date):
        return f"{MONTH_ABBREVIATIONS[value.month - 1]}-{value.day:02d}"
    match = _ISO_DATE_RE.match(value)
    if not match:
        return value
    month = int(match.group(2))
    if not 1 <= month <= 12:
        return value
    return f"{MONTH_ABBREVIATIONS[month - 1]}-{match.group(3)}"
