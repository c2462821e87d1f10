"""Resolve user-typed fight references to stored snapshots.

A reference is a boss name optionally followed by a suffix after a ``-``::

    Lucifron             most recent kill
    Lucifron-2           second most recent kill
    Lucifron-Jan-02      kill on January 2nd of the current year
    Lucifron-2025-01-02  kill on that exact date

Each grammar rule is a separate function that either claims the reference
(returning a ``ResolvedFight`` or ``NoData``) or returns ``None`` so the next
rule can try. Rules run in ``RULES`` order.
"""

import datetime
import logging
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass

from senseki.db.models import FightSnapshot
from senseki.pipeline.formatting import format_date_short

logger = logging.getLogger(__name__)

SEPARATOR = "-"

MONTH_MAP: dict[str, int] = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}

_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_MONTH_DAY_RE = re.compile(r"^([A-Za-z]+)-(\d{1,2})$")

Bosses = Mapping[str, Sequence[FightSnapshot]]


@dataclass(frozen=True)
class ResolvedFight:
    encounter: str
    index: int  # 1-based, 1 = most recent
    snapshot: FightSnapshot


@dataclass(frozen=True)
class NoData:
    """A reference that could not be resolved; ``message`` is user-facing."""

    message: str


Resolution = ResolvedFight | NoData
Rule = Callable[[str, Bosses, datetime.date], Resolution | None]


def parse_date_input(text: str, today: datetime.date) -> datetime.date | None:
    """Parse 'YYYY-MM-DD' or '<month>-<day>' (current year assumed).

    Month names match case-insensitively in full or abbreviated form.
    Returns None for anything else, including impossible dates.
    """
    iso = _ISO_DATE_RE.match(text)
    if iso:
        year, month, day = (int(g) for g in iso.groups())
        return _safe_date(year, month, day)

    month_day = _MONTH_DAY_RE.match(text)
    if month_day:
        month = MONTH_MAP.get(month_day.group(1).lower())
        if month is not None:
            return _safe_date(today.year, month, int(month_day.group(2)))

    return None


def _safe_date(year: int, month: int, day: int) -> datetime.date | None:
    try:
        return datetime.date(year, month, day)
    except ValueError:
        return None


def _history(bosses: Bosses, name: str) -> Sequence[FightSnapshot]:
    return bosses.get(name) or ()


def match_name(reference: str, bosses: Bosses, today: datetime.date) -> Resolution | None:
    """Whole reference is a boss name: newest kill."""
    history = _history(bosses, reference)
    if history:
        return ResolvedFight(reference, 1, history[0])
    if SEPARATOR not in reference:
        return NoData(f"No data for boss '{reference}'")
    return None


def match_index(reference: str, bosses: Bosses, today: datetime.date) -> Resolution | None:
    """'<boss>-<N>': N-th most recent kill, counted from 1."""
    name, _, token = reference.rpartition(SEPARATOR)
    if not name or not (token.isascii() and token.isdigit()):
        return None
    index = int(token)
    history = _history(bosses, name)
    if index < 1 or not history:
        return None
    if index > len(history):
        return NoData(f"No kill #{index} for {name} (have {len(history)})")
    return ResolvedFight(name, index, history[index - 1])


def match_date(reference: str, bosses: Bosses, today: datetime.date) -> Resolution | None:
    """'<boss>-YYYY-MM-DD' or '<boss>-<Mon>-<DD>': first stored kill on that day."""
    parts = reference.split(SEPARATOR)
    # ISO suffix spans three tokens, month-day spans two
    for width in (3, 2):
        if len(parts) <= width:
            continue
        name = SEPARATOR.join(parts[:-width])
        target = parse_date_input(SEPARATOR.join(parts[-width:]), today)
        history = _history(bosses, name)
        if target is None or not history:
            continue
        for index, snapshot in enumerate(history, start=1):
            if snapshot.date == target:
                return ResolvedFight(name, index, snapshot)
        return NoData(f"No kill on {format_date_short(target)} for {name}")
    return None


RULES: tuple[Rule, ...] = (match_name, match_index, match_date)


def resolve_fight(
    reference: str | None,
    bosses: Bosses | None,
    today: datetime.date,
) -> Resolution:
    """Resolve ``reference`` against ``bosses`` (``None`` = no database)."""
    if not reference:
        return NoData("No fight specified")
    if bosses is None:
        return NoData("Database not initialized")

    for rule in RULES:
        result = rule(reference, bosses, today)
        if result is not None:
            if isinstance(result, NoData):
                logger.debug("Fight %r not resolved: %s", reference, result.message)
            return result

    return _fallback(reference, bosses)


def _fallback(reference: str, bosses: Bosses) -> NoData:
    parts = reference.split(SEPARATOR)
    known_prefix = any(
        _history(bosses, SEPARATOR.join(parts[:i])) for i in range(1, len(parts))
    )
    if known_prefix:
        return NoData(f"Invalid identifier: {reference}")
    name = reference.rpartition(SEPARATOR)[0]
    return NoData(f"No data for boss '{name}'")
