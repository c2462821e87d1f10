"""Bounded per-boss snapshot history for one character profile."""

import datetime
import logging
from dataclasses import dataclass
from typing import Any

from senseki.db.models import DEFAULT_KEEP_COUNT, FightSnapshot, ProfileDB
from senseki.pipeline.compare import MetricDelta, diff_metric
from senseki.pipeline.resolver import Resolution, ResolvedFight, resolve_fight

logger = logging.getLogger(__name__)


class InvalidConfigError(ValueError):
    """Raised when a retention setting is rejected."""


@dataclass(frozen=True)
class EncounterSummary:
    name: str
    kill_count: int
    latest: FightSnapshot
    previous: FightSnapshot | None

    @property
    def dps_change(self) -> MetricDelta | None:
        if self.previous is None or self.previous.dps <= 0:
            return None
        return diff_metric("dps", self.previous.dps, self.latest.dps)


class HistoryStore:
    """Capture, delete and retention operations over a ``ProfileDB``.

    ``profile`` is None until the host has loaded the character's saved data;
    every mutation is refused until then.
    """

    def __init__(self, profile: ProfileDB | None) -> None:
        self.profile = profile

    @property
    def initialized(self) -> bool:
        return self.profile is not None

    @property
    def keep_count(self) -> int:
        if self.profile is None:
            return DEFAULT_KEEP_COUNT
        return self.profile.config.keep_count

    @property
    def bosses(self) -> dict[str, list[FightSnapshot]] | None:
        return self.profile.bosses if self.profile is not None else None

    def history(self, encounter: str) -> list[FightSnapshot]:
        if self.profile is None:
            return []
        return list(self.profile.bosses.get(encounter, []))

    def capture(self, encounter: str, snapshot: FightSnapshot) -> bool:
        """Store ``snapshot`` as the newest kill, evicting the oldest beyond keep_count."""
        if self.profile is None:
            logger.debug("Capture of %s refused: database not initialized", encounter)
            return False
        if snapshot.total_damage <= 0:
            logger.debug("Capture of %s skipped: no damage recorded", encounter)
            return False

        history = self.profile.bosses.setdefault(encounter, [])
        history.insert(0, snapshot)
        keep = self.keep_count
        while len(history) > keep:
            evicted = history.pop()
            logger.debug(
                "Evicted %s kill from %s (keep_count=%d)",
                encounter, evicted.date.isoformat(), keep,
            )
        return True

    def resolve(self, reference: str | None, today: datetime.date) -> Resolution:
        return resolve_fight(reference, self.bosses, today)

    def delete(self, reference: str | None, today: datetime.date) -> Resolution:
        """Remove exactly the snapshot ``reference`` resolves to."""
        result = self.resolve(reference, today)
        if isinstance(result, ResolvedFight):
            history = self.profile.bosses[result.encounter]
            del history[result.index - 1]
            if not history:
                del self.profile.bosses[result.encounter]
            logger.info(
                "Deleted %s kill #%d (%s)",
                result.encounter, result.index, result.snapshot.date.isoformat(),
            )
        return result

    def set_keep_count(self, value: Any) -> int:
        """Change the retention bound for future captures.

        Histories already longer than the new bound are left alone until the
        next capture for that boss trims them.
        """
        if self.profile is None:
            raise InvalidConfigError("Database not initialized")
        message = f"Keep count must be a positive integer, got {value!r}"
        if isinstance(value, bool):
            raise InvalidConfigError(message)
        try:
            number = float(value)
        except (TypeError, ValueError) as exc:
            raise InvalidConfigError(message) from exc
        # Whole-valued input only: "2" and "2.0" are accepted, 2.7 is not
        if not number.is_integer() or number < 1:
            raise InvalidConfigError(message)
        count = int(number)
        self.profile.config.keep_count = count
        logger.info("Keep count set to %d", count)
        return count

    def summaries(self) -> list[EncounterSummary]:
        """One entry per boss, most recently captured first."""
        if self.profile is None:
            return []
        entries = [
            EncounterSummary(
                name=name,
                kill_count=len(kills),
                latest=kills[0],
                previous=kills[1] if len(kills) > 1 else None,
            )
            for name, kills in self.profile.bosses.items()
            if kills
        ]
        entries.sort(key=lambda e: e.latest.timestamp, reverse=True)
        return entries
