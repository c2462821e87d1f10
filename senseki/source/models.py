"""Models for the damage meter's exported segment data."""

import logging
import math
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class SourceUnavailableError(Exception):
    """Raised when the telemetry source is not present at all."""


class SourceBaseModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class TelemetryExport(SourceBaseModel):
    """One read of the meter's state.

    Segment lists are 0-indexed and aligned: ``segment_names[i]``,
    ``damage[i]`` and ``segment_durations[i]`` describe the same segment.
    Segment entries are left untyped here and checked on access, so one
    segment with an unexpected shape only hides that segment rather than
    rejecting the whole export.
    """

    segment_names: list[Any] = []
    damage: list[Any] = []
    segment_durations: list[Any] = []
    actors: dict[str, int] = {}
    abilities: dict[str, int] = {}

    @property
    def segment_count(self) -> int:
        return len(self.segment_names)

    def segment_name(self, index: int) -> str | None:
        if 0 <= index < len(self.segment_names):
            name = self.segment_names[index]
            if isinstance(name, str):
                return name
        return None

    def segment_duration(self, index: int) -> float:
        """Combat seconds for a segment; missing, non-finite or negative reads as 0."""
        if not 0 <= index < len(self.segment_durations):
            return 0.0
        value = self.segment_durations[index]
        if isinstance(value, bool) or not isinstance(value, int | float):
            return 0.0
        if not math.isfinite(value) or value < 0:
            return 0.0
        return float(value)

    def actor_records(self, index: int, actor_id: int) -> dict[str, Any] | None:
        """Return ``{ability_id: positional record}`` for one actor, if any."""
        if not 0 <= index < len(self.damage):
            return None
        segment = self.damage[index]
        if not segment:
            return None
        if not isinstance(segment, dict):
            logger.warning(
                "Skipping malformed segment %d: expected an object, got %s",
                index, type(segment).__name__,
            )
            return None
        records = segment.get(str(actor_id))
        if records is None:
            return None
        if not isinstance(records, dict):
            logger.warning(
                "Skipping malformed records for actor %s in segment %d: got %s",
                actor_id, index, type(records).__name__,
            )
            return None
        return records

    def actor_id(self, display_name: str) -> int | None:
        return self.actors.get(display_name)

    def ability_names(self) -> dict[int, str]:
        """Reverse of ``abilities``: ability id to display name."""
        return {ability_id: name for name, ability_id in self.abilities.items()}


def load_telemetry_export(path: Path | None) -> TelemetryExport | None:
    """Read the meter's export file; ``None`` when the source is absent.

    An unreadable or invalid file counts as absent for this read.
    """
    if path is None or not path.exists():
        return None
    try:
        return TelemetryExport.model_validate_json(path.read_bytes())
    except (OSError, ValidationError):
        logger.exception("Failed to read telemetry export %s", path)
        return None
