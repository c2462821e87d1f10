"""Positional layout of the telemetry source's per-ability damage records.

The meter stores each ability as a bare array of counters with no field names.
Every read of that array goes through ``RecordField`` so a change in the
source's layout only needs this table updated.
"""

import math
from dataclasses import dataclass
from enum import IntEnum
from typing import Any


class MalformedRecordError(Exception):
    """Raised when an ability record does not have the expected shape."""


class RecordField(IntEnum):
    HITS = 0
    HIT_MIN = 1
    HIT_MAX = 2
    HIT_AVG = 3
    CRITS = 4
    CRIT_MIN = 5
    CRIT_MAX = 6
    CRIT_AVG = 7
    MISS = 8
    PARRY = 9
    DODGE = 10
    RESIST = 11
    TOTAL_DAMAGE = 12
    GLANCE = 13
    GLANCE_MIN = 14
    GLANCE_MAX = 15
    GLANCE_AVG = 16
    BLOCK = 17
    BLOCK_MIN = 18
    BLOCK_MAX = 19
    BLOCK_AVG = 20


RECORD_WIDTH = len(RecordField)


@dataclass(frozen=True)
class AbilityRecord:
    hits: int
    hit_min: float
    hit_max: float
    hit_avg: float
    crits: int
    crit_min: float
    crit_max: float
    crit_avg: float
    misses: int
    parries: int
    dodges: int
    resists: int
    total_damage: float
    glances: int
    glance_min: float
    glance_max: float
    glance_avg: float
    blocks: int
    block_min: float
    block_max: float
    block_avg: float

    @classmethod
    def from_positions(cls, values: Any) -> "AbilityRecord":
        """Decode one positional record; absent or null positions read as 0."""
        if not isinstance(values, list | tuple):
            raise MalformedRecordError(
                f"expected a positional array, got {type(values).__name__}"
            )

        decoded: list[float] = []
        for field in RecordField:
            raw = values[field] if field < len(values) else None
            decoded.append(_to_number(field, raw))

        counts = {
            RecordField.HITS, RecordField.CRITS, RecordField.MISS,
            RecordField.PARRY, RecordField.DODGE, RecordField.RESIST,
            RecordField.GLANCE, RecordField.BLOCK,
        }
        kwargs = {
            _ATTR_NAMES[field]: int(value) if field in counts else value
            for field, value in zip(RecordField, decoded, strict=True)
        }
        return cls(**kwargs)


_ATTR_NAMES: dict[RecordField, str] = {
    RecordField.HITS: "hits",
    RecordField.HIT_MIN: "hit_min",
    RecordField.HIT_MAX: "hit_max",
    RecordField.HIT_AVG: "hit_avg",
    RecordField.CRITS: "crits",
    RecordField.CRIT_MIN: "crit_min",
    RecordField.CRIT_MAX: "crit_max",
    RecordField.CRIT_AVG: "crit_avg",
    RecordField.MISS: "misses",
    RecordField.PARRY: "parries",
    RecordField.DODGE: "dodges",
    RecordField.RESIST: "resists",
    RecordField.TOTAL_DAMAGE: "total_damage",
    RecordField.GLANCE: "glances",
    RecordField.GLANCE_MIN: "glance_min",
    RecordField.GLANCE_MAX: "glance_max",
    RecordField.GLANCE_AVG: "glance_avg",
    RecordField.BLOCK: "blocks",
    RecordField.BLOCK_MIN: "block_min",
    RecordField.BLOCK_MAX: "block_max",
    RecordField.BLOCK_AVG: "block_avg",
}


def _to_number(field: RecordField, raw: Any) -> float:
    if raw is None:
        return 0.0
    # bool is an int subclass but never a counter
    if isinstance(raw, bool) or not isinstance(raw, int | float):
        raise MalformedRecordError(f"{field.name} is not numeric: {raw!r}")
    if not math.isfinite(raw) or raw < 0:
        raise MalformedRecordError(f"{field.name} is out of range: {raw!r}")
    return float(raw)
