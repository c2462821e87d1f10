"""Persisted models: ability stats, fight snapshots and per-character profiles."""

import datetime
import math
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

DEFAULT_KEEP_COUNT = 3

# Float slack for min <= avg <= max checks on meter-computed averages
_EXTREMA_TOLERANCE = 1e-6


class SavedBaseModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class AbilityStats(SavedBaseModel):
    model_config = ConfigDict(frozen=True)

    hits: int = Field(0, ge=0)
    crits: int = Field(0, ge=0)
    misses: int = Field(0, ge=0)
    parries: int = Field(0, ge=0)
    dodges: int = Field(0, ge=0)
    blocks: int = Field(0, ge=0)
    glances: int = Field(0, ge=0)
    resists: int = Field(0, ge=0)
    partial_resists: int = Field(0, ge=0)
    total_damage: float = Field(0.0, ge=0)
    resisted_damage: float = Field(0.0, ge=0)
    hit_min: float = Field(0.0, ge=0)
    hit_max: float = Field(0.0, ge=0)
    hit_avg: float = Field(0.0, ge=0)
    crit_min: float = Field(0.0, ge=0)
    crit_max: float = Field(0.0, ge=0)
    crit_avg: float = Field(0.0, ge=0)

    @model_validator(mode="after")
    def _check_extrema(self):
        if self.hits and not _ordered(self.hit_min, self.hit_avg, self.hit_max):
            raise ValueError(
                f"hit extrema out of order: min={self.hit_min} "
                f"avg={self.hit_avg} max={self.hit_max}"
            )
        if self.crits and not _ordered(self.crit_min, self.crit_avg, self.crit_max):
            raise ValueError(
                f"crit extrema out of order: min={self.crit_min} "
                f"avg={self.crit_avg} max={self.crit_max}"
            )
        return self


def _ordered(low: float, mid: float, high: float) -> bool:
    return low - _EXTREMA_TOLERANCE <= mid <= high + _EXTREMA_TOLERANCE


class FightSnapshot(SavedBaseModel):
    """One captured boss kill for one character. Never mutated once built."""

    model_config = ConfigDict(frozen=True)

    date: datetime.date
    timestamp: int
    combat_time: float = Field(ge=0)
    total_damage: float = Field(ge=0)
    dps: float = Field(ge=0)
    abilities: Mapping[str, AbilityStats] = Field(default_factory=dict, validate_default=True)

    @field_validator("abilities", mode="after")
    @classmethod
    def _freeze_abilities(cls, value: Mapping[str, AbilityStats]) -> Mapping[str, AbilityStats]:
        return MappingProxyType(dict(value))

    @field_serializer("abilities")
    def _dump_abilities(self, abilities: Mapping[str, AbilityStats]) -> dict[str, AbilityStats]:
        return dict(abilities)

    @model_validator(mode="after")
    def _check_totals(self):
        ability_sum = sum(a.total_damage for a in self.abilities.values())
        if not math.isclose(self.total_damage, ability_sum, rel_tol=1e-9, abs_tol=1e-6):
            raise ValueError(
                f"totalDamage {self.total_damage} != sum of abilities {ability_sum}"
            )
        return self

    @classmethod
    def build(
        cls,
        *,
        day: datetime.date,
        timestamp: int,
        combat_time: float,
        abilities: dict[str, AbilityStats],
    ) -> "FightSnapshot":
        """Build a snapshot whose totals are derived from its abilities."""
        total_damage = sum(a.total_damage for a in abilities.values())
        dps = total_damage / combat_time if combat_time > 0 else 0.0
        return cls(
            date=day,
            timestamp=timestamp,
            combat_time=combat_time,
            total_damage=total_damage,
            dps=dps,
            abilities=abilities,
        )


class ProfileConfig(SavedBaseModel):
    keep_count: int = Field(DEFAULT_KEEP_COUNT, ge=1)


class ProfileDB(SavedBaseModel):
    """Everything stored for one character: settings plus boss history.

    ``bosses[name]`` is ordered newest first.
    """

    config: ProfileConfig = Field(default_factory=ProfileConfig)
    bosses: dict[str, list[FightSnapshot]] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _backfill(cls, data: Any) -> Any:
        # Older saves may lack either section or carry it as null
        if isinstance(data, dict):
            data = dict(data)
            if data.get("config") is None:
                data["config"] = {}
            if data.get("bosses") is None:
                data["bosses"] = {}
        return data


class SavedState(SavedBaseModel):
    """Root of the saved file: one profile per ``<character>-<realm>``."""

    profiles: dict[str, ProfileDB] = Field(default_factory=dict)
