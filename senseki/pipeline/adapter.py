"""Translate the meter's positional segment records into ``FightSnapshot``s."""

import logging
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from senseki.db.models import AbilityStats, FightSnapshot
from senseki.source.layout import AbilityRecord, MalformedRecordError
from senseki.source.models import SourceUnavailableError, TelemetryExport

logger = logging.getLogger(__name__)


def unknown_ability_name(ability_id: Any) -> str:
    return f"Unknown-{ability_id}"


def to_ability_stats(record: AbilityRecord) -> AbilityStats:
    """Map a decoded record onto the stored schema.

    The meter keeps no partial-resist breakdown in this structure, so
    ``partial_resists`` and ``resisted_damage`` are always zero.
    """
    try:
        return AbilityStats(
            hits=record.hits,
            crits=record.crits,
            misses=record.misses,
            parries=record.parries,
            dodges=record.dodges,
            blocks=record.blocks,
            glances=record.glances,
            resists=record.resists,
            partial_resists=0,
            total_damage=record.total_damage,
            resisted_damage=0.0,
            hit_min=record.hit_min,
            hit_max=record.hit_max,
            hit_avg=record.hit_avg,
            crit_min=record.crit_min,
            crit_max=record.crit_max,
            crit_avg=record.crit_avg,
        )
    except ValidationError as exc:
        raise MalformedRecordError(str(exc)) from exc


def extract_segment_snapshot(
    source: TelemetryExport | None,
    segment_index: int,
    actor_name: str,
    captured_at: datetime,
) -> FightSnapshot | None:
    """Build a snapshot of ``actor_name``'s damage in one segment.

    Returns None when the actor is unknown to the meter or has no data in the
    segment. Records that cannot be decoded are skipped individually.

    Raises:
        SourceUnavailableError: the meter is not present at all.
    """
    if source is None:
        raise SourceUnavailableError("Telemetry source not available")

    actor_id = source.actor_id(actor_name)
    if actor_id is None:
        logger.debug("Actor %s not known to the telemetry source", actor_name)
        return None

    records = source.actor_records(segment_index, actor_id)
    if not records:
        logger.debug("No data for %s in segment %d", actor_name, segment_index)
        return None

    ability_names = source.ability_names()
    abilities: dict[str, AbilityStats] = {}
    for raw_id, values in records.items():
        try:
            stats = to_ability_stats(AbilityRecord.from_positions(values))
        except MalformedRecordError as exc:
            logger.warning(
                "Skipping malformed record %r in segment %d: %s",
                raw_id, segment_index, exc,
            )
            continue

        name = _ability_name(raw_id, ability_names)
        if name in abilities:
            # Two ids mapped to one display name: keep both rather than drop one
            name = f"{name} ({raw_id})"
        abilities[name] = stats

    return FightSnapshot.build(
        day=captured_at.date(),
        timestamp=int(captured_at.timestamp()),
        combat_time=source.segment_duration(segment_index),
        abilities=abilities,
    )


def _ability_name(raw_id: str, ability_names: dict[int, str]) -> str:
    try:
        ability_id = int(raw_id)
    except ValueError:
        return unknown_ability_name(raw_id)
    return ability_names.get(ability_id) or unknown_ability_name(ability_id)
