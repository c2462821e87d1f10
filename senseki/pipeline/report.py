"""Render summaries, fight details and comparisons as report lines.

Lines carry a ``channel`` and, where a line is about one compared metric, its
``classification``. Colors or other markup are left to whatever prints them.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum

from senseki.db.models import FightSnapshot
from senseki.db.store import EncounterSummary
from senseki.pipeline.compare import (
    Classification,
    FightComparison,
    MetricDelta,
    ability_crit_rate,
    ability_hit_rate,
    snapshot_stats,
)
from senseki.pipeline.formatting import format_date_short, format_number, format_time
from senseki.pipeline.resolver import ResolvedFight

TOP_ABILITY_COUNT = 5


class Channel(StrEnum):
    HEADER = "header"
    INFO = "info"
    ERROR = "error"


@dataclass(frozen=True)
class ReportLine:
    text: str
    channel: Channel = Channel.INFO
    classification: Classification | None = None


def _header(text: str) -> ReportLine:
    return ReportLine(text, Channel.HEADER)


def error_line(message: str) -> ReportLine:
    return ReportLine(message, Channel.ERROR)


def format_signed_pct(value: float) -> str:
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:.1f}%"


def format_diff(delta: MetricDelta, value_format: str) -> str:
    """'<new> (<+pct>%)', e.g. format_diff(dps 1000 -> 1100, '.1f') -> '1100.0 (+10.0%)'."""
    return f"{delta.new:{value_format}} ({format_signed_pct(delta.pct_change)})"


def _metric_line(label: str, delta: MetricDelta, value_format: str) -> ReportLine:
    return ReportLine(
        f"{label}{format_diff(delta, value_format)}",
        classification=delta.classification,
    )


def _rate_line(label: str, delta: MetricDelta) -> ReportLine:
    # Rates are compared in percentage points, not relative change
    return ReportLine(
        f"{label}{delta.old:.1f}% vs {delta.new:.1f}%  "
        f"({format_signed_pct(delta.diff)})",
        classification=delta.classification,
    )


def render_summary(entries: Sequence[EncounterSummary]) -> list[ReportLine]:
    if not entries:
        return [
            ReportLine("No boss kills recorded yet."),
            ReportLine("Kill a boss with the damage meter running to start tracking!"),
        ]

    lines = [_header("=== Boss History ===")]
    for entry in entries:
        latest = entry.latest
        dps_text = f"{latest.dps:.0f} DPS"
        change = entry.dps_change
        classification = None
        if change is not None:
            dps_text += f" ({format_signed_pct(change.pct_change)})"
            classification = change.classification
        lines.append(ReportLine(
            f"{entry.name}: {entry.kill_count} kills "
            f"(latest: {format_date_short(latest.date)}, {dps_text})",
            classification=classification,
        ))
    return lines


def render_list(bosses: Mapping[str, Sequence[FightSnapshot]] | None) -> list[ReportLine]:
    if bosses is None:
        return [ReportLine("No data available.")]

    lines = [_header("=== All Stored Boss Fights ===")]
    for name, kills in bosses.items():
        lines.append(ReportLine(f"{name}:"))
        for i, snapshot in enumerate(kills, start=1):
            lines.append(ReportLine(
                f"  {i}. {format_date_short(snapshot.date)} - {snapshot.dps:.0f} DPS, "
                f"{format_number(snapshot.total_damage)}, "
                f"{format_time(snapshot.combat_time)} combat"
            ))
    if len(lines) == 1:
        lines.append(ReportLine("No boss kills recorded yet."))
    return lines


def render_fight(fight: ResolvedFight) -> list[ReportLine]:
    snapshot = fight.snapshot
    stats = snapshot_stats(snapshot)
    lines = [
        _header(f"=== {fight.encounter}: {format_date_short(snapshot.date)} ==="),
        ReportLine(
            f"DPS: {snapshot.dps:.1f} | Damage: {format_number(snapshot.total_damage)}"
        ),
        ReportLine(f"Combat Time: {format_time(snapshot.combat_time)}"),
        ReportLine(f"Hit Rate: {stats.hit_rate:.1f}% | Crit Rate: {stats.crit_rate:.1f}%"),
    ]
    if stats.resists > 0 or stats.resisted_damage > 0:
        lines.append(ReportLine(
            f"Resists: {stats.resists} | Dmg Lost: {format_number(stats.resisted_damage)}"
        ))

    if snapshot.abilities:
        lines.append(_header("--- Top Abilities ---"))
        ranked = sorted(
            snapshot.abilities.items(), key=lambda item: (-item[1].total_damage, item[0]),
        )
        for name, ability in ranked[:TOP_ABILITY_COUNT]:
            lines.append(ReportLine(
                f"  {name}: {format_number(ability.total_damage)} "
                f"({ability_hit_rate(ability):.1f}% hit, "
                f"{ability_crit_rate(ability):.1f}% crit)"
            ))
    return lines


def render_comparison(
    old: ResolvedFight,
    new: ResolvedFight,
    comparison: FightComparison,
) -> list[ReportLine]:
    title = old.encounter
    if new.encounter != old.encounter:
        title = f"{old.encounter} vs {new.encounter}"
    lines = [
        _header(
            f"=== {title}: {format_date_short(old.snapshot.date)} vs "
            f"{format_date_short(new.snapshot.date)} ==="
        ),
        _metric_line("DPS:        ", comparison.dps, ".1f"),
        _metric_line("Damage:     ", comparison.total_damage, ".0f"),
        ReportLine(
            f"Combat Time: {comparison.old_combat_time:.1f}s vs "
            f"{comparison.new_combat_time:.1f}s"
        ),
        ReportLine(""),
        _rate_line("Hit Rate:   ", comparison.hit_rate),
        _rate_line("Crit Rate:  ", comparison.crit_rate),
        ReportLine(f"Resists:    {comparison.old_resists} vs {comparison.new_resists}"),
        _metric_line("Dmg Lost:   ", comparison.resisted_damage, ".0f"),
    ]

    if comparison.abilities is not None:
        lines.append(ReportLine(""))
        lines.append(_header("=== Per-Ability Breakdown ==="))
        for ability in comparison.abilities:
            lines.append(ReportLine(f"{ability.name}:"))
            lines.append(_metric_line("  DPS:      ", ability.dps, ".1f"))
            lines.append(ReportLine(
                f"  Hit%:     {ability.hit_rate.old:.1f}% vs {ability.hit_rate.new:.1f}%",
                classification=ability.hit_rate.classification,
            ))
            lines.append(ReportLine(
                f"  Crit%:    {ability.crit_rate.old:.1f}% vs {ability.crit_rate.new:.1f}%",
                classification=ability.crit_rate.classification,
            ))
            if ability.resisted_damage.old > 0 or ability.resisted_damage.new > 0:
                lines.append(_metric_line("  Dmg Lost: ", ability.resisted_damage, ".0f"))
    return lines
