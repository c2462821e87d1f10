"""Compare two fight snapshots in aggregate and per ability."""

from dataclasses import dataclass
from enum import StrEnum

from senseki.db.models import AbilityStats, FightSnapshot


class Classification(StrEnum):
    IMPROVEMENT = "improvement"
    REGRESSION = "regression"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class MetricDelta:
    name: str
    old: float
    new: float
    lower_is_better: bool = False

    @property
    def diff(self) -> float:
        return self.new - self.old

    @property
    def pct_change(self) -> float:
        if self.old == 0:
            return 0.0
        return self.diff / abs(self.old) * 100

    @property
    def classification(self) -> Classification:
        if self.diff == 0:
            return Classification.UNCHANGED
        if (self.diff > 0) != self.lower_is_better:
            return Classification.IMPROVEMENT
        return Classification.REGRESSION


def diff_metric(
    name: str, old: float, new: float, *, lower_is_better: bool = False,
) -> MetricDelta:
    return MetricDelta(name=name, old=old, new=new, lower_is_better=lower_is_better)


def calc_hit_rate(hits: int, crits: int, misses: int) -> float:
    total = hits + crits + misses
    if total == 0:
        return 0.0
    return (hits + crits) / total * 100


def calc_crit_rate(hits: int, crits: int) -> float:
    total = hits + crits
    if total == 0:
        return 0.0
    return crits / total * 100


@dataclass(frozen=True)
class SnapshotStats:
    hits: int
    crits: int
    misses: int  # includes parries, dodges and blocks
    resists: int
    resisted_damage: float

    @property
    def hit_rate(self) -> float:
        return calc_hit_rate(self.hits, self.crits, self.misses + self.resists)

    @property
    def crit_rate(self) -> float:
        return calc_crit_rate(self.hits, self.crits)


def snapshot_stats(snapshot: FightSnapshot) -> SnapshotStats:
    """Aggregate hit/crit/avoidance counters over every ability in a snapshot."""
    abilities = snapshot.abilities.values()
    return SnapshotStats(
        hits=sum(a.hits for a in abilities),
        crits=sum(a.crits for a in abilities),
        misses=sum(a.misses + a.parries + a.dodges + a.blocks for a in abilities),
        resists=sum(a.resists for a in abilities),
        resisted_damage=sum(a.resisted_damage for a in abilities),
    )


def ability_hit_rate(ability: AbilityStats) -> float:
    # The meter only attributes plain misses and resists per ability
    return calc_hit_rate(ability.hits, ability.crits, ability.misses + ability.resists)


def ability_crit_rate(ability: AbilityStats) -> float:
    return calc_crit_rate(ability.hits, ability.crits)


@dataclass(frozen=True)
class AbilityComparison:
    name: str
    old_damage: float
    new_damage: float
    dps: MetricDelta
    hit_rate: MetricDelta
    crit_rate: MetricDelta
    resisted_damage: MetricDelta


@dataclass(frozen=True)
class FightComparison:
    old: FightSnapshot
    new: FightSnapshot
    dps: MetricDelta
    total_damage: MetricDelta
    hit_rate: MetricDelta
    crit_rate: MetricDelta
    resisted_damage: MetricDelta
    old_combat_time: float
    new_combat_time: float
    old_resists: int
    new_resists: int
    abilities: list[AbilityComparison] | None = None


_EMPTY_ABILITY = AbilityStats()


def _ability_dps(ability: AbilityStats, combat_time: float) -> float:
    if combat_time <= 0:
        return 0.0
    return ability.total_damage / combat_time


def compare_abilities(old: FightSnapshot, new: FightSnapshot) -> list[AbilityComparison]:
    """Per-ability deltas over the union of both snapshots' abilities.

    Ordered by damage in ``new``, falling back to ``old`` damage for abilities
    that did no damage in ``new``.
    """
    names = set(old.abilities) | set(new.abilities)

    def sort_key(name: str) -> tuple[float, str]:
        new_damage = new.abilities.get(name, _EMPTY_ABILITY).total_damage
        old_damage = old.abilities.get(name, _EMPTY_ABILITY).total_damage
        return (-(new_damage if new_damage > 0 else old_damage), name)

    result = []
    for name in sorted(names, key=sort_key):
        a_old = old.abilities.get(name, _EMPTY_ABILITY)
        a_new = new.abilities.get(name, _EMPTY_ABILITY)
        result.append(AbilityComparison(
            name=name,
            old_damage=a_old.total_damage,
            new_damage=a_new.total_damage,
            dps=diff_metric(
                "dps",
                _ability_dps(a_old, old.combat_time),
                _ability_dps(a_new, new.combat_time),
            ),
            hit_rate=diff_metric("hit_rate", ability_hit_rate(a_old), ability_hit_rate(a_new)),
            crit_rate=diff_metric(
                "crit_rate", ability_crit_rate(a_old), ability_crit_rate(a_new),
            ),
            resisted_damage=diff_metric(
                "resisted_damage", a_old.resisted_damage, a_new.resisted_damage,
                lower_is_better=True,
            ),
        ))
    return result


def compare_snapshots(
    old: FightSnapshot,
    new: FightSnapshot,
    *,
    include_abilities: bool = False,
) -> FightComparison:
    """Compare ``new`` against ``old`` (the baseline)."""
    old_stats = snapshot_stats(old)
    new_stats = snapshot_stats(new)
    return FightComparison(
        old=old,
        new=new,
        dps=diff_metric("dps", old.dps, new.dps),
        total_damage=diff_metric("total_damage", old.total_damage, new.total_damage),
        hit_rate=diff_metric("hit_rate", old_stats.hit_rate, new_stats.hit_rate),
        crit_rate=diff_metric("crit_rate", old_stats.crit_rate, new_stats.crit_rate),
        resisted_damage=diff_metric(
            "resisted_damage", old_stats.resisted_damage, new_stats.resisted_damage,
            lower_is_better=True,
        ),
        old_combat_time=old.combat_time,
        new_combat_time=new.combat_time,
        old_resists=old_stats.resists,
        new_resists=new_stats.resists,
        abilities=compare_abilities(old, new) if include_abilities else None,
    )
