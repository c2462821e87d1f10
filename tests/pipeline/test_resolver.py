import datetime

import pytest

from senseki.db.models import AbilityStats, FightSnapshot
from senseki.pipeline.formatting import format_date_short
from senseki.pipeline.resolver import (
    NoData,
    ResolvedFight,
    match_date,
    match_index,
    match_name,
    parse_date_input,
    resolve_fight,
)

TODAY = datetime.date(2025, 3, 10)


def _snapshot(dps, day=TODAY):
    return FightSnapshot.build(
        day=day,
        timestamp=0,
        combat_time=100.0,
        abilities={"Frostbolt": AbilityStats(hits=1, total_damage=dps * 100)},
    )


def _bosses():
    return {
        "Lucifron": [
            _snapshot(1100, datetime.date(2025, 1, 9)),
            _snapshot(1067, datetime.date(2025, 1, 2)),
            _snapshot(950, datetime.date(2025, 1, 2)),
        ],
        "Attumen the Huntsman": [_snapshot(700)],
        "Ragnaros-Heroic": [_snapshot(500)],
        "Empty": [],
    }


class TestParseDateInput:
    def test_iso(self):
        assert parse_date_input("2024-11-05", TODAY) == datetime.date(2024, 11, 5)

    def test_iso_single_digits(self):
        assert parse_date_input("2024-1-5", TODAY) == datetime.date(2024, 1, 5)

    @pytest.mark.parametrize("text", ["jan-02", "Jan-02", "JANUARY-02", "january-2"])
    def test_month_names_case_insensitive(self, text):
        assert parse_date_input(text, TODAY) == datetime.date(2025, 1, 2)

    def test_may_has_single_spelling(self):
        assert parse_date_input("May-20", TODAY) == datetime.date(2025, 5, 20)

    def test_unknown_month(self):
        assert parse_date_input("Smarch-02", TODAY) is None

    def test_impossible_date(self):
        assert parse_date_input("Feb-30", TODAY) is None
        assert parse_date_input("2025-13-01", TODAY) is None

    def test_not_a_date(self):
        assert parse_date_input("2", TODAY) is None
        assert parse_date_input("", TODAY) is None


class TestRules:
    def test_name_rule_claims_known_boss(self):
        result = match_name("Lucifron", _bosses(), TODAY)
        assert isinstance(result, ResolvedFight)
        assert result.index == 1

    def test_name_rule_passes_on_suffixed_reference(self):
        assert match_name("Lucifron-2", _bosses(), TODAY) is None

    def test_index_rule_passes_on_date_suffix(self):
        assert match_index("Lucifron-Jan-02", _bosses(), TODAY) is None

    def test_index_rule_passes_on_iso_suffix(self):
        # Last token "02" is numeric, but "Lucifron-2025-01" is not a boss
        assert match_index("Lucifron-2025-01-02", _bosses(), TODAY) is None

    def test_date_rule_passes_on_index(self):
        assert match_date("Lucifron-2", _bosses(), TODAY) is None


class TestResolveFight:
    def test_name_alone_is_most_recent(self):
        result = resolve_fight("Lucifron", _bosses(), TODAY)
        assert isinstance(result, ResolvedFight)
        assert result.encounter == "Lucifron"
        assert result.snapshot.dps == 1100

    def test_index(self):
        result = resolve_fight("Lucifron-3", _bosses(), TODAY)
        assert isinstance(result, ResolvedFight)
        assert result.index == 3
        assert result.snapshot.dps == 950

    def test_index_out_of_range(self):
        result = resolve_fight("Lucifron-99", _bosses(), TODAY)
        assert isinstance(result, NoData)
        assert "#99" in result.message
        assert "3" in result.message

    def test_month_day_returns_first_match_in_stored_order(self):
        result = resolve_fight("Lucifron-Jan-02", _bosses(), TODAY)
        assert isinstance(result, ResolvedFight)
        assert result.index == 2
        assert result.snapshot.dps == 1067

    @pytest.mark.parametrize(
        "reference", ["Lucifron-jan-02", "Lucifron-Jan-02", "Lucifron-JANUARY-02"],
    )
    def test_month_case_insensitive(self, reference):
        result = resolve_fight(reference, _bosses(), TODAY)
        assert isinstance(result, ResolvedFight)
        assert result.snapshot.date == datetime.date(2025, 1, 2)

    def test_iso_date(self):
        result = resolve_fight("Lucifron-2025-01-09", _bosses(), TODAY)
        assert isinstance(result, ResolvedFight)
        assert result.snapshot.dps == 1100

    def test_date_without_kill(self):
        result = resolve_fight("Lucifron-Feb-14", _bosses(), TODAY)
        assert isinstance(result, NoData)
        assert result.message == "No kill on Feb-14 for Lucifron"

    def test_boss_name_with_spaces(self):
        result = resolve_fight("Attumen the Huntsman-1", _bosses(), TODAY)
        assert isinstance(result, ResolvedFight)
        assert result.encounter == "Attumen the Huntsman"

    def test_boss_name_containing_separator(self):
        result = resolve_fight("Ragnaros-Heroic", _bosses(), TODAY)
        assert isinstance(result, ResolvedFight)
        assert result.encounter == "Ragnaros-Heroic"

        indexed = resolve_fight("Ragnaros-Heroic-1", _bosses(), TODAY)
        assert isinstance(indexed, ResolvedFight)
        assert indexed.encounter == "Ragnaros-Heroic"

    def test_unknown_boss(self):
        result = resolve_fight("Onyxia", _bosses(), TODAY)
        assert result == NoData("No data for boss 'Onyxia'")

    def test_unknown_boss_with_index(self):
        result = resolve_fight("Onyxia-2", _bosses(), TODAY)
        assert result == NoData("No data for boss 'Onyxia'")

    def test_boss_with_no_snapshots(self):
        result = resolve_fight("Empty", _bosses(), TODAY)
        assert result == NoData("No data for boss 'Empty'")

    def test_invalid_month_is_invalid_identifier(self):
        result = resolve_fight("Lucifron-Smarch-02", _bosses(), TODAY)
        assert result == NoData("Invalid identifier: Lucifron-Smarch-02")

    def test_garbage_suffix_is_invalid_identifier(self):
        result = resolve_fight("Lucifron-best", _bosses(), TODAY)
        assert result == NoData("Invalid identifier: Lucifron-best")

    def test_zero_index_is_invalid_identifier(self):
        result = resolve_fight("Lucifron-0", _bosses(), TODAY)
        assert result == NoData("Invalid identifier: Lucifron-0")

    def test_empty_reference(self):
        assert resolve_fight("", _bosses(), TODAY) == NoData("No fight specified")
        assert resolve_fight(None, _bosses(), TODAY) == NoData("No fight specified")

    def test_uninitialized_database(self):
        assert resolve_fight("Lucifron", None, TODAY) == NoData("Database not initialized")

    def test_name_index_and_today_agree_for_single_kill(self):
        bosses = {"Boss": [_snapshot(800, TODAY)]}
        by_name = resolve_fight("Boss", bosses, TODAY)
        by_index = resolve_fight("Boss-1", bosses, TODAY)
        by_date = resolve_fight(f"Boss-{format_date_short(TODAY)}", bosses, TODAY)
        assert by_name.snapshot is by_index.snapshot is by_date.snapshot
