"""
Unit Tests for the NPC Tower Engine
===================================

Test Coverage
-------------
- Power curve (table floors, extrapolated floors, interpolation)
- Ladder advancement and the top-of-tower cap
- Rank gates and rewards
- Deterministic immunities and pet immunity
- Battle resolution with injected randomness

Testing Strategy
----------------
- Pure functions only, no database
- ``FixedRandom`` pins the luck roll
"""

import pytest

from tests.conftest import FixedRandom
from valor.modules.shared.constants import DEFAULT_STATS, ELEMENTS
from valor.modules.tower.engine import (
    advance_ladder,
    describe_npc,
    global_level,
    immunity_count,
    npc_immunities,
    npc_power,
    npc_power_range,
    pet_fully_immune,
    rank_allows,
    required_rank,
    resolve_npc_battle,
    tower_rewards,
)


# ============================================================================
# POWER CURVE
# ============================================================================


@pytest.mark.unit
class TestPowerCurve:
    def test_first_and_last_level_of_floor_one(self):
        assert npc_power(1, 1) == 1
        assert npc_power(1, 100) == 999

    def test_next_floor_starts_at_previous_ceiling(self):
        assert npc_power(2, 1) == 999

    def test_floors_past_the_table_grow_by_one_hundred(self):
        assert npc_power_range(6) == (99_999_999_999, 9_999_999_999_900)
        low, high = npc_power_range(7)
        assert low == 9_999_999_999_900
        assert high == low * 100

    def test_power_is_monotonic_within_a_floor(self):
        powers = [npc_power(3, level) for level in range(1, 101)]
        assert powers == sorted(powers)

    def test_floor_zero_is_rejected(self):
        with pytest.raises(ValueError):
            npc_power_range(0)


# ============================================================================
# LADDER
# ============================================================================


@pytest.mark.unit
class TestLadder:
    def test_global_level(self):
        assert global_level(1, 1) == 1
        assert global_level(3, 5) == 205

    @pytest.mark.parametrize(
        "position, expected",
        [((1, 1), (1, 2)), ((1, 99), (1, 100)), ((1, 100), (2, 1)), ((50, 100), (50, 100))],
    )
    def test_advance(self, position, expected):
        assert advance_ladder(*position) == expected

    def test_rank_gates(self):
        assert required_rank(100) is None
        assert required_rank(101) == "Apprentice"
        assert required_rank(500) == "Journeyman"
        assert required_rank(4001) == "Elite"

    def test_rank_allows(self):
        assert rank_allows("Novice", None)
        assert not rank_allows("Novice", "Apprentice")
        assert rank_allows("Master", "Apprentice")
        assert not rank_allows(None, "Apprentice")

    def test_rewards_scale_with_global_level(self):
        assert tower_rewards(1, 1) == {
            "gold": 50,
            "trainingPoints": 10,
            "soulShards": 2,
            "petExp": 100,
            "runes": 0,
        }

    def test_boss_rewards_include_runes(self):
        rewards = tower_rewards(3, 100)
        assert rewards["gold"] == 300 * 50
        assert rewards["runes"] == 30


# ============================================================================
# IMMUNITIES
# ============================================================================


@pytest.mark.unit
class TestImmunities:
    def test_no_immunities_in_the_first_hundred_levels(self):
        assert immunity_count(1, 100) == 0
        assert npc_immunities(1, 100) == []

    def test_count_grows_with_floor_and_caps(self):
        assert immunity_count(2, 1) == 1
        assert immunity_count(5, 1) == 2
        assert immunity_count(25, 1) == 5
        assert immunity_count(50, 100) == 5

    def test_draw_is_stable_for_the_same_npc(self):
        first = npc_immunities(12, 40)
        assert first == npc_immunities(12, 40)
        assert len(first) == immunity_count(12, 40)
        assert len(set(first)) == len(first)
        assert set(first) <= set(ELEMENTS)

    def test_pet_immunity_requires_every_element_blocked(self):
        assert pet_fully_immune(["Fire"], ["Fire", "Water"])
        assert not pet_fully_immune(["Fire", "Ice"], ["Fire", "Water"])
        assert not pet_fully_immune([], ["Fire"])
        assert not pet_fully_immune(["Fire"], [])


# ============================================================================
# BATTLE
# ============================================================================


@pytest.mark.unit
class TestResolveBattle:
    def test_strong_player_beats_first_npc(self):
        # Arrange: Str 20 brings strength to 50 against an NPC of power 1
        stats = {**DEFAULT_STATS, "Str": 20}

        # Act
        outcome = resolve_npc_battle(1, 1, stats, rng=FixedRandom(0.0))

        # Assert
        assert outcome.won
        assert outcome.player_power == 50
        assert outcome.npc_power == 1
        assert (outcome.next_floor, outcome.next_level) == (1, 2)
        assert outcome.rewards["gold"] == 50
        assert outcome.rewards["trainingPoints"] == 10
        assert outcome.rewards["soulShards"] == 2

    def test_loss_keeps_position_and_pays_nothing(self):
        outcome = resolve_npc_battle(1, 100, DEFAULT_STATS, rng=FixedRandom(0.99))

        assert not outcome.won
        assert outcome.is_boss
        assert outcome.effective_npc_power == pytest.approx(999 * 1.2)
        assert outcome.rewards == {}
        assert (outcome.next_floor, outcome.next_level) == (1, 100)

    def test_missing_luck_defaults_to_ten(self):
        outcome = resolve_npc_battle(1, 1, {"Str": 10, "Luck": 0}, rng=FixedRandom(0.5))

        assert outcome.luck_bonus == pytest.approx(0.05)
        assert outcome.effective_player_power == pytest.approx(10 * 1.05)

    def test_equal_effective_power_is_a_win(self):
        # Luck 1 counts toward strength, so Str is one short of the NPC
        target = npc_power(1, 34)
        outcome = resolve_npc_battle(1, 34, {"Str": target - 1, "Luck": 1}, rng=FixedRandom(0.0))

        assert outcome.effective_player_power == outcome.effective_npc_power
        assert outcome.won

    def test_pet_elemental_power_ignored_when_npc_is_immune(self):
        # Arrange: floor 2 level 1 has exactly one immunity
        immune = npc_immunities(2, 1)
        other = next(e for e in ELEMENTS if e not in immune)
        pet = {"Str": 1, "Spd": 1, "Luck": 1, "ElementalPower": 100}

        # Act
        blocked = resolve_npc_battle(2, 1, DEFAULT_STATS, (), pet, immune, FixedRandom(0.0))
        mixed = resolve_npc_battle(2, 1, DEFAULT_STATS, (), pet, [*immune, other], FixedRandom(0.0))

        # Assert
        assert blocked.pet_element_immune
        assert blocked.player_power == 43
        assert not mixed.pet_element_immune
        assert mixed.player_power == 143

    def test_describe_boss(self):
        preview = describe_npc(1, 100)

        assert preview["isBoss"]
        assert preview["name"] == "Floor 1 Guardian"
        assert preview["bossAbility"]["name"] == "Earthquake"
        assert preview["powerRange"] == {"min": 1, "max": 999}
        assert preview["requiredRank"] is None
