"""
Unit Tests for the Guild Dungeon Engine
=======================================

Test Coverage
-------------
- Dungeon layout: advance, wrap, top-of-dungeon cap, Demon Lord floors
- NPC stats, boss scaling and immunities
- Rewards with the guild-level multiplier
- Fight resolution: power gate, victory roll, pets and the element bonus
"""

import pytest

from tests.conftest import FixedRandom
from valor.modules.guild.dungeon import (
    DungeonFighter,
    advance_dungeon,
    describe_dungeon_level,
    display_floor,
    dungeon_immunities,
    dungeon_immunity_count,
    dungeon_name,
    dungeon_npc_stats,
    dungeon_rewards,
    npc_power_of,
    resolve_dungeon_fight,
)
from valor.modules.shared.constants import ELEMENTS

WEAK = DungeonFighter("weak", {"Str": 50, "Spd": 50, "Int": 50})
STRONG = DungeonFighter("strong", {"Str": 200, "Spd": 100, "Int": 100, "Luck": 0})


# ============================================================================
# LAYOUT
# ============================================================================


@pytest.mark.unit
class TestLayout:
    @pytest.mark.parametrize(
        "position, expected",
        [((1, 3), (1, 4)), ((1, 50), (2, 1)), ((50, 50), (51, 1)), ((100, 50), (100, 50))],
    )
    def test_advance(self, position, expected):
        assert advance_dungeon(*position) == expected

    def test_demon_lord_floors_restart_numbering(self):
        assert display_floor(50) == 50
        assert display_floor(51) == 1
        assert dungeon_name(50) == "The Great Dungeon"
        assert dungeon_name(51) == "The Demon Lord's Dungeon"


# ============================================================================
# NPC
# ============================================================================


@pytest.mark.unit
class TestNpc:
    def test_first_level_stats(self):
        stats = dungeon_npc_stats(1, 1)

        assert stats == {"Str": 150, "Spd": 140, "Int": 130, "Luck": 70}
        assert npc_power_of(stats) == 570

    def test_boss_scaling(self):
        stats = dungeon_npc_stats(1, 10)

        assert stats["Str"] == 1200
        assert stats["Spd"] == 750
        assert stats["Int"] == 600
        assert stats["Luck"] == 250

    def test_demon_lord_multiplier(self):
        great = dungeon_npc_stats(50, 1)
        demon = dungeon_npc_stats(51, 1)
        assert demon["Str"] > great["Str"]
        assert demon["Str"] % 15 == 0

    @pytest.mark.parametrize("floor, expected", [(4, 0), (5, 1), (8, 2), (20, 6), (100, 6)])
    def test_immunity_count(self, floor, expected):
        assert dungeon_immunity_count(floor) == expected

    def test_immunities_are_stable(self):
        assert dungeon_immunities(30, 7) == dungeon_immunities(30, 7)
        assert len(set(dungeon_immunities(30, 7))) == 6


# ============================================================================
# REWARDS
# ============================================================================


@pytest.mark.unit
class TestRewards:
    def test_first_level_pays_gold_only(self):
        assert dungeon_rewards(1, 1, 1) == {
            "gold": 1650,
            "rubies": 0,
            "soulShards": 0,
            "focusedShards": 0,
            "runes": 0,
            "trainingPoints": 0,
        }

    def test_guild_level_adds_ten_percent_per_level(self):
        assert dungeon_rewards(1, 1, 0)["gold"] == 1500
        assert dungeon_rewards(1, 1, 5)["gold"] == 2250

    def test_boss_pays_five_times_gold_and_rubies(self):
        rewards = dungeon_rewards(1, 10, 1)

        assert rewards["gold"] == 33000
        assert rewards["rubies"] == 55

    def test_demon_lord_triples_rewards(self):
        great = dungeon_rewards(50, 1, 0)
        demon = dungeon_rewards(51, 1, 0)
        assert demon["soulShards"] == (51 // 5) * 10 * 3
        assert great["soulShards"] == (50 // 5) * 10


# ============================================================================
# FIGHT
# ============================================================================


@pytest.mark.unit
class TestResolveFight:
    def test_below_the_power_gate_is_not_attempted(self):
        # Arrange: 200 power against 570 is under 40%
        rng = FixedRandom(0.99)

        # Act
        outcome = resolve_dungeon_fight(1, 1, [WEAK], rng=rng)

        # Assert
        assert not outcome.attempted
        assert not outcome.victory
        assert outcome.player_power == 200
        assert outcome.message is not None
        assert outcome.rewards == {}
        assert (outcome.next_floor, outcome.next_level) == (1, 1)

    def test_victory_advances_and_pays(self):
        outcome = resolve_dungeon_fight(1, 1, [STRONG], guild_level=1, rng=FixedRandom(0.99))

        assert outcome.attempted
        assert outcome.victory
        assert outcome.rewards["gold"] == 1650
        assert (outcome.next_floor, outcome.next_level) == (1, 2)
        assert outcome.power_ratio == pytest.approx(600 / 570)

    def test_unlucky_roll_loses_without_moving(self):
        # 600 * 0.5 = 300 does not beat 570 * 0.8 = 456
        outcome = resolve_dungeon_fight(1, 1, [STRONG], rng=FixedRandom(0.5))

        assert outcome.attempted
        assert not outcome.victory
        assert outcome.message is None
        assert (outcome.next_floor, outcome.next_level) == (1, 1)

    def test_party_stats_are_summed(self):
        outcome = resolve_dungeon_fight(1, 1, [WEAK, STRONG], rng=FixedRandom(0.99))

        assert outcome.participants == 2
        assert outcome.combined_stats["Str"] == 250
        assert outcome.player_power == 800

    def test_pets_only_fight_past_floor_fifty(self):
        # Arrange
        pet = {"Str": 5, "Spd": 5, "Luck": 5, "ElementalPower": 5}
        immune = dungeon_immunities(51, 1)
        open_element = next(e for e in ELEMENTS if e not in immune)
        base = {"Str": 10, "Spd": 10, "Int": 10}

        # Act
        great = resolve_dungeon_fight(
            50, 1, [DungeonFighter("a", base, pet, [open_element])], rng=FixedRandom(0.0)
        )
        blocked = resolve_dungeon_fight(
            51, 1, [DungeonFighter("a", base, pet, [immune[0]])], rng=FixedRandom(0.0)
        )
        bonus = resolve_dungeon_fight(
            51, 1, [DungeonFighter("a", base, pet, [open_element])], rng=FixedRandom(0.0)
        )

        # Assert
        assert great.player_power == 40
        assert not great.pets_allowed
        assert blocked.player_power == 60
        assert blocked.element_bonus == 1.0
        assert bonus.player_power == pytest.approx(75)
        assert bonus.element_bonus == 1.25

    def test_describe_level(self):
        preview = describe_dungeon_level(51, 10, 1)

        assert preview["displayFloor"] == 1
        assert preview["isBoss"]
        assert preview["petsAllowed"]
        assert preview["globalLevel"] == 5010
