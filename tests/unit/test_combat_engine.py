"""
Unit Tests for the PvP Combat Engine
====================================

Test Coverage
-------------
- Combat HP formula
- The action damage matrix, crits, dodges and rounding
- Round resolution: advancing, knockouts, the double-knockout tie-break
- Automated opponent action draw

Testing Strategy
----------------
- ``FixedRandom`` / ``SequenceRandom`` pin every roll; the engine consumes
  the crit roll first and the dodge roll second
"""

import random

import pytest

from tests.conftest import FixedRandom, SequenceRandom
from valor.domain.models.combat_state import CombatState
from valor.domain.models.stats import StatBlock
from valor.modules.combat.engine import (
    action_weights,
    choose_npc_action,
    combat_hp,
    compute_damage,
    crit_chance,
    dodge_chance,
    resolve_round,
    round_half_up,
)

ATTACKER = StatBlock(strength=30, defense=5, speed=20, intellect=40, luck=0)
DEFENDER = StatBlock(strength=10, defense=12, speed=10, intellect=10, luck=0)
NO_CRIT = FixedRandom(0.99)


def duel(hp_a: int = 100, hp_b: int = 100) -> CombatState:
    return CombatState.start("a", "Alice", hp_a, "b", "Bob", hp_b)


# ============================================================================
# HP / HELPERS
# ============================================================================


@pytest.mark.unit
class TestHelpers:
    def test_combat_hp(self):
        stats = StatBlock(strength=10, defense=10, speed=10, intellect=10, luck=10)
        assert combat_hp(stats) == 100 + 20 + 30 + 10 + 10 + 10

    def test_crit_chance_is_capped(self):
        assert crit_chance(20) == pytest.approx(0.2)
        assert crit_chance(90) == pytest.approx(0.5)

    def test_round_half_up(self):
        assert round_half_up(7.5) == 8
        assert round_half_up(7.49) == 7
        assert round_half_up(0.5) == 1


# ============================================================================
# DAMAGE MATRIX
# ============================================================================


@pytest.mark.unit
class TestDamageMatrix:
    @pytest.mark.parametrize(
        "attack, defend, expected",
        [
            ("attack", "defend", 18),
            ("attack", "trick", 36),
            ("attack", "attack", 30),
            ("trick", "defend", 48),
            ("trick", "dodge", 32),
            ("trick", "attack", 0),
            ("trick", "trick", 20),
            ("dodge", "trick", 10),
            ("dodge", "attack", 0),
            ("dodge", "defend", 0),
            ("defend", "attack", 0),
            ("defend", "defend", 0),
        ],
    )
    def test_damage(self, attack, defend, expected):
        strike = compute_damage(attack, defend, ATTACKER, DEFENDER, NO_CRIT)
        assert strike.damage == expected
        assert not strike.crit

    def test_attack_into_heavy_defense_still_deals_one(self):
        tank = StatBlock(defense=500)
        assert compute_damage("attack", "defend", ATTACKER, tank, NO_CRIT).damage == 1

    def test_dodge_roll_can_miss(self):
        # Dodge chance is 10 / (30 + 10) = 0.25
        missed = compute_damage("attack", "dodge", ATTACKER, DEFENDER, SequenceRandom([0.99, 0.1]))
        hit = compute_damage("attack", "dodge", ATTACKER, DEFENDER, SequenceRandom([0.99, 0.5]))

        assert missed.dodged and missed.damage == 0
        assert not hit.dodged and hit.damage == 30

    @pytest.mark.parametrize("roll", [0.1, 0.3, 0.6, 0.9])
    def test_attack_into_dodge_mirrors_when_roles_swap(self, roll):
        forward = compute_damage("attack", "dodge", ATTACKER, DEFENDER, SequenceRandom([0.99, roll]))
        mirrored = compute_damage("attack", "dodge", DEFENDER, ATTACKER, SequenceRandom([0.99, roll]))

        assert forward.dodged == (roll < dodge_chance(ATTACKER.strength, DEFENDER.speed))
        assert mirrored.dodged == (roll < dodge_chance(DEFENDER.strength, ATTACKER.speed))
        assert forward.damage == (0 if forward.dodged else ATTACKER.strength)
        assert mirrored.damage == (0 if mirrored.dodged else DEFENDER.strength)

    def test_crit_multiplies_and_rounds_half_up(self):
        lucky = StatBlock(strength=5, luck=50)

        strike = compute_damage("attack", "attack", lucky, DEFENDER, FixedRandom(0.0))

        assert strike.crit
        assert strike.damage == 8  # 5 * 1.5 = 7.5
        assert "CRIT" in strike.message

    def test_crit_chance_never_exceeds_cap(self):
        lucky = StatBlock(strength=30, luck=90)
        strike = compute_damage("attack", "attack", lucky, DEFENDER, FixedRandom(0.6))
        assert not strike.crit


# ============================================================================
# ROUND RESOLUTION
# ============================================================================


@pytest.mark.unit
class TestResolveRound:
    def test_round_advances_and_clears_actions(self):
        state = duel().with_action("a", "attack").with_action("b", "defend")

        result = resolve_round(state, ATTACKER, DEFENDER, NO_CRIT)

        assert result.state.round == 2
        assert result.state.challenger.action is None
        assert result.state.challenged.action is None
        assert result.state.challenged.hp == 100 - 18
        assert result.state.challenger.hp == 100
        assert len(result.state.log) == 2

    def test_mirror_match_ends_in_a_draw_on_round_four(self):
        # Arrange: 30 damage a round, no crits, both start at 100
        stats = StatBlock(strength=30, luck=0)
        state = duel()
        rng = random.Random(1)

        # Act
        for _ in range(4):
            state = state.with_action("a", "attack").with_action("b", "attack")
            state = resolve_round(state, stats, stats, rng).state

        # Assert
        assert state.finished
        assert state.is_draw
        assert state.winner_id is None
        assert state.round == 4
        assert state.challenger.hp == -20
        assert state.challenged.hp == -20

    def test_double_knockout_goes_to_the_healthier_side(self):
        stats = StatBlock(strength=30, luck=0)
        state = duel(20, 10).with_action("a", "attack").with_action("b", "attack")

        final = resolve_round(state, stats, stats, NO_CRIT).state

        assert final.finished
        assert final.winner_id == "a"
        assert not final.is_draw

    def test_single_knockout(self):
        state = duel(100, 10).with_action("a", "attack").with_action("b", "defend")

        final = resolve_round(state, ATTACKER, DEFENDER, NO_CRIT).state

        assert final.finished
        assert final.winner_id == "a"
        assert final.round == 1
        assert final.challenger.action == "attack"

    def test_requires_both_actions(self):
        with pytest.raises(ValueError):
            resolve_round(duel().with_action("a", "attack"), ATTACKER, DEFENDER, NO_CRIT)

    def test_finished_state_cannot_resolve_again(self):
        state = duel(100, 10).with_action("a", "attack").with_action("b", "defend")
        final = resolve_round(state, ATTACKER, DEFENDER, NO_CRIT).state

        with pytest.raises(ValueError):
            resolve_round(final, ATTACKER, DEFENDER, NO_CRIT)


# ============================================================================
# AUTOMATED OPPONENT
# ============================================================================


@pytest.mark.unit
class TestNpcAction:
    def test_weights_are_never_zero(self):
        weights = action_weights(StatBlock())
        assert weights == {"attack": 1.0, "defend": 1.0, "dodge": 1.0, "trick": 1.0}

    def test_weights_follow_stats(self):
        weights = action_weights(StatBlock(strength=90, intellect=10))
        assert weights["attack"] == pytest.approx(10.0)
        assert weights["trick"] == pytest.approx(2.0)

    def test_draw_walks_the_action_order(self):
        even = StatBlock(strength=10, defense=10, speed=10, intellect=10)

        assert choose_npc_action(even, FixedRandom(0.0)) == "attack"
        assert choose_npc_action(even, FixedRandom(0.3)) == "defend"
        assert choose_npc_action(even, FixedRandom(0.99)) == "trick"
