"""
PvP Combat Engine
=================

Purpose
-------
Round-by-round resolution of a PvP challenge. Both sides lock in one of
``attack``, ``defend``, ``dodge`` or ``trick``; once both are present the
round resolves simultaneously, each side computing the damage it deals to
the other.

Domain
------
- Combat HP: ``100 + Str*2 + Def*3 + Spd + Int + Luck`` from combat stats
- Action matrix (attacker action vs defender action)::

      attack vs defend   max(1, Str - Def) * crit
      attack vs dodge    miss with chance Spd_d / (Str_a + Spd_d), else Str * crit
      attack vs trick    Str * 1.2 * crit
      attack vs attack   Str * crit
      trick  vs defend   Int * 1.2 * crit
      trick  vs dodge    Int * 0.8 * crit
      trick  vs attack   0
      trick  vs trick    Int * 0.5 * crit
      dodge  vs trick    Spd * 0.5 * crit
      dodge  vs other    0
      defend             0

- Crit: x1.5 with chance ``min(Luck / 100, 0.5)``, rolled per side per round
- Damage is rounded half up to an integer
- Automated opponents draw an action with weight ``stat / 10 + 1``

Design Decisions
----------------
- The crit roll is always drawn first, then the dodge roll when one applies,
  so a seeded ``random.Random`` reproduces a fight exactly
- Stats are used as given; defaulting missing stats to 10 happens when the
  combat stat vector is built
- Rounds are unbounded
- Double knockout: the side with strictly more HP before the final round's
  damage wins; equal HP is a draw
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, replace
from typing import Dict, Optional, Tuple

from valor.domain.models.combat_state import CombatState
from valor.domain.models.stats import StatBlock
from valor.modules.shared.constants import ACTION_WEIGHT_STATS, COMBAT_ACTIONS, COMBAT_BASE_HP

DEFAULT_CRIT_MULTIPLIER = 1.5
DEFAULT_CRIT_CAP = 0.5


@dataclass(frozen=True)
class Strike:
    """Damage one side deals in a round."""

    damage: int
    message: str
    crit: bool = False
    dodged: bool = False


@dataclass(frozen=True)
class RoundResult:
    state: CombatState
    challenger_strike: Strike
    challenged_strike: Strike


# ============================================================================
# HP AND NPC BEHAVIOUR
# ============================================================================


def combat_hp(stats: StatBlock) -> int:
    return (
        COMBAT_BASE_HP
        + stats.strength * 2
        + stats.defense * 3
        + stats.speed
        + stats.intellect
        + stats.luck
    )


def action_weights(stats: StatBlock) -> Dict[str, float]:
    """Draw weight per action; never zero, so every action stays possible."""
    return {
        action: stats.get(stat_key) / 10 + 1
        for action, stat_key in ACTION_WEIGHT_STATS.items()
    }


def choose_npc_action(stats: StatBlock, rng: random.Random) -> str:
    weights = action_weights(stats)
    roll = rng.random() * sum(weights.values())
    for action in COMBAT_ACTIONS:
        roll -= weights[action]
        if roll <= 0:
            return action
    return COMBAT_ACTIONS[0]


# ============================================================================
# DAMAGE
# ============================================================================


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def crit_chance(luck: int, cap: float = DEFAULT_CRIT_CAP) -> float:
    return min(luck / 100, cap)


def dodge_chance(attacker_strength: int, defender_speed: int) -> float:
    total = attacker_strength + defender_speed
    if total <= 0:
        return 0.0
    return defender_speed / total


def compute_damage(
    attacker_action: str,
    defender_action: Optional[str],
    attacker: StatBlock,
    defender: StatBlock,
    rng: random.Random,
    crit_multiplier: float = DEFAULT_CRIT_MULTIPLIER,
    crit_cap: float = DEFAULT_CRIT_CAP,
) -> Strike:
    """
    Damage dealt by the attacker this round.

    Parameters
    ----------
    attacker_action, defender_action:
        Locked-in actions. A missing defender action reads as no action.
    attacker, defender:
        Combat stat vectors.
    rng:
        Consumed in a fixed order: crit roll, then dodge roll.
    """
    is_crit = rng.random() < crit_chance(attacker.luck, crit_cap)
    mult = crit_multiplier if is_crit else 1.0

    def hit(label: str, raw: float) -> Strike:
        damage = round_half_up(raw)
        suffix = " (CRIT!)" if is_crit else ""
        return Strike(damage, f"{label}: {damage} damage{suffix}", crit=is_crit)

    if attacker_action == "attack":
        if defender_action == "defend":
            return hit("Attack vs Defend", max(1, attacker.strength - defender.defense) * mult)
        if defender_action == "dodge":
            if rng.random() < dodge_chance(attacker.strength, defender.speed):
                return Strike(0, "Attack vs Dodge: Missed!", dodged=True)
            return hit("Attack vs Dodge", attacker.strength * mult)
        if defender_action == "trick":
            return hit("Attack beats Trick", attacker.strength * 1.2 * mult)
        return hit("Attack", attacker.strength * mult)

    if attacker_action == "trick":
        if defender_action == "defend":
            return hit("Trick beats Defend", attacker.intellect * 1.2 * mult)
        if defender_action == "dodge":
            return hit("Trick vs Dodge", attacker.intellect * 0.8 * mult)
        if defender_action == "attack":
            return Strike(0, "Trick loses to Attack")
        return hit("Trick vs Trick", attacker.intellect * 0.5 * mult)

    if attacker_action == "dodge":
        if defender_action == "trick":
            return hit("Dodge counters Trick", attacker.speed * 0.5 * mult)
        return Strike(0, "Dodging...")

    return Strike(0, "Defending...")


# ============================================================================
# ROUND RESOLUTION
# ============================================================================


def _decide(
    before: Tuple[int, int], after: Tuple[int, int], ids: Tuple[str, str]
) -> Tuple[bool, Optional[str], bool]:
    """``(finished, winner_id, is_draw)`` after a round."""
    challenger_down = after[0] <= 0
    challenged_down = after[1] <= 0
    if challenger_down and challenged_down:
        if before[0] > before[1]:
            return True, ids[0], False
        if before[1] > before[0]:
            return True, ids[1], False
        return True, None, True
    if challenged_down:
        return True, ids[0], False
    if challenger_down:
        return True, ids[1], False
    return False, None, False


def resolve_round(
    state: CombatState,
    challenger_stats: StatBlock,
    challenged_stats: StatBlock,
    rng: random.Random,
    crit_multiplier: float = DEFAULT_CRIT_MULTIPLIER,
    crit_cap: float = DEFAULT_CRIT_CAP,
) -> RoundResult:
    """
    Resolve a round in which both actions are locked in.

    The challenger's strike is computed first, then the challenged's. A
    finished state keeps its round number and the final actions; otherwise
    the round advances and both actions are cleared.
    """
    if not state.both_locked:
        raise ValueError("both actions must be locked in before a round resolves")
    if state.finished:
        raise ValueError("combat is already finished")

    a, b = state.challenger, state.challenged
    strike_a = compute_damage(
        a.action, b.action, challenger_stats, challenged_stats, rng, crit_multiplier, crit_cap
    )
    strike_b = compute_damage(
        b.action, a.action, challenged_stats, challenger_stats, rng, crit_multiplier, crit_cap
    )

    new_a = replace(a, hp=a.hp - strike_b.damage)
    new_b = replace(b, hp=b.hp - strike_a.damage)
    entry = (
        f"Round {state.round}: {a.name} used {a.action} ({strike_a.message}), "
        f"{b.name} used {b.action} ({strike_b.message})"
    )

    finished, winner_id, is_draw = _decide(
        (a.hp, b.hp), (new_a.hp, new_b.hp), state.participant_ids
    )
    if finished:
        next_state = replace(
            state,
            challenger=new_a,
            challenged=new_b,
            log=state.log + (entry,),
            finished=True,
            winner_id=winner_id,
            is_draw=is_draw,
        )
    else:
        next_state = replace(
            state,
            challenger=replace(new_a, action=None),
            challenged=replace(new_b, action=None),
            round=state.round + 1,
            log=state.log + (entry,),
        )
    return RoundResult(next_state, strike_a, strike_b)
