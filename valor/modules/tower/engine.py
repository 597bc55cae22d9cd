"""
NPC Tower Ladder Engine
=======================

Purpose
-------
Pure rules for the single-player tower: fifty floors of one hundred levels,
each level an NPC whose power follows a fixed curve. No database, no events;
``TowerService`` feeds account data in and persists what comes out.

Domain
------
- Power curve: an explicit table for floors 1-5, then x100 per floor
- Level 100 of every floor is a boss (x1.2 effective power, one of ten
  abilities, rune rewards)
- Global level ``(floor - 1) * 100 + level`` drives rewards, rank gates and
  elemental immunities
- Immunities are drawn from the 18-element catalogue with a PRNG seeded from
  ``(floor, level)``, so the same NPC always has the same immunities

Design Decisions
----------------
- Randomness (the luck roll) comes from an injected ``random.Random`` so
  battles are reproducible in tests
- A loss is an ordinary outcome (``won=False``), never an exception
- The pet's ElementalPower is dropped only when every one of its elements
  is immune; Str/Spd/Luck always count
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from valor.modules.power.engine import coerce_int, compute_tower_power
from valor.modules.shared.constants import (
    BOSS_ABILITIES,
    DEFAULT_COMBAT_STAT,
    ELEMENTS,
    IMMUNITY_START_GLOBAL_LEVEL,
    NPC_POWER_GROWTH,
    NPC_POWER_TABLE,
    RANK_GATES,
    RANKS,
    TOP_RANK_GATE,
    TOWER_BOSS_MULTIPLIER,
    TOWER_BOSS_RUNES_PER_FLOOR,
    TOWER_LEVELS_PER_FLOOR,
    TOWER_MAX_FLOOR,
    TOWER_MAX_IMMUNITIES,
    TOWER_REWARD_RATES,
)

# ============================================================================
# POWER CURVE
# ============================================================================


def npc_power_range(floor: int) -> Tuple[int, int]:
    """
    ``(min, max)`` NPC power on a floor.

    Floors 1-5 come from the table; every floor after that multiplies both
    ends of the floor-5 range by 100 per floor.
    """
    if floor < 1:
        raise ValueError(f"floor must be >= 1, got {floor}")
    if floor <= len(NPC_POWER_TABLE):
        return NPC_POWER_TABLE[floor - 1]
    _, top = NPC_POWER_TABLE[-1]
    steps = floor - len(NPC_POWER_TABLE)
    return (
        top * NPC_POWER_GROWTH ** (steps - 1),
        top * NPC_POWER_GROWTH**steps,
    )


def npc_power(floor: int, level: int) -> int:
    """Linear interpolation across the floor's 100 levels, floored."""
    low, high = npc_power_range(floor)
    # Integer arithmetic keeps large floors exact.
    return low + (high - low) * (level - 1) // (TOWER_LEVELS_PER_FLOOR - 1)


def global_level(floor: int, level: int) -> int:
    return (floor - 1) * TOWER_LEVELS_PER_FLOOR + level


def is_boss(level: int) -> bool:
    return level == TOWER_LEVELS_PER_FLOOR


def boss_ability(floor: int) -> Dict[str, str]:
    name, description = BOSS_ABILITIES[(floor - 1) % len(BOSS_ABILITIES)]
    return {"name": name, "description": description}


def npc_name(floor: int, level: int) -> str:
    if is_boss(level):
        return f"Floor {floor} Guardian"
    return f"NPC {global_level(floor, level)}"


# ============================================================================
# IMMUNITIES
# ============================================================================


def immunity_count(floor: int, level: int) -> int:
    if global_level(floor, level) < IMMUNITY_START_GLOBAL_LEVEL:
        return 0
    return min(floor // 5 + 1, TOWER_MAX_IMMUNITIES)


def npc_immunities(floor: int, level: int) -> List[str]:
    """
    Elemental immunities of the NPC at ``(floor, level)``.

    String seeds are hashed with SHA-512 by ``random.Random``, so the draw
    is stable across processes regardless of ``PYTHONHASHSEED``.
    """
    count = immunity_count(floor, level)
    if count == 0:
        return []
    rng = random.Random(f"tower:{floor}:{level}")
    return rng.sample(list(ELEMENTS), count)


def pet_fully_immune(pet_elements: Optional[Sequence[str]], immunities: Sequence[str]) -> bool:
    """True when the pet has elements and the NPC is immune to all of them."""
    if not pet_elements or not immunities:
        return False
    blocked = set(immunities)
    return all(element in blocked for element in pet_elements)


# ============================================================================
# RANK GATE
# ============================================================================


def required_rank(level_index: int) -> Optional[str]:
    """Rank needed to fight at a global level; ``None`` means no gate."""
    for upper, rank in RANK_GATES:
        if level_index <= upper:
            return rank
    return TOP_RANK_GATE


def rank_index(rank: Optional[str]) -> int:
    """Position on the rank ladder; unknown ranks count as the lowest."""
    try:
        return RANKS.index(rank or "")
    except ValueError:
        return 0


def rank_allows(actor_rank: Optional[str], required: Optional[str]) -> bool:
    if required is None:
        return True
    return rank_index(actor_rank) >= rank_index(required)


# ============================================================================
# LADDER
# ============================================================================


def advance_ladder(floor: int, level: int) -> Tuple[int, int]:
    """
    One step up the ladder.

    Level 100 wraps to level 1 of the next floor. At the top of the last
    floor the pointer stays where it is.
    """
    if level < TOWER_LEVELS_PER_FLOOR:
        return floor, level + 1
    if floor < TOWER_MAX_FLOOR:
        return floor + 1, 1
    return floor, level


def tower_rewards(floor: int, level: int) -> Dict[str, int]:
    gl = global_level(floor, level)
    rewards = {currency: gl * rate for currency, rate in TOWER_REWARD_RATES.items()}
    rewards["runes"] = floor * TOWER_BOSS_RUNES_PER_FLOOR if is_boss(level) else 0
    return rewards


# ============================================================================
# BATTLE
# ============================================================================


@dataclass(frozen=True)
class NpcBattleOutcome:
    """Result of one tower battle; rewards are empty on a loss."""

    won: bool
    floor: int
    level: int
    global_level: int
    npc_name: str
    is_boss: bool
    boss_ability: Optional[Dict[str, str]]
    npc_power: int
    effective_npc_power: float
    player_power: int
    effective_player_power: float
    luck_bonus: float
    npc_immunities: List[str]
    pet_element_immune: bool
    rewards: Dict[str, int] = field(default_factory=dict)
    next_floor: int = 1
    next_level: int = 1


def resolve_npc_battle(
    floor: int,
    level: int,
    base_stats: Optional[Mapping[str, Any]],
    equipped_items: Sequence[Optional[Mapping[str, Any]]] = (),
    pet_stats: Optional[Mapping[str, Any]] = None,
    pet_elements: Optional[Sequence[str]] = None,
    rng: Optional[random.Random] = None,
    boss_multiplier: float = TOWER_BOSS_MULTIPLIER,
) -> NpcBattleOutcome:
    """
    Fight the NPC at ``(floor, level)``.

    Parameters
    ----------
    floor, level:
        The actor's current ladder pointer.
    base_stats, equipped_items, pet_stats:
        Stat documents, as persisted.
    pet_elements:
        Elements of the equipped pet, if any.
    rng:
        Source of the luck roll. Defaults to a fresh ``random.Random()``.
    """
    rng = rng or random.Random()

    immunities = npc_immunities(floor, level)
    pet_immune = pet_stats is not None and pet_fully_immune(pet_elements, immunities)
    player_power = compute_tower_power(base_stats, equipped_items, pet_stats, pet_immune)

    luck = coerce_int((base_stats or {}).get("Luck")) or DEFAULT_COMBAT_STAT
    luck_bonus = rng.random() * (luck / 100)
    effective_player = player_power * (1 + luck_bonus)

    power = npc_power(floor, level)
    boss = is_boss(level)
    effective_npc = power * boss_multiplier if boss else float(power)

    won = effective_player >= effective_npc
    next_floor, next_level = advance_ladder(floor, level) if won else (floor, level)

    return NpcBattleOutcome(
        won=won,
        floor=floor,
        level=level,
        global_level=global_level(floor, level),
        npc_name=npc_name(floor, level),
        is_boss=boss,
        boss_ability=boss_ability(floor) if boss else None,
        npc_power=power,
        effective_npc_power=effective_npc,
        player_power=player_power,
        effective_player_power=effective_player,
        luck_bonus=luck_bonus,
        npc_immunities=immunities,
        pet_element_immune=pet_immune,
        rewards=tower_rewards(floor, level) if won else {},
        next_floor=next_floor,
        next_level=next_level,
    )


def describe_npc(floor: int, level: int) -> Dict[str, Any]:
    """Preview of an NPC without fighting it."""
    boss = is_boss(level)
    low, high = npc_power_range(floor)
    gl = global_level(floor, level)
    return {
        "floor": floor,
        "level": level,
        "globalLevel": gl,
        "name": npc_name(floor, level),
        "power": npc_power(floor, level),
        "powerRange": {"min": low, "max": high},
        "isBoss": boss,
        "bossAbility": boss_ability(floor) if boss else None,
        "immunities": npc_immunities(floor, level),
        "requiredRank": required_rank(gl),
        "rewards": tower_rewards(floor, level),
    }
