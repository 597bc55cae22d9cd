"""
Guild Dungeon Engine
====================

Purpose
-------
Pure rules for the cooperative guild dungeon: one hundred floors of fifty
levels. Floors 1-50 are the Great Dungeon; floors 51-100 are the Demon
Lord's Dungeon, where NPCs hit harder, pets join the fight and rewards are
tripled. ``GuildDungeonService`` decides who is fighting and persists the
result.

Domain
------
- NPC stats grow with the global level ``(floor - 1) * 100 + level``, x10
  in the Great Dungeon and x15 in the Demon Lord's Dungeon
- Every 10th level is a boss: Str x2, Spd and Int x1.5, all further scaled
  by ``1 + (floor - 1) * 0.5``
- From floor 5 the NPC is immune to ``min((floor - 4) // 3 + 1, 6)``
  elements, drawn with a PRNG seeded from ``(floor, level)``
- Party power is ``Str*2 + Spd + Int`` over the online members' base stats,
  plus equipped pet power in the Demon Lord's Dungeon, x1.25 when any pet
  element gets past the immunities
- Below 40% of the NPC's power the attempt fails outright with no roll

Design Decisions
----------------
- Pets contribute their full power whatever the immunities are; immunities
  only decide the x1.25 element bonus. The tower behaves differently and
  that difference is kept on purpose
- Reward multipliers use integer arithmetic (``guild level`` tenths) so
  large floors never lose a unit to float rounding
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from valor.modules.power.engine import coerce_int
from valor.modules.shared.constants import (
    DEMON_LORD_FLOOR_THRESHOLD,
    DEMON_LORD_REWARD_MULTIPLIER,
    DEMON_LORD_STRENGTH_MULTIPLIER,
    DUNGEON_BOSS_INTERVAL,
    DUNGEON_ELEMENT_BONUS,
    DUNGEON_IMMUNITY_START_FLOOR,
    DUNGEON_LEVELS_PER_FLOOR,
    DUNGEON_MAX_FLOOR,
    DUNGEON_MAX_IMMUNITIES,
    DUNGEON_NPC_ROLL_FACTOR,
    DUNGEON_POWER_GATE,
    DUNGEON_REWARD_MULTIPLIER,
    DUNGEON_STRENGTH_MULTIPLIER,
    ELEMENTS,
    PET_STATS,
)

GREAT_DUNGEON_NAME = "The Great Dungeon"
DEMON_LORD_DUNGEON_NAME = "The Demon Lord's Dungeon"

TOO_WEAK_MESSAGE = (
    "Your combined power is too weak! You need more guild members online or stronger stats."
)
TOO_WEAK_DEMON_LORD_MESSAGE = (
    "Your combined power is too weak! Equip pets and get more guild members online."
)


# ============================================================================
# DUNGEON LAYOUT
# ============================================================================


def is_demon_lord(floor: int) -> bool:
    return floor > DEMON_LORD_FLOOR_THRESHOLD


def dungeon_name(floor: int) -> str:
    return DEMON_LORD_DUNGEON_NAME if is_demon_lord(floor) else GREAT_DUNGEON_NAME


def display_floor(floor: int) -> int:
    """Floor number within its own dungeon (Demon Lord floors restart at 1)."""
    return floor - DEMON_LORD_FLOOR_THRESHOLD if is_demon_lord(floor) else floor


def dungeon_global_level(floor: int, level: int) -> int:
    # Same index as the tower so both curves line up floor for floor.
    return (floor - 1) * 100 + level


def is_dungeon_boss(level: int) -> bool:
    return level % DUNGEON_BOSS_INTERVAL == 0


def advance_dungeon(floor: int, level: int) -> Tuple[int, int]:
    """
    One step forward. Level 50 wraps to level 1 of the next floor; the top
    of floor 100 is the end of the dungeon and the pointer stays there.
    """
    if level < DUNGEON_LEVELS_PER_FLOOR:
        return floor, level + 1
    if floor < DUNGEON_MAX_FLOOR:
        return floor + 1, 1
    return floor, level


# ============================================================================
# NPC
# ============================================================================


def dungeon_npc_stats(floor: int, level: int) -> Dict[str, int]:
    gl = dungeon_global_level(floor, level)
    mult = DEMON_LORD_STRENGTH_MULTIPLIER if is_demon_lord(floor) else DUNGEON_STRENGTH_MULTIPLIER
    stats = {
        "Str": (10 + gl * 5) * mult,
        "Spd": (10 + gl * 4) * mult,
        "Int": (10 + gl * 3) * mult,
        "Luck": (5 + gl * 2) * mult,
    }
    if is_dungeon_boss(level):
        floor_mult = 1 + (floor - 1) * 0.5
        stats["Str"] = math.floor(stats["Str"] * 2 * floor_mult)
        stats["Spd"] = math.floor(stats["Spd"] * 1.5 * floor_mult)
        stats["Int"] = math.floor(stats["Int"] * 1.5 * floor_mult)
    return stats


def npc_power_of(stats: Mapping[str, Any]) -> int:
    return (
        coerce_int(stats.get("Str")) * 2
        + coerce_int(stats.get("Spd"))
        + coerce_int(stats.get("Int"))
    )


def dungeon_immunity_count(floor: int) -> int:
    if floor < DUNGEON_IMMUNITY_START_FLOOR:
        return 0
    return min((floor - 4) // 3 + 1, DUNGEON_MAX_IMMUNITIES)


def dungeon_immunities(floor: int, level: int) -> List[str]:
    """Stable per ``(floor, level)``; seeded apart from the tower's draw."""
    count = dungeon_immunity_count(floor)
    if count == 0:
        return []
    rng = random.Random(f"dungeon:{floor}:{level}")
    return rng.sample(list(ELEMENTS), count)


# ============================================================================
# REWARDS
# ============================================================================


def dungeon_rewards(floor: int, level: int, guild_level: int) -> Dict[str, int]:
    """
    Bank rewards for clearing ``(floor, level)``.

    ``guild_level`` adds 10% per level on top of the Demon Lord x3.
    """
    gl = dungeon_global_level(floor, level)
    reward_mult = DEMON_LORD_REWARD_MULTIPLIER if is_demon_lord(floor) else DUNGEON_REWARD_MULTIPLIER
    tenths = 10 + max(0, guild_level)

    def scaled(base: int) -> int:
        return base * reward_mult * tenths // 10

    gold = scaled((100 + gl * 50) * 10)
    boss = is_dungeon_boss(level)
    return {
        "gold": gold * 5 if boss else gold,
        "rubies": scaled((level // 2) * 10) if boss else 0,
        "soulShards": scaled((floor // 5) * 10) if floor >= 10 else 0,
        "focusedShards": scaled(((floor - 20) // 5) * 10) if floor >= 25 else 0,
        "runes": scaled((floor // 10) * 10) if floor >= 15 else 0,
        "trainingPoints": scaled((floor // 3) * 5) if floor >= 5 else 0,
    }


# ============================================================================
# FIGHT
# ============================================================================


@dataclass(frozen=True)
class DungeonFighter:
    """An online member as the dungeon sees them."""

    actor_id: str
    stats: Mapping[str, Any]
    pet_stats: Optional[Mapping[str, Any]] = None
    pet_elements: Sequence[str] = ()


@dataclass(frozen=True)
class DungeonOutcome:
    victory: bool
    attempted: bool
    floor: int
    level: int
    is_boss: bool
    pets_allowed: bool
    participants: int
    combined_stats: Dict[str, int]
    npc_stats: Dict[str, int]
    immunities: List[str]
    element_bonus: float
    player_power: float
    npc_power: int
    power_ratio: float
    message: Optional[str] = None
    rewards: Dict[str, int] = field(default_factory=dict)
    next_floor: int = 1
    next_level: int = 1


def party_stats(fighters: Sequence[DungeonFighter]) -> Dict[str, int]:
    combined = {"Str": 0, "Spd": 0, "Int": 0, "Luck": 0}
    for fighter in fighters:
        for key in combined:
            combined[key] += coerce_int((fighter.stats or {}).get(key))
    return combined


def resolve_dungeon_fight(
    floor: int,
    level: int,
    fighters: Sequence[DungeonFighter],
    guild_level: int = 1,
    rng: Optional[random.Random] = None,
    power_gate: float = DUNGEON_POWER_GATE,
) -> DungeonOutcome:
    """
    Fight the NPC at ``(floor, level)`` with the given online members.

    Parameters
    ----------
    fighters:
        Online members; an empty party is the caller's problem to reject.
    guild_level:
        Scales rewards only.
    rng:
        Source of the victory roll; never consulted when the party is
        below the power gate.
    """
    rng = rng or random.Random()
    demon_lord = is_demon_lord(floor)

    combined = party_stats(fighters)
    pet_power = 0
    elements: List[str] = []
    if demon_lord:
        for fighter in fighters:
            if fighter.pet_stats is None:
                continue
            pet_power += sum(coerce_int(fighter.pet_stats.get(key)) for key in PET_STATS)
            for element in fighter.pet_elements or ():
                if element not in elements:
                    elements.append(element)

    immunities = dungeon_immunities(floor, level)
    blocked = set(immunities)
    element_bonus = (
        DUNGEON_ELEMENT_BONUS if any(e not in blocked for e in elements) else 1.0
    )

    base_power = combined["Str"] * 2 + combined["Spd"] + combined["Int"]
    player_power = (base_power + pet_power) * element_bonus
    npc_stats = dungeon_npc_stats(floor, level)
    npc_power = npc_power_of(npc_stats)
    ratio = player_power / npc_power if npc_power else 0.0

    common = dict(
        floor=floor,
        level=level,
        is_boss=is_dungeon_boss(level),
        pets_allowed=demon_lord,
        participants=len(fighters),
        combined_stats=combined,
        npc_stats=npc_stats,
        immunities=immunities,
        element_bonus=element_bonus,
        player_power=player_power,
        npc_power=npc_power,
        power_ratio=ratio,
    )

    if ratio < power_gate:
        return DungeonOutcome(
            victory=False,
            attempted=False,
            message=TOO_WEAK_DEMON_LORD_MESSAGE if demon_lord else TOO_WEAK_MESSAGE,
            next_floor=floor,
            next_level=level,
            **common,
        )

    luck_factor = 1 + combined["Luck"] * 0.01
    victory = player_power * rng.random() * luck_factor > npc_power * DUNGEON_NPC_ROLL_FACTOR
    if not victory:
        return DungeonOutcome(
            victory=False, attempted=True, next_floor=floor, next_level=level, **common
        )

    next_floor, next_level = advance_dungeon(floor, level)
    return DungeonOutcome(
        victory=True,
        attempted=True,
        rewards=dungeon_rewards(floor, level, guild_level),
        next_floor=next_floor,
        next_level=next_level,
        **common,
    )


def describe_dungeon_level(floor: int, level: int, guild_level: int) -> Dict[str, Any]:
    """Preview of the NPC at the guild's current dungeon pointer."""
    return {
        "floor": floor,
        "level": level,
        "displayFloor": display_floor(floor),
        "globalLevel": dungeon_global_level(floor, level),
        "dungeonName": dungeon_name(floor),
        "isDemonLordDungeon": is_demon_lord(floor),
        "petsAllowed": is_demon_lord(floor),
        "isBoss": is_dungeon_boss(level),
        "npcStats": dungeon_npc_stats(floor, level),
        "immunities": dungeon_immunities(floor, level),
        "rewards": dungeon_rewards(floor, level, guild_level),
    }
