"""
Power aggregation - pure functions, no I/O.

Two deliberately different formulas live here:

- ``compute_strength``: the scalar shown on dashboards and used for NPC
  tower gating and guild battle fighter strength. Base Str/Spd/Int/Luck/Pot,
  plus every equipped item's Str/Int/Spd/Luck/Pot, plus the equipped pet's
  Str/Spd/Luck/ElementalPower.
- ``compute_combat_stats``: the per-stat vector used by PvP. Base stats
  (missing or zero read as 10), plus the equipped pet split per stat with
  ElementalPower folded into Int, plus Def/Spd of *every* owned bird.
  Equipment does not contribute.

Persisted values may be strings, floats or garbage; everything goes through
``coerce_int`` first.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Mapping, Optional

from valor.domain.models.stats import PetStats, StatBlock
from valor.modules.shared.constants import (
    DEFAULT_COMBAT_STAT,
    ITEM_STATS,
    STRENGTH_BASE_STATS,
)


def coerce_int(value: Any) -> int:
    """
    Convert a persisted value to a non-negative int.

    ``None``, unparsable strings, NaN and infinities read as 0; floats are
    floored; negatives clamp to 0.
    """
    if value is None or isinstance(value, bool):
        return int(bool(value))
    if isinstance(value, int):
        return max(0, value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return max(0, int(text))
        except ValueError:
            try:
                value = float(text)
            except ValueError:
                return 0
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return 0
        return max(0, math.floor(value))
    return 0


def _stat(data: Optional[Mapping[str, Any]], key: str) -> int:
    return coerce_int((data or {}).get(key))


def compute_strength(
    base_stats: Optional[Mapping[str, Any]],
    equipped_items: Iterable[Optional[Mapping[str, Any]]] = (),
    pet_stats: Optional[Mapping[str, Any]] = None,
) -> int:
    """
    Aggregate strength scalar.

    Parameters
    ----------
    base_stats:
        Account stat document (``{"Str": .., "Pot": ..}``).
    equipped_items:
        Stat documents of the items in the equipment slots.
    pet_stats:
        Stat document of the equipped pet, or ``None``.
    """
    total = sum(_stat(base_stats, key) for key in STRENGTH_BASE_STATS)
    for item_stats in equipped_items:
        total += sum(_stat(item_stats, key) for key in ITEM_STATS)
    if pet_stats is not None:
        total += PetStats.from_mapping(pet_stats, coerce_int).total
    return total


def compute_tower_power(
    base_stats: Optional[Mapping[str, Any]],
    equipped_items: Iterable[Optional[Mapping[str, Any]]] = (),
    pet_stats: Optional[Mapping[str, Any]] = None,
    pet_immune: bool = False,
) -> int:
    """
    Strength for an NPC tower battle. When the NPC is immune to the pet's
    elements, the pet's ElementalPower is left out; its Str/Spd/Luck still
    count.
    """
    strength = compute_strength(base_stats, equipped_items, pet_stats)
    if pet_stats is not None and pet_immune:
        strength -= _stat(pet_stats, "ElementalPower")
    return strength


def compute_combat_stats(
    base_stats: Optional[Mapping[str, Any]],
    pet_stats: Optional[Mapping[str, Any]] = None,
    birds: Iterable[Optional[Mapping[str, Any]]] = (),
) -> StatBlock:
    """
    PvP combat stat vector.

    Pot does not take part in combat and is reported as 0.
    """

    def base(key: str) -> int:
        return _stat(base_stats, key) or DEFAULT_COMBAT_STAT

    strength, defense, speed = base("Str"), base("Def"), base("Spd")
    intellect, luck = base("Int"), base("Luck")

    if pet_stats is not None:
        pet = PetStats.from_mapping(pet_stats, coerce_int)
        strength += pet.strength
        speed += pet.speed
        luck += pet.luck
        intellect += pet.elemental_power

    for bird_stats in birds:
        defense += _stat(bird_stats, "Def")
        speed += _stat(bird_stats, "Spd")

    return StatBlock(
        strength=strength,
        defense=defense,
        speed=speed,
        intellect=intellect,
        luck=luck,
        potential=0,
    )
