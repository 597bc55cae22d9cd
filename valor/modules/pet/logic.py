"""
Pet tier math - pure functions used by PetService.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from valor.modules.power.engine import coerce_int
from valor.modules.shared.constants import PET_STATS, PET_TIER_TABLE, PET_TIERS


def tier_config(tier: str) -> Tuple[Optional[int], Optional[int], int]:
    """``(max_exp, evolution_cost, stat_multiplier)`` for a tier."""
    return PET_TIER_TABLE[tier]


def next_tier(tier: str) -> Optional[str]:
    index = PET_TIERS.index(tier)
    if index >= len(PET_TIERS) - 1:
        return None
    return PET_TIERS[index + 1]


def evolved_stats(stats: Mapping[str, Any], current: str, target: str) -> Dict[str, int]:
    """Scale every stat by ``target_mult / current_mult``, floored."""
    current_mult = tier_config(current)[2]
    target_mult = tier_config(target)[2]
    return {key: coerce_int(stats.get(key)) * target_mult // current_mult for key in PET_STATS}


def merged_stats(first: Mapping[str, Any], second: Mapping[str, Any]) -> Dict[str, int]:
    """Floored average of two parents' stats."""
    return {
        key: (coerce_int(first.get(key)) + coerce_int(second.get(key))) // 2 for key in PET_STATS
    }


def merged_elements(first: Sequence[str], second: Sequence[str]) -> List[str]:
    """Union of both parents' elements, first-seen order kept."""
    seen: List[str] = []
    for element in list(first or []) + list(second or []):
        if element not in seen:
            seen.append(element)
    return seen
