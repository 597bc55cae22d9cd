from valor.modules.power.engine import (
    coerce_int,
    compute_combat_stats,
    compute_strength,
    compute_tower_power,
)
from valor.modules.power.service import PowerService

__all__ = [
    "PowerService",
    "coerce_int",
    "compute_combat_stats",
    "compute_strength",
    "compute_tower_power",
]
