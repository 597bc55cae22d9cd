"""
Domain value objects for the Valor engine.

Database models (``valor.database.models``) are schema-only; these frozen
dataclasses carry the validated shapes the resolvers compute with.
"""

from .base import (
    DomainValidationError,
    validate_non_negative,
    validate_not_empty,
    validate_positive,
)
from .combat_state import Combatant, CombatState
from .stats import PetStats, StatBlock

__all__ = [
    "DomainValidationError",
    "validate_non_negative",
    "validate_not_empty",
    "validate_positive",
    "Combatant",
    "CombatState",
    "PetStats",
    "StatBlock",
]
