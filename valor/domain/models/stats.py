"""
Stat value objects shared by the power aggregator and every resolver.

- ``StatBlock``: an actor's six-stat vector (Str, Def, Spd, Int, Luck, Pot)
- ``PetStats``: a companion's four-stat vector (Str, Spd, Luck, ElementalPower)

Persisted documents use the short stat keys ("Str", "ElementalPower", ...);
``from_mapping`` / ``to_dict`` translate between the two shapes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from valor.domain.models.base import validate_non_negative

_STAT_FIELDS = {
    "Str": "strength",
    "Def": "defense",
    "Spd": "speed",
    "Int": "intellect",
    "Luck": "luck",
    "Pot": "potential",
}

_PET_FIELDS = {
    "Str": "strength",
    "Spd": "speed",
    "Luck": "luck",
    "ElementalPower": "elemental_power",
}


@dataclass(frozen=True)
class StatBlock:
    """
    Immutable six-stat vector.

    Attributes
    ----------
    strength, defense, speed, intellect, luck, potential : int
        Non-negative stat values.
    """

    strength: int = 0
    defense: int = 0
    speed: int = 0
    intellect: int = 0
    luck: int = 0
    potential: int = 0

    def __post_init__(self) -> None:
        for key, attr in _STAT_FIELDS.items():
            validate_non_negative(getattr(self, attr), key)

    @classmethod
    def from_mapping(
        cls,
        data: Optional[Mapping[str, Any]],
        coerce: Optional[Callable[[Any], int]] = None,
    ) -> StatBlock:
        """Build from a ``{"Str": .., "Def": ..}`` document, coercing each value."""
        data = data or {}
        convert = coerce or int
        return cls(**{attr: convert(data.get(key, 0)) for key, attr in _STAT_FIELDS.items()})

    def to_dict(self) -> Dict[str, int]:
        return {key: getattr(self, attr) for key, attr in _STAT_FIELDS.items()}

    def get(self, key: str) -> int:
        return getattr(self, _STAT_FIELDS[key])


@dataclass(frozen=True)
class PetStats:
    """Immutable companion stat vector."""

    strength: int = 0
    speed: int = 0
    luck: int = 0
    elemental_power: int = 0

    def __post_init__(self) -> None:
        for key, attr in _PET_FIELDS.items():
            validate_non_negative(getattr(self, attr), key)

    @classmethod
    def from_mapping(
        cls,
        data: Optional[Mapping[str, Any]],
        coerce: Optional[Callable[[Any], int]] = None,
    ) -> PetStats:
        data = data or {}
        convert = coerce or int
        return cls(**{attr: convert(data.get(key, 0)) for key, attr in _PET_FIELDS.items()})

    def to_dict(self) -> Dict[str, int]:
        return {key: getattr(self, attr) for key, attr in _PET_FIELDS.items()}

    @property
    def total(self) -> int:
        return self.strength + self.speed + self.luck + self.elemental_power
