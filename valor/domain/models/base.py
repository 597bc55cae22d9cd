"""
Validation primitives shared by the domain value objects.

``StatBlock``, ``PetStats`` and ``CombatState`` check themselves in
``__post_init__`` and raise ``DomainValidationError`` naming the offending
field. Services build them from ORM rows and JSON documents, so a corrupt
stored combat state is rejected when it is loaded rather than halfway
through a round.
"""

from __future__ import annotations

from typing import Optional


class DomainValidationError(Exception):
    """A value object was built with data that breaks its invariants."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


def validate_non_negative(value: int, field_name: str) -> None:
    if value < 0:
        raise DomainValidationError(f"{field_name} cannot be negative ({value})", field=field_name)


def validate_positive(value: int, field_name: str) -> None:
    if value < 1:
        raise DomainValidationError(f"{field_name} must be at least 1 ({value})", field=field_name)


def validate_not_empty(value: str, field_name: str) -> None:
    if not str(value or "").strip():
        raise DomainValidationError(f"{field_name} is required", field=field_name)
