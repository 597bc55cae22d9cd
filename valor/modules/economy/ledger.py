"""
Reward ledger primitives.

Every currency write in the engine goes through these helpers, so every
balance stays inside ``[0, MAX_SAFE]``:

- ``cap``: clamp any value into range
- ``credit`` / ``debit``: adjust an Account currency attribute
- ``credit_bank`` / ``debit_bank``: return a new guild bank document

Debits check the balance first and raise ``InsufficientResourcesError``
without touching the holder, so a failed operation never half-applies.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping

from valor.modules.power.engine import coerce_int
from valor.modules.shared.constants import (
    CURRENCY_COLUMNS,
    GUILD_BANK_CURRENCIES,
    MAX_SAFE,
)
from valor.modules.shared.exceptions import InsufficientResourcesError, ValidationError


def cap(value: Any) -> int:
    """Clamp to ``[0, MAX_SAFE]``."""
    return min(coerce_int(value), MAX_SAFE)


def _column(currency: str) -> str:
    try:
        return CURRENCY_COLUMNS[currency]
    except KeyError:
        raise ValidationError("currency", f"unknown currency {currency!r}") from None


def balance(holder: Any, currency: str) -> int:
    return coerce_int(getattr(holder, _column(currency)))


def credit(holder: Any, currency: str, amount: int) -> int:
    """Add ``amount`` (capped) to the holder's currency. Returns the new balance."""
    column = _column(currency)
    new_value = cap(coerce_int(getattr(holder, column)) + coerce_int(amount))
    setattr(holder, column, new_value)
    return new_value


def debit(holder: Any, currency: str, amount: int) -> int:
    """
    Subtract ``amount`` from the holder's currency.

    Raises
    ------
    InsufficientResourcesError
        If the balance is lower than ``amount``; the holder is unchanged.
    """
    column = _column(currency)
    current = coerce_int(getattr(holder, column))
    amount = coerce_int(amount)
    if current < amount:
        raise InsufficientResourcesError(currency, amount, current)
    new_value = cap(current - amount)
    setattr(holder, column, new_value)
    return new_value


def normalize_bank(bank: Mapping[str, Any] | None) -> Dict[str, int]:
    data = bank or {}
    return {currency: cap(data.get(currency)) for currency in GUILD_BANK_CURRENCIES}


def credit_bank(bank: Mapping[str, Any] | None, currency: str, amount: int) -> Dict[str, int]:
    if currency not in GUILD_BANK_CURRENCIES:
        raise ValidationError("currency", f"guild bank does not hold {currency!r}")
    updated = normalize_bank(bank)
    updated[currency] = cap(updated[currency] + coerce_int(amount))
    return updated


def debit_bank(bank: Mapping[str, Any] | None, currency: str, amount: int) -> Dict[str, int]:
    if currency not in GUILD_BANK_CURRENCIES:
        raise ValidationError("currency", f"guild bank does not hold {currency!r}")
    updated = normalize_bank(bank)
    amount = coerce_int(amount)
    if updated[currency] < amount:
        raise InsufficientResourcesError(f"guild_{currency}", amount, updated[currency])
    updated[currency] -= amount
    return updated
