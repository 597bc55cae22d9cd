"""
Public account snapshots carried by ``playerUpdate`` events and operation
results.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict

from valor.modules.shared.constants import ACCOUNT_CURRENCIES, CURRENCY_COLUMNS

if TYPE_CHECKING:
    from valor.database.models import Account, Pet


def account_snapshot(account: Account) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": account.id,
        "username": account.username,
        "role": account.role,
        "rank": account.rank,
        "stats": dict(account.stats or {}),
        "equipment": dict(account.equipment or {}),
        "wins": account.wins,
        "losses": account.losses,
        "npcFloor": account.npc_floor,
        "npcLevel": account.npc_level,
        "equippedPetId": account.equipped_pet_id,
    }
    for currency in ACCOUNT_CURRENCIES:
        data[currency] = getattr(account, CURRENCY_COLUMNS[currency])
    return data


def pet_snapshot(pet: Pet) -> Dict[str, Any]:
    return {
        "id": pet.id,
        "accountId": pet.account_id,
        "name": pet.name,
        "tier": pet.tier,
        "exp": pet.exp,
        "stats": dict(pet.stats or {}),
        "elements": list(pet.elements or []),
    }
