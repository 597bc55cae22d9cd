"""
PetService - companion progression.

Purpose
-------
Everything that changes a pet after it exists: EXP from food or from the
owner's pet EXP pool, tier evolution, mythic merges and soul-shard stat
boosts.

Responsibilities
----------------
- ``feed_food``: gold for EXP at the fixed food table rates
- ``feed_exp``: move EXP from the account's ``petExp`` balance to the pet
- ``evolve``: needs EXP at the tier ceiling and the tier's gold cost;
  consumes all EXP, scales stats by the tier multiplier ratio
- ``merge``: two owned mythic pets become one egg with averaged stats and
  the union of their elements, for a fixed gold cost
- ``boost_pet_stat``: 10 soul shards per stat point

Every check runs before the first write, inside one transaction, while the
owner's account lock and the pets' locks are held.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Tuple

from valor.core.concurrency.locks import account_key, pet_key
from valor.core.database.service import DatabaseService
from valor.database.models import Pet
from valor.modules.economy import ledger
from valor.modules.pet import logic
from valor.modules.player.repository import AccountRepository, PetRepository
from valor.modules.player.views import account_snapshot, pet_snapshot
from valor.modules.power.engine import coerce_int
from valor.modules.shared.base_service import BaseService
from valor.modules.shared.constants import (
    BOOST_MAX_AMOUNT,
    PET_BOOST_SHARDS_PER_POINT,
    PET_FEED_EXP_MAX,
    PET_FOODS,
    PET_MERGE_GOLD_COST,
    PET_STATS,
)
from valor.modules.shared.exceptions import (
    ForbiddenError,
    InsufficientResourcesError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from valor.core.concurrency.locks import EntityLockRegistry
    from valor.core.config.manager import ConfigManager
    from valor.core.event.bus import EventBus
    from valor.database.models import Account

FEED_MAX_QUANTITY = 100


class PetService(BaseService):
    def __init__(
        self,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
        locks: EntityLockRegistry,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._locks = locks
        self.accounts = AccountRepository()
        self.pets = PetRepository()

    # ========================================================================
    # EXP
    # ========================================================================

    async def feed_food(
        self, actor_id: str, pet_id: str, food_id: str, quantity: int = 1
    ) -> Dict[str, Any]:
        """
        Buy food with gold and feed it to a pet.

        Raises:
            ValidationError: Unknown food or quantity outside 1..100
            NotFoundError: Unknown account or pet
            ForbiddenError: Pet belongs to someone else
            InsufficientResourcesError: Not enough gold
        """
        if food_id not in PET_FOODS:
            raise ValidationError("food_id", f"unknown food {food_id!r}")
        self.validate_range(quantity, "quantity", 1, FEED_MAX_QUANTITY)
        exp_per, price = PET_FOODS[food_id]
        total_cost = price * quantity
        total_exp = exp_per * quantity

        async with self._locks.hold(account_key(actor_id), pet_key(pet_id)):
            async with DatabaseService.get_transaction() as session:
                account, pet = await self._owned_pet(session, actor_id, pet_id, "feed_pet")
                ledger.debit(account, "gold", total_cost)
                pet.exp = ledger.cap(pet.exp + total_exp)
                result = {
                    "pet": pet_snapshot(pet),
                    "expGained": total_exp,
                    "goldSpent": total_cost,
                }
                snapshot = account_snapshot(account)

        self.log_operation(
            "feed_food", actor_id=actor_id, pet_id=pet_id, food_id=food_id, quantity=quantity
        )
        await self.emit_event("playerUpdate", {"actorId": actor_id, "player": snapshot})
        return result

    async def feed_exp(self, actor_id: str, pet_id: str, amount: int) -> Dict[str, Any]:
        """Transfer ``amount`` from the account's pet EXP pool to the pet."""
        self.validate_range(amount, "amount", 1, PET_FEED_EXP_MAX)

        async with self._locks.hold(account_key(actor_id), pet_key(pet_id)):
            async with DatabaseService.get_transaction() as session:
                account, pet = await self._owned_pet(session, actor_id, pet_id, "feed_pet_exp")
                ledger.debit(account, "petExp", amount)
                pet.exp = ledger.cap(pet.exp + amount)
                result = {"pet": pet_snapshot(pet), "expGained": amount}
                snapshot = account_snapshot(account)

        self.log_operation("feed_exp", actor_id=actor_id, pet_id=pet_id, amount=amount)
        await self.emit_event("playerUpdate", {"actorId": actor_id, "player": snapshot})
        return result

    # ========================================================================
    # EVOLUTION AND MERGE
    # ========================================================================

    async def evolve(self, actor_id: str, pet_id: str) -> Dict[str, Any]:
        """
        Evolve a pet to the next tier.

        Raises:
            InvalidStateError: Pet is already mythic
            InsufficientResourcesError: EXP below the tier ceiling
                (``pet_exp``) or not enough gold
        """
        async with self._locks.hold(account_key(actor_id), pet_key(pet_id)):
            async with DatabaseService.get_transaction() as session:
                account, pet = await self._owned_pet(session, actor_id, pet_id, "evolve_pet")

                target = logic.next_tier(pet.tier)
                max_exp, cost, _ = logic.tier_config(pet.tier)
                if target is None or max_exp is None or cost is None:
                    raise InvalidStateError("evolve_pet", "pet is already at maximum tier")
                if pet.exp < max_exp:
                    raise InsufficientResourcesError("pet_exp", max_exp, pet.exp)
                ledger.debit(account, "gold", cost)

                previous = pet.tier
                pet.stats = logic.evolved_stats(pet.stats or {}, previous, target)
                pet.tier = target
                pet.exp = 0
                result = {"pet": pet_snapshot(pet), "goldSpent": cost, "previousTier": previous}
                snapshot = account_snapshot(account)

        self.log_operation(
            "evolve_pet", actor_id=actor_id, pet_id=pet_id, from_tier=previous, to_tier=target
        )
        await self.emit_event("petEvolved", {"actorId": actor_id, **result})
        await self.emit_event("playerUpdate", {"actorId": actor_id, "player": snapshot})
        return result

    async def merge(self, actor_id: str, first_id: str, second_id: str) -> Dict[str, Any]:
        """
        Merge two mythic pets into a new egg. Both parents are destroyed.

        Raises:
            ValidationError: Same pet given twice
            NotFoundError: Unknown account or pet
            ForbiddenError: Either pet belongs to someone else
            InvalidStateError: Either pet is not mythic
            InsufficientResourcesError: Not enough gold
        """
        if first_id == second_id:
            raise ValidationError("second_id", "cannot merge a pet with itself")
        cost = int(self.get_config("pets.merge_gold_cost", PET_MERGE_GOLD_COST))

        async with self._locks.hold(account_key(actor_id), pet_key(first_id), pet_key(second_id)):
            async with DatabaseService.get_transaction() as session:
                account, first = await self._owned_pet(session, actor_id, first_id, "merge_pets")
                _, second = await self._owned_pet(session, actor_id, second_id, "merge_pets")
                if first.tier != "mythic" or second.tier != "mythic":
                    raise InvalidStateError("merge_pets", "both pets must be mythic tier")
                ledger.debit(account, "gold", cost)

                elements = logic.merged_elements(first.elements, second.elements)
                child = self.pets.add(
                    session,
                    Pet(
                        account_id=actor_id,
                        name=f"Merged {first.name} & {second.name}"[:100],
                        tier="egg",
                        exp=0,
                        stats=logic.merged_stats(first.stats or {}, second.stats or {}),
                        elements=elements,
                    ),
                )
                if account.equipped_pet_id in (first_id, second_id):
                    account.equipped_pet_id = None
                await self.pets.delete(session, first)
                await self.pets.delete(session, second)
                await self.pets.flush(session)

                result = {
                    "pet": pet_snapshot(child),
                    "goldSpent": cost,
                    "combinedElements": elements,
                    "consumed": [first_id, second_id],
                }
                snapshot = account_snapshot(account)

        self.log_operation(
            "merge_pets", actor_id=actor_id, consumed=[first_id, second_id], pet_id=result["pet"]["id"]
        )
        await self.emit_event("petMerged", {"actorId": actor_id, **result})
        await self.emit_event("playerUpdate", {"actorId": actor_id, "player": snapshot})
        return result

    # ========================================================================
    # STAT BOOSTS
    # ========================================================================

    async def boost_pet_stat(
        self, actor_id: str, pet_id: str, stat: str, amount: int
    ) -> Dict[str, Any]:
        """
        Spend soul shards to raise one pet stat.

        Raises:
            ValidationError: Unknown stat or amount outside 1..100
            InsufficientResourcesError: Not enough soul shards
        """
        self.validate_choice(stat, "stat", PET_STATS)
        self.validate_range(amount, "amount", 1, BOOST_MAX_AMOUNT)
        rate = int(self.get_config("economy.pet_boost_shards_per_point", PET_BOOST_SHARDS_PER_POINT))
        cost = amount * rate

        async with self._locks.hold(account_key(actor_id), pet_key(pet_id)):
            async with DatabaseService.get_transaction() as session:
                account, pet = await self._owned_pet(session, actor_id, pet_id, "boost_pet_stat")
                ledger.debit(account, "soulShards", cost)
                stats = dict(pet.stats or {})
                stats[stat] = ledger.cap(coerce_int(stats.get(stat)) + amount)
                pet.stats = stats
                result = {"pet": pet_snapshot(pet), "shardsSpent": cost}
                snapshot = account_snapshot(account)

        self.log_operation(
            "boost_pet_stat", actor_id=actor_id, pet_id=pet_id, stat=stat, amount=amount
        )
        await self.emit_event("playerUpdate", {"actorId": actor_id, "player": snapshot})
        return result

    async def list_pets(self, actor_id: str) -> List[Dict[str, Any]]:
        async with DatabaseService.get_session() as session:
            return [pet_snapshot(pet) for pet in await self.pets.owned_by(session, actor_id)]

    # ========================================================================
    # INTERNALS
    # ========================================================================

    async def _owned_pet(
        self, session: AsyncSession, actor_id: str, pet_id: str, action: str
    ) -> Tuple[Account, Pet]:
        account = await self.accounts.get(session, actor_id, for_update=True)
        if account is None:
            raise NotFoundError("Account", actor_id)
        pet = await self.pets.get(session, pet_id, for_update=True)
        if pet is None:
            raise NotFoundError("Pet", pet_id)
        if pet.account_id != actor_id:
            raise ForbiddenError(action, "you do not own this pet")
        return account, pet
