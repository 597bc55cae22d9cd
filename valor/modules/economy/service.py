"""
EconomyService - training point exchanges.

Purpose
-------
Convert training points into stat points at fixed rates:

- ``boost_base_stat``: 1000 TP per point, 1..100 points, Str/Spd/Int/Luck/Pot,
  requester must own the account
- ``train_stat``: 10 TP per point, 1..10000 points, Str/Def/Spd/Int/Luck
- ``boost_item_stat``: 10 TP per point actually applied, 1..1000 points
  (clamped), capped per stat by the owner's rank ceiling

Balances are checked before anything is written; an operation either
applies completely or not at all.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict

from valor.core.concurrency.locks import account_key
from valor.core.database.service import DatabaseService
from valor.modules.economy import ledger
from valor.modules.player.repository import AccountRepository, ItemRepository
from valor.modules.player.views import account_snapshot
from valor.modules.power.engine import coerce_int
from valor.modules.shared.base_service import BaseService
from valor.modules.shared.constants import (
    BASE_BOOST_STATS,
    BASE_BOOST_TP_PER_POINT,
    BOOST_MAX_AMOUNT,
    DEFAULT_COMBAT_STAT,
    ITEM_BOOST_CEILINGS,
    ITEM_BOOST_MAX_AMOUNT,
    ITEM_BOOST_TP_PER_POINT,
    ITEM_STATS,
    TRAIN_MAX_AMOUNT,
    TRAIN_STATS,
    TRAIN_TP_PER_POINT,
)
from valor.modules.shared.exceptions import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
)

if TYPE_CHECKING:
    from logging import Logger

    from valor.core.concurrency.locks import EntityLockRegistry
    from valor.core.config.manager import ConfigManager
    from valor.core.event.bus import EventBus


def item_ceiling(rank: str) -> int:
    return ITEM_BOOST_CEILINGS.get(rank, ITEM_BOOST_CEILINGS["Novice"])


class EconomyService(BaseService):
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
        self.items = ItemRepository()

    async def boost_base_stat(
        self, actor_id: str, requester_id: str, stat: str, amount: int
    ) -> Dict[str, Any]:
        """
        Raise a base stat by spending training points.

        Raises:
            ForbiddenError: Requester is not the account owner
            ValidationError: Unknown stat or amount outside 1..100
            NotFoundError: Unknown account
            InsufficientResourcesError: Not enough training points
        """
        if requester_id != actor_id:
            raise ForbiddenError("boost_base_stat", "cannot modify another player's stats")
        self.validate_choice(stat, "stat", BASE_BOOST_STATS)
        self.validate_range(amount, "amount", 1, BOOST_MAX_AMOUNT)
        rate = int(self.get_config("economy.base_boost_tp_per_point", BASE_BOOST_TP_PER_POINT))

        return await self._spend_on_base_stat(
            "boost_base_stat", actor_id, stat, amount, amount * rate, missing_default=0
        )

    async def train_stat(self, actor_id: str, stat: str, amount: int) -> Dict[str, Any]:
        """Cheaper per point than ``boost_base_stat`` and can raise Def."""
        self.validate_choice(stat, "stat", TRAIN_STATS)
        self.validate_range(amount, "amount", 1, TRAIN_MAX_AMOUNT)
        rate = int(self.get_config("economy.train_tp_per_point", TRAIN_TP_PER_POINT))

        return await self._spend_on_base_stat(
            "train_stat", actor_id, stat, amount, amount * rate, missing_default=DEFAULT_COMBAT_STAT
        )

    async def boost_item_stat(
        self, actor_id: str, item_id: str, stat: str, amount: int = 1
    ) -> Dict[str, Any]:
        """
        Raise one stat of an owned item.

        The requested amount is clamped to 1..1000 and then to the headroom
        left under the owner's rank ceiling; only applied points are charged.

        Raises:
            ValidationError: Unknown stat
            NotFoundError: Unknown account or item
            ForbiddenError: Item belongs to someone else
            InvalidStateError: Stat already at the ceiling
            InsufficientResourcesError: Not enough training points
        """
        self.validate_choice(stat, "stat", ITEM_STATS)
        requested = max(1, min(ITEM_BOOST_MAX_AMOUNT, coerce_int(amount) or 1))
        rate = int(self.get_config("economy.item_boost_tp_per_point", ITEM_BOOST_TP_PER_POINT))

        async with self._locks.hold(account_key(actor_id)):
            async with DatabaseService.get_transaction() as session:
                account = await self.accounts.get(session, actor_id, for_update=True)
                if account is None:
                    raise NotFoundError("Account", actor_id)
                item = await self.items.get(session, item_id, for_update=True)
                if item is None:
                    raise NotFoundError("Item", item_id)
                if item.account_id != actor_id:
                    raise ForbiddenError("boost_item_stat", "you do not own this item")

                ceiling = item_ceiling(account.rank)
                stats = dict(item.stats or {})
                current = coerce_int(stats.get(stat))
                if current >= ceiling:
                    raise InvalidStateError(
                        "boost_item_stat",
                        f"stat already at maximum for your rank ({ceiling:,})",
                    )
                applied = min(requested, ceiling - current)
                cost = applied * rate
                ledger.debit(account, "trainingPoints", cost)
                stats[stat] = current + applied
                item.stats = stats
                result = {
                    "itemId": item.id,
                    "stats": dict(stats),
                    "applied": applied,
                    "tpSpent": cost,
                    "maxBoost": ceiling,
                }
                snapshot = account_snapshot(account)

        self.log_operation(
            "boost_item_stat",
            actor_id=actor_id,
            item_id=item_id,
            stat=stat,
            requested=requested,
            applied=applied,
        )
        await self.emit_event("playerUpdate", {"actorId": actor_id, "player": snapshot})
        return result

    async def _spend_on_base_stat(
        self,
        operation: str,
        actor_id: str,
        stat: str,
        amount: int,
        cost: int,
        missing_default: int,
    ) -> Dict[str, Any]:
        async with self._locks.hold(account_key(actor_id)):
            async with DatabaseService.get_transaction() as session:
                account = await self.accounts.get(session, actor_id, for_update=True)
                if account is None:
                    raise NotFoundError("Account", actor_id)
                ledger.debit(account, "trainingPoints", cost)
                stats = dict(account.stats or {})
                current = coerce_int(stats.get(stat)) or missing_default
                stats[stat] = ledger.cap(current + amount)
                account.stats = stats
                snapshot = account_snapshot(account)

        self.log_operation(operation, actor_id=actor_id, stat=stat, amount=amount, tp_spent=cost)
        await self.emit_event("playerUpdate", {"actorId": actor_id, "player": snapshot})
        return {"stats": snapshot["stats"], "tpSpent": cost, "player": snapshot}
