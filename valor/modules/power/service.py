"""
PowerService - the single source of truth for displayed and combat power.

Purpose
-------
Load an account's base stats, equipped items, equipped pet and owned birds,
and feed them to the pure aggregation functions in ``power.engine``. Every
other service (tower, challenges, guild dungeon, guild battles) asks this
service rather than summing stats itself, so displayed numbers always match
the numbers used in combat.

Side effects: none. Reads only.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from valor.core.database.service import DatabaseService
from valor.domain.models.stats import StatBlock
from valor.modules.player.repository import (
    AccountRepository,
    BirdRepository,
    ItemRepository,
    PetRepository,
)
from valor.modules.power import engine
from valor.modules.shared.base_service import BaseService
from valor.modules.shared.exceptions import NotFoundError

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from valor.core.config.manager import ConfigManager
    from valor.core.event.bus import EventBus
    from valor.database.models import Account, Pet


class PowerService(BaseService):
    """Read-only strength and combat stat aggregation."""

    def __init__(
        self,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self.accounts = AccountRepository()
        self.items = ItemRepository()
        self.pets = PetRepository()
        self.birds = BirdRepository()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def compute_strength(self, actor_id: str) -> int:
        """
        Strength of an account.

        Raises:
            NotFoundError: If the account does not exist
        """
        async with DatabaseService.get_session() as session:
            account = await self.accounts.get(session, actor_id)
            if account is None:
                raise NotFoundError("Account", actor_id)
            strength = await self.strength_for(session, account)

        self.log.debug(
            "Strength computed",
            extra={"actor_id": actor_id, "strength": strength},
        )
        return strength

    async def compute_combat_stats(self, actor_id: str) -> StatBlock:
        async with DatabaseService.get_session() as session:
            account = await self.accounts.get(session, actor_id)
            if account is None:
                raise NotFoundError("Account", actor_id)
            return await self.combat_stats_for(session, account)

    # ------------------------------------------------------------------
    # Session-scoped helpers used by other services
    # ------------------------------------------------------------------

    async def equipped_pet(
        self, session: AsyncSession, account: Account, for_update: bool = False
    ) -> Optional[Pet]:
        """The account's equipped pet, ignoring a stale reference to a pet it no longer owns."""
        if not account.equipped_pet_id:
            return None
        pet = await self.pets.get(session, account.equipped_pet_id, for_update=for_update)
        if pet is None or pet.account_id != account.id:
            return None
        return pet

    async def equipped_item_stats(
        self, session: AsyncSession, account: Account
    ) -> List[Dict[str, Any]]:
        return [dict(item.stats or {}) for item in await self.items.equipped_for(session, account)]

    async def strength_for(self, session: AsyncSession, account: Account) -> int:
        items = await self.equipped_item_stats(session, account)
        pet = await self.equipped_pet(session, account)
        return engine.compute_strength(
            account.stats, items, pet.stats if pet is not None else None
        )

    async def combat_stats_for(self, session: AsyncSession, account: Account) -> StatBlock:
        pet = await self.equipped_pet(session, account)
        birds = await self.birds.owned_by(session, account.id)
        return engine.compute_combat_stats(
            account.stats,
            pet.stats if pet is not None else None,
            [bird.stats for bird in birds],
        )

    async def strengths_for(self, session: AsyncSession, actor_ids: List[str]) -> Dict[str, int]:
        """Strength per account id; unknown ids are skipped."""
        result: Dict[str, int] = {}
        for account in await self.accounts.get_many(session, actor_ids):
            result[account.id] = await self.strength_for(session, account)
        return result
