"""
Repositories for accounts and the things accounts own.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from valor.core.logging.logger import get_logger
from valor.database.models import Account, Bird, Item, Pet
from valor.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


class AccountRepository(BaseRepository[Account]):
    def __init__(self) -> None:
        super().__init__(Account, logger)

    async def get_by_username(self, session: AsyncSession, username: str) -> Optional[Account]:
        return await self.find_one_where(session, Account.username == username)

    async def list_players(self, session: AsyncSession) -> List[Account]:
        return await self.find_many_where(
            session, Account.role == "player", order_by=[Account.created_at, Account.id]
        )


class ItemRepository(BaseRepository[Item]):
    def __init__(self) -> None:
        super().__init__(Item, logger)

    async def equipped_for(self, session: AsyncSession, account: Account) -> List[Item]:
        """Items referenced by the account's equipment slots that it still owns."""
        slot_ids = [item_id for item_id in (account.equipment or {}).values() if item_id]
        if not slot_ids:
            return []
        items = await self.get_many(session, slot_ids)
        return [item for item in items if item.account_id == account.id]


class PetRepository(BaseRepository[Pet]):
    def __init__(self) -> None:
        super().__init__(Pet, logger)

    async def owned_by(self, session: AsyncSession, account_id: str) -> List[Pet]:
        return await self.find_many_where(
            session, Pet.account_id == account_id, order_by=[Pet.created_at, Pet.id]
        )


class BirdRepository(BaseRepository[Bird]):
    def __init__(self) -> None:
        super().__init__(Bird, logger)

    async def owned_by(self, session: AsyncSession, account_id: str) -> List[Bird]:
        return await self.find_many_where(session, Bird.account_id == account_id)
