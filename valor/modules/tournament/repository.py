"""
Guild battle repository.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import and_, or_

from valor.core.logging.logger import get_logger
from valor.database.models import GuildBattle, GuildBattleStatus
from valor.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

OPEN_STATUSES = (GuildBattleStatus.PENDING.value, GuildBattleStatus.IN_PROGRESS.value)


class GuildBattleRepository(BaseRepository[GuildBattle]):
    def __init__(self) -> None:
        super().__init__(GuildBattle, logger)

    async def open_between(
        self, session: AsyncSession, first_guild_id: str, second_guild_id: str
    ) -> Optional[GuildBattle]:
        """A pending or running battle between the two guilds, either direction."""
        return await self.find_one_where(
            session,
            GuildBattle.status.in_(OPEN_STATUSES),
            or_(
                and_(
                    GuildBattle.challenger_guild_id == first_guild_id,
                    GuildBattle.challenged_guild_id == second_guild_id,
                ),
                and_(
                    GuildBattle.challenger_guild_id == second_guild_id,
                    GuildBattle.challenged_guild_id == first_guild_id,
                ),
            ),
        )

    async def in_progress(self, session: AsyncSession) -> List[GuildBattle]:
        return await self.find_many_where(
            session,
            GuildBattle.status == GuildBattleStatus.IN_PROGRESS.value,
            order_by=[GuildBattle.created_at, GuildBattle.id],
        )
