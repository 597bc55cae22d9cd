"""
Guild repositories.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from valor.core.logging.logger import get_logger
from valor.database.models import Guild, GuildMember
from valor.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


class GuildRepository(BaseRepository[Guild]):
    def __init__(self) -> None:
        super().__init__(Guild, logger)

    async def get_by_name(self, session: AsyncSession, name: str) -> Optional[Guild]:
        return await self.find_one_where(session, Guild.name == name)

    async def ranked_by_wins(self, session: AsyncSession, limit: int) -> List[Guild]:
        return await self.find_many_where(
            session, order_by=[Guild.wins.desc(), Guild.created_at, Guild.id], limit=limit
        )

    async def ranked_by_dungeon(self, session: AsyncSession, limit: int) -> List[Guild]:
        return await self.find_many_where(
            session,
            order_by=[
                Guild.dungeon_floor.desc(),
                Guild.dungeon_level.desc(),
                Guild.created_at,
                Guild.id,
            ],
            limit=limit,
        )


class GuildMemberRepository(BaseRepository[GuildMember]):
    def __init__(self) -> None:
        super().__init__(GuildMember, logger)

    async def for_guild(self, session: AsyncSession, guild_id: str) -> List[GuildMember]:
        return await self.find_many_where(
            session,
            GuildMember.guild_id == guild_id,
            order_by=[GuildMember.created_at, GuildMember.id],
        )

    async def membership_of(self, session: AsyncSession, account_id: str) -> Optional[GuildMember]:
        return await self.find_one_where(session, GuildMember.account_id == account_id)

    async def is_member(self, session: AsyncSession, guild_id: str, account_id: str) -> bool:
        return await self.exists(
            session, GuildMember.guild_id == guild_id, GuildMember.account_id == account_id
        )
