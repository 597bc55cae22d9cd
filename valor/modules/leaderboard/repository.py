"""
Leaderboard cache repository.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from valor.core.logging.logger import get_logger
from valor.database.models import LeaderboardCache
from valor.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


class LeaderboardCacheRepository(BaseRepository[LeaderboardCache]):
    def __init__(self) -> None:
        super().__init__(LeaderboardCache, logger)

    async def get_by_type(
        self, session: AsyncSession, board_type: str, for_update: bool = False
    ) -> Optional[LeaderboardCache]:
        return await self.find_one_where(
            session, LeaderboardCache.board_type == board_type, for_update=for_update
        )
