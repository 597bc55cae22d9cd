"""
Challenge repository.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List

from sqlalchemy import or_

from valor.core.logging.logger import get_logger
from valor.database.models import Challenge, ChallengeStatus
from valor.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


class ChallengeRepository(BaseRepository[Challenge]):
    def __init__(self) -> None:
        super().__init__(Challenge, logger)

    async def open_for(self, session: AsyncSession, actor_id: str) -> List[Challenge]:
        """Pending and accepted challenges the actor takes part in."""
        return await self.find_many_where(
            session,
            or_(Challenge.challenger_id == actor_id, Challenge.challenged_id == actor_id),
            Challenge.status.in_(
                [ChallengeStatus.PENDING.value, ChallengeStatus.ACCEPTED.value]
            ),
            order_by=[Challenge.created_at.desc()],
        )
