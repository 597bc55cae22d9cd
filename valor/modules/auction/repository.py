"""
Skill auction repositories.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from valor.core.logging.logger import get_logger
from valor.database.models import AuctionStatus, PlayerSkill, SkillAuction, SkillBid
from valor.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


class SkillAuctionRepository(BaseRepository[SkillAuction]):
    def __init__(self) -> None:
        super().__init__(SkillAuction, logger)

    async def active(self, session: AsyncSession, for_update: bool = False) -> Optional[SkillAuction]:
        return await self.find_one_where(
            session,
            SkillAuction.status == AuctionStatus.ACTIVE.value,
            for_update=for_update,
            order_by=[SkillAuction.start_at, SkillAuction.id],
        )

    async def queued(self, session: AsyncSession) -> List[SkillAuction]:
        """Queue in creation order."""
        return await self.find_many_where(
            session,
            SkillAuction.status == AuctionStatus.QUEUED.value,
            order_by=[SkillAuction.created_at, SkillAuction.id],
        )

    async def next_queued(self, session: AsyncSession) -> Optional[SkillAuction]:
        return await self.find_one_where(
            session,
            SkillAuction.status == AuctionStatus.QUEUED.value,
            for_update=True,
            order_by=[SkillAuction.created_at, SkillAuction.id],
        )


class SkillBidRepository(BaseRepository[SkillBid]):
    def __init__(self) -> None:
        super().__init__(SkillBid, logger)

    async def highest_for(self, session: AsyncSession, auction_id: str) -> Optional[SkillBid]:
        """Highest bid; the earliest wins a tie, which accepted bids never produce."""
        return await self.find_one_where(
            session,
            SkillBid.auction_id == auction_id,
            order_by=[SkillBid.amount.desc(), SkillBid.created_at, SkillBid.id],
        )

    async def for_auction(self, session: AsyncSession, auction_id: str) -> List[SkillBid]:
        return await self.find_many_where(
            session,
            SkillBid.auction_id == auction_id,
            order_by=[SkillBid.amount.desc(), SkillBid.created_at, SkillBid.id],
        )


class PlayerSkillRepository(BaseRepository[PlayerSkill]):
    def __init__(self) -> None:
        super().__init__(PlayerSkill, logger)

    async def owned_by(self, session: AsyncSession, account_id: str) -> List[PlayerSkill]:
        return await self.find_many_where(
            session,
            PlayerSkill.account_id == account_id,
            order_by=[PlayerSkill.created_at, PlayerSkill.id],
        )
