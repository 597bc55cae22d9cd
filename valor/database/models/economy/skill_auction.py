"""
SkillAuction / SkillBid / PlayerSkill - the skill auction house.
Pure schema.

Queue order is creation order (``created_at`` then ``id``).
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from valor.core.database.base import Base, IdMixin, TimestampMixin
from valor.database.models.enums import AuctionStatus, SkillSource


class SkillAuction(Base, IdMixin, TimestampMixin):
    __tablename__ = "skill_auctions"
    __table_args__ = (Index("ix_skill_auctions_status_created", "status", "created_at"),)

    skill_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=AuctionStatus.QUEUED.value
    )
    start_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    end_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    winning_bid_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    winner_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    finalized_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class SkillBid(Base, IdMixin, TimestampMixin):
    __tablename__ = "skill_bids"
    __table_args__ = (Index("ix_skill_bids_auction_amount", "auction_id", "amount"),)

    auction_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("skill_auctions.id", ondelete="CASCADE"), nullable=False
    )
    bidder_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)


class PlayerSkill(Base, IdMixin, TimestampMixin):
    __tablename__ = "player_skills"

    account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    skill_id: Mapped[str] = mapped_column(String(64), nullable=False)
    is_equipped: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    source: Mapped[str] = mapped_column(
        String(16), nullable=False, default=SkillSource.AUCTION.value
    )
