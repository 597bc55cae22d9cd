"""
Account - the actor entity: identity, currencies, stats, progression.
Pure schema.

Currencies are BigInteger columns; services cap every write at MAX_SAFE.
Base stats and the equipment slot map are JSON documents; services always
assign a new dict so the change is detected on flush.
"""

from __future__ import annotations

from typing import Dict, Optional

from sqlalchemy import JSON, BigInteger, Boolean, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from valor.core.database.base import Base, IdMixin, TimestampMixin
from valor.database.models.enums import AccountRole
from valor.modules.shared.constants import DEFAULT_GOLD, DEFAULT_STATS, EQUIPMENT_SLOTS


def _default_stats() -> Dict[str, int]:
    return dict(DEFAULT_STATS)


def _default_equipment() -> Dict[str, Optional[str]]:
    return {slot: None for slot in EQUIPMENT_SLOTS}


class Account(Base, IdMixin, TimestampMixin):
    """
    A player or admin account.

    ``is_automated`` marks NPC opponents that auto-accept challenges and draw
    their combat actions; it is set at creation and never derived from the
    username.
    """

    __tablename__ = "accounts"
    __table_args__ = (
        Index("ix_accounts_wins", "wins"),
        Index("ix_accounts_losses", "losses"),
        Index("ix_accounts_npc_progress", "npc_floor", "npc_level"),
    )

    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(
        String(16), nullable=False, default=AccountRole.PLAYER.value
    )
    is_automated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Currencies
    gold: Mapped[int] = mapped_column(BigInteger, nullable=False, default=DEFAULT_GOLD)
    rubies: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    soul_shards: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    focused_shards: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    training_points: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    runes: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    pet_exp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    stats: Mapped[Dict[str, int]] = mapped_column(JSON, nullable=False, default=_default_stats)
    equipment: Mapped[Dict[str, Optional[str]]] = mapped_column(
        JSON, nullable=False, default=_default_equipment
    )
    rank: Mapped[str] = mapped_column(String(20), nullable=False, default="Novice")

    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    npc_floor: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    npc_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Not a foreign key: pets reference accounts, and the cycle is not worth
    # a deferred constraint. Services validate ownership on equip.
    equipped_pet_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.role == AccountRole.ADMIN.value

    def __repr__(self) -> str:
        return f"<Account id={self.id} username={self.username!r} rank={self.rank}>"
