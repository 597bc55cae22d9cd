"""
Guild - player guild with shared bank and dungeon progress.
Pure schema.
"""

from __future__ import annotations

from typing import Dict

from sqlalchemy import JSON, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from valor.core.database.base import Base, IdMixin, TimestampMixin
from valor.modules.shared.constants import GUILD_BANK_CURRENCIES


def _empty_bank() -> Dict[str, int]:
    return {currency: 0 for currency in GUILD_BANK_CURRENCIES}


class Guild(Base, IdMixin, TimestampMixin):
    """
    Player-created guild.

    Schema-only:
    - name, master, level
    - bank JSON (gold, rubies, soulShards, focusedShards, runes, trainingPoints)
    - dungeon floor/level pointer
    - cumulative guild battle wins
    """

    __tablename__ = "guilds"
    __table_args__ = (
        Index("ix_guilds_wins", "wins"),
        Index("ix_guilds_dungeon_progress", "dungeon_floor", "dungeon_level"),
    )

    name: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)
    master_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id"), nullable=False, index=True
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    bank: Mapped[Dict[str, int]] = mapped_column(JSON, nullable=False, default=_empty_bank)
    dungeon_floor: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    dungeon_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
