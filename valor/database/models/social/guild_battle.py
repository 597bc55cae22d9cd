"""
GuildBattle - guild-vs-guild tournament with fighter rosters and cursors.
Pure schema.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from valor.core.database.base import Base, IdMixin, TimestampMixin
from valor.database.models.enums import GuildBattleStatus


class GuildBattle(Base, IdMixin, TimestampMixin):
    """
    Rosters are ordered lists of account ids, fixed once the battle starts.
    ``rounds`` records each adjudicated round for display.
    """

    __tablename__ = "guild_battles"

    challenger_guild_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("guilds.id", ondelete="CASCADE"), nullable=False, index=True
    )
    challenged_guild_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("guilds.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=GuildBattleStatus.PENDING.value
    )

    challenger_fighters: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    challenged_fighters: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    current_round: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    challenger_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    challenged_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    challenger_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    challenged_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    rounds: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    winner_guild_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    is_draw: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
