"""
LeaderboardCache - cached leaderboard snapshot per board type.
Pure schema.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from valor.core.database.base import Base, IdMixin, utc_now


class LeaderboardCache(Base, IdMixin):
    """One row per board type; ``entries`` is the ranked snapshot."""

    __tablename__ = "leaderboard_cache"

    board_type: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    entries: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    refreshed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
