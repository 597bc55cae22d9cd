"""
Bird - companion creature. Every owned bird contributes Def/Spd to PvP
combat stats; birds are never "equipped".
Pure schema.
"""

from __future__ import annotations

from typing import Dict

from sqlalchemy import JSON, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from valor.core.database.base import Base, IdMixin, TimestampMixin


def _default_bird_stats() -> Dict[str, int]:
    return {"Def": 1, "Spd": 1}


class Bird(Base, IdMixin, TimestampMixin):
    __tablename__ = "birds"

    account_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    tier: Mapped[str] = mapped_column(String(16), nullable=False, default="hatchling")
    stats: Mapped[Dict[str, int]] = mapped_column(JSON, nullable=False, default=_default_bird_stats)
