"""
Challenge - PvP challenge between two accounts and its combat state.
Pure schema.

``combat_state`` holds the canonical CombatState document
(``valor.domain.models.combat_state.CombatState.to_dict``) once the
challenge is accepted and combat is first accessed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from valor.core.database.base import Base, IdMixin, TimestampMixin
from valor.database.models.enums import ChallengeStatus


class Challenge(Base, IdMixin, TimestampMixin):
    __tablename__ = "challenges"
    __table_args__ = (
        Index("ix_challenges_challenger_status", "challenger_id", "status"),
        Index("ix_challenges_challenged_status", "challenged_id", "status"),
    )

    challenger_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    challenged_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ChallengeStatus.PENDING.value
    )
    winner_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    is_draw: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    combat_state: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def is_participant(self, actor_id: str) -> bool:
        return actor_id in (self.challenger_id, self.challenged_id)
