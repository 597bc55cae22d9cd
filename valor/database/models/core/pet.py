"""
Pet - companion with tier, experience, stats and elemental affinities.
Pure schema.
"""

from __future__ import annotations

from typing import Dict, List

from sqlalchemy import JSON, BigInteger, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from valor.core.database.base import Base, IdMixin, TimestampMixin
from valor.modules.shared.constants import DEFAULT_PET_STATS


def _default_pet_stats() -> Dict[str, int]:
    return dict(DEFAULT_PET_STATS)


def _default_elements() -> List[str]:
    return ["Fire"]


class Pet(Base, IdMixin, TimestampMixin):
    """
    Companion pet. ``elements`` is never empty; merge produces the union of
    both parents' elements.
    """

    __tablename__ = "pets"

    account_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    tier: Mapped[str] = mapped_column(String(16), nullable=False, default="egg")
    exp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    stats: Mapped[Dict[str, int]] = mapped_column(JSON, nullable=False, default=_default_pet_stats)
    elements: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=_default_elements)
