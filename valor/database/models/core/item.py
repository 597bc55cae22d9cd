"""
Item - an owned inventory item with a stat-bonus vector.
Pure schema.
"""

from __future__ import annotations

from typing import Dict

from sqlalchemy import JSON, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from valor.core.database.base import Base, IdMixin, TimestampMixin


class Item(Base, IdMixin, TimestampMixin):
    """
    Inventory item. ``stats`` holds any subset of Str/Int/Spd/Luck/Pot and
    only changes through the item boost operation.
    """

    __tablename__ = "items"

    account_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    item_key: Mapped[str] = mapped_column(String(64), nullable=False)
    stats: Mapped[Dict[str, int]] = mapped_column(JSON, nullable=False, default=dict)
