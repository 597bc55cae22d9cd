"""
GuildMember - membership row. An account belongs to at most one guild.
Pure schema.
"""

from __future__ import annotations

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from valor.core.database.base import Base, IdMixin, TimestampMixin
from valor.database.models.enums import GuildRole


class GuildMember(Base, IdMixin, TimestampMixin):
    __tablename__ = "guild_members"

    guild_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("guilds.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    account_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=GuildRole.MEMBER.value)
