"""
Database Models Package
=======================

All SQLAlchemy ORM models for the Valor engine, organized by domain.
Importing this package registers every table on ``Base.metadata``.

- core: accounts and what they own (items, pets, birds)
- combat: PvP challenges
- social: guilds, memberships, guild battles
- economy: skill auctions, bids, owned skills
- progression: leaderboard caches
- enums: shared string enumerations
"""

from valor.core.database.base import Base

from .combat import Challenge
from .core import Account, Bird, Item, Pet
from .economy import PlayerSkill, SkillAuction, SkillBid
from .enums import (
    AccountRole,
    AuctionStatus,
    ChallengeStatus,
    GuildBattleStatus,
    GuildRole,
    LeaderboardType,
    SkillSource,
)
from .progression import LeaderboardCache
from .social import Guild, GuildBattle, GuildMember

__all__ = [
    "Base",
    "Account",
    "Bird",
    "Item",
    "Pet",
    "Challenge",
    "Guild",
    "GuildMember",
    "GuildBattle",
    "SkillAuction",
    "SkillBid",
    "PlayerSkill",
    "LeaderboardCache",
    "AccountRole",
    "AuctionStatus",
    "ChallengeStatus",
    "GuildBattleStatus",
    "GuildRole",
    "LeaderboardType",
    "SkillSource",
]
