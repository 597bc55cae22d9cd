"""
Database Model Enums
====================

String enumerations for categorical columns. Columns store the ``.value``
so rows stay readable in SQL and portable across PostgreSQL and SQLite.
Services compare against these members rather than bare literals.
"""

from __future__ import annotations

import enum


class AccountRole(str, enum.Enum):
    PLAYER = "player"
    ADMIN = "admin"


class ChallengeStatus(str, enum.Enum):
    """
    Lifecycle of a PvP challenge.

    pending -> accepted -> completed, with pending -> declined and
    pending -> cancelled as alternate terminal transitions.
    """

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class GuildRole(str, enum.Enum):
    MASTER = "master"
    MEMBER = "member"


class GuildBattleStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DECLINED = "declined"


class AuctionStatus(str, enum.Enum):
    """Skill auction lifecycle: queued -> active -> completed."""

    QUEUED = "queued"
    ACTIVE = "active"
    COMPLETED = "completed"


class SkillSource(str, enum.Enum):
    AUCTION = "auction"
    QUEST = "quest"
    ADMIN = "admin"


class LeaderboardType(str, enum.Enum):
    """
    Cached leaderboard categories.

    Each category represents a different competitive metric.
    """

    WINS = "wins"
    LOSSES = "losses"
    NPC_PROGRESS = "npc_progress"
    RANK = "rank"
    GUILD_DUNGEON = "guild_dungeon"
    GUILD_WINS = "guild_wins"
