"""
Leaderboard Service
===================

Purpose
-------
Build and cache ranked snapshots for the six leaderboard categories. A
snapshot is one ``LeaderboardCache`` row per category holding the ranked
entries and when they were built.

Domain
------
- Player boards: ``wins``, ``losses``, ``npc_progress`` (tower floor then
  level), ``rank`` (rank ladder position)
- Guild boards: ``guild_dungeon`` (dungeon floor then level), ``guild_wins``
- Ties keep creation order, so older accounts and guilds rank first
- Reads serve the cached snapshot while it is younger than the cache window
  (24 hours by default) and rebuild it otherwise

Design Decisions
----------------
- ``rebuild`` works inside the caller's session so an operation that changes
  a ranking (a guild battle win) refreshes the board in the same commit
- Only players appear on player boards; admins are excluded
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Any, Dict, List

from valor.core.concurrency.locks import leaderboard_key
from valor.core.database.base import as_utc, utc_now
from valor.core.database.service import DatabaseService
from valor.database.models import Account, AccountRole, LeaderboardCache, LeaderboardType
from valor.modules.guild.repository import GuildRepository
from valor.modules.leaderboard.repository import LeaderboardCacheRepository
from valor.modules.player.repository import AccountRepository
from valor.modules.shared.base_service import BaseService
from valor.modules.shared.constants import (
    LEADERBOARD_CACHE_HOURS,
    LEADERBOARD_DEFAULT_LIMIT,
    LEADERBOARD_TYPES,
)
from valor.modules.tower.engine import rank_index

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from valor.core.concurrency.locks import EntityLockRegistry
    from valor.core.config.manager import ConfigManager
    from valor.core.event.bus import EventBus
    from valor.database.models import Guild


def cache_snapshot(cache: LeaderboardCache, window_hours: int) -> Dict[str, Any]:
    refreshed = as_utc(cache.refreshed_at)
    return {
        "type": cache.board_type,
        "entries": list(cache.entries or []),
        "refreshedAt": refreshed.isoformat() if refreshed else None,
        "nextRefresh": (
            (refreshed + timedelta(hours=window_hours)).isoformat() if refreshed else None
        ),
    }


class LeaderboardService(BaseService):
    """
    Cached leaderboards.

    Public Methods
    --------------
    - get() -> cached snapshot, rebuilt when stale or missing
    - refresh() -> force a rebuild in its own transaction
    - rebuild() -> rebuild inside an existing session
    """

    def __init__(
        self,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
        locks: EntityLockRegistry,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._locks = locks
        self.caches = LeaderboardCacheRepository()
        self.accounts = AccountRepository()
        self.guilds = GuildRepository()

    @property
    def _limit(self) -> int:
        return int(self.get_config("leaderboard.limit", LEADERBOARD_DEFAULT_LIMIT))

    @property
    def _window_hours(self) -> int:
        return int(self.get_config("leaderboard.cache_hours", LEADERBOARD_CACHE_HOURS))

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def get(self, board_type: str) -> Dict[str, Any]:
        """
        Cached snapshot for ``board_type``; stale or missing caches are
        rebuilt first.

        Raises:
            ValidationError: Unknown board type
        """
        self.validate_choice(board_type, "board_type", LEADERBOARD_TYPES)

        async with DatabaseService.get_session() as session:
            cache = await self.caches.get_by_type(session, board_type)
            if cache is not None and self._is_fresh(cache):
                return cache_snapshot(cache, self._window_hours)

        return await self.refresh(board_type)

    async def refresh(self, board_type: str) -> Dict[str, Any]:
        """Rebuild ``board_type`` now and emit ``leaderboardRefreshed``."""
        self.validate_choice(board_type, "board_type", LEADERBOARD_TYPES)

        async with self._locks.hold(leaderboard_key(board_type)):
            async with DatabaseService.get_transaction() as session:
                cache = await self.rebuild(session, board_type)
                snapshot = cache_snapshot(cache, self._window_hours)

        self.log_operation(
            "refresh_leaderboard", board_type=board_type, entries=len(snapshot["entries"])
        )
        await self.emit_event(
            "leaderboardRefreshed",
            {"type": board_type, "refreshedAt": snapshot["refreshedAt"]},
        )
        return snapshot

    async def rebuild(self, session: AsyncSession, board_type: str) -> LeaderboardCache:
        """
        Rebuild the cache row for ``board_type`` inside ``session``.

        The caller owns the transaction and must hold ``leaderboard:<type>``.
        """
        entries = await self.build_entries(session, board_type)
        cache = await self.caches.get_by_type(session, board_type, for_update=True)
        if cache is None:
            cache = self.caches.add(session, LeaderboardCache(board_type=board_type))
        cache.entries = entries
        cache.refreshed_at = utc_now()
        await self.caches.flush(session)
        return cache

    async def build_entries(self, session: AsyncSession, board_type: str) -> List[Dict[str, Any]]:
        limit = self._limit
        if board_type == LeaderboardType.WINS.value:
            players = await self._players(session, [Account.wins.desc()], limit)
            return [self._player_entry(i, p, p.wins) for i, p in enumerate(players)]
        if board_type == LeaderboardType.LOSSES.value:
            players = await self._players(session, [Account.losses.desc()], limit)
            return [self._player_entry(i, p, p.losses) for i, p in enumerate(players)]
        if board_type == LeaderboardType.NPC_PROGRESS.value:
            players = await self._players(
                session, [Account.npc_floor.desc(), Account.npc_level.desc()], limit
            )
            return [
                {
                    **self._player_entry(i, p, f"{p.npc_floor}:{p.npc_level}"),
                    "npcFloor": p.npc_floor,
                    "npcLevel": p.npc_level,
                }
                for i, p in enumerate(players)
            ]
        if board_type == LeaderboardType.RANK.value:
            players = await self._players(session, [], None)
            # sorted() is stable, so creation order breaks ties.
            ranked = sorted(players, key=lambda p: rank_index(p.rank), reverse=True)[:limit]
            return [self._player_entry(i, p, p.rank) for i, p in enumerate(ranked)]
        if board_type == LeaderboardType.GUILD_DUNGEON.value:
            guilds = await self.guilds.ranked_by_dungeon(session, limit)
            masters = await self._master_names(session, guilds)
            return [
                {
                    **self._guild_entry(i, g, masters),
                    "value": f"Floor {g.dungeon_floor} - Level {g.dungeon_level}",
                    "dungeonFloor": g.dungeon_floor,
                    "dungeonLevel": g.dungeon_level,
                }
                for i, g in enumerate(guilds)
            ]
        if board_type == LeaderboardType.GUILD_WINS.value:
            guilds = await self.guilds.ranked_by_wins(session, limit)
            masters = await self._master_names(session, guilds)
            return [
                {**self._guild_entry(i, g, masters), "value": g.wins}
                for i, g in enumerate(guilds)
            ]
        self.validate_choice(board_type, "board_type", LEADERBOARD_TYPES)
        return []

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _is_fresh(self, cache: LeaderboardCache) -> bool:
        refreshed = as_utc(cache.refreshed_at)
        if refreshed is None:
            return False
        return utc_now() - refreshed < timedelta(hours=self._window_hours)

    async def _players(self, session: AsyncSession, order: List[Any], limit: Any) -> List[Account]:
        return await self.accounts.find_many_where(
            session,
            Account.role == AccountRole.PLAYER.value,
            order_by=[*order, Account.created_at, Account.id],
            limit=limit,
        )

    async def _master_names(self, session: AsyncSession, guilds: List[Guild]) -> Dict[str, str]:
        masters = await self.accounts.get_many(session, [g.master_id for g in guilds])
        return {account.id: account.username for account in masters}

    @staticmethod
    def _player_entry(index: int, account: Account, value: Any) -> Dict[str, Any]:
        return {
            "rank": index + 1,
            "accountId": account.id,
            "username": account.username,
            "value": value,
        }

    @staticmethod
    def _guild_entry(index: int, guild: Guild, masters: Dict[str, str]) -> Dict[str, Any]:
        return {
            "rank": index + 1,
            "guildId": guild.id,
            "guildName": guild.name,
            "masterName": masters.get(guild.master_id, "Unknown"),
        }
