"""
Per-entity critical sections for the engine.

Every mutating operation holds the locks of the entities it touches for the
whole database transaction. Keys are plain strings such as ``account:<id>``
or ``guild:<id>``; helpers below build them.

Multiple keys are always acquired in sorted order so two operations that
touch the same pair of entities cannot deadlock. A lock entry is dropped as
soon as nobody holds or waits for it.

Across processes the same guarantee comes from ``SELECT ... FOR UPDATE`` on
PostgreSQL; this registry covers one process (and SQLite, which ignores row
locks).
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Iterable, Optional

from valor.core.logging.logger import get_logger

logger = get_logger(__name__)


def account_key(actor_id: str) -> str:
    return f"account:{actor_id}"


def guild_key(guild_id: str) -> str:
    return f"guild:{guild_id}"


def challenge_key(challenge_id: str) -> str:
    return f"challenge:{challenge_id}"


def pet_key(pet_id: str) -> str:
    return f"pet:{pet_id}"


def battle_key(battle_id: str) -> str:
    return f"battle:{battle_id}"


def auction_key(auction_id: str) -> str:
    return f"auction:{auction_id}"


def leaderboard_key(board_type: str) -> str:
    return f"leaderboard:{board_type}"


# The auction clock is a single resource: at most one active auction.
AUCTION_CLOCK_KEY = "auction:clock"


class EntityLockRegistry:
    """Registry of reference-counted ``asyncio.Lock`` objects keyed by entity."""

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._refs: Dict[str, int] = {}

    def _checkout(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._refs[key] = self._refs.get(key, 0) + 1
        return lock

    def _checkin(self, key: str) -> None:
        remaining = self._refs.get(key, 0) - 1
        if remaining <= 0:
            self._refs.pop(key, None)
            self._locks.pop(key, None)
        else:
            self._refs[key] = remaining

    @asynccontextmanager
    async def hold(self, *keys: Optional[str]) -> AsyncIterator[None]:
        """
        Acquire every given key (``None`` entries are ignored) for the
        duration of the block.
        """
        ordered = sorted({key for key in keys if key})
        acquired: list[str] = []
        checked_out: list[str] = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                checked_out.append(key)
                await lock.acquire()
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self._locks[key].release()
            for key in checked_out:
                self._checkin(key)

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return bool(lock and lock.locked())

    def active_keys(self) -> Iterable[str]:
        return sorted(self._locks)
