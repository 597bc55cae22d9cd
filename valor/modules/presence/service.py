"""
Presence: who is online right now.

The engine never holds transport handles. Guild dungeon fights only need to
ask "which of these members are online?"; transports (SSE, WebSocket,
heartbeat endpoints) call ``mark_online`` / ``mark_offline``.

Implementations
---------------
- ``InMemoryPresenceService``: single-process set, used by tests and local runs
- ``RedisPresenceService``: a Redis set shared by every engine process
"""

from __future__ import annotations

from typing import Iterable, List, Protocol, Set, runtime_checkable

from valor.core.logging.logger import get_logger
from valor.core.redis.service import RedisService

logger = get_logger(__name__)

PRESENCE_KEY = "valor:presence:online"


@runtime_checkable
class PresenceService(Protocol):
    async def is_online(self, actor_id: str) -> bool: ...

    async def mark_online(self, actor_id: str) -> None: ...

    async def mark_offline(self, actor_id: str) -> None: ...

    async def online_among(self, actor_ids: Iterable[str]) -> List[str]: ...


class InMemoryPresenceService:
    def __init__(self) -> None:
        self._online: Set[str] = set()

    async def is_online(self, actor_id: str) -> bool:
        return actor_id in self._online

    async def mark_online(self, actor_id: str) -> None:
        self._online.add(actor_id)

    async def mark_offline(self, actor_id: str) -> None:
        self._online.discard(actor_id)

    async def online_among(self, actor_ids: Iterable[str]) -> List[str]:
        """Online ids, in the order given."""
        return [actor_id for actor_id in actor_ids if actor_id in self._online]


class RedisPresenceService:
    """Presence backed by a Redis set via ``RedisService``."""

    def __init__(self, key: str = PRESENCE_KEY) -> None:
        self._key = key

    async def is_online(self, actor_id: str) -> bool:
        return await RedisService.sismember(self._key, actor_id)

    async def mark_online(self, actor_id: str) -> None:
        await RedisService.sadd(self._key, actor_id)
        logger.debug("Actor marked online", extra={"actor_id": actor_id})

    async def mark_offline(self, actor_id: str) -> None:
        await RedisService.srem(self._key, actor_id)
        logger.debug("Actor marked offline", extra={"actor_id": actor_id})

    async def online_among(self, actor_ids: Iterable[str]) -> List[str]:
        ids = list(actor_ids)
        flags = await RedisService.smismember(self._key, ids)
        return [actor_id for actor_id, online in zip(ids, flags) if online]
