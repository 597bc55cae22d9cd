from valor.modules.presence.service import (
    PRESENCE_KEY,
    InMemoryPresenceService,
    PresenceService,
    RedisPresenceService,
)

__all__ = [
    "PRESENCE_KEY",
    "PresenceService",
    "InMemoryPresenceService",
    "RedisPresenceService",
]
