"""Redis subsystem."""

from valor.core.redis.service import RedisService

__all__ = ["RedisService"]
