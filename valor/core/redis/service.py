"""
RedisService: async Redis infrastructure for Valor.

Purpose
-------
Provide a singleton async Redis client with observable set operations. The
engine uses Redis for one concern: the shared presence set consulted by
guild dungeon fights (who is online right now). Keeping presence in Redis
lets several engine processes agree on it without sharing memory.

Responsibilities
----------------
- Initialize and manage a singleton Redis connection pool
- Verify connectivity on startup (PING)
- Expose set operations (SADD / SREM / SISMEMBER / SMISMEMBER / SMEMBERS)
- Log every operation with key and latency

Non-Responsibilities
--------------------
- Business logic of any kind
- Database transactions

Configuration Keys
------------------
- core.redis.url                    : str  (falls back to Config.REDIS_URL)
- core.redis.socket_timeout_seconds : int  (default 5)
- core.redis.max_connections        : int  (default 50)
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Iterable, Optional

from redis.asyncio.client import Redis as AsyncRedis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from valor.core.config.config import Config
from valor.core.config.manager import ConfigManager
from valor.core.logging.logger import get_logger

logger = get_logger(__name__)


class RedisService:
    """Singleton async Redis client wrapper."""

    _client: Optional[AsyncRedis] = None
    _init_lock: Optional[asyncio.Lock] = None
    _is_healthy: bool = False

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE MANAGEMENT
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    def _lock(cls) -> asyncio.Lock:
        if cls._init_lock is None:
            cls._init_lock = asyncio.Lock()
        return cls._init_lock

    @classmethod
    async def initialize(
        cls,
        url: Optional[str] = None,
        client: Optional[AsyncRedis] = None,
    ) -> None:
        """
        Initialize the singleton Redis client. Idempotent.

        Parameters
        ----------
        url:
            Optional URL overriding config.
        client:
            Pre-built client (tests pass a fake or a container-backed client).

        Raises
        ------
        RuntimeError
            If the connection cannot be verified.
        """
        async with cls._lock():
            if cls._client is not None:
                logger.debug("RedisService already initialized, skipping")
                return

            resolved_url = url or ConfigManager.get("core.redis.url", Config.REDIS_URL)
            socket_timeout = int(
                ConfigManager.get(
                    "core.redis.socket_timeout_seconds", Config.REDIS_SOCKET_TIMEOUT
                )
            )
            max_connections = int(ConfigManager.get("core.redis.max_connections", 50))

            start_time = time.monotonic()
            candidate = client or AsyncRedis.from_url(
                resolved_url,
                socket_timeout=socket_timeout,
                decode_responses=True,
                max_connections=max_connections,
            )

            try:
                await candidate.ping()
            except (RedisConnectionError, RedisError, OSError) as exc:
                await candidate.aclose()
                cls._is_healthy = False
                logger.critical(
                    "Failed to initialize RedisService",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "url_scheme": resolved_url.split("://")[0],
                    },
                    exc_info=True,
                )
                raise RuntimeError(f"Failed to initialize RedisService: {exc}") from exc

            cls._client = candidate
            cls._is_healthy = True

            logger.info(
                "RedisService initialized successfully",
                extra={
                    "url_scheme": resolved_url.split("://")[0],
                    "socket_timeout_seconds": socket_timeout,
                    "max_connections": max_connections,
                    "initialization_time_ms": round(
                        (time.monotonic() - start_time) * 1000, 2
                    ),
                },
            )

    @classmethod
    async def shutdown(cls) -> None:
        """Close the client. Safe to call when not initialized."""
        client = cls._client
        cls._client = None
        cls._is_healthy = False

        if client is None:
            logger.debug("RedisService not initialized, nothing to shutdown")
            return

        await client.aclose()
        logger.info("RedisService shutdown complete")

    # ═══════════════════════════════════════════════════════════════════════
    # HEALTH & STATUS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def health_check(cls) -> bool:
        """Verify Redis connectivity via PING. Never raises."""
        if cls._client is None:
            logger.warning("Health check failed: RedisService not initialized")
            cls._is_healthy = False
            return False

        try:
            start_time = time.monotonic()
            pong = await cls._client.ping()
            cls._is_healthy = bool(pong)
            logger.debug(
                "Redis health check completed",
                extra={
                    "healthy": cls._is_healthy,
                    "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
                },
            )
            return cls._is_healthy
        except (RedisConnectionError, RedisError, OSError) as exc:
            cls._is_healthy = False
            logger.error(
                "Redis health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False

    @classmethod
    def is_healthy(cls) -> bool:
        return cls._is_healthy

    @classmethod
    def client(cls) -> AsyncRedis:
        """
        Return the singleton Redis client.

        Raises
        ------
        RuntimeError
            If RedisService has not been initialized.
        """
        if cls._client is None:
            raise RuntimeError(
                "RedisService not initialized. "
                "Call `await RedisService.initialize()` first."
            )
        return cls._client

    # ═══════════════════════════════════════════════════════════════════════
    # SET OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def _run(cls, op: str, key: str, coro: Any) -> Any:
        start_time = time.monotonic()
        try:
            result = await coro
        except RedisError as exc:
            logger.error(
                f"Redis {op} operation failed",
                extra={
                    "key": key,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                    "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
                },
                exc_info=True,
            )
            raise
        logger.debug(
            f"Redis {op} operation",
            extra={
                "key": key,
                "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return result

    @classmethod
    async def sadd(cls, key: str, *members: str) -> int:
        return int(await cls._run("SADD", key, cls.client().sadd(key, *members)))

    @classmethod
    async def srem(cls, key: str, *members: str) -> int:
        return int(await cls._run("SREM", key, cls.client().srem(key, *members)))

    @classmethod
    async def sismember(cls, key: str, member: str) -> bool:
        return bool(await cls._run("SISMEMBER", key, cls.client().sismember(key, member)))

    @classmethod
    async def smismember(cls, key: str, members: Iterable[str]) -> list[bool]:
        members = list(members)
        if not members:
            return []
        result = await cls._run("SMISMEMBER", key, cls.client().smismember(key, members))
        return [bool(flag) for flag in result]

    @classmethod
    async def smembers(cls, key: str) -> set[str]:
        return set(await cls._run("SMEMBERS", key, cls.client().smembers(key)))

    @classmethod
    async def delete(cls, key: str) -> int:
        return int(await cls._run("DEL", key, cls.client().delete(key)))
