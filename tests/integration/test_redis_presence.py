"""
Integration Tests for RedisPresenceService
==========================================

Runs against a Redis testcontainer; skipped when Docker is unavailable.
"""

import pytest
import pytest_asyncio

from valor.core.redis.service import RedisService
from valor.modules.presence import RedisPresenceService


@pytest_asyncio.fixture
async def redis_presence(redis_container):
    host = redis_container.get_container_host_ip()
    port = redis_container.get_exposed_port(6379)
    await RedisService.shutdown()
    await RedisService.initialize(url=f"redis://{host}:{port}/0")
    presence = RedisPresenceService(key="valor:test:presence")
    await RedisService.delete("valor:test:presence")
    yield presence
    await RedisService.delete("valor:test:presence")
    await RedisService.shutdown()


@pytest.mark.integration
@pytest.mark.redis
class TestRedisPresence:
    async def test_round_trip(self, redis_presence):
        await redis_presence.mark_online("a")
        await redis_presence.mark_online("c")
        await redis_presence.mark_offline("c")

        assert await redis_presence.is_online("a")
        assert await redis_presence.online_among(["c", "b", "a"]) == ["a"]

    async def test_empty_lookup(self, redis_presence):
        assert await redis_presence.online_among([]) == []

    async def test_health_check(self, redis_presence):
        assert await RedisService.health_check()
        assert RedisService.is_healthy()
