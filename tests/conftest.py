"""
Pytest Configuration and Fixtures for the Valor Engine Tests
============================================================

Purpose
-------
Centralized test fixtures for the Valor test suite: database lifecycle,
configuration, the service container, mocks and entity factories.

Responsibilities
----------------
- Per-test SQLite database (aiosqlite) for service integration tests
- Testcontainers setup for PostgreSQL and Redis (``database`` marker)
- ConfigManager bootstrapped from the repository's ``config/`` directory
- Mock EventBus that records every published event
- Factories that insert accounts, pets, items and birds directly

Non-Responsibilities
--------------------
- Test implementation (delegated to test files)
- Business logic (delegated to services and engines)

Architecture Notes
------------------
- Unit tests use pure functions and mocks (fast, isolated)
- Service tests run against a fresh SQLite file per test; the file lives in
  ``tmp_path`` so every test starts from an empty schema
- PostgreSQL tests need Docker and are skipped when it is unavailable
"""

from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

import random
import uuid
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, Generator, List, Optional

import pytest
import pytest_asyncio

from valor.core.concurrency.locks import EntityLockRegistry
from valor.core.config.manager import ConfigManager
from valor.core.database.service import DatabaseService
from valor.core.logging.logger import get_logger
from valor.core.services.container import ServiceContainer
from valor.database.models import Account, Bird, Guild, Item, Pet
from valor.modules.presence import InMemoryPresenceService

logger = get_logger(__name__)

CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


# ============================================================================
# RANDOMNESS HELPERS
# ============================================================================


class FixedRandom(random.Random):
    """``random.Random`` whose ``random()`` always returns the same value."""

    def __init__(self, value: float) -> None:
        super().__init__(0)
        self.value = value

    def random(self) -> float:
        return self.value


class SequenceRandom(random.Random):
    """``random.Random`` that replays a fixed list of ``random()`` values."""

    def __init__(self, values: List[float]) -> None:
        super().__init__(0)
        self.values = list(values)

    def random(self) -> float:
        return self.values.pop(0)


# ============================================================================
# TESTCONTAINERS FIXTURES (PostgreSQL / Redis)
# ============================================================================


@pytest.fixture(scope="session")
def postgres_container() -> Generator[Any, None, None]:
    """
    Start a PostgreSQL testcontainer.

    Scope: session (container persists across all tests)
    Uses: tests marked ``database``; skipped when Docker is unavailable
    """
    from testcontainers.postgres import PostgresContainer

    container = PostgresContainer(image="postgres:17-alpine", driver="asyncpg")
    try:
        container.start()
    except Exception as exc:  # Docker missing or unreachable
        pytest.skip(f"PostgreSQL testcontainer unavailable: {exc}")

    logger.info("PostgreSQL testcontainer started: %s", container.get_connection_url())
    yield container

    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()


@pytest.fixture(scope="session")
def redis_container() -> Generator[Any, None, None]:
    """
    Start a Redis testcontainer.

    Scope: session
    Uses: Redis-backed presence tests; skipped when Docker is unavailable
    """
    from testcontainers.redis import RedisContainer

    container = RedisContainer(image="redis:7-alpine")
    try:
        container.start()
    except Exception as exc:  # Docker missing or unreachable
        pytest.skip(f"Redis testcontainer unavailable: {exc}")

    logger.info(
        "Redis testcontainer started: %s:%s",
        container.get_container_host_ip(),
        container.get_exposed_port(6379),
    )
    yield container

    container.stop()


# ============================================================================
# CONFIGURATION
# ============================================================================


@pytest.fixture
def config_manager() -> Generator[type[ConfigManager], None, None]:
    """
    ConfigManager loaded from the repository YAML.

    Scope: function (overrides never leak between tests)
    """
    ConfigManager.reset()
    ConfigManager.initialize(CONFIG_DIR)
    yield ConfigManager
    ConfigManager.reset()


# ============================================================================
# DATABASE FIXTURES (SQLite per test)
# ============================================================================


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncGenerator[str, None]:
    """
    Fresh SQLite database with the full schema.

    Scope: function (clean slate per test)
    """
    url = f"sqlite+aiosqlite:///{tmp_path / 'valor-test.db'}"
    await DatabaseService.shutdown()
    await DatabaseService.initialize(url)
    await DatabaseService.create_all()
    yield url
    await DatabaseService.shutdown()


# ============================================================================
# MOCK FIXTURES
# ============================================================================


@pytest.fixture
def mock_event_bus(mocker):
    """
    Mock EventBus that records published events.

    Scope: function
    Uses: every service test; assertions go through ``published``
    """
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock(return_value=[])
    mock_bus.subscribe = mocker.MagicMock()
    return mock_bus


@pytest.fixture
def mock_config_manager(mocker):
    """
    Mock ConfigManager for unit tests. ``get`` always returns the default.

    Scope: function
    """
    mock_config = mocker.MagicMock()
    mock_config.get = mocker.MagicMock(side_effect=lambda key, default=None: default)
    return mock_config


def published(bus, event_name: str) -> List[Dict[str, Any]]:
    """
    Payloads of every ``event_name`` published on a mock bus, in order.

    Usage:
        await service.place_bid(auction_id, actor_id, 500)
        assert published(bus, "auctionBid")[0]["amount"] == 500
    """
    return [
        call.args[1]
        for call in bus.publish.await_args_list
        if call.args and call.args[0] == event_name
    ]


# ============================================================================
# SERVICE FIXTURES
# ============================================================================


@pytest.fixture
def locks() -> EntityLockRegistry:
    return EntityLockRegistry()


@pytest.fixture
def presence() -> InMemoryPresenceService:
    return InMemoryPresenceService()


@pytest_asyncio.fixture
async def container(
    database: str,
    config_manager: type[ConfigManager],
    mock_event_bus,
    locks: EntityLockRegistry,
    presence: InMemoryPresenceService,
) -> AsyncGenerator[ServiceContainer, None]:
    """
    Initialized ServiceContainer wired to the per-test database.

    Background tasks are not started; tests drive the sweeper directly.
    """
    services = ServiceContainer(
        config_manager=config_manager,
        event_bus=mock_event_bus,
        logger=get_logger("tests.container"),
        presence=presence,
        locks=locks,
    )
    await services.initialize()
    yield services
    await services.shutdown()


# ============================================================================
# FACTORIES
# ============================================================================


class EntityFactory:
    """
    Inserts rows directly, bypassing services, so a test can start from any
    state. Every method returns the new row's id.
    """

    async def _insert(self, entity: Any) -> str:
        async with DatabaseService.get_transaction() as session:
            session.add(entity)
            await session.flush()
            return entity.id

    async def account(self, username: Optional[str] = None, **fields: Any) -> str:
        name = username or f"player-{uuid.uuid4().hex[:10]}"
        return await self._insert(Account(username=name, **fields))

    async def admin(self, username: Optional[str] = None) -> str:
        return await self.account(username or f"admin-{uuid.uuid4().hex[:10]}", role="admin")

    async def pet(self, account_id: str, **fields: Any) -> str:
        fields.setdefault("name", "Ember")
        return await self._insert(Pet(account_id=account_id, **fields))

    async def item(self, account_id: str, **fields: Any) -> str:
        fields.setdefault("item_key", "iron_sword")
        return await self._insert(Item(account_id=account_id, **fields))

    async def bird(self, account_id: str, **fields: Any) -> str:
        fields.setdefault("name", "Sparrow")
        return await self._insert(Bird(account_id=account_id, **fields))

    async def get(self, model: type, entity_id: str) -> Any:
        async with DatabaseService.get_session() as session:
            return await session.get(model, entity_id)

    async def update(self, model: type, entity_id: str, **fields: Any) -> None:
        async with DatabaseService.get_transaction() as session:
            entity = await session.get(model, entity_id)
            assert entity is not None, f"{model.__name__} {entity_id} missing"
            for key, value in fields.items():
                setattr(entity, key, value)

    async def set_guild(self, guild_id: str, **fields: Any) -> None:
        await self.update(Guild, guild_id, **fields)


@pytest.fixture
def factory(database: str) -> EntityFactory:
    return EntityFactory()
