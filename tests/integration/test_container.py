"""
Integration Tests for ServiceContainer
======================================

Test Coverage
-------------
- Accessors before and after initialization
- Status report
- Sweeper start/stop through the container lifecycle
"""

import pytest

from valor.core.logging.logger import get_logger
from valor.core.services.container import ServiceContainer
from valor.modules.presence import InMemoryPresenceService

SERVICES = [
    "auction_sweeper",
    "auctions",
    "challenges",
    "dungeon",
    "economy",
    "guild_battles",
    "guilds",
    "leaderboards",
    "pets",
    "players",
    "power",
    "tower",
]


@pytest.mark.integration
class TestServiceContainer:
    def test_accessors_before_initialize(self, config_manager, mock_event_bus):
        services = ServiceContainer(config_manager, mock_event_bus, get_logger("tests"))

        with pytest.raises(RuntimeError):
            services.tower
        assert isinstance(services.presence, InMemoryPresenceService)
        assert services.get_status()["initialized"] is False

    async def test_status_after_initialize(self, container):
        status = container.get_status()

        assert status["initialized"]
        assert status["services"] == SERVICES
        assert set(status["init_times_ms"]) == set(SERVICES)
        assert status["background"]["name"] == "auction-sweeper"
        assert not status["background"]["is_running"]

    async def test_initialize_twice(self, container):
        tower = container.tower

        await container.initialize()

        assert container.tower is tower

    async def test_shared_dependencies(self, container, locks, presence):
        assert container.locks is locks
        assert container.presence is presence

    async def test_sweep_interval_from_config(self, database, config_manager, mock_event_bus):
        config_manager.set_override("auction.sweep_interval_seconds", 15)
        services = ServiceContainer(config_manager, mock_event_bus, get_logger("tests"))

        await services.initialize()

        assert services.auction_sweeper.interval_seconds == 15

    async def test_background_lifecycle(self, container):
        await container.start_background_tasks()
        assert container.auction_sweeper.is_running

        await container.shutdown()

        assert not container.auction_sweeper.is_running
        assert container.get_status()["initialized"] is False
