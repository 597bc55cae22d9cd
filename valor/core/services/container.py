"""
Service Container
=================

Purpose
-------
Centralized dependency injection container for all domain services.
Builds every service once, wires the shared lock registry, presence
tracker and event bus into them, and owns the background tasks.

Responsibilities
----------------
- Initialize all domain services with their dependencies, in order
- Start and stop the auction sweeper
- Expose services as read-only properties

Non-Responsibilities
--------------------
- Infrastructure bootstrap (database, Redis, YAML) lives in ``valor.main``
- Business logic

Architecture Notes
------------------
- All domain services share one ``EntityLockRegistry``. Two containers in
  the same process would not serialize against each other.
- Presence defaults to the in-memory tracker; the bootstrap passes the
  Redis-backed one when Redis is configured.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, TypeVar

from valor.core.concurrency.locks import EntityLockRegistry
from valor.core.logging.logger import get_logger
from valor.modules.auction import AuctionService, AuctionSweeper
from valor.modules.combat import ChallengeService
from valor.modules.economy import EconomyService
from valor.modules.guild import GuildDungeonService, GuildService
from valor.modules.leaderboard import LeaderboardService
from valor.modules.pet import PetService
from valor.modules.player import PlayerService
from valor.modules.power import PowerService
from valor.modules.presence import InMemoryPresenceService, PresenceService
from valor.modules.shared.constants import AUCTION_SWEEP_INTERVAL_SECONDS
from valor.modules.tournament import GuildBattleService
from valor.modules.tower import TowerService

if TYPE_CHECKING:
    from logging import Logger

    from valor.core.config.manager import ConfigManager
    from valor.core.event.bus import EventBus

logger = get_logger(__name__)

T = TypeVar("T")


class ServiceContainer:
    """
    Dependency injection container for all domain services.

    Usage:
        container = ServiceContainer(ConfigManager, event_bus, logger)
        await container.initialize()

        result = await container.tower.battle_npc(actor_id)
    """

    def __init__(
        self,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
        presence: Optional[PresenceService] = None,
        locks: Optional[EntityLockRegistry] = None,
    ) -> None:
        """
        Args:
            config_manager: Application configuration manager
            event_bus: Event bus for outbound domain events
            logger: Structured logger instance
            presence: Online-presence tracker (in-memory when omitted)
            locks: Shared per-entity lock registry (fresh when omitted)
        """
        self._config_manager = config_manager
        self._event_bus = event_bus
        self._logger = logger
        self._presence: PresenceService = presence or InMemoryPresenceService()
        self._locks = locks or EntityLockRegistry()

        self._power: Optional[PowerService] = None
        self._players: Optional[PlayerService] = None
        self._economy: Optional[EconomyService] = None
        self._pets: Optional[PetService] = None
        self._tower: Optional[TowerService] = None
        self._challenges: Optional[ChallengeService] = None
        self._leaderboards: Optional[LeaderboardService] = None
        self._guilds: Optional[GuildService] = None
        self._dungeon: Optional[GuildDungeonService] = None
        self._guild_battles: Optional[GuildBattleService] = None
        self._auctions: Optional[AuctionService] = None
        self._auction_sweeper: Optional[AuctionSweeper] = None

        self._initialized = False
        self._service_init_times: Dict[str, float] = {}

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def initialize(self) -> None:
        """Build every service. Calling twice is a logged no-op."""
        if self._initialized:
            self._logger.warning("ServiceContainer already initialized")
            return

        start = time.perf_counter()
        self._logger.info("Service container initialization starting...")

        base = (self._config_manager, self._event_bus)

        self._power = self._timed("power", lambda: PowerService(*base, self._service_logger(PowerService)))
        power = self._power

        self._players = self._create_service("players", PlayerService, power)
        self._economy = self._create_service("economy", EconomyService)
        self._pets = self._create_service("pets", PetService)
        self._tower = self._create_service("tower", TowerService, power)
        self._challenges = self._create_service("challenges", ChallengeService, power)
        self._leaderboards = self._create_service("leaderboards", LeaderboardService)
        self._guilds = self._create_service("guilds", GuildService)
        self._dungeon = self._create_service("dungeon", GuildDungeonService, self._presence)
        self._guild_battles = self._create_service(
            "guild_battles", GuildBattleService, power, self._leaderboards
        )
        self._auctions = self._create_service("auctions", AuctionService)

        interval = float(
            self._config_manager.get(
                "auction.sweep_interval_seconds", AUCTION_SWEEP_INTERVAL_SECONDS
            )
        )
        auctions = self._auctions
        self._auction_sweeper = self._timed(
            "auction_sweeper", lambda: AuctionSweeper(auctions, interval_seconds=interval)
        )

        self._initialized = True
        self._logger.info(
            "Service container initialized",
            extra={
                "service_count": len(self._service_init_times),
                "init_time_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )

    async def start_background_tasks(self) -> None:
        await self.auction_sweeper.start()

    async def shutdown(self) -> None:
        """Stop background work. Services hold no other resources."""
        if self._auction_sweeper is not None:
            await self._auction_sweeper.stop()
        self._initialized = False
        self._logger.info("Service container shut down")

    def _service_logger(self, service_class: type) -> Logger:
        return get_logger(f"{service_class.__module__}.{service_class.__name__}")

    def _timed(self, name: str, factory: Callable[[], T]) -> T:
        started = time.perf_counter()
        instance = factory()
        self._service_init_times[name] = time.perf_counter() - started
        return instance

    def _create_service(self, name: str, service_class: Callable[..., T], *extra: Any) -> T:
        """Standard constructor shape: (config, bus, logger, locks, *extra)."""
        return self._timed(
            name,
            lambda: service_class(
                self._config_manager,
                self._event_bus,
                self._service_logger(service_class),  # type: ignore[arg-type]
                self._locks,
                *extra,
            ),
        )

    def _require(self, service: Optional[T], name: str) -> T:
        if service is None:
            raise RuntimeError(f"ServiceContainer not initialized: {name} unavailable")
        return service

    # ========================================================================
    # Accessors
    # ========================================================================

    @property
    def locks(self) -> EntityLockRegistry:
        return self._locks

    @property
    def presence(self) -> PresenceService:
        return self._presence

    @property
    def power(self) -> PowerService:
        return self._require(self._power, "power")

    @property
    def players(self) -> PlayerService:
        return self._require(self._players, "players")

    @property
    def economy(self) -> EconomyService:
        return self._require(self._economy, "economy")

    @property
    def pets(self) -> PetService:
        return self._require(self._pets, "pets")

    @property
    def tower(self) -> TowerService:
        return self._require(self._tower, "tower")

    @property
    def challenges(self) -> ChallengeService:
        return self._require(self._challenges, "challenges")

    @property
    def leaderboards(self) -> LeaderboardService:
        return self._require(self._leaderboards, "leaderboards")

    @property
    def guilds(self) -> GuildService:
        return self._require(self._guilds, "guilds")

    @property
    def dungeon(self) -> GuildDungeonService:
        return self._require(self._dungeon, "dungeon")

    @property
    def guild_battles(self) -> GuildBattleService:
        return self._require(self._guild_battles, "guild_battles")

    @property
    def auctions(self) -> AuctionService:
        return self._require(self._auctions, "auctions")

    @property
    def auction_sweeper(self) -> AuctionSweeper:
        return self._require(self._auction_sweeper, "auction_sweeper")

    def get_status(self) -> Dict[str, Any]:
        return {
            "initialized": self._initialized,
            "services": sorted(self._service_init_times),
            "init_times_ms": {
                name: round(seconds * 1000, 3)
                for name, seconds in self._service_init_times.items()
            },
            "background": (
                self._auction_sweeper.get_status() if self._auction_sweeper else None
            ),
        }
