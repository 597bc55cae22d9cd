"""
Valor - Application Entry Point
===============================

Bootstrap
---------
- Logging
- ConfigManager (YAML tunables)
- Database service and schema
- Redis (only when presence is Redis-backed)
- Event bus and service container
- Auction sweeper

The engine has no transport of its own: an embedding host (HTTP gateway,
socket server, chat bot) imports ``_startup`` or builds a ServiceContainer
directly and calls services. Running this module keeps the background
tasks alive until interrupted.
"""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import Optional

from valor.core.config.config import Config
from valor.core.config.manager import ConfigManager
from valor.core.database.service import DatabaseService
from valor.core.event.bus import EventBus
from valor.core.logging.logger import get_logger, setup_logging, shutdown_logging
from valor.core.redis.service import RedisService
from valor.core.services.container import ServiceContainer
from valor.modules.presence import InMemoryPresenceService, PresenceService, RedisPresenceService

logger = get_logger(__name__)


# ============================================================================
# Application Bootstrap
# ============================================================================


async def _startup() -> ServiceContainer:
    """Initialize all infrastructure components and the domain services."""
    logger.info("========== VALOR INITIALIZATION START ==========")

    ConfigManager.initialize()
    logger.info("✓ Config manager initialized")

    try:
        await DatabaseService.initialize()
        await DatabaseService.create_all()
        logger.info("✓ Database service initialized")
    except Exception as exc:
        logger.critical(f"Database initialization failed: {exc}", exc_info=True)
        raise

    presence: PresenceService
    if Config.REDIS_ENABLED:
        await RedisService.initialize()
        presence = RedisPresenceService()
        logger.info("✓ Redis presence enabled")
    else:
        presence = InMemoryPresenceService()

    event_bus = EventBus(config_manager=ConfigManager)
    container = ServiceContainer(
        config_manager=ConfigManager,
        event_bus=event_bus,
        logger=get_logger("valor.core.services.container"),
        presence=presence,
    )
    await container.initialize()
    await container.start_background_tasks()
    logger.info("✓ Service container initialized")

    logger.info("========== INFRASTRUCTURE INITIALIZED SUCCESSFULLY ==========")
    return container


# ============================================================================
# Application Shutdown
# ============================================================================


async def _shutdown(container: Optional[ServiceContainer]) -> None:
    """Stop background work and release infrastructure in reverse order."""
    logger.info("========== VALOR SHUTDOWN START ==========")

    if container is not None:
        try:
            await container.shutdown()
            logger.info("✓ Service container shut down")
        except Exception as exc:
            logger.error(f"Service container shutdown error: {exc}", exc_info=True)

    try:
        await RedisService.shutdown()
    except Exception as exc:
        logger.error(f"Redis shutdown error: {exc}", exc_info=True)

    try:
        await DatabaseService.shutdown()
        logger.info("✓ Database service shut down")
    except Exception as exc:
        logger.error(f"Database service shutdown error: {exc}", exc_info=True)

    logger.info("========== SHUTDOWN COMPLETE ==========")


# ============================================================================
# Application Entrypoint
# ============================================================================


async def main() -> None:
    setup_logging()
    container: Optional[ServiceContainer] = None
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGTERM, stop.set)
    except NotImplementedError:
        logger.debug("SIGTERM not supported on this platform")

    try:
        container = await _startup()
        await stop.wait()
    except asyncio.CancelledError:
        logger.warning("Asyncio task cancellation received; shutting down gracefully.")
        raise
    except Exception as exc:
        logger.critical(f"Fatal startup error: {exc}", exc_info=True)
        sys.exit(1)
    finally:
        await _shutdown(container)
        shutdown_logging()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Stopped via keyboard interrupt.")
