"""
DatabaseService - one async engine and the unit-of-work helpers around it.

Every engine operation that changes state runs inside
``get_transaction()``: the block commits when it exits normally and rolls
back when anything escapes it, including a ``ValorDomainError``. Services
never call ``session.commit()`` themselves. Read-only lookups use
``get_session()``.

Backends
--------
- PostgreSQL via asyncpg in production. ``get_locked_entity`` and
  ``for_update=True`` reads take real row locks, which is what serializes
  two engine processes touching the same account.
- SQLite via aiosqlite for local runs and the test suite. The dialect
  drops ``FOR UPDATE``; inside one process ``EntityLockRegistry`` provides
  the serialization instead.

Pooling follows the URL: a QueuePool for PostgreSQL, NullPool for SQLite
and whenever ``Config`` says the environment is ``testing``.

``create_all()`` / ``drop_all()`` build the schema for development and
tests; migrations are outside the engine.

    async with DatabaseService.get_transaction() as session:
        account = await DatabaseService.get_locked_entity(session, Account, actor_id)
        account.gold += 1000
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Optional, Type, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, Pool

from valor.core.config.config import Config
from valor.core.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


# ============================================================================
# Exceptions
# ============================================================================


class DatabaseInitializationError(RuntimeError):
    """Raised when database engine initialization fails."""


class DatabaseNotInitializedError(RuntimeError):
    """Raised when database operations are attempted before initialization."""


# ============================================================================
# Configuration Snapshot
# ============================================================================


@dataclass(frozen=True)
class _DatabaseConfigSnapshot:
    """Immutable view of database configuration for the engine's lifetime."""

    url: str
    echo: bool
    pool_class: Optional[Type[Pool]]
    pool_size: int
    max_overflow: int
    pool_recycle: int

    @property
    def is_postgres(self) -> bool:
        return self.url.startswith(("postgresql://", "postgresql+asyncpg://"))

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def url_scheme(self) -> str:
        return self.url.split(":", 1)[0] if ":" in self.url else "unknown"


# ============================================================================
# DatabaseService
# ============================================================================


class DatabaseService:
    """
    Centralized async database engine and session management.

    Public API
    ----------
    - initialize() / shutdown()
    - get_session() -> read-only access
    - get_transaction() -> atomic write transaction (preferred)
    - get_locked_entity() -> pessimistic row lock helper
    - health_check() -> fast reachability check
    - create_all() / drop_all() -> schema management for dev and tests
    """

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    _config_snapshot: Optional[_DatabaseConfigSnapshot] = None
    _init_lock: Optional[asyncio.Lock] = None

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    @classmethod
    def _lock(cls) -> asyncio.Lock:
        # Created lazily so the lock binds to the running loop.
        if cls._init_lock is None:
            cls._init_lock = asyncio.Lock()
        return cls._init_lock

    @classmethod
    def _build_config_snapshot(cls, url: Optional[str]) -> _DatabaseConfigSnapshot:
        """
        Build an immutable configuration snapshot from Config.

        Raises
        ------
        DatabaseInitializationError
            If the database URL is missing or invalid.
        """
        database_url = url or Config.DATABASE_URL
        if not database_url or not isinstance(database_url, str):
            logger.error("DATABASE_URL is not configured or invalid")
            raise DatabaseInitializationError(
                "DATABASE_URL must be configured as a non-empty string"
            )

        use_null_pool = Config.is_testing() or database_url.startswith("sqlite")

        snapshot = _DatabaseConfigSnapshot(
            url=database_url,
            echo=Config.DATABASE_ECHO,
            pool_class=NullPool if use_null_pool else None,
            pool_size=Config.DATABASE_POOL_SIZE,
            max_overflow=Config.DATABASE_MAX_OVERFLOW,
            pool_recycle=Config.DATABASE_POOL_RECYCLE,
        )

        logger.debug(
            "Database configuration snapshot created",
            extra={
                "url_scheme": snapshot.url_scheme,
                "pool_class": "NullPool" if use_null_pool else "default",
                "pool_size": snapshot.pool_size,
                "max_overflow": snapshot.max_overflow,
            },
        )
        return snapshot

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> None:
        """
        Initialize the database engine and session factory (idempotent).

        Parameters
        ----------
        url:
            Optional URL overriding ``Config.DATABASE_URL`` (tests use this).

        Raises
        ------
        DatabaseInitializationError
            If configuration is invalid or engine creation fails.
        """
        async with cls._lock():
            if cls._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            logger.info("Initializing DatabaseService")

            config = cls._build_config_snapshot(url)
            engine_kwargs: dict[str, Any] = {"echo": config.echo}
            if config.pool_class is not None:
                engine_kwargs["poolclass"] = config.pool_class
            else:
                engine_kwargs.update(
                    {
                        "pool_size": config.pool_size,
                        "max_overflow": config.max_overflow,
                        "pool_recycle": config.pool_recycle,
                        "pool_pre_ping": True,
                    }
                )

            try:
                cls._engine = create_async_engine(config.url, **engine_kwargs)
            except (ValueError, TypeError, ImportError) as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

            cls._config_snapshot = config
            cls._session_factory = async_sessionmaker(
                bind=cls._engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )

            logger.info(
                "DatabaseService initialized successfully",
                extra={"url_scheme": config.url_scheme},
            )

    @classmethod
    async def shutdown(cls) -> None:
        """Dispose the engine and reset internal state. Safe to call twice."""
        async with cls._lock():
            if cls._engine is None:
                logger.debug("DatabaseService not initialized; nothing to shutdown")
                return

            logger.info("Shutting down DatabaseService")
            try:
                await cls._engine.dispose()
            finally:
                cls._engine = None
                cls._session_factory = None
                cls._config_snapshot = None
            logger.info("DatabaseService shutdown complete")

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._engine is not None

    # ========================================================================
    # Schema
    # ========================================================================

    @classmethod
    async def create_all(cls) -> None:
        """Create every table registered on ``Base.metadata``."""
        from valor.core.database.base import Base
        import valor.database.models  # noqa: F401  (registers all tables)

        engine = cls._require_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(
            "Database schema created",
            extra={"table_count": len(Base.metadata.tables)},
        )

    @classmethod
    async def drop_all(cls) -> None:
        from valor.core.database.base import Base
        import valor.database.models  # noqa: F401

        engine = cls._require_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    # ========================================================================
    # Health Check
    # ========================================================================

    @classmethod
    async def health_check(cls) -> bool:
        """
        Execute ``SELECT 1``. Returns False instead of raising on failure.
        """
        if cls._engine is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        start = time.perf_counter()
        try:
            async with cls._engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (OperationalError, DBAPIError, OSError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False
        finally:
            logger.debug(
                "Database health check completed",
                extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
            )

    # ========================================================================
    # Session & Transaction Context Managers
    # ========================================================================

    @classmethod
    def _require_engine(cls) -> AsyncEngine:
        if cls._engine is None:
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call DatabaseService.initialize() during startup."
            )
        return cls._engine

    @classmethod
    def _ensure_initialized(cls) -> async_sessionmaker[AsyncSession]:
        if cls._session_factory is None or cls._engine is None:
            logger.error("DatabaseService operation attempted before initialization")
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call DatabaseService.initialize() during startup."
            )
        return cls._session_factory

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Create a database session without automatic commit.

        Use for read-only operations. For writes, use `get_transaction()`.
        """
        factory = cls._ensure_initialized()
        async with factory() as session:
            yield session

    @classmethod
    @asynccontextmanager
    async def get_transaction(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Create a database session wrapped in an atomic transaction.

        On success the transaction commits; on any exception it rolls back
        and the original exception is re-raised.
        """
        factory = cls._ensure_initialized()

        start = time.perf_counter()
        async with factory() as session:
            try:
                yield session
                await session.commit()
                logger.debug(
                    "Database transaction committed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )
            except OperationalError as exc:
                await session.rollback()
                logger.error(
                    "OperationalError in transaction; rolled back",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise
            except BaseException as exc:
                await session.rollback()
                logger.debug(
                    "Database transaction rolled back",
                    extra={
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                )
                raise

    # ========================================================================
    # Locking Helper
    # ========================================================================

    @staticmethod
    async def get_locked_entity(
        session: AsyncSession,
        model: Type[T],
        primary_key: Any,
    ) -> Optional[T]:
        """
        Fetch a row with ``SELECT ... FOR UPDATE``.

        ``populate_existing`` refreshes an identity-map hit so the caller
        always sees the committed row.
        """
        return await session.get(
            model,
            primary_key,
            with_for_update=True,
            populate_existing=True,
        )
