"""
Generic async repository over one ORM model.

Feature repositories subclass ``BaseRepository[Model]`` and add the handful
of queries their service needs; everything else (get by id, filtered
lists, counts, inserts, deletes) lives here. Repositories never commit:
the caller's ``DatabaseService.get_transaction()`` owns the unit of work.

``for_update=True`` issues ``SELECT ... FOR UPDATE`` with
``populate_existing`` so an instance already in the session is refreshed
from the locked row. SQLite ignores the lock clause; the in-process
``EntityLockRegistry`` covers that case.

    class GuildMemberRepository(BaseRepository[GuildMember]):
        async def for_guild(self, session, guild_id):
            return await self.find_many_where(session, GuildMember.guild_id == guild_id)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, select

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic base repository for type-safe database operations.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        """
        Args:
            model_class: The SQLAlchemy model class
            logger: Structured logger instance
        """
        self.model_class = model_class
        self.log = logger

    @property
    def _name(self) -> str:
        return self.model_class.__name__

    def _select(self, for_update: bool):
        stmt = select(self.model_class)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return stmt

    async def get(
        self,
        session: AsyncSession,
        id_value: Any,
        for_update: bool = False,
    ) -> Optional[T]:
        """
        Get a single record by primary key.

        Args:
            session: Database session
            id_value: Primary key value
            for_update: Lock the row with SELECT FOR UPDATE

        Returns:
            Model instance or None if not found
        """
        if id_value is None:
            return None
        stmt = self._select(for_update).where(self.model_class.id == id_value)  # type: ignore[attr-defined]
        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.get: {self._name}",
            extra={
                "model": self._name,
                "id": id_value,
                "found": instance is not None,
                "locked": for_update,
            },
        )
        return instance

    async def get_many(
        self,
        session: AsyncSession,
        id_values: Sequence[Any],
        for_update: bool = False,
    ) -> List[T]:
        """
        Get multiple records by primary keys.

        Locked reads are issued in primary-key order so two transactions
        locking overlapping sets acquire rows in the same order.

        Returns:
            Model instances (may be fewer than requested if some are missing)
        """
        ids = sorted(set(id_values))
        if not ids:
            return []
        stmt = (
            self._select(for_update)
            .where(self.model_class.id.in_(ids))  # type: ignore[attr-defined]
            .order_by(self.model_class.id)  # type: ignore[attr-defined]
        )
        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.get_many: {self._name}",
            extra={
                "model": self._name,
                "requested_count": len(ids),
                "found_count": len(instances),
                "locked": for_update,
            },
        )
        return instances

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
        order_by: Optional[Sequence[Any]] = None,
    ) -> Optional[T]:
        """
        Find the first record matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            for_update: If True, use SELECT FOR UPDATE
            order_by: Optional ordering; the first row wins

        Returns:
            Model instance or None if not found
        """
        stmt = self._select(for_update).where(*conditions)
        if order_by:
            stmt = stmt.order_by(*order_by)
        result = await session.execute(stmt.limit(1))
        instance = result.scalars().first()

        self.log.debug(
            f"Repository.find_one_where: {self._name}",
            extra={
                "model": self._name,
                "found": instance is not None,
                "locked": for_update,
            },
        )
        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
        order_by: Optional[Sequence[Any]] = None,
        limit: Optional[int] = None,
    ) -> List[T]:
        """
        Find multiple records matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            for_update: If True, use SELECT FOR UPDATE
            order_by: Optional ordering clauses
            limit: Optional maximum number of results

        Returns:
            List of model instances
        """
        stmt = self._select(for_update).where(*conditions)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self._name}",
            extra={
                "model": self._name,
                "found_count": len(instances),
                "locked": for_update,
                "limit": limit,
            },
        )
        return instances

    async def exists(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> bool:
        return await self.count(session, *conditions) > 0

    async def count(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        """Count records matching conditions."""
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        count = int(result.scalar_one())

        self.log.debug(
            f"Repository.count: {self._name}",
            extra={"model": self._name, "count": count},
        )
        return count

    def add(self, session: AsyncSession, instance: T) -> T:
        """Add a new instance to the session (flushed on commit)."""
        session.add(instance)
        self.log.debug(
            f"Repository.add: {self._name}",
            extra={"model": self._name},
        )
        return instance

    async def delete(self, session: AsyncSession, instance: T) -> None:
        await session.delete(instance)
        self.log.debug(
            f"Repository.delete: {self._name}",
            extra={"model": self._name, "id": getattr(instance, "id", None)},
        )

    async def flush(self, session: AsyncSession) -> None:
        """Flush pending changes so generated values and constraints apply now."""
        await session.flush()
