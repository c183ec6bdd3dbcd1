"""
Base Repository Pattern

Purpose
-------
Provides a type-safe, generic repository abstraction over SQLAlchemy 2.0
async sessions. Repositories encapsulate reads and row locks; atomic
counter mutations (balance, quantity) stay in the services as explicit
conditional UPDATE statements.

Design Notes
------------
This base repository provides:
- Primary-key and predicate lookups
- Pessimistic locking support (`for_update`)
- Ordered, windowed listing (`order_by`, `offset`, `limit`)
- Existence/counting utilities
- Structured debug logging for every call

What this class does NOT do:
- Manage transactions (DatabaseService / BaseService.run_atomic do that)
- Contain business logic

Usage
-----
    from gigvault.database.models import Account
    from gigvault.modules.shared import BaseRepository

    accounts = BaseRepository[Account](Account, get_logger(__name__))
    account = await accounts.find_one_where(session, Account.identity == 42)
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
        self.model_class = model_class
        self.log = logger

    async def get(self, session: AsyncSession, id_value: Any) -> Optional[T]:
        """Get a single record by primary key (no lock)."""
        stmt = select(self.model_class).where(
            self.model_class.id == id_value  # type: ignore[attr-defined]
        )
        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.get: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "id": id_value,
                "found": instance is not None,
            },
        )

        return instance

    async def get_for_update(
        self, session: AsyncSession, id_value: Any
    ) -> Optional[T]:
        """
        Get a single record by primary key with SELECT FOR UPDATE lock.

        The lock is held until the enclosing transaction ends.
        """
        stmt = (
            select(self.model_class)
            .where(self.model_class.id == id_value)  # type: ignore[attr-defined]
            .with_for_update()
        )
        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.get_for_update: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "id": id_value,
                "found": instance is not None,
                "locked": True,
            },
        )

        return instance

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
    ) -> Optional[T]:
        """
        Find a single record matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            for_update: If True, use SELECT FOR UPDATE
        """
        stmt = select(self.model_class).where(*conditions)

        if for_update:
            stmt = stmt.with_for_update()

        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.find_one_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
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
        offset: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[T]:
        """
        Find multiple records matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            for_update: If True, use SELECT FOR UPDATE (locks in `order_by` order)
            order_by: Optional ordering columns
            offset: Optional number of leading rows to skip
            limit: Optional maximum number of results
        """
        stmt = select(self.model_class).where(*conditions)

        if order_by:
            stmt = stmt.order_by(*order_by)

        if offset:
            stmt = stmt.offset(offset)

        if limit is not None:
            stmt = stmt.limit(limit)

        if for_update:
            stmt = stmt.with_for_update()

        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "found_count": len(instances),
                "locked": for_update,
                "offset": offset,
                "limit": limit,
            },
        )

        return instances

    async def exists(
        self, session: AsyncSession, *conditions: ColumnElement[bool]
    ) -> bool:
        """Check if any record matching conditions exists."""
        return await self.count(session, *conditions) > 0

    async def count(
        self, session: AsyncSession, *conditions: ColumnElement[bool]
    ) -> int:
        """Count records matching conditions."""
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        count = result.scalar_one()

        self.log.debug(
            f"Repository.count: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "count": count,
            },
        )

        return count

    def add(self, session: AsyncSession, instance: T) -> T:
        """Add a new instance to the session."""
        session.add(instance)

        self.log.debug(
            f"Repository.add: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__},
        )

        return instance

    async def flush(self, session: AsyncSession) -> None:
        """Flush pending changes to the database."""
        await session.flush()

        self.log.debug(
            f"Repository.flush: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__},
        )
