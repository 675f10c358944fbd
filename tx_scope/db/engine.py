# Storage-engine adapters consumed by the TransactionManager.

import logging
from typing import Any, Awaitable, Callable, Protocol, TypeVar

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TransactionEngine(Protocol):
    """What the TransactionManager needs from a storage engine.

    `open_transaction` awaits `body` exactly once with a transaction-scoped handle,
    commits if it returns, rolls back if it raises, and returns its result or
    re-raises its error.
    """

    base_handle: Any

    async def open_transaction(self, body: Callable[[Any], Awaitable[T]]) -> T: ...

    async def dispose(self) -> None: ...


class ConnectionTransactionEngine:
    """Core-level adapter: the base handle is the AsyncEngine, transactions yield an AsyncConnection."""

    def __init__(self, engine: AsyncEngine) -> None:
        self.base_handle = engine

    async def open_transaction(self, body: Callable[[AsyncConnection], Awaitable[T]]) -> T:
        # engine.begin() commits on normal exit and rolls back if the block raises.
        async with self.base_handle.begin() as connection:
            return await body(connection)

    async def dispose(self) -> None:
        await self.base_handle.dispose()
        logger.info("Database engine disposed.")


class SessionTransactionEngine:
    """ORM-level adapter: the base handle is the session factory, transactions yield an AsyncSession."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.base_handle = session_factory

    async def open_transaction(self, body: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async with self.base_handle() as session:
            async with session.begin():
                return await body(session)

    async def dispose(self) -> None:
        engine = self.base_handle.kw.get("bind")
        if engine is None:
            logger.debug("Session factory has no bound engine to dispose.")
            return
        await engine.dispose()
        logger.info("Database engine disposed.")
