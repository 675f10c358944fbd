import logging
from typing import Optional
from urllib.parse import urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from tx_scope.exceptions import TxScopeDBConfigurationError, TxScopeDBConnectionError
from tx_scope.settings import Settings

logger = logging.getLogger(__name__)


def _mask_password(url: str) -> str:
    """Masks the password in the database URL."""
    parsed = urlparse(url)
    if parsed.password:
        return urlunparse(parsed._replace(netloc=f"{parsed.username}:***@{parsed.hostname}:{parsed.port}"))
    return url


def _get_db_url(settings: Settings) -> str:
    """Determines the database URL, converting to asyncpg URL if needed

    Returns:
        The database URL as a string.

    Raises:
        TxScopeDBConfigurationError: If missing required variables.
    """
    database_url = settings.get_database_url()

    if database_url:
        logger.info("Using DATABASE_URL for database connection.")

        if database_url.startswith("postgresql://"):
            database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql+asyncpg://", 1)

        return database_url

    logger.info("DATABASE_URL not found. Falling back to individual DB_* variables.")

    db_vars = dict(
        DB_USER=settings.get_postgres_user(),
        DB_PASSWORD=settings.get_postgres_password(),
        DB_HOST=settings.get_postgres_host(),
        DB_PORT=settings.get_postgres_port(),
        DB_NAME=settings.get_postgres_db(),
    )

    if not all(db_vars.values()):
        missing_vars = [k for k, v in db_vars.items() if v is None]
        raise TxScopeDBConfigurationError(
            f"DATABASE_URL not set, and missing required DB_* variables to construct URL: {missing_vars}"
        )

    async_url = f"postgresql+asyncpg://{db_vars['DB_USER']}:{db_vars['DB_PASSWORD']}@{db_vars['DB_HOST']}:{db_vars['DB_PORT']}/{db_vars['DB_NAME']}"
    logger.debug(f"Constructed database URL from individual variables: {_mask_password(async_url)}")
    return async_url


def create_db_engine(settings: Optional[Settings] = None) -> AsyncEngine:
    """Creates the async engine described by the settings.

    Raises:
        TxScopeDBConfigurationError: If the database configuration is invalid.
        TxScopeDBConnectionError: If the engine cannot be created.
    """
    settings = settings or Settings()
    db_url = _get_db_url(settings)

    logger.info("Attempting to create database engine...")
    engine_kwargs = dict(echo=settings.get_db_echo(), pool_pre_ping=True)
    if not db_url.startswith("sqlite"):
        pool_min_size = settings.get_main_db_pool_min_size()
        pool_max_size = settings.get_main_db_pool_max_size()
        engine_kwargs.update(pool_size=pool_min_size, max_overflow=pool_max_size - pool_min_size)

    try:
        engine = create_async_engine(db_url, **engine_kwargs)
    except Exception as e:
        masked_url = _mask_password(db_url)
        raise TxScopeDBConnectionError(f"Failed to create database engine using URL ({masked_url}): {e}") from e

    logger.info("Database engine created successfully.")
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Creates a session factory bound to the engine."""
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def close_db_engine(engine: Optional[AsyncEngine]) -> None:
    """Closes the database engine."""
    if engine is None:
        logger.info("Database engine was None during shutdown.")
        return
    try:
        await engine.dispose()
        logger.info("Database engine closed successfully.")
    except Exception as e:
        logger.error(f"Error closing database engine: {e}", exc_info=True)
