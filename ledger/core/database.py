"""Core classes and mixins for DB connections"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional, cast
from typing import Callable, AsyncContextManager

import structlog
from sqlalchemy import text
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import AsyncAdaptedQueuePool
from sqlalchemy.types import DateTime, TypeDecorator

from ledger.core import config
from ledger.core.errors import DatabaseConnectionError, MigrationError

Base = declarative_base()
SessionMaker = Callable[[], AsyncContextManager[AsyncSession]]

logger = structlog.get_logger(__name__)

ASYNC_DRIVER_PREFIX = "sqlite+aiosqlite:"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Stores naive UTC in SQLite and hands back aware datetimes."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


def async_database_url(url: str) -> str:
    """
    Convert a ``sqlite:`` URL into an SQLAlchemy aiosqlite URL.

    ``sqlite:./ledger.sqlite``, ``sqlite://ledger.sqlite``, ``sqlite:///tmp/ledger.sqlite``
    and ``sqlite::memory:`` are all accepted.
    """
    if url.startswith(ASYNC_DRIVER_PREFIX):
        return url
    if not url.startswith("sqlite:"):
        raise DatabaseConnectionError(f"Unsupported database URL: {url}")
    path = url[len("sqlite:"):]
    if path.startswith("//"):
        path = path[2:]
    path = path.split("?", 1)[0]
    if path in ("", ":memory:"):
        return f"{ASYNC_DRIVER_PREFIX}///:memory:"
    return f"{ASYNC_DRIVER_PREFIX}///{path}"


def is_memory_url(url: str) -> bool:
    return url.endswith(":memory:") or url.endswith("://")


class DatabaseManager:
    def __init__(
        self,
        settings: Optional[config.DatabaseSettings] = None,
        engine: Optional[AsyncEngine] = None,
    ) -> None:
        """Initialize DatabaseManager with optional engine for testing."""
        self.settings = settings or config.get_settings().database
        self.engine = engine or self._create_engine()

    def _create_engine(self) -> AsyncEngine:
        """Create async engine for the SQLite database."""
        self.settings.validate_pool()
        url = async_database_url(self.settings.url)
        options: Dict[str, Any] = {
            "echo": False,  # Set to True for SQL query logging
            "pool_pre_ping": True,  # Enable connection health checks
        }
        if not is_memory_url(url):
            options.update(
                poolclass=AsyncAdaptedQueuePool,
                pool_size=self.settings.max_connections,
                max_overflow=0,
                pool_timeout=self.settings.acquire_timeout_seconds,
                pool_recycle=self.settings.max_lifetime or -1,
            )
        try:
            engine = create_async_engine(url, **options)
        except (ArgumentError, ImportError) as error:
            raise DatabaseConnectionError(f"Failed to connect to database pool: {error}") from error
        logger.debug(
            "database_engine_created",
            url=url,
            max_connections=self.settings.max_connections,
            acquire_timeout_seconds=self.settings.acquire_timeout_seconds,
        )
        return engine

    def get_session(self) -> SessionMaker:
        """Returns SessionMaker for database sessions."""
        if not self.engine:
            raise DatabaseConnectionError("Database engine wasn't initialized")

        return cast(
            SessionMaker,
            sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autocommit=False,
                autoflush=False,
            ),
        )

    @asynccontextmanager
    async def get_db(self) -> AsyncContextManager[AsyncSession]:
        """Get database session context manager."""
        async_session = self.get_session()
        async with async_session() as session:
            try:
                yield session
            finally:
                await session.close()

    async def create_schema(self) -> None:
        """Create tables and indexes that do not exist yet."""
        try:
            async with self.engine.begin() as connection:
                await connection.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as error:
            logger.error("schema_creation_failed", error=str(error))
            raise MigrationError(str(error)) from error
        logger.info("schema_ready", tables=sorted(Base.metadata.tables))

    async def health_check(self) -> None:
        """Run ``SELECT 1``; raise DatabaseConnectionError when it fails."""
        try:
            async with self.engine.connect() as connection:
                await connection.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as error:
            logger.warning("database_health_check_failed", error=str(error))
            raise DatabaseConnectionError(f"Health check failed: {error}") from error

    async def dispose(self) -> None:
        await self.engine.dispose()
