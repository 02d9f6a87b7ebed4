"""Database initialization and dependency injection."""

from functools import lru_cache
from typing import AsyncGenerator, Optional

import fastapi
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ledger.core.database import DatabaseManager
# Import all models to ensure they're registered
import ledger.category.models


@lru_cache()
def default_db_manager() -> DatabaseManager:
    """Single DatabaseManager built from the loaded settings."""
    return DatabaseManager()


def get_db_manager(request: fastapi.Request) -> DatabaseManager:
    return request.app.state.db_manager


async def get_db(manager: DatabaseManager = Depends(get_db_manager)) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for getting database sessions."""
    async with manager.get_db() as session:
        yield session


def init_db(app: fastapi.FastAPI, manager: Optional[DatabaseManager] = None) -> None:
    """Attach the database manager used by request handlers."""
    app.state.db_manager = manager or default_db_manager()
