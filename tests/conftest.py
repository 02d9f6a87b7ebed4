"""Pytest configuration and shared fixtures for Personal Ledger tests.

Repository tests drive the async code with ``asyncio.run`` against a fresh
SQLite file per test; API tests use FastAPI's TestClient.
"""

import asyncio
import itertools
import os
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from ledger.category import schemas
from ledger.category.models import CategoryType
from ledger.category.repository import CategoryRepository
from ledger.core.config import DatabaseSettings, LedgerSettings
from ledger.core.database import DatabaseManager
from restapi.router import create_app


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep the developer's own config files and env vars out of the tests."""
    for name in list(os.environ):
        if name.startswith("PERSONAL_LEDGER_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("ledger.core.config.system_config_path", lambda: None)
    monkeypatch.setattr("ledger.core.config.user_config_path", lambda: None)
    monkeypatch.setattr("ledger.core.config.executable_config_path", lambda: None)
    monkeypatch.setattr("ledger.core.config.cwd_config_path", lambda: tmp_path / "config" / "personal-ledger.conf")


@pytest.fixture
def db_settings(tmp_path: Path) -> DatabaseSettings:
    return DatabaseSettings(url=f"sqlite:{tmp_path / 'ledger.sqlite'}")


@pytest.fixture
def run_with_repository(db_settings):
    """Run ``scenario(repo)`` inside a fresh event loop and database."""

    def run(scenario):
        async def runner():
            manager = DatabaseManager(db_settings)
            await manager.create_schema()
            try:
                async with manager.get_db() as session:
                    return await scenario(CategoryRepository(session))
            finally:
                await manager.dispose()

        return asyncio.run(runner())

    return run


@pytest.fixture
def category_factory():
    """Build CategoryCreate payloads with unique codes."""
    counter = itertools.count(1)

    def make(**overrides) -> schemas.CategoryCreate:
        number = next(counter)
        values = {
            "code": f"TST.{number:03d}.CAT",
            "name": f"Test Category {number}",
            "category_type": CategoryType.EXPENSE,
        }
        values.update(overrides)
        return schemas.CategoryCreate(**values)

    return make


@pytest.fixture
def client(db_settings):
    settings = LedgerSettings(database=db_settings)
    app = create_app(settings=settings, manager=DatabaseManager(db_settings))
    with TestClient(app) as test_client:
        yield test_client
