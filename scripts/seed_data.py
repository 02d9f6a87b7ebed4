"""Script to seed the default category set into the database."""

import asyncio

from ledger.category import schemas
from ledger.category.models import CategoryType
from ledger.category.repository import CategoryRepository
from ledger.core.config import get_settings
from ledger.core.errors import NotFoundError
from ledger.core.init_db import default_db_manager
from ledger.core.telemetry import init_telemetry

DEFAULT_CATEGORIES = [
    schemas.CategoryCreate(code="AST.CSH.CHK", name="Cash and Checking", category_type=CategoryType.ASSET, color="#2E7D32", icon="bank"),
    schemas.CategoryCreate(code="AST.INV.BRK", name="Brokerage", category_type=CategoryType.ASSET, color="#1565C0", icon="chart"),
    schemas.CategoryCreate(code="LIA.CRD.CRD", name="Credit Card", category_type=CategoryType.LIABILITY, color="#C62828", icon="card"),
    schemas.CategoryCreate(code="LIA.LON.MTG", name="Mortgage", category_type=CategoryType.LIABILITY, color="#AD1457", icon="home"),
    schemas.CategoryCreate(code="EQT.OPN.BAL", name="Opening Balance", category_type=CategoryType.EQUITY, color="#6A1B9A"),
    schemas.CategoryCreate(code="INC.EMP.SAL", name="Salary", category_type=CategoryType.INCOME, color="#00838F", icon="briefcase"),
    schemas.CategoryCreate(code="INC.INV.DIV", name="Dividends", category_type=CategoryType.INCOME, color="#00695C"),
    schemas.CategoryCreate(code="EXP.FOO.GRO", name="Groceries", category_type=CategoryType.EXPENSE, color="#EF6C00", icon="cart"),
    schemas.CategoryCreate(code="EXP.HOM.RNT", name="Rent", category_type=CategoryType.EXPENSE, color="#4E342E", icon="home"),
    schemas.CategoryCreate(code="EXP.TRN.FUE", name="Fuel", category_type=CategoryType.EXPENSE, color="#F9A825", icon="car"),
    schemas.CategoryCreate(code="EXP.UTL.ELE", name="Electricity", category_type=CategoryType.EXPENSE, color="#FBC02D", icon="bolt"),
]


async def seed_data():
    """Seed default categories, skipping codes that already exist."""
    manager = default_db_manager()
    await manager.create_schema()
    created = 0
    async with manager.get_db() as db:
        repo = CategoryRepository(db)
        for category in DEFAULT_CATEGORIES:
            try:
                await repo.get_by_code(category.code)
            except NotFoundError:
                await repo.create(category)
                created += 1
    await manager.dispose()
    print(f"Seeded {created} categories ({len(DEFAULT_CATEGORIES) - created} already present)")


if __name__ == "__main__":
    init_telemetry(get_settings().telemetry.telemetry_level)
    asyncio.run(seed_data())
