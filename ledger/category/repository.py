"""Repository for category operations."""

from typing import Iterable, List, Optional, Sequence, Tuple

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from ledger.category import schemas
from ledger.category.models import Category, CategoryType, new_category_id
from ledger.core.database import utcnow
from ledger.core.errors import (
    CategoryExistsError,
    DatabaseError,
    DatabaseValidationError,
    NotFoundError,
)

logger = structlog.get_logger(__name__)

REQUIRED_FIELDS = frozenset({"code", "name", "category_type", "is_active"})

SORT_COLUMNS = {
    schemas.SortField.CREATED_ON: Category.created_on,
    schemas.SortField.UPDATED_ON: Category.updated_on,
    schemas.SortField.NAME: Category.name,
    schemas.SortField.CODE: Category.code,
}


def translate_integrity_error(error: IntegrityError) -> DatabaseValidationError:
    """Map an SQLite integrity failure onto the catalog's error types."""
    message = str(error.orig) if error.orig is not None else str(error)
    if "UNIQUE constraint failed" in message:
        field = "id" if "categories.id" in message else "code"
        return CategoryExistsError(f"Category with this {field} already exists", field=field)
    return DatabaseValidationError(message)


def parse_category_type(value) -> CategoryType:
    """Accept a CategoryType or its name in any case."""
    if isinstance(value, str):
        value = value.strip().lower()
    try:
        return CategoryType(value)
    except ValueError:
        raise DatabaseValidationError(f"Unknown category type {value!r}", field="category_type") from None


class CategoryRepository:
    """Repository for category operations."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    # -- helpers -----------------------------------------------------------------

    async def _commit(self, operation: str) -> None:
        try:
            await self.session.commit()
        except IntegrityError as error:
            await self.session.rollback()
            translated = translate_integrity_error(error)
            logger.warning(f"category_{operation}_rejected", reason=translated.message)
            raise translated from error
        except SQLAlchemyError as error:
            await self.session.rollback()
            logger.error(f"category_{operation}_failed", error=str(error))
            raise DatabaseError(f"Failed to {operation} category: {error}") from error

    async def _all(self, query: Select) -> List[Category]:
        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as error:
            logger.error("category_query_failed", error=str(error))
            raise DatabaseError(f"Failed to query categories: {error}") from error
        return list(result.scalars().all())

    async def _one_or_none(self, query: Select) -> Optional[Category]:
        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as error:
            logger.error("category_query_failed", error=str(error))
            raise DatabaseError(f"Failed to query categories: {error}") from error
        return result.scalar_one_or_none()

    @staticmethod
    def _ordered(query: Select, sort_by: Optional[schemas.SortField] = None, sort_desc: bool = True) -> Select:
        column = SORT_COLUMNS[schemas.SortField(sort_by or schemas.SortField.CREATED_ON)]
        if sort_desc:
            return query.order_by(column.desc(), Category.id.desc())
        return query.order_by(column.asc(), Category.id.asc())

    @staticmethod
    def _build(category: schemas.CategoryCreate, category_id: Optional[str] = None) -> Category:
        now = utcnow()
        return Category(
            id=category_id or new_category_id(),
            created_on=now,
            updated_on=now,
            **category.model_dump(),
        )

    @staticmethod
    def _apply(db_category: Category, changes: dict) -> None:
        for field, value in changes.items():
            if value is None and field in REQUIRED_FIELDS:
                continue
            setattr(db_category, field, value)
        db_category.updated_on = max(utcnow(), db_category.created_on)

    async def _require(self, category_id: str) -> Category:
        db_category = await self._one_or_none(select(Category).where(Category.id == category_id))
        if db_category is None:
            logger.warning("category_not_found", id=category_id)
            raise NotFoundError(f"Category with id {category_id} not found")
        return db_category

    # -- lookups -----------------------------------------------------------------

    async def get_by_id(self, category_id: str) -> Category:
        """Get category by ID."""
        logger.debug("category_get_by_id", id=category_id)
        return await self._require(category_id)

    async def get_by_code(self, code: str) -> Category:
        """Get category by its unique code."""
        code = code.strip().upper()
        logger.debug("category_get_by_code", code=code)
        db_category = await self._one_or_none(select(Category).where(Category.code == code))
        if db_category is None:
            logger.warning("category_not_found", code=code)
            raise NotFoundError(f"Category with code {code} not found")
        return db_category

    async def get_by_url_slug(self, url_slug: str) -> Category:
        """Get the first category with the given URL slug."""
        logger.debug("category_get_by_url_slug", url_slug=url_slug)
        query = self._ordered(select(Category).where(Category.url_slug == url_slug)).limit(1)
        db_category = await self._one_or_none(query)
        if db_category is None:
            logger.warning("category_not_found", url_slug=url_slug)
            raise NotFoundError(f"Category with url slug {url_slug} not found")
        return db_category

    async def find_by_name(self, fragment: str) -> List[Category]:
        """Case-insensitive substring search on name."""
        query = self._ordered(select(Category).where(Category.name.icontains(fragment, autoescape=True)))
        categories = await self._all(query)
        logger.info("categories_found_by_name", fragment=fragment, count=len(categories))
        return categories

    async def get_all(self) -> List[Category]:
        return await self._all(self._ordered(select(Category)))

    async def get_active(self) -> List[Category]:
        return await self._all(self._ordered(select(Category).where(Category.is_active.is_(True))))

    async def get_inactive(self) -> List[Category]:
        return await self._all(self._ordered(select(Category).where(Category.is_active.is_(False))))

    async def get_by_type(self, category_type: CategoryType) -> List[Category]:
        query = select(Category).where(Category.category_type == parse_category_type(category_type))
        return await self._all(self._ordered(query))

    async def get_active_by_type(self, category_type: CategoryType) -> List[Category]:
        query = select(Category).where(
            Category.category_type == parse_category_type(category_type),
            Category.is_active.is_(True),
        )
        return await self._all(self._ordered(query))

    async def find_with_filters(
        self,
        category_type: Optional[CategoryType] = None,
        is_active: Optional[bool] = None,
        sort_by: Optional[schemas.SortField] = None,
        sort_desc: bool = True,
        offset: int = 0,
        limit: int = 100,
    ) -> Tuple[List[Category], int]:
        """
        Get a page of categories matching the filters.

        Returns the page and the number of rows matching the filters, ignoring
        offset and limit.
        """
        if offset < 0:
            raise DatabaseValidationError("offset must be non-negative", field="offset")
        if limit < 1:
            raise DatabaseValidationError("limit must be positive", field="limit")
        if sort_by is not None:
            try:
                sort_by = schemas.SortField(sort_by)
            except ValueError:
                raise DatabaseValidationError(f"Cannot sort by {sort_by!r}", field="sort_by") from None

        conditions = []
        if category_type is not None:
            conditions.append(Category.category_type == parse_category_type(category_type))
        if is_active is not None:
            conditions.append(Category.is_active.is_(is_active))

        try:
            total = (
                await self.session.execute(select(func.count()).select_from(Category).where(*conditions))
            ).scalar_one()
        except SQLAlchemyError as error:
            logger.error("category_query_failed", error=str(error))
            raise DatabaseError(f"Failed to count categories: {error}") from error

        query = self._ordered(select(Category).where(*conditions), sort_by, sort_desc)
        categories = await self._all(query.offset(offset).limit(limit))
        logger.info(
            "categories_listed",
            category_type=str(category_type) if category_type else None,
            is_active=is_active,
            offset=offset,
            limit=limit,
            count=len(categories),
            total_count=total,
        )
        return categories, total

    # -- inserts -----------------------------------------------------------------

    async def create(self, category: schemas.CategoryCreate) -> Category:
        """Create a new category."""
        logger.debug("category_create", code=category.code, name=category.name)
        db_category = self._build(category)
        self.session.add(db_category)
        await self._commit("create")
        await self.session.refresh(db_category)
        logger.info("category_created", id=db_category.id, code=db_category.code)
        return db_category

    async def create_many(self, categories: Sequence[schemas.CategoryCreate]) -> List[Category]:
        """Create several categories in one transaction. Nothing is stored if any insert fails."""
        if not categories:
            return []
        logger.debug("category_create_many", count=len(categories))
        db_categories = [self._build(category) for category in categories]
        self.session.add_all(db_categories)
        await self._commit("create")
        for db_category in db_categories:
            await self.session.refresh(db_category)
        logger.info("categories_created", count=len(db_categories))
        return db_categories

    async def upsert(self, category_id: str, category: schemas.CategoryCreate) -> Tuple[Category, bool]:
        """
        Insert the category under ``category_id`` or replace the existing one.

        Returns the stored category and whether it was newly created.
        created_on is preserved on update.
        """
        db_category = await self._one_or_none(select(Category).where(Category.id == category_id))
        created = db_category is None
        if created:
            db_category = self._build(category, category_id=category_id)
            self.session.add(db_category)
        else:
            self._apply(db_category, category.model_dump())
        await self._commit("upsert")
        await self.session.refresh(db_category)
        logger.info("category_upserted", id=category_id, operation="INSERT" if created else "UPDATE")
        return db_category, created

    # -- updates -----------------------------------------------------------------

    async def update(self, category_id: str, changes: schemas.CategoryUpdate) -> Category:
        """Update the fields present in ``changes``."""
        db_category = await self._require(category_id)
        fields = changes.model_dump(exclude_unset=True)
        logger.debug("category_update", id=category_id, fields=sorted(fields))
        self._apply(db_category, fields)
        await self._commit("update")
        await self.session.refresh(db_category)
        logger.info("category_updated", id=category_id)
        return db_category

    async def update_many(self, updates: Iterable[Tuple[str, schemas.CategoryUpdate]]) -> List[Category]:
        """Apply several updates in one transaction. Nothing is stored if any of them fails."""
        db_categories = []
        for category_id, changes in updates:
            try:
                db_category = await self._require(category_id)
            except NotFoundError:
                await self.session.rollback()
                raise
            self._apply(db_category, changes.model_dump(exclude_unset=True))
            db_categories.append(db_category)
        if not db_categories:
            return []
        await self._commit("update")
        for db_category in db_categories:
            await self.session.refresh(db_category)
        logger.info("categories_updated", count=len(db_categories))
        return db_categories

    async def set_active(self, category_id: str, is_active: bool) -> Category:
        """Activate or deactivate a category."""
        db_category = await self._require(category_id)
        self._apply(db_category, {"is_active": is_active})
        await self._commit("activate" if is_active else "deactivate")
        await self.session.refresh(db_category)
        logger.info("category_active_status_changed", id=category_id, is_active=is_active)
        return db_category

    async def activate(self, category_id: str) -> Category:
        return await self.set_active(category_id, True)

    async def deactivate(self, category_id: str) -> Category:
        return await self.set_active(category_id, False)

    # -- deletes -----------------------------------------------------------------

    async def _delete_where(self, *conditions) -> int:
        try:
            result = await self.session.execute(delete(Category).where(*conditions))
        except SQLAlchemyError as error:
            await self.session.rollback()
            logger.error("category_delete_failed", error=str(error))
            raise DatabaseError(f"Failed to delete category: {error}") from error
        return result.rowcount

    async def delete(self, category_id: str) -> None:
        """Delete category by ID."""
        if not await self._delete_where(Category.id == category_id):
            await self.session.rollback()
            logger.warning("category_not_found", id=category_id)
            raise NotFoundError(f"Category with id {category_id} not found")
        await self._commit("delete")
        logger.info("category_deleted", id=category_id)

    async def delete_by_code(self, code: str) -> None:
        code = code.strip().upper()
        if not await self._delete_where(Category.code == code):
            await self.session.rollback()
            logger.warning("category_not_found", code=code)
            raise NotFoundError(f"Category with code {code} not found")
        await self._commit("delete")
        logger.info("category_deleted", code=code)

    async def delete_by_url_slug(self, url_slug: str) -> int:
        """Delete every category carrying ``url_slug``. Returns the number removed."""
        deleted = await self._delete_where(Category.url_slug == url_slug)
        if not deleted:
            await self.session.rollback()
            logger.warning("category_not_found", url_slug=url_slug)
            raise NotFoundError(f"Category with url slug {url_slug} not found")
        await self._commit("delete")
        logger.info("categories_deleted", url_slug=url_slug, count=deleted)
        return deleted

    async def delete_many(self, category_ids: Iterable[str]) -> int:
        """Delete several categories in one transaction; any unknown id aborts the whole batch."""
        deleted = 0
        for category_id in dict.fromkeys(category_ids):
            if not await self._delete_where(Category.id == category_id):
                await self.session.rollback()
                logger.warning("category_batch_delete_aborted", missing_id=category_id)
                raise NotFoundError(f"Category with id {category_id} not found")
            deleted += 1
        if deleted:
            await self._commit("delete")
        logger.info("categories_deleted", count=deleted)
        return deleted

    async def delete_inactive(self) -> int:
        """Hard-delete every inactive category."""
        deleted = await self._delete_where(Category.is_active.is_(False))
        await self._commit("delete")
        logger.info("inactive_categories_deleted", count=deleted)
        return deleted

    async def delete_all(self) -> int:
        deleted = await self._delete_where()
        await self._commit("delete")
        logger.warning("all_categories_deleted", count=deleted)
        return deleted
