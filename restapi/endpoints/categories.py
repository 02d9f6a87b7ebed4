"""Category endpoints for the API."""

import uuid
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ledger.category import schemas
from ledger.category.repository import CategoryRepository
from ledger.core.init_db import get_db
from ledger.core.schemas import ErrorDetail

router = APIRouter(
    prefix="/categories",
    tags=["categories"],
    responses={
        400: {"model": ErrorDetail, "description": "Invalid request"},
        404: {"model": ErrorDetail, "description": "Not found"},
        409: {"model": ErrorDetail, "description": "Category already exists"},
    },
)


def parse_category_id(category_id: str) -> str:
    """Reject ids that are not UUIDs before touching the database."""
    try:
        return str(uuid.UUID(category_id))
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid category ID format") from None


@router.post("/", response_model=schemas.Category, status_code=status.HTTP_201_CREATED)
async def create_category(
    category: schemas.CategoryCreate,
    db: AsyncSession = Depends(get_db)
):
    """Create a new category."""
    repo = CategoryRepository(db)
    return await repo.create(category)


@router.post("/batch", response_model=List[schemas.Category], status_code=status.HTTP_201_CREATED)
async def create_categories_batch(
    categories: List[schemas.CategoryCreate],
    db: AsyncSession = Depends(get_db)
):
    """Create several categories. Either all of them are stored or none."""
    repo = CategoryRepository(db)
    return await repo.create_many(categories)


@router.get("/", response_model=schemas.CategoriesPage)
async def list_categories(
    category_type: Annotated[schemas.OptionalKind, Query(description="Only categories of this type (any case)")] = None,
    is_active: Optional[bool] = Query(None, description="Only active (true) or inactive (false) categories"),
    sort_by: Optional[schemas.SortField] = Query(None, description="Field to sort by (defaults to created_on)"),
    sort_desc: bool = Query(True, description="Sort descending"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Number of records to return"),
    db: AsyncSession = Depends(get_db)
):
    """Get a page of categories with optional filtering."""
    repo = CategoryRepository(db)
    categories, total_count = await repo.find_with_filters(
        category_type=category_type,
        is_active=is_active,
        sort_by=sort_by,
        sort_desc=sort_desc,
        offset=offset,
        limit=limit,
    )
    return schemas.CategoriesPage(
        categories=[schemas.Category.model_validate(category) for category in categories],
        total_count=total_count,
        offset=offset,
        limit=limit,
    )


@router.get("/by-code/{code}", response_model=schemas.Category)
async def read_category_by_code(
    code: str,
    db: AsyncSession = Depends(get_db)
):
    """Get a specific category by code."""
    repo = CategoryRepository(db)
    return await repo.get_by_code(code)


@router.get("/by-slug/{url_slug}", response_model=schemas.Category)
async def read_category_by_slug(
    url_slug: str,
    db: AsyncSession = Depends(get_db)
):
    """Get a specific category by URL slug."""
    repo = CategoryRepository(db)
    return await repo.get_by_url_slug(url_slug)


@router.get("/{category_id}", response_model=schemas.Category)
async def read_category(
    category_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Get a specific category by ID."""
    repo = CategoryRepository(db)
    return await repo.get_by_id(parse_category_id(category_id))


@router.put("/{category_id}", response_model=schemas.Category)
async def update_category(
    category_id: str,
    changes: schemas.CategoryUpdate,
    db: AsyncSession = Depends(get_db)
):
    """Update the fields present in the request body."""
    repo = CategoryRepository(db)
    return await repo.update(parse_category_id(category_id), changes)


@router.delete("/{category_id}", response_model=schemas.CategoryDeleteResponse)
async def delete_category(
    category_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Delete a category."""
    repo = CategoryRepository(db)
    await repo.delete(parse_category_id(category_id))
    return schemas.CategoryDeleteResponse(message="Category deleted successfully", deleted_count=1)


@router.post("/batch-delete", response_model=schemas.CategoryDeleteResponse)
async def delete_categories_batch(
    request: schemas.CategoryIds,
    db: AsyncSession = Depends(get_db)
):
    """Delete several categories. An unknown id aborts the whole batch."""
    ids = [parse_category_id(category_id) for category_id in request.ids]
    repo = CategoryRepository(db)
    deleted = await repo.delete_many(ids)
    return schemas.CategoryDeleteResponse(message="Categories deleted successfully", deleted_count=deleted)


@router.post("/{category_id}/activate", response_model=schemas.Category)
async def activate_category(
    category_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Mark a category as active."""
    repo = CategoryRepository(db)
    return await repo.activate(parse_category_id(category_id))


@router.post("/{category_id}/deactivate", response_model=schemas.Category)
async def deactivate_category(
    category_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Retire a category without deleting it."""
    repo = CategoryRepository(db)
    return await repo.deactivate(parse_category_id(category_id))
