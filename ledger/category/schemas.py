"""Pydantic schemas for category data validation."""

import enum
import re
from datetime import datetime
from typing import Annotated, Any, Callable, List, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, Field, model_validator

from ledger.category.models import CategoryType

CODE_PATTERN = re.compile(r"^[A-Z0-9]{3}\.[A-Z0-9]{3}\.[A-Z0-9]{3}$")
SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
COLOR_PATTERN = re.compile(r"^#[0-9A-F]{6}$")

NAME_MAX_LENGTH = 100


def slugify(value: str) -> str:
    """Lower-case ``value`` and collapse every run of non-alphanumerics into one hyphen."""
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


def normalise_code(value: str) -> str:
    code = value.strip().upper()
    if not CODE_PATTERN.match(code):
        raise ValueError("code must look like XXX.XXX.XXX (letters and digits)")
    return code


def normalise_name(value: str) -> str:
    name = value.strip()
    if not name:
        raise ValueError("name cannot be empty")
    if len(name) > NAME_MAX_LENGTH:
        raise ValueError(f"name cannot exceed {NAME_MAX_LENGTH} characters")
    return name


def normalise_slug(value: str) -> str:
    slug = value.strip()
    if not SLUG_PATTERN.match(slug):
        raise ValueError("url_slug may only contain lowercase letters, digits and single hyphens")
    return slug


def normalise_color(value: str) -> str:
    color = value.strip().upper()
    if not color.startswith("#"):
        color = f"#{color}"
    if not COLOR_PATTERN.match(color):
        raise ValueError("color must be a #RRGGBB hex value")
    return color


def lower_case(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


def blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def optional(check: Callable[[str], str]) -> Callable[[Optional[str]], Optional[str]]:
    def run(value: Optional[str]) -> Optional[str]:
        return None if value is None else check(value)
    return run


Code = Annotated[str, AfterValidator(normalise_code)]
Name = Annotated[str, AfterValidator(normalise_name)]
Kind = Annotated[CategoryType, BeforeValidator(lower_case)]
OptionalKind = Annotated[Optional[CategoryType], BeforeValidator(lower_case)]
OptionalText = Annotated[Optional[str], BeforeValidator(blank_to_none)]
Slug = Annotated[Optional[str], BeforeValidator(blank_to_none), AfterValidator(optional(normalise_slug))]
Color = Annotated[Optional[str], BeforeValidator(blank_to_none), AfterValidator(optional(normalise_color))]


class CategoryBase(BaseModel):
    """Base category schema."""
    code: Code
    name: Name
    description: OptionalText = None
    url_slug: Slug = None
    category_type: Kind
    color: Color = None
    icon: OptionalText = None
    is_active: bool = True


class CategoryCreate(CategoryBase):
    """Schema for category creation. A missing url_slug is derived from the name."""

    @model_validator(mode="after")
    def derive_url_slug(self) -> "CategoryCreate":
        if self.url_slug is None:
            self.url_slug = slugify(self.name) or None
        return self


class CategoryUpdate(BaseModel):
    """
    Schema for partial category updates.

    Only fields present in the payload are applied. Explicit nulls clear the
    optional fields and are ignored for required ones.
    """
    code: Annotated[Optional[str], AfterValidator(optional(normalise_code))] = None
    name: Annotated[Optional[str], AfterValidator(optional(normalise_name))] = None
    description: OptionalText = None
    url_slug: Slug = None
    category_type: OptionalKind = None
    color: Color = None
    icon: OptionalText = None
    is_active: Optional[bool] = None


class Category(BaseModel):
    """
    Schema for category response.

    Stored values are returned as they are; the input formats are only
    enforced on create and update.
    """
    id: str
    code: str
    name: str
    description: Optional[str] = None
    url_slug: Optional[str] = None
    category_type: CategoryType
    color: Optional[str] = None
    icon: Optional[str] = None
    is_active: bool
    created_on: datetime
    updated_on: datetime

    class Config:
        from_attributes = True


class SortField(str, enum.Enum):
    CREATED_ON = "created_on"
    UPDATED_ON = "updated_on"
    NAME = "name"
    CODE = "code"


class CategoriesPage(BaseModel):
    """Schema for a page of categories."""
    categories: List[Category]
    total_count: int
    offset: int
    limit: int


class CategoryIds(BaseModel):
    """Schema for batch delete requests."""
    ids: List[str] = Field(..., min_length=1)


class CategoryDeleteResponse(BaseModel):
    message: str
    deleted_count: int
