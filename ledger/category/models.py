"""Category model for the database."""

import enum
import uuid

from sqlalchemy import Boolean, Column, Enum, Index, String, Text, func, text

from ledger.core.database import Base, UTCDateTime, utcnow


class CategoryType(str, enum.Enum):
    """Accounting classification of a category."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    INCOME = "income"
    EXPENSE = "expense"

    def __str__(self) -> str:
        return self.value


def new_category_id() -> str:
    return str(uuid.uuid4())


class Category(Base):
    """Classification label applied to financial records."""
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, nullable=False, default=new_category_id)
    code = Column(String(32), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    url_slug = Column(String(120), nullable=True)
    category_type = Column(
        Enum(
            CategoryType,
            native_enum=False,
            create_constraint=False,
            length=16,
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
    )
    color = Column(String(7), nullable=True)
    icon = Column(String(64), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("1"))
    created_on = Column(UTCDateTime, nullable=False, default=utcnow, server_default=func.current_timestamp())
    updated_on = Column(UTCDateTime, nullable=False, default=utcnow, server_default=func.current_timestamp())

    __table_args__ = (
        Index("idx_categories_code", "code"),
        Index("idx_categories_active", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, code={self.code}, name={self.name})>"
