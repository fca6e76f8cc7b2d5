from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlmodel import SQLModel, Field


class CategoryType(str, Enum):
    EXPENSE = "expense"
    INCOME = "income"


class Category(SQLModel, table=True):
    __tablename__ = "categories"

    id: Optional[int] = Field(default=None, primary_key=True)

    name: str = Field(min_length=1, max_length=100)
    # CategoryType value
    type: str = Field(max_length=10, index=True)

    # Two levels only: a parent never has a parent of its own.
    parent_id: Optional[int] = Field(default=None, foreign_key="categories.id", index=True)

    weekly_budget: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
