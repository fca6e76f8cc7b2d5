from decimal import Decimal
from typing import Optional

from sqlmodel import SQLModel, Field


class FixedExpense(SQLModel, table=True):
    __tablename__ = "fixed_expenses"

    id: Optional[int] = Field(default=None, primary_key=True)

    name: str = Field(min_length=1, max_length=100)
    amount: Decimal = Field(max_digits=12, decimal_places=2)

    category_id: int = Field(foreign_key="categories.id", index=True)
