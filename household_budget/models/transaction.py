from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlmodel import SQLModel, Field


class Transaction(SQLModel, table=True):
    __tablename__ = "transactions"

    id: Optional[int] = Field(default=None, primary_key=True)

    # Per-installment amount, not the original total.
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    description: Optional[str] = Field(default=None, max_length=255)

    category_id: int = Field(foreign_key="categories.id", index=True)

    date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)
    added_by: str = Field(default="מערכת", max_length=100)

    total_installments: Optional[int] = Field(default=None)
    current_installment: Optional[int] = Field(default=None)
    installment_group_id: Optional[str] = Field(default=None, index=True)
