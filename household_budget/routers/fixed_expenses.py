from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlmodel import SQLModel, Field, Session

from ..database import get_session
from ..models.category import Category
from ..services import fixed_expenses as fixed_service
from .categories import CategoryRead, DeleteResult

router = APIRouter(
    prefix="/fixed-expenses",
    tags=["fixed-expenses"],
)


class FixedExpenseCreate(SQLModel):
    name: str = Field(max_length=100)
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    category_id: int


class FixedExpenseRead(SQLModel):
    id: int
    name: str
    amount: float
    category_id: int
    category: Optional[CategoryRead] = None


@router.get(
    "",
    response_model=List[FixedExpenseRead],
)
def list_fixed_expenses(session: Session = Depends(get_session)):
    return [
        FixedExpenseRead.model_validate(fixed, update={"category": CategoryRead.model_validate(category)})
        for fixed, category in fixed_service.list_fixed_expenses(session)
    ]


@router.post(
    "",
    response_model=FixedExpenseRead,
    status_code=status.HTTP_201_CREATED,
)
def create_fixed_expense(payload: FixedExpenseCreate, session: Session = Depends(get_session)):
    fixed = fixed_service.create_fixed_expense(
        session,
        name=payload.name,
        amount=payload.amount,
        category_id=payload.category_id,
    )
    category = session.get(Category, fixed.category_id)
    return FixedExpenseRead.model_validate(fixed, update={"category": CategoryRead.model_validate(category)})


@router.delete(
    "/{fixed_expense_id}",
    response_model=DeleteResult,
)
def delete_fixed_expense(fixed_expense_id: int, session: Session = Depends(get_session)):
    fixed_service.delete_fixed_expense(session, fixed_expense_id)
    return DeleteResult(success=True)
