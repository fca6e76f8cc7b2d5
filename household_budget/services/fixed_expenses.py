from decimal import Decimal
from typing import List, Tuple

from sqlmodel import Session, select

from ..core.errors import NotFoundError, ValidationError
from ..models.category import Category
from ..models.fixed_expense import FixedExpense
from .categories import commit_or_raise, get_category


def list_fixed_expenses(session: Session) -> List[Tuple[FixedExpense, Category]]:
    statement = (
        select(FixedExpense, Category)
        .join(Category, FixedExpense.category_id == Category.id)
        .order_by(FixedExpense.id)
    )
    return list(session.exec(statement).all())


def create_fixed_expense(session: Session, name: str, amount: Decimal, category_id: int) -> FixedExpense:
    name = (name or "").strip()
    if not name:
        raise ValidationError("שם ההוצאה הקבועה לא יכול להיות ריק")
    get_category(session, category_id)

    fixed = FixedExpense(name=name, amount=amount, category_id=category_id)
    session.add(fixed)
    commit_or_raise(session)
    session.refresh(fixed)
    return fixed


def delete_fixed_expense(session: Session, fixed_expense_id: int) -> None:
    fixed = session.get(FixedExpense, fixed_expense_id)
    if fixed is None:
        raise NotFoundError(f"הוצאה קבועה {fixed_expense_id} לא נמצאה")
    session.delete(fixed)
    commit_or_raise(session)
