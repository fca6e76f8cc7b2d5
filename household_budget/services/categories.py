import logging
from collections import defaultdict
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..core.errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from ..models.category import Category, CategoryType
from ..models.fixed_expense import FixedExpense
from ..models.transaction import Transaction

logger = logging.getLogger(__name__)


def commit_or_raise(session: Session) -> None:
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError(str(e)) from e


def get_category(session: Session, category_id: int) -> Category:
    category = session.get(Category, category_id)
    if category is None:
        raise NotFoundError(f"קטגוריה {category_id} לא נמצאה")
    return category


def list_categories(session: Session) -> List[Category]:
    return list(session.exec(select(Category).order_by(Category.id)).all())


def children_by_parent(categories: List[Category]) -> Dict[int, List[Category]]:
    children: Dict[int, List[Category]] = defaultdict(list)
    for category in categories:
        if category.parent_id is not None:
            children[category.parent_id].append(category)
    return children


def create_category(
    session: Session,
    name: str,
    type: CategoryType,
    parent_id: Optional[int] = None,
) -> Category:
    name = (name or "").strip()
    if not name:
        raise ValidationError("שם הקטגוריה לא יכול להיות ריק")
    type_value = CategoryType(type).value

    if parent_id is not None:
        parent = get_category(session, parent_id)
        if parent.parent_id is not None:
            raise ValidationError("אי אפשר ליצור תת-קטגוריה מתחת לתת-קטגוריה")
        if parent.type != type_value:
            logger.warning(
                "Sub-category %r (%s) created under %r (%s)",
                name, type_value, parent.name, parent.type,
            )

    category = Category(name=name, type=type_value, parent_id=parent_id)
    session.add(category)
    commit_or_raise(session)
    session.refresh(category)
    return category


def delete_category(session: Session, category_id: int) -> None:
    category = get_category(session, category_id)

    if session.exec(select(Category.id).where(Category.parent_id == category_id)).first() is not None:
        raise ConflictError("נחסם: יש תת-קטגוריות.")
    if session.exec(select(Transaction.id).where(Transaction.category_id == category_id)).first() is not None:
        raise ConflictError("נחסם: יש תנועות משויכות.")
    if session.exec(select(FixedExpense.id).where(FixedExpense.category_id == category_id)).first() is not None:
        raise ConflictError("נחסם: יש הוצאות קבועות.")

    session.delete(category)
    commit_or_raise(session)


def force_delete_category(session: Session, category_id: int) -> None:
    """Delete a category together with its sub-categories and every record that
    references any of them, in a single database transaction."""
    get_category(session, category_id)

    sub_ids = list(session.exec(select(Category.id).where(Category.parent_id == category_id)).all())
    doomed = sub_ids + [category_id]

    statements = [
        delete(Transaction).where(Transaction.category_id.in_(doomed)),
        delete(FixedExpense).where(FixedExpense.category_id.in_(doomed)),
        delete(Category).where(Category.id.in_(sub_ids)),
        delete(Category).where(Category.id == category_id),
    ]
    try:
        for statement in statements:
            session.execute(statement.execution_options(synchronize_session=False))
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError(f"שגיאה במחיקת 'כוח': {e}") from e

    session.expire_all()
    logger.info("Force-deleted category %s with %d sub-categories", category_id, len(sub_ids))


def update_budget(session: Session, category_id: int, weekly_budget: Optional[Decimal]) -> Category:
    category = get_category(session, category_id)
    if weekly_budget is not None and weekly_budget < 0:
        raise ValidationError("תקציב שבועי לא יכול להיות שלילי")

    # Zero clears the budget, like an empty value.
    category.weekly_budget = weekly_budget or None
    session.add(category)
    commit_or_raise(session)
    session.refresh(category)
    return category

