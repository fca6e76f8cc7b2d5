import calendar
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Optional, Tuple

from sqlmodel import Session, select

from ..core.errors import NotFoundError, ValidationError
from ..models.category import Category
from ..models.transaction import Transaction
from .categories import commit_or_raise, get_category

logger = logging.getLogger(__name__)

DEFAULT_ADDED_BY = "מערכת"
CENT = Decimal("0.01")
# Largest value a Numeric(12, 2) column holds.
MAX_AMOUNT = Decimal("9999999999.99")


def to_money(amount) -> Decimal:
    """Round to cents, rejecting values the amount columns cannot store."""
    try:
        value = Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ValidationError(f"סכום לא תקין: {amount}") from e
    if not value.is_finite() or abs(value) > MAX_AMOUNT:
        raise ValidationError(f"סכום לא תקין: {amount}")
    return value


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def add_months(base: datetime, months: int) -> datetime:
    """Shift ``base`` by whole calendar months, clamping the day to the month end."""
    month_index = base.month - 1 + months
    year = base.year + month_index // 12
    month = month_index % 12 + 1
    day = min(base.day, calendar.monthrange(year, month)[1])
    return base.replace(year=year, month=month, day=day)


def split_amount(amount: Decimal, installments: int) -> Decimal:
    return (to_money(amount) / installments).quantize(CENT, rounding=ROUND_HALF_UP)


def installment_description(description: Optional[str], position: int, total: int) -> str:
    return f"{description or ''} (תשלום {position}/{total})".strip()


def new_group_id() -> str:
    return f"inst_{uuid.uuid4().hex[:16]}"


def get_transaction(session: Session, transaction_id: int) -> Transaction:
    transaction = session.get(Transaction, transaction_id)
    if transaction is None:
        raise NotFoundError(f"תנועה {transaction_id} לא נמצאה")
    return transaction


def list_transactions(session: Session) -> List[Tuple[Transaction, Category]]:
    statement = (
        select(Transaction, Category)
        .join(Category, Transaction.category_id == Category.id)
        .order_by(Transaction.date.desc(), Transaction.id.desc())
    )
    return list(session.exec(statement).all())


def create_transaction(
    session: Session,
    amount: Decimal,
    category_id: int,
    description: Optional[str] = None,
    date: Optional[datetime] = None,
    added_by: Optional[str] = None,
    installments: int = 1,
) -> List[Transaction]:
    """
    Record a transaction, optionally split into monthly installments.

    - With ``installments`` > 1 the amount is divided into equal shares rounded to
      cents; each share is dated one calendar month after the previous one and all
      of them share an ``installment_group_id``.
    - Always returns the list of created rows (a single row when not split).
    """
    if installments < 1:
        raise ValidationError("מספר התשלומים חייב להיות לפחות 1")
    get_category(session, category_id)

    base_date = as_utc(date) if date is not None else datetime.now(timezone.utc)
    added_by = added_by or DEFAULT_ADDED_BY

    if installments == 1:
        rows = [
            Transaction(
                amount=to_money(amount),
                description=description,
                category_id=category_id,
                date=base_date,
                added_by=added_by,
            )
        ]
    else:
        share = split_amount(amount, installments)
        group_id = new_group_id()
        rows = [
            Transaction(
                amount=share,
                description=installment_description(description, i + 1, installments),
                category_id=category_id,
                date=add_months(base_date, i),
                added_by=added_by,
                total_installments=installments,
                current_installment=i + 1,
                installment_group_id=group_id,
            )
            for i in range(installments)
        ]

    session.add_all(rows)
    commit_or_raise(session)
    for row in rows:
        session.refresh(row)

    if installments > 1:
        logger.info("Created %d installments of %s in group %s", installments, rows[0].amount, rows[0].installment_group_id)
    return rows


def update_transaction(
    session: Session,
    transaction_id: int,
    amount: Decimal,
    description: Optional[str],
    category_id: int,
    date: Optional[datetime] = None,
    added_by: Optional[str] = None,
) -> Transaction:
    transaction = get_transaction(session, transaction_id)
    get_category(session, category_id)

    transaction.amount = to_money(amount)
    transaction.description = description
    transaction.category_id = category_id
    if date is not None:
        transaction.date = as_utc(date)
    if added_by is not None:
        transaction.added_by = added_by

    session.add(transaction)
    commit_or_raise(session)
    session.refresh(transaction)
    return transaction


def delete_transaction(session: Session, transaction_id: int) -> None:
    # Installment siblings are left alone.
    transaction = get_transaction(session, transaction_id)
    session.delete(transaction)
    commit_or_raise(session)
