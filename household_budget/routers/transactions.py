from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, status
from sqlmodel import SQLModel, Field, Session

from ..database import get_session
from ..models.category import Category
from ..models.transaction import Transaction
from ..services import transactions as ledger
from .categories import CategoryRead, DeleteResult

router = APIRouter(
    prefix="/transactions",
    tags=["transactions"],
)

# ─────────────────────────────
#   SCHEMAS (Pydantic/SQLModel)
# ─────────────────────────────


class TransactionCreate(SQLModel):
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    description: Optional[str] = Field(default=None, max_length=255)
    category_id: int
    date: Optional[datetime] = None
    added_by: Optional[str] = Field(default=None, max_length=100)
    installments: Optional[int] = Field(default=1, ge=1, le=120)


class TransactionUpdate(SQLModel):
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    description: Optional[str] = Field(default=None, max_length=255)
    category_id: int
    date: Optional[datetime] = None
    added_by: Optional[str] = Field(default=None, max_length=100)


class TransactionRead(SQLModel):
    id: int
    amount: float
    description: Optional[str] = None
    category_id: int
    date: datetime
    added_by: str
    total_installments: Optional[int] = None
    current_installment: Optional[int] = None
    installment_group_id: Optional[str] = None
    category: Optional[CategoryRead] = None


def _read(transaction: Transaction, category: Category) -> TransactionRead:
    return TransactionRead.model_validate(
        transaction,
        update={"category": CategoryRead.model_validate(category)},
    )


# ─────────────────────────────
#   ENDPOINTS
# ─────────────────────────────

@router.get(
    "",
    response_model=List[TransactionRead],
)
def list_transactions(session: Session = Depends(get_session)):
    """All transactions, newest first, with their category embedded."""
    return [_read(tx, category) for tx, category in ledger.list_transactions(session)]


@router.post(
    "",
    response_model=Union[TransactionRead, List[TransactionRead]],
    status_code=status.HTTP_201_CREATED,
)
def create_transaction(payload: TransactionCreate, session: Session = Depends(get_session)):
    """
    Record a transaction.

    - With ``installments`` > 1 returns the list of generated installments.
    """
    installments = payload.installments or 1
    rows = ledger.create_transaction(
        session,
        amount=payload.amount,
        category_id=payload.category_id,
        description=payload.description,
        date=payload.date,
        added_by=payload.added_by,
        installments=installments,
    )
    category = session.get(Category, payload.category_id)
    out = [_read(tx, category) for tx in rows]
    return out if installments > 1 else out[0]


@router.put(
    "/{transaction_id}",
    response_model=TransactionRead,
)
def update_transaction(
    transaction_id: int,
    payload: TransactionUpdate,
    session: Session = Depends(get_session),
):
    tx = ledger.update_transaction(
        session,
        transaction_id,
        amount=payload.amount,
        description=payload.description,
        category_id=payload.category_id,
        date=payload.date,
        added_by=payload.added_by,
    )
    return _read(tx, session.get(Category, tx.category_id))


@router.delete(
    "/{transaction_id}",
    response_model=DeleteResult,
)
def delete_transaction(transaction_id: int, session: Session = Depends(get_session)):
    ledger.delete_transaction(session, transaction_id)
    return DeleteResult(success=True)
