from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import field_validator
from sqlmodel import SQLModel, Field, Session

from ..database import get_session
from ..models.category import CategoryType
from ..services import categories as category_service

router = APIRouter(
    prefix="/categories",
    tags=["categories"],
)

# ─────────────────────────────
#   SCHEMAS (Pydantic/SQLModel)
# ─────────────────────────────


class CategoryCreate(SQLModel):
    name: str = Field(max_length=100)
    type: CategoryType
    parent_id: Optional[int] = None


class BudgetUpdate(SQLModel):
    weekly_budget: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)

    @field_validator("weekly_budget", mode="before")
    @classmethod
    def blank_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class CategoryRead(SQLModel):
    id: int
    name: str
    type: CategoryType
    parent_id: Optional[int] = None
    weekly_budget: Optional[float] = None
    created_at: datetime


class CategoryTreeRead(CategoryRead):
    sub_categories: List[CategoryRead] = []


class DeleteResult(SQLModel):
    success: bool
    message: Optional[str] = None


# ─────────────────────────────
#   ENDPOINTS
# ─────────────────────────────

@router.get(
    "",
    response_model=List[CategoryTreeRead],
)
def list_categories(session: Session = Depends(get_session)):
    """Every category, each with its direct sub-categories nested."""
    categories = category_service.list_categories(session)
    children = category_service.children_by_parent(categories)
    return [
        CategoryTreeRead.model_validate(
            category,
            update={"sub_categories": [CategoryRead.model_validate(c) for c in children.get(category.id, [])]},
        )
        for category in categories
    ]


@router.post(
    "",
    response_model=CategoryRead,
    status_code=status.HTTP_201_CREATED,
)
def create_category(payload: CategoryCreate, session: Session = Depends(get_session)):
    category = category_service.create_category(
        session,
        name=payload.name,
        type=payload.type,
        parent_id=payload.parent_id,
    )
    return CategoryRead.model_validate(category)


@router.delete(
    "/{category_id}",
    response_model=DeleteResult,
)
def delete_category(category_id: int, session: Session = Depends(get_session)):
    """Blocked with 400 while sub-categories, transactions or fixed expenses reference it."""
    category_service.delete_category(session, category_id)
    return DeleteResult(success=True)


@router.delete(
    "/{category_id}/force",
    response_model=DeleteResult,
)
def force_delete_category(category_id: int, session: Session = Depends(get_session)):
    category_service.force_delete_category(session, category_id)
    return DeleteResult(success=True, message="הקטגוריה וכל מה שקשור אליה נמחקו.")


@router.put(
    "/{category_id}/budget",
    response_model=CategoryRead,
)
def update_budget(category_id: int, payload: BudgetUpdate, session: Session = Depends(get_session)):
    category = category_service.update_budget(session, category_id, payload.weekly_budget)
    return CategoryRead.model_validate(category)
