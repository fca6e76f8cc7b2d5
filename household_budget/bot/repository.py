import logging

import anyio.to_thread
from sqlalchemy.engine import Engine
from sqlmodel import Session

from ..core.errors import BudgetError, PersistenceError
from ..services import categories as category_service
from ..services import transactions as ledger
from .wizard import CategoryCatalog, CategoryRef, CreateCategory, RecordTransaction

logger = logging.getLogger(__name__)


class SqlBudgetRepository:
    """Wizard-facing persistence. Each call runs in a worker thread with its own
    session so a slow database never stalls other conversations."""

    def __init__(self, engine: Engine):
        self.engine = engine

    async def _run(self, func, *args):
        def _call():
            with Session(self.engine) as session:
                return func(session, *args)

        try:
            return await anyio.to_thread.run_sync(_call)
        except PersistenceError:
            raise
        except BudgetError as e:
            # e.g. the chosen category was force-deleted meanwhile
            raise PersistenceError(e.message) from e
        except ArithmeticError as e:
            raise PersistenceError(f"invalid amount: {e!r}") from e

    async def load_catalog(self) -> CategoryCatalog:
        def _load(session):
            return [
                CategoryRef(id=c.id, name=c.name, type=c.type, parent_id=c.parent_id)
                for c in category_service.list_categories(session)
            ]

        return CategoryCatalog(await self._run(_load))

    async def create_category(self, action: CreateCategory) -> int:
        def _create(session):
            category = category_service.create_category(
                session, name=action.name, type=action.type, parent_id=action.parent_id
            )
            return category.id

        category_id = await self._run(_create)
        logger.info("Wizard created category %s (%r)", category_id, action.name)
        return category_id

    async def record_transaction(self, action: RecordTransaction) -> int:
        def _record(session):
            rows = ledger.create_transaction(
                session,
                amount=action.amount,
                category_id=action.category_id,
                description=action.description,
                added_by=action.added_by,
            )
            return rows[0].id

        return await self._run(_record)
