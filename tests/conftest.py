# tests/conftest.py
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from household_budget.database import get_session
from household_budget.main import app
from household_budget.models.category import Category
from household_budget.models.fixed_expense import FixedExpense
from household_budget.models.transaction import Transaction


def _set_sqlite_pragma(dbapi_connection, _):
    # Enforce FKs in SQLite (off by default otherwise)
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture
def engine():
    # One in-memory DB per test, shared across threads via StaticPool
    test_engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(test_engine, "connect", _set_sqlite_pragma)
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def db_session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(autouse=True)
def _override_get_session(db_session):
    def _get_session():
        yield db_session

    app.dependency_overrides[get_session] = _get_session
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_category(db_session):
    def _make(name, type="expense", parent=None, weekly_budget=None):
        category = Category(
            name=name,
            type=type,
            parent_id=parent.id if parent is not None else None,
            weekly_budget=weekly_budget,
        )
        db_session.add(category)
        db_session.commit()
        db_session.refresh(category)
        return category

    return _make


@pytest.fixture
def make_transaction(db_session):
    def _make(category, amount="10", description=None):
        tx = Transaction(amount=Decimal(amount), description=description, category_id=category.id)
        db_session.add(tx)
        db_session.commit()
        db_session.refresh(tx)
        return tx

    return _make


@pytest.fixture
def make_fixed_expense(db_session):
    def _make(category, name="שכירות", amount="4500"):
        fixed = FixedExpense(name=name, amount=Decimal(amount), category_id=category.id)
        db_session.add(fixed)
        db_session.commit()
        db_session.refresh(fixed)
        return fixed

    return _make
