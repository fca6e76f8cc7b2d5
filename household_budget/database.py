import logging

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel, create_engine, Session

from .config import settings

logger = logging.getLogger(__name__)

# Columns added after the first release; old SQLite files get them on startup.
_LATE_COLUMNS = {
    "categories": {
        "weekly_budget": "NUMERIC(12, 2)",
    },
    "transactions": {
        "total_installments": "INTEGER",
        "current_installment": "INTEGER",
        "installment_group_id": "VARCHAR",
    },
}


def _set_sqlite_pragmas(dbapi_connection, _connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA busy_timeout=60000")
    cursor.close()


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    if database_url.startswith("sqlite"):
        db_engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 60},
            poolclass=NullPool,  # avoid multiple pooled connections holding write locks
        )
        event.listen(db_engine, "connect", _set_sqlite_pragmas)
        return db_engine
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


engine = create_db_engine(settings.database_url, echo=settings.sql_echo)


def get_session():
    with Session(engine) as session:
        yield session


def migrate_sqlite_columns(db_engine: Engine) -> None:
    """Add columns that older SQLite databases are missing."""
    with db_engine.begin() as conn:
        for table, columns in _LATE_COLUMNS.items():
            rows = conn.exec_driver_sql(f"PRAGMA table_info('{table}');").fetchall()
            if not rows:
                continue
            existing = {row[1] for row in rows}  # row[1] is the column name
            for column, ddl_type in columns.items():
                if column not in existing:
                    logger.info("Adding column %s.%s", table, column)
                    conn.exec_driver_sql(f"ALTER TABLE {table} ADD COLUMN {column} {ddl_type}")


def init_db(db_engine: Engine = None):
    from .models import category, transaction, fixed_expense  # noqa: F401

    db_engine = db_engine or engine
    if str(db_engine.url).startswith("sqlite"):
        try:
            with db_engine.connect() as conn:
                conn.exec_driver_sql("PRAGMA journal_mode=WAL;")
            migrate_sqlite_columns(db_engine)
        except OperationalError:
            # The database may be momentarily locked (e.g. during reloader startup).
            logger.warning("SQLite migration skipped: database is locked")

    SQLModel.metadata.create_all(db_engine)
