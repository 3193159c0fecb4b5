"""Database connection and session management."""

from contextlib import contextmanager
from typing import Generator, Iterable

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from membership.logging_config import get_logger
from membership.settings import settings
from membership.storage.models import Base

logger = get_logger(__name__)


class Database:
    """Database connection manager."""

    def __init__(self, database_url: str | None = None):
        """Initialize database connection.

        Args:
            database_url: Database URL (defaults to settings)
        """
        self.database_url = database_url or settings.database_url
        connect_args = {}
        if self.database_url.startswith("sqlite"):
            # Sessions are opened from FastAPI's worker threads
            connect_args["check_same_thread"] = False
        self.engine = create_engine(
            self.database_url,
            echo=settings.env == "development",
            pool_pre_ping=True,
            connect_args=connect_args,
        )
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )
        logger.info("database_initialized", url=self.engine.url.render_as_string(hide_password=True))

    def create_tables(self) -> None:
        """Create all tables in the database."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("tables_created")

    def drop_tables(self) -> None:
        """Drop all tables from the database."""
        Base.metadata.drop_all(bind=self.engine)
        logger.warning("tables_dropped")

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Provide a transactional scope for database operations.

        Yields:
            Database session
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


def unique_violation_field(exc: IntegrityError, table: str, columns: Iterable[str]) -> str | None:
    """Name the column whose unique constraint an IntegrityError reports.

    SQLite reports ``table.column``; PostgreSQL reports the constraint name,
    which follows the ``uq_<table>_<column>`` convention used by the models.

    Args:
        exc: Error raised by flush/commit
        table: Table the insert/update targeted
        columns: Candidate columns, checked in order

    Returns:
        Column name or None if the error is not a known unique violation
    """
    message = str(exc.orig).lower()
    # NOT NULL / FK / CHECK failures also name the column; only 23505 counts
    sqlstate = getattr(exc.orig, "pgcode", None) or getattr(exc.orig, "sqlstate", None)
    if "unique" not in message and sqlstate != "23505":
        return None

    for column in columns:
        if f"{table}.{column}" in message or f"uq_{table}_{column}" in message:
            return column
    return None


# Global database instance
db = Database()
