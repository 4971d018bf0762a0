"""Engine and session management for the credit store.

The same models run on PostgreSQL in production and SQLite in development
and tests, so engine options are chosen per dialect here.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from tarana.logging_config import get_logger
from tarana.settings import settings
from tarana.storage.models import Base

logger = get_logger(__name__)


def normalize_database_url(url: str) -> str:
    """Map hosted-Postgres style ``postgres://`` URLs to SQLAlchemy's scheme."""
    url = url.strip()
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://") :]
    return url


class Database:
    """Owns the engine and hands out transactional sessions."""

    def __init__(self, database_url: str | None = None):
        """Initialize database connection.

        Args:
            database_url: Database URL (defaults to settings)
        """
        self.database_url = normalize_database_url(database_url or settings.database_url)

        connect_args = {}
        if self.database_url.startswith("sqlite"):
            # Request handlers run on worker threads
            connect_args["check_same_thread"] = False

        self.engine = create_engine(
            self.database_url,
            echo=settings.database_echo,
            pool_pre_ping=True,
            connect_args=connect_args,
        )
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )
        logger.info("database_initialized", dialect=self.engine.dialect.name)

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


# Global database instance
db = Database()
