"""
Database session management for the Lending Library MCP Server.

This module provides connection management and session handling for SQLAlchemy.
Every lending operation runs inside exactly one ``session_scope()``, which is
what makes it a single atomic unit: either the whole unit commits or nothing
is visible to other callers.

Key Considerations:
- Sessions are short-lived (one per engine operation)
- The DatabaseManager is constructed explicitly by whoever owns the process
  lifecycle (server startup, scripts, tests) and closed on shutdown
- Store failures surface as StoreUnavailable after a rollback
"""

import logging
from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_config
from .exceptions import RepositoryException, StoreUnavailable
from .schema import Base

T = TypeVar("T")

logger = logging.getLogger(__name__)


def _is_memory_url(database_url: str) -> bool:
    return database_url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in database_url


class DatabaseManager:
    """
    Manages database connections and sessions for the lending engine.

    This class provides:
    - Lazy engine creation with SQLite-specific tuning
    - Session factory with explicit transactions
    - Schema initialisation for development and tests
    """

    def __init__(self, database_url: str | None = None):
        """
        Initialize the database manager.

        Args:
            database_url: SQLAlchemy database URL. If None, uses the configured SQLite file.
        """
        if database_url is None:
            config = get_config()
            db_path = config.database_path

            if not db_path.is_absolute():
                db_path = Path.cwd() / db_path

            db_path.parent.mkdir(exist_ok=True, parents=True)

            database_url = f"sqlite:///{db_path}"
            logger.info("Using SQLite database at: %s", db_path)

        self.database_url = database_url
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def single_connection(self) -> bool:
        """
        Whether every session shares one DB-API connection.

        In-memory SQLite databases live inside a single connection, so two
        sessions can never run their units of work side by side.
        """
        return self.database_url.startswith("sqlite") and _is_memory_url(self.database_url)

    @property
    def engine(self) -> Engine:
        """
        Get or create the database engine.

        The engine is created with:
        - StaticPool for in-memory SQLite (the database lives in one connection)
        - Foreign key constraints enabled for SQLite
        - Pre-ping pooling for server databases
        """
        if self._engine is None:
            if self.database_url.startswith("sqlite"):
                kwargs = {"connect_args": {"check_same_thread": False}, "echo": False}
                if self.single_connection:
                    kwargs["poolclass"] = StaticPool
                self._engine = create_engine(self.database_url, **kwargs)

                @event.listens_for(self._engine, "connect")
                def set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ARG001
                    cursor = dbapi_connection.cursor()
                    cursor.execute("PRAGMA foreign_keys=ON")
                    cursor.close()
            else:
                self._engine = create_engine(
                    self.database_url,
                    pool_size=10,
                    max_overflow=20,
                    pool_pre_ping=True,
                    echo=False,
                )

            logger.info("Database engine created: %s", self._engine.url)

        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        """Get or create the session factory."""
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                autocommit=False,
                autoflush=False,
                expire_on_commit=False,
            )
        return self._session_factory

    def create_session(self) -> Session:
        """Create a new database session."""
        return self.session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope for one unit of work.

        ```python
        with db_manager.session_scope() as session:
            ledger = TransactionRepository(session)
            ...
        # Committed on success, rolled back on any exception
        ```

        Yields:
            Database session

        Raises:
            StoreUnavailable: If the database itself fails
            RepositoryException: Business and lookup errors are re-raised unchanged
        """
        session = self.create_session()
        try:
            yield session
            session.commit()
            logger.debug("Database transaction committed successfully")
        except RepositoryException:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            logger.exception("Database error, rolling back")
            session.rollback()
            raise StoreUnavailable(f"Store unavailable: {e!s}") from e
        except Exception:
            logger.exception("Unexpected error, rolling back")
            session.rollback()
            raise
        finally:
            session.close()

    def init_database(self, drop_existing: bool = False) -> None:
        """
        Initialize the database schema.

        Args:
            drop_existing: If True, drop all tables before creating
        """
        engine = self.engine

        if drop_existing:
            logger.warning("Dropping all existing tables...")
            Base.metadata.drop_all(bind=engine)

        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database initialization complete")

    def verify_connection(self) -> bool:
        """
        Verify the database connection is working.

        Returns:
            True if connection is successful, False otherwise
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database connection verified")
            return True
        except SQLAlchemyError:
            logger.exception("Database connection failed")
            return False

    def close(self) -> None:
        """Close the database connection and cleanup resources."""
        if self._engine:
            self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._session_factory = None


def safe_flush(session: Session, operation: str) -> None:
    """
    Flush pending changes, turning database errors into StoreUnavailable.

    Args:
        session: The database session
        operation: Description of the operation (for error messages)

    Raises:
        StoreUnavailable: If the flush fails
    """
    try:
        session.flush()
    except SQLAlchemyError as e:
        logger.exception("Flush failed during %s", operation)
        raise StoreUnavailable(f"Database operation '{operation}' failed: {e!s}") from e


def safe_query(session: Session, query_func: Callable[[Session], T], error_msg: str) -> T:
    """
    Execute a query, turning database errors into StoreUnavailable.

    Args:
        session: The database session
        query_func: Function that performs the query
        error_msg: Error message prefix

    Returns:
        Query result

    Raises:
        StoreUnavailable: If the query fails
    """
    try:
        return query_func(session)
    except SQLAlchemyError as e:
        logger.exception("Query failed")
        raise StoreUnavailable(f"{error_msg}: Database query failed") from e
