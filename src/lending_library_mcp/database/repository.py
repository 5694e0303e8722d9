"""
Repository pattern implementation for the Lending Library MCP Server.

Repositories are the narrow store interfaces the lending engine talks to.
They return Pydantic models rather than ORM rows, which keeps the engine's
invariants checkable without knowing how anything is persisted.

Repositories never commit. They join the session they were given, and the
owner of that session (``DatabaseManager.session_scope``) decides whether the
whole unit of work commits or rolls back.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .exceptions import DuplicateError, NotFoundError, RepositoryException, StoreUnavailable
from .schema import Base
from .session import safe_query

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
ResponseSchemaType = TypeVar("ResponseSchemaType", bound=BaseModel)

__all__ = [
    "BaseRepository",
    "DuplicateError",
    "NotFoundError",
    "RepositoryException",
    "StoreUnavailable",
]


class BaseRepository(ABC, Generic[ModelType, CreateSchemaType, ResponseSchemaType]):
    """
    Abstract base repository providing lookups and inserts keyed by ``id``.

    All queries go through safe_query so that database failures reach the
    caller as StoreUnavailable.
    """

    def __init__(self, session: Session):
        """Initialize repository with database session."""
        self.session = session

    @property
    @abstractmethod
    def model_class(self) -> type[ModelType]:
        """Return the SQLAlchemy model class."""

    @property
    @abstractmethod
    def response_schema(self) -> type[ResponseSchemaType]:
        """Return the Pydantic response schema."""

    def _to_response_model(self, db_obj: ModelType) -> ResponseSchemaType:
        """Convert database model to Pydantic response model."""
        return self.response_schema.model_validate(db_obj, from_attributes=True)

    def _get_row(self, id: str) -> ModelType | None:
        query = select(self.model_class).where(self.model_class.id == id)
        return safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            f"Failed to get {self.model_class.__name__} by ID",
        )

    def get_by_id(self, id: str) -> ResponseSchemaType | None:
        """
        Get entity by ID.

        Args:
            id: Entity ID

        Returns:
            Pydantic model or None if not found

        Raises:
            StoreUnavailable: On database errors
        """
        db_obj = self._get_row(id)
        if db_obj is None:
            return None
        return self._to_response_model(db_obj)

    def exists(self, id: str) -> bool:
        """Check if entity exists by ID."""
        query = (
            select(func.count()).select_from(self.model_class).where(self.model_class.id == id)
        )
        count = safe_query(
            self.session, lambda s: s.execute(query).scalar(), "Failed to check existence"
        )
        return (count or 0) > 0

    def _add(self, db_obj: ModelType) -> ResponseSchemaType:
        """
        Insert a new row within the current unit of work.

        Raises:
            DuplicateError: If the row collides with an existing one
        """
        self.session.add(db_obj)
        try:
            self.session.flush()
        except IntegrityError as e:
            self.session.rollback()
            raise DuplicateError(f"Entity already exists: {e!s}") from e
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreUnavailable(f"Database error: {e!s}") from e
        return self._to_response_model(db_obj)

    @abstractmethod
    def create(self, data: CreateSchemaType) -> ResponseSchemaType:
        """Create new entity."""
