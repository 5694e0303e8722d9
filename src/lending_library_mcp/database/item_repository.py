"""
Item repository implementation for the Lending Library MCP Server.

This is the Catalog Store as seen by the lending engine:

1. **Lookups**: fetch an item, optionally locking its row for the unit of work
2. **Copy counters**: ``adjust_availability`` and ``increment_borrowed_count``,
   the only two ways item counters ever change
3. **Reports**: items ranked by how often they were issued

Editing titles or copy totals is catalog administration and is not offered
here; ``create`` exists for seeding and tests.
"""

import logging

from pydantic import BaseModel, Field, model_validator
from sqlalchemy import asc, desc, func, select

from ..database.schema import Item as ItemDB
from ..models.circulation import TopBorrowedEntry
from ..models.item import Item as ItemModel
from .repository import BaseRepository, NotFoundError, RepositoryException
from .session import safe_flush, safe_query

logger = logging.getLogger(__name__)


class ItemCreateSchema(BaseModel):
    """Schema for adding an item to the catalog."""

    id: str = Field(..., min_length=1, max_length=50)
    title: str = ""
    total_copies: int = Field(..., ge=0)
    available_copies: int | None = None  # Defaults to total_copies
    borrowed_count: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def validate_copies(self) -> "ItemCreateSchema":
        if self.available_copies is not None and not (
            0 <= self.available_copies <= self.total_copies
        ):
            raise ValueError("Available copies must be between 0 and total copies")
        return self


class ItemRepository(BaseRepository[ItemDB, ItemCreateSchema, ItemModel]):
    """Repository for catalog items and their copy counters."""

    @property
    def model_class(self) -> type[ItemDB]:
        return ItemDB

    @property
    def response_schema(self) -> type[ItemModel]:
        return ItemModel

    def create(self, data: ItemCreateSchema) -> ItemModel:
        """
        Add an item, recording its position in catalog insertion order.

        Raises:
            DuplicateError: If an item with the same ID exists
        """
        last_position = safe_query(
            self.session,
            lambda s: s.execute(select(func.max(ItemDB.catalog_position))).scalar(),
            "Failed to get catalog position",
        )
        db_obj = ItemDB(
            id=data.id,
            title=data.title,
            total_copies=data.total_copies,
            available_copies=(
                data.total_copies if data.available_copies is None else data.available_copies
            ),
            borrowed_count=data.borrowed_count,
            catalog_position=(last_position or 0) + 1,
        )
        return self._add(db_obj)

    def get_for_update(self, item_id: str) -> ItemModel | None:
        """
        Get an item and lock its row until the unit of work ends.

        Databases without row locks (SQLite) ignore the lock; the engine's
        own mutual exclusion covers them.
        """
        db_obj = safe_query(
            self.session,
            lambda s: s.execute(
                select(ItemDB).where(ItemDB.id == item_id).with_for_update()
            ).scalar_one_or_none(),
            "Failed to get item for update",
        )
        if db_obj is None:
            return None
        return self._to_response_model(db_obj)

    def _require_row(self, item_id: str) -> ItemDB:
        db_obj = self._get_row(item_id)
        if db_obj is None:
            raise NotFoundError(f"Item {item_id} not found")
        return db_obj

    def adjust_availability(self, item_id: str, delta: int) -> ItemModel:
        """
        Move ``available_copies`` by ``delta``.

        Args:
            item_id: Item to adjust
            delta: Signed change, -1 on issue and +1 on return

        Returns:
            Updated item

        Raises:
            NotFoundError: If the item does not exist
            RepositoryException: If the result would leave 0..total_copies
        """
        db_obj = self._require_row(item_id)
        new_available = db_obj.available_copies + delta

        if new_available < 0 or new_available > db_obj.total_copies:
            raise RepositoryException(
                f"Availability of {item_id} would become {new_available} "
                f"(total copies {db_obj.total_copies})"
            )

        db_obj.available_copies = new_available
        safe_flush(self.session, "adjust availability")
        logger.debug("Item %s availability %+d -> %d", item_id, delta, new_available)
        return self._to_response_model(db_obj)

    def increment_borrowed_count(self, item_id: str) -> ItemModel:
        """
        Count one more issue of the item.

        Raises:
            NotFoundError: If the item does not exist
        """
        db_obj = self._require_row(item_id)
        db_obj.borrowed_count += 1
        safe_flush(self.session, "increment borrowed count")
        return self._to_response_model(db_obj)

    def top_borrowed(self, limit: int) -> list[TopBorrowedEntry]:
        """
        Items ranked by ``borrowed_count``, ties in catalog insertion order.

        Args:
            limit: Maximum number of rows

        Raises:
            ValueError: If limit is below 1
        """
        if limit < 1:
            raise ValueError("Limit must be >= 1")

        query = (
            select(ItemDB)
            .order_by(desc(ItemDB.borrowed_count), asc(ItemDB.catalog_position))
            .limit(limit)
        )
        rows = safe_query(
            self.session,
            lambda s: s.execute(query).scalars().all(),
            "Failed to rank borrowed items",
        )
        return [
            TopBorrowedEntry(item_id=row.id, title=row.title, borrowed_count=row.borrowed_count)
            for row in rows
        ]

    def list_all(self) -> list[ItemModel]:
        """All items in catalog insertion order."""
        rows = safe_query(
            self.session,
            lambda s: s.execute(select(ItemDB).order_by(ItemDB.catalog_position)).scalars().all(),
            "Failed to list items",
        )
        return [self._to_response_model(row) for row in rows]
