"""
Database package for the Lending Library MCP Server.

This package provides:
- SQLAlchemy schema definitions (schema.py)
- Session management and connection handling (session.py)
- Narrow repositories for the four stores the lending engine uses:
  items (catalog), members, transactions (ledger) and reservations (queue)
"""

from .exceptions import DuplicateError, NotFoundError, RepositoryException, StoreUnavailable
from .item_repository import ItemCreateSchema, ItemRepository
from .member_repository import MemberCreateSchema, MemberRepository
from .repository import BaseRepository
from .reservation_repository import ReservationCreateSchema, ReservationRepository
from .schema import (
    Base,
    Item,
    Member,
    Reservation,
    ReservationStatusEnum,
    Transaction,
    TransactionStatusEnum,
)
from .session import DatabaseManager, safe_flush, safe_query
from .transaction_repository import TransactionCreateSchema, TransactionRepository

__all__ = [
    "Base",
    "BaseRepository",
    "DatabaseManager",
    "DuplicateError",
    "Item",
    "ItemCreateSchema",
    "ItemRepository",
    "Member",
    "MemberCreateSchema",
    "MemberRepository",
    "NotFoundError",
    "RepositoryException",
    "Reservation",
    "ReservationCreateSchema",
    "ReservationRepository",
    "ReservationStatusEnum",
    "StoreUnavailable",
    "Transaction",
    "TransactionCreateSchema",
    "TransactionRepository",
    "TransactionStatusEnum",
    "safe_flush",
    "safe_query",
]
