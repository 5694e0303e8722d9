"""
SQLAlchemy database schema for the Lending Library MCP Server.

These tables back the four stores the lending engine works with:

1. items - the Catalog Store (copy counters only change through the engine)
2. members - the Membership Store (read-only to the engine)
3. transactions - the Ledger, one row per loan, never deleted
4. reservations - the per-item FIFO wait-list, append-only audit trail

Check constraints mirror the engine's invariants so that a bug in the engine
cannot silently push a counter outside its legal range.
"""

import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class TransactionStatusEnum(str, enum.Enum):
    """Database enum for loan status."""

    BORROWED = "borrowed"
    RETURNED = "returned"


class ReservationStatusEnum(str, enum.Enum):
    """Database enum for reservation status."""

    WAITING = "waiting"
    FULFILLED = "fulfilled"


class Item(Base):
    """
    Items table - catalog entries with their copy counters.

    ``catalog_position`` records insertion order; reports that sort by
    ``borrowed_count`` use it to break ties.
    """

    __tablename__ = "items"

    id = Column(String(50), primary_key=True)
    title = Column(String(500), nullable=False, default="")
    total_copies = Column(Integer, nullable=False)
    available_copies = Column(Integer, nullable=False)
    borrowed_count = Column(Integer, nullable=False, default=0)
    catalog_position = Column(Integer, nullable=False, unique=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=True, default=func.now(), onupdate=func.now())

    transactions = relationship("Transaction", back_populates="item")
    reservations = relationship("Reservation", back_populates="item")

    __table_args__ = (
        Index("idx_item_borrowed_count", "borrowed_count"),
        CheckConstraint("total_copies >= 0", name="check_total_copies_non_negative"),
        CheckConstraint("available_copies >= 0", name="check_available_copies_non_negative"),
        CheckConstraint(
            "available_copies <= total_copies", name="check_available_not_exceed_total"
        ),
        CheckConstraint("borrowed_count >= 0", name="check_borrowed_count_non_negative"),
    )


class Member(Base):
    """
    Members table - borrowers and their lending category.

    ``category`` is free text on purpose: unknown values fall back to the
    student policy instead of failing to load.
    """

    __tablename__ = "members"

    id = Column(String(50), primary_key=True)
    name = Column(String(200), nullable=False)
    category = Column(String(20), nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())

    transactions = relationship("Transaction", back_populates="member")
    reservations = relationship("Reservation", back_populates="member")


class Transaction(Base):
    """
    Transactions table - the loan ledger.

    Rows are inserted on issue and updated exactly once, on return.
    """

    __tablename__ = "transactions"

    txn_id = Column(String(40), primary_key=True)
    member_id = Column(String(50), ForeignKey("members.id"), nullable=False)
    item_id = Column(String(50), ForeignKey("items.id"), nullable=False)
    issue_time = Column(DateTime, nullable=False)
    due_time = Column(DateTime, nullable=False)
    return_time = Column(DateTime, nullable=True)
    fine_amount = Column(Integer, nullable=False, default=0)
    status = Column(
        Enum(TransactionStatusEnum), nullable=False, default=TransactionStatusEnum.BORROWED
    )

    member = relationship("Member", back_populates="transactions")
    item = relationship("Item", back_populates="transactions")

    __table_args__ = (
        Index("idx_txn_member_status", "member_id", "status"),
        Index("idx_txn_item_status", "item_id", "status"),
        Index("idx_txn_due_time", "due_time"),
        CheckConstraint("txn_id LIKE 'txn_%'", name="check_txn_id_format"),
        CheckConstraint("fine_amount >= 0", name="check_fine_non_negative"),
        CheckConstraint("due_time > issue_time", name="check_due_after_issue"),
    )


class Reservation(Base):
    """
    Reservations table - FIFO wait-list per item.

    Ordering is ``created_time`` then ``res_id``; the autoincrement key keeps
    reservations placed within the same second in arrival order.
    """

    __tablename__ = "reservations"

    res_id = Column(Integer, primary_key=True, autoincrement=True)
    item_id = Column(String(50), ForeignKey("items.id"), nullable=False)
    member_id = Column(String(50), ForeignKey("members.id"), nullable=False)
    created_time = Column(DateTime, nullable=False)
    status = Column(
        Enum(ReservationStatusEnum), nullable=False, default=ReservationStatusEnum.WAITING
    )
    fulfilled_time = Column(DateTime, nullable=True)

    member = relationship("Member", back_populates="reservations")
    item = relationship("Item", back_populates="reservations")

    __table_args__ = (
        Index("idx_reservation_queue", "item_id", "status", "created_time", "res_id"),
        Index("idx_reservation_member", "member_id"),
    )
