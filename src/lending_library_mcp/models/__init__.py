"""
Lending Library MCP Server Models.

Pydantic models for every record the lending engine reads or produces.
Stores return these instead of database rows so that engine invariants can be
checked independently of the storage technology.

The models represent:
- Item: catalog entries and their copy counters
- Member: borrowers and the lending policy for their category
- Circulation: loan transactions, reservations and report rows
"""

from .circulation import (
    OverdueEntry,
    Reservation,
    ReservationStatus,
    ReturnResult,
    TopBorrowedEntry,
    Transaction,
    TransactionStatus,
)
from .item import Item
from .member import DEFAULT_POLICY, LoanPolicy, Member, MemberCategory, policy_for

__all__ = [
    "DEFAULT_POLICY",
    "Item",
    "LoanPolicy",
    "Member",
    "MemberCategory",
    "OverdueEntry",
    "Reservation",
    "ReservationStatus",
    "ReturnResult",
    "TopBorrowedEntry",
    "Transaction",
    "TransactionStatus",
    "policy_for",
]
