"""
Lending engine package.

The engine is the only writer of copy counters, the ledger and the
reservation queue. Everything it raises for a bad request is a LendingError;
store failures arrive as StoreUnavailable.
"""

from .clock import Clock, utc_now
from .engine import LendingEngine, LendingStores
from .errors import (
    AlreadyReturned,
    BorrowLimitExceeded,
    ItemCurrentlyAvailable,
    LendingError,
    NoCopiesAvailable,
    UnknownItem,
    UnknownMember,
    UnknownTransaction,
)
from .locks import KeyedLocks

__all__ = [
    "AlreadyReturned",
    "BorrowLimitExceeded",
    "Clock",
    "ItemCurrentlyAvailable",
    "KeyedLocks",
    "LendingEngine",
    "LendingError",
    "LendingStores",
    "NoCopiesAvailable",
    "UnknownItem",
    "UnknownMember",
    "UnknownTransaction",
    "utc_now",
]
