"""
Lending errors for the Lending Library MCP Server.

Every error here is caller-recoverable: the engine raises it before changing
anything, and the caller-facing layer turns it into an error result. Store
failures are not lending errors; they arrive as StoreUnavailable.
"""

from ..database.exceptions import NotFoundError, RepositoryException


class LendingError(RepositoryException):
    """Base class for lending rule violations and unknown references."""


class UnknownMember(LendingError, NotFoundError):
    """The member does not exist."""

    def __init__(self, member_id: str):
        self.member_id = member_id
        super().__init__(f"Member {member_id} not found")


class UnknownItem(LendingError, NotFoundError):
    """The item does not exist."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item {item_id} not found")


class UnknownTransaction(LendingError, NotFoundError):
    """The transaction does not exist."""

    def __init__(self, txn_id: str):
        self.txn_id = txn_id
        super().__init__(f"Transaction {txn_id} not found")


class NoCopiesAvailable(LendingError):
    """Every copy of the item is out; the member should reserve instead."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"No copies of {item_id} available. Consider reserving it.")


class BorrowLimitExceeded(LendingError):
    """The member already holds as many loans as their category allows."""

    def __init__(self, member_id: str, limit: int):
        self.member_id = member_id
        self.limit = limit
        super().__init__(f"Member {member_id} has reached the borrow limit ({limit})")


class AlreadyReturned(LendingError):
    """The transaction was closed by an earlier return."""

    def __init__(self, txn_id: str):
        self.txn_id = txn_id
        super().__init__(f"Transaction {txn_id} was already returned")


class ItemCurrentlyAvailable(LendingError):
    """Reservations are only taken for exhausted items; issue it instead."""

    def __init__(self, item_id: str, available_copies: int):
        self.item_id = item_id
        self.available_copies = available_copies
        super().__init__(
            f"Item {item_id} has {available_copies} copies available; borrow it instead"
        )
