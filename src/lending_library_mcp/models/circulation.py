"""
Circulation models for the Lending Library MCP Server.

These models describe the records the lending engine produces:
- Transaction: one loan, from issue until return
- Reservation: a member's place in an item's FIFO wait-list
- ReturnResult: what a return produced (fine, optional reservation handoff)
- OverdueEntry / TopBorrowedEntry: rows of the derived read-only reports

Fines are computed on calendar dates only. Both timestamps are truncated to
their date before subtracting, so a loan returned later on its due date, or
earlier, is never fined.
"""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

FINE_PER_DAY = 2


class TransactionStatus(str, Enum):
    """Status of a loan transaction."""

    BORROWED = "borrowed"
    RETURNED = "returned"


class ReservationStatus(str, Enum):
    """Status of a reservation."""

    WAITING = "waiting"
    FULFILLED = "fulfilled"


def overdue_days(due_time: datetime, as_of: datetime | date) -> int:
    """
    Count whole overdue calendar days.

    Args:
        due_time: When the loan fell due
        as_of: Moment (or date) the loan is evaluated at

    Returns:
        Days between the two calendar dates, never negative
    """
    as_of_date = as_of.date() if isinstance(as_of, datetime) else as_of
    return max(0, (as_of_date - due_time.date()).days)


def calculate_fine(days_overdue: int, fine_per_day: int = FINE_PER_DAY) -> int:
    """Fine owed for a number of overdue days."""
    if days_overdue <= 0:
        return 0
    return days_overdue * fine_per_day


class Transaction(BaseModel):
    """
    Represents one loan of an item to a member.

    Created with status ``borrowed`` when an item is issued and changed
    exactly once, on return, when ``return_time``, ``fine_amount`` and the
    ``returned`` status are set together.
    """

    txn_id: str = Field(
        ...,
        description="Unique, creation-ordered identifier for the transaction",
        pattern=r"^txn_\d{18,}$",
        examples=["txn_202610190930150001"],
    )

    member_id: str = Field(
        ...,
        description="ID of the member holding the item",
        min_length=1,
    )

    item_id: str = Field(
        ...,
        description="ID of the issued item",
        min_length=1,
    )

    issue_time: datetime = Field(
        ...,
        description="UTC time the item was issued",
    )

    due_time: datetime = Field(
        ...,
        description="UTC time the loan falls due",
    )

    return_time: datetime | None = Field(
        None,
        description="UTC time the item came back",
    )

    fine_amount: int = Field(
        default=0,
        description="Fine assessed at return, in currency units",
        ge=0,
    )

    status: TransactionStatus = Field(
        default=TransactionStatus.BORROWED,
        description="Current status of the loan",
    )

    @model_validator(mode="after")
    def validate_times(self) -> "Transaction":
        """Validate timestamp relationships."""
        if self.due_time <= self.issue_time:
            raise ValueError("Due time must be after issue time")

        if self.return_time and self.return_time < self.issue_time:
            raise ValueError("Return time cannot be before issue time")

        if self.status == TransactionStatus.RETURNED and self.return_time is None:
            raise ValueError("Returned transactions must carry a return time")

        return self

    @property
    def is_open(self) -> bool:
        """Whether the item is still out."""
        return self.status == TransactionStatus.BORROWED

    @property
    def loan_period_days(self) -> int:
        """Length of the loan in days."""
        return (self.due_time - self.issue_time).days

    def days_overdue(self, as_of: datetime | date) -> int:
        """Overdue calendar days at ``as_of`` (0 once returned on time)."""
        if not self.is_open and self.return_time is not None:
            return overdue_days(self.due_time, self.return_time)
        return overdue_days(self.due_time, as_of)

    model_config = ConfigDict(
        validate_assignment=True,
        use_enum_values=True,
        populate_by_name=True,
        validate_default=True,
        json_schema_extra={
            "example": {
                "txn_id": "txn_202610190930150001",
                "member_id": "m001",
                "item_id": "b001",
                "issue_time": "2026-10-19T09:30:15",
                "due_time": "2026-11-02T09:30:15",
                "status": "borrowed",
                "fine_amount": 0,
            }
        },
    )


class Reservation(BaseModel):
    """
    Represents a member waiting for a copy of an exhausted item.

    Reservations are never deleted. A ``waiting`` entry moves to
    ``fulfilled`` once, when a return hands the freed copy to its member.
    """

    res_id: int = Field(
        ...,
        description="Creation-ordered reservation number",
        ge=1,
    )

    item_id: str = Field(
        ...,
        description="ID of the reserved item",
        min_length=1,
    )

    member_id: str = Field(
        ...,
        description="ID of the waiting member",
        min_length=1,
    )

    created_time: datetime = Field(
        ...,
        description="UTC time the reservation was placed",
    )

    status: ReservationStatus = Field(
        default=ReservationStatus.WAITING,
        description="Current status of the reservation",
    )

    fulfilled_time: datetime | None = Field(
        None,
        description="UTC time the reservation was handed a copy",
    )

    @property
    def is_waiting(self) -> bool:
        """Whether the member is still in the queue."""
        return self.status == ReservationStatus.WAITING

    model_config = ConfigDict(
        validate_assignment=True,
        use_enum_values=True,
        populate_by_name=True,
        validate_default=True,
        json_schema_extra={
            "example": {
                "res_id": 1,
                "item_id": "b003",
                "member_id": "m002",
                "created_time": "2026-10-19T10:02:44",
                "status": "waiting",
            }
        },
    )


class ReturnResult(BaseModel):
    """Outcome of a return, including any reservation handoff."""

    txn_id: str = Field(..., description="Transaction that was closed")
    fine_amount: int = Field(..., description="Fine assessed for the return", ge=0)
    overdue_days: int = Field(..., description="Whole calendar days past due", ge=0)
    reservation_fulfilled_member_id: str | None = Field(
        None,
        description="Member who received the freed copy through a reservation",
    )
    handoff_transaction: Transaction | None = Field(
        None,
        description="Loan created for the reserving member, if any",
    )


class OverdueEntry(BaseModel):
    """One row of the overdue report."""

    txn_id: str
    member_id: str
    item_id: str
    due_time: datetime
    overdue_days: int = Field(..., ge=1)
    fine: int = Field(..., ge=0)


class TopBorrowedEntry(BaseModel):
    """One row of the top-borrowed report."""

    item_id: str
    title: str = ""
    borrowed_count: int = Field(..., ge=0)
