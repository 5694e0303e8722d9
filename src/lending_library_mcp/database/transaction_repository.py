"""
Transaction repository implementation for the Lending Library MCP Server.

This is the Ledger, the single source of truth for who has what and since
when:

1. **Append**: one row per issue, with a creation-ordered ``txn_id``
2. **Close**: ``mark_returned`` moves a row from borrowed to returned, once
3. **Counts**: open loans per member (borrow limits) and per item (conservation)
4. **Listings**: open loans, member history and overdue loans for reports

Rows are never deleted.
"""

from datetime import date, datetime, time

from pydantic import BaseModel
from sqlalchemy import and_, desc, func, select
from sqlalchemy.orm import Session

from ..database.schema import Transaction as TransactionDB
from ..database.schema import TransactionStatusEnum
from ..models.circulation import Transaction as TransactionModel
from ..models.circulation import TransactionStatus
from .repository import NotFoundError, RepositoryException
from .session import safe_flush, safe_query


class TransactionCreateSchema(BaseModel):
    """Schema for appending a loan to the ledger."""

    member_id: str
    item_id: str
    issue_time: datetime
    due_time: datetime


class TransactionRepository:
    """
    Repository for loan transactions.

    Unlike catalog rows, ledger rows are keyed by ``txn_id`` and carry a
    status, so this repository does not share the id-based base class.
    """

    def __init__(self, session: Session):
        """Initialize repository with database session."""
        self.session = session

    def create(self, data: TransactionCreateSchema) -> TransactionModel:
        """
        Append a new borrowed transaction.

        Args:
            data: Member, item and loan window

        Returns:
            Created transaction
        """
        txn = TransactionDB(
            txn_id=self._generate_txn_id(data.issue_time),
            member_id=data.member_id,
            item_id=data.item_id,
            issue_time=data.issue_time,
            due_time=data.due_time,
            fine_amount=0,
            status=TransactionStatusEnum.BORROWED,
        )
        self.session.add(txn)
        safe_flush(self.session, "create transaction")
        return self._transaction_to_model(txn)

    def get_by_id(self, txn_id: str) -> TransactionModel | None:
        """Get a transaction by ID, or None if it does not exist."""
        txn = self._get_row(txn_id)
        if txn is None:
            return None
        return self._transaction_to_model(txn)

    def mark_returned(
        self, txn_id: str, return_time: datetime, fine_amount: int
    ) -> TransactionModel:
        """
        Close an open transaction.

        Args:
            txn_id: Transaction to close
            return_time: When the item came back
            fine_amount: Fine assessed for the return

        Returns:
            Updated transaction

        Raises:
            NotFoundError: If the transaction does not exist
            RepositoryException: If the transaction is already returned
        """
        txn = self._get_row(txn_id)
        if txn is None:
            raise NotFoundError(f"Transaction {txn_id} not found")

        if txn.status != TransactionStatusEnum.BORROWED:
            raise RepositoryException(
                f"Transaction {txn_id} is not open (current status: {txn.status.value})"
            )

        txn.return_time = return_time
        txn.fine_amount = fine_amount
        txn.status = TransactionStatusEnum.RETURNED
        safe_flush(self.session, "mark transaction returned")
        return self._transaction_to_model(txn)

    def count_open_for_member(self, member_id: str) -> int:
        """Number of loans the member currently holds."""
        return self._count_open(TransactionDB.member_id == member_id)

    def count_open_for_item(self, item_id: str) -> int:
        """Number of copies of the item currently out."""
        return self._count_open(TransactionDB.item_id == item_id)

    def list_open_for_member(self, member_id: str) -> list[TransactionModel]:
        """Open loans of one member, oldest first."""
        query = (
            select(TransactionDB)
            .where(
                and_(
                    TransactionDB.member_id == member_id,
                    TransactionDB.status == TransactionStatusEnum.BORROWED,
                )
            )
            .order_by(TransactionDB.issue_time, TransactionDB.txn_id)
        )
        return self._list(query, "Failed to list open transactions for member")

    def list_open(self) -> list[TransactionModel]:
        """Every loan currently out, in creation order."""
        query = (
            select(TransactionDB)
            .where(TransactionDB.status == TransactionStatusEnum.BORROWED)
            .order_by(TransactionDB.txn_id)
        )
        return self._list(query, "Failed to list open transactions")

    def list_for_member(self, member_id: str) -> list[TransactionModel]:
        """All of a member's transactions, newest first."""
        query = (
            select(TransactionDB)
            .where(TransactionDB.member_id == member_id)
            .order_by(desc(TransactionDB.issue_time), desc(TransactionDB.txn_id))
        )
        return self._list(query, "Failed to get member history")

    def list_overdue(self, today: date) -> list[TransactionModel]:
        """
        Open loans whose due date is before ``today``.

        The comparison is on calendar dates: a loan due at any time on
        ``today`` is not overdue yet.
        """
        start_of_today = datetime.combine(today, time.min)
        query = (
            select(TransactionDB)
            .where(
                and_(
                    TransactionDB.status == TransactionStatusEnum.BORROWED,
                    TransactionDB.due_time < start_of_today,
                )
            )
            .order_by(TransactionDB.due_time, TransactionDB.txn_id)
        )
        return self._list(query, "Failed to list overdue transactions")

    def _get_row(self, txn_id: str) -> TransactionDB | None:
        return safe_query(
            self.session,
            lambda s: s.execute(
                select(TransactionDB).where(TransactionDB.txn_id == txn_id)
            ).scalar_one_or_none(),
            "Failed to get transaction",
        )

    def _count_open(self, condition) -> int:
        count = safe_query(
            self.session,
            lambda s: s.execute(
                select(func.count())
                .select_from(TransactionDB)
                .where(and_(condition, TransactionDB.status == TransactionStatusEnum.BORROWED))
            ).scalar(),
            "Failed to count open transactions",
        )
        return count or 0

    def _list(self, query, error_msg: str) -> list[TransactionModel]:
        rows = safe_query(self.session, lambda s: s.execute(query).scalars().all(), error_msg)
        return [self._transaction_to_model(row) for row in rows]

    def _generate_txn_id(self, issue_time: datetime) -> str:
        """Generate a unique, creation-ordered transaction ID."""
        timestamp = issue_time.strftime("%Y%m%d%H%M%S")
        count = (
            safe_query(
                self.session,
                lambda s: s.execute(
                    select(func.count())
                    .select_from(TransactionDB)
                    .where(TransactionDB.txn_id.like(f"txn_{timestamp}%"))
                ).scalar(),
                "Failed to count transactions for ID generation",
            )
            or 0
        )
        return f"txn_{timestamp}{count + 1:04d}"

    def _transaction_to_model(self, txn: TransactionDB) -> TransactionModel:
        """Convert transaction DB object to Pydantic model."""
        return TransactionModel(
            txn_id=txn.txn_id,
            member_id=txn.member_id,
            item_id=txn.item_id,
            issue_time=txn.issue_time,
            due_time=txn.due_time,
            return_time=txn.return_time,
            fine_amount=txn.fine_amount,
            status=TransactionStatus(txn.status.value),
        )
