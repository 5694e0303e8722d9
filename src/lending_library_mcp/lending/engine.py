"""
Lending engine for the Lending Library MCP Server.

The engine owns every lending invariant:

1. **Conservation**: for each item, ``available_copies`` plus its open
   transactions always equals ``total_copies``
2. **Borrow limits**: a member never holds more open loans than their
   category allows (reservation handoffs excepted)
3. **Single return**: a transaction is closed at most once
4. **FIFO handoff**: a return hands the freed copy to the earliest waiting
   reservation for that item, and to at most one

Each write operation runs as one unit of work: one database transaction,
inside the locks for the item (and member) it touches. Issues and returns
also hold the ledger lock, since either may append a transaction. A failed
precondition raises a LendingError before anything is written; a store
failure rolls the whole unit back and raises StoreUnavailable.

Authorization is not the engine's concern. Privileged and self-service entry
points both call ``return_item``; ownership is checked by the caller first.
"""

import logging
from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import NamedTuple

from ..database.item_repository import ItemRepository
from ..database.member_repository import MemberRepository
from ..database.reservation_repository import ReservationCreateSchema, ReservationRepository
from ..database.session import DatabaseManager
from ..database.transaction_repository import TransactionCreateSchema, TransactionRepository
from ..models.circulation import (
    FINE_PER_DAY,
    OverdueEntry,
    Reservation,
    ReturnResult,
    TopBorrowedEntry,
    Transaction,
    calculate_fine,
    overdue_days,
)
from ..models.item import Item
from ..models.member import LoanPolicy, MemberCategory, policy_for
from .clock import Clock, utc_now
from .errors import (
    AlreadyReturned,
    BorrowLimitExceeded,
    ItemCurrentlyAvailable,
    NoCopiesAvailable,
    UnknownItem,
    UnknownMember,
    UnknownTransaction,
)
from .locks import KeyedLocks

logger = logging.getLogger(__name__)

# Transaction ids are numbered per second across the whole ledger, so every
# operation that can append a transaction holds this key until it commits.
LEDGER = ("ledger",)


class LendingStores(NamedTuple):
    """The four stores, bound to the session of one unit of work."""

    catalog: ItemRepository
    members: MemberRepository
    ledger: TransactionRepository
    queue: ReservationRepository


class LendingEngine:
    """
    Issues, returns and reserves items against the lending stores.

    An engine is built once per process (or per request in a service) from
    an explicitly constructed DatabaseManager; it holds no other state than
    its locks.
    """

    def __init__(
        self,
        db: DatabaseManager,
        clock: Clock = utc_now,
        policy: dict[MemberCategory, LoanPolicy] | None = None,
        fine_per_day: int = FINE_PER_DAY,
    ):
        """
        Initialize the engine.

        Args:
            db: Database manager whose sessions back the stores
            clock: Zero-argument callable returning naive UTC datetimes
            policy: Loan policy per member category (defaults to DEFAULT_POLICY)
            fine_per_day: Fine per whole overdue calendar day
        """
        self.db = db
        self.clock = clock
        self.policy = policy
        self.fine_per_day = fine_per_day
        self._locks = KeyedLocks(shared=db.single_connection)

    @contextmanager
    def _unit_of_work(self) -> Generator[LendingStores, None, None]:
        with self.db.session_scope() as session:
            yield LendingStores(
                catalog=ItemRepository(session),
                members=MemberRepository(session),
                ledger=TransactionRepository(session),
                queue=ReservationRepository(session),
            )

    # === Write operations ===

    def issue_item(self, member_id: str, item_id: str) -> Transaction:
        """
        Lend one copy of an item to a member.

        Preconditions are checked in this order, the first failure wins:
        member exists, item exists, a copy is available, the member is below
        their borrow limit.

        Returns:
            The new transaction; ``due_time`` is issue time plus the loan
            period of the member's category

        Raises:
            UnknownMember, UnknownItem, NoCopiesAvailable, BorrowLimitExceeded
            StoreUnavailable: If the store fails
        """
        with self._locks.hold(("member", member_id), ("item", item_id), LEDGER):
            with self._unit_of_work() as stores:
                txn = self._issue(stores, member_id, item_id, self.clock())

        logger.info(
            "Issued %s to %s as %s, due %s",
            item_id,
            member_id,
            txn.txn_id,
            txn.due_time.date().isoformat(),
        )
        return txn

    def return_item(self, txn_id: str) -> ReturnResult:
        """
        Close a loan, assess its fine and hand the copy to the next reservation.

        The fine is ``fine_per_day`` for every whole calendar day between the
        due date and the return date. If anyone is waiting for the item, the
        earliest reservation is fulfilled and a new loan is issued to its
        member without checking their borrow limit, so availability ends
        where it started.

        Raises:
            UnknownTransaction, AlreadyReturned
            StoreUnavailable: If the store fails
        """
        with self._locks.hold(), self._unit_of_work() as stores:
            existing = stores.ledger.get_by_id(txn_id)
        if existing is None:
            logger.debug("Return rejected: unknown transaction %s", txn_id)
            raise UnknownTransaction(txn_id)

        with self._locks.hold(("item", existing.item_id), LEDGER):
            with self._unit_of_work() as stores:
                result = self._return(stores, txn_id, self.clock())

        if result.fine_amount:
            logger.info(
                "Returned %s, %d days late, fine %d",
                txn_id,
                result.overdue_days,
                result.fine_amount,
            )
        else:
            logger.info("Returned %s on time", txn_id)
        if result.handoff_transaction is not None:
            logger.info(
                "Reservation for %s fulfilled: issued to %s as %s",
                existing.item_id,
                result.reservation_fulfilled_member_id,
                result.handoff_transaction.txn_id,
            )
        return result

    def reserve_item(self, member_id: str, item_id: str) -> Reservation:
        """
        Join the FIFO wait-list for an item that has no copies on the shelf.

        Raises:
            UnknownItem: If the item does not exist
            ItemCurrentlyAvailable: If a copy can be issued right now
            UnknownMember: If the member does not exist
            StoreUnavailable: If the store fails
        """
        with self._locks.hold(("item", item_id)):
            with self._unit_of_work() as stores:
                item = stores.catalog.get_for_update(item_id)
                if item is None:
                    logger.debug("Reserve rejected: unknown item %s", item_id)
                    raise UnknownItem(item_id)
                if item.available_copies != 0:
                    logger.debug("Reserve rejected: %s has copies available", item_id)
                    raise ItemCurrentlyAvailable(item_id, item.available_copies)
                if not stores.members.exists(member_id):
                    logger.debug("Reserve rejected: unknown member %s", member_id)
                    raise UnknownMember(member_id)

                reservation = stores.queue.create(
                    ReservationCreateSchema(
                        item_id=item_id, member_id=member_id, created_time=self.clock()
                    )
                )

        logger.info("Reserved %s for %s (reservation %d)", item_id, member_id, reservation.res_id)
        return reservation

    def _issue(
        self,
        stores: LendingStores,
        member_id: str,
        item_id: str,
        now: datetime,
        reservation_handoff: bool = False,
    ) -> Transaction:
        """
        Shared issue logic.

        A reservation handoff skips the availability check (the copy it gets
        was freed by the return in the same unit of work) and the borrow
        limit check (reservations are honoured regardless of limit).
        """
        member = stores.members.get_by_id(member_id)
        if member is None:
            logger.debug("Issue rejected: unknown member %s", member_id)
            raise UnknownMember(member_id)

        item = stores.catalog.get_for_update(item_id)
        if item is None:
            logger.debug("Issue rejected: unknown item %s", item_id)
            raise UnknownItem(item_id)

        loan_policy = policy_for(member.category, self.policy)

        if not reservation_handoff:
            if item.available_copies < 1:
                logger.debug("Issue rejected: no copies of %s", item_id)
                raise NoCopiesAvailable(item_id)

            open_loans = stores.ledger.count_open_for_member(member_id)
            if open_loans >= loan_policy.borrow_limit:
                logger.debug(
                    "Issue rejected: %s holds %d of %d loans",
                    member_id,
                    open_loans,
                    loan_policy.borrow_limit,
                )
                raise BorrowLimitExceeded(member_id, loan_policy.borrow_limit)

        txn = stores.ledger.create(
            TransactionCreateSchema(
                member_id=member_id,
                item_id=item_id,
                issue_time=now,
                due_time=now + timedelta(days=loan_policy.loan_period_days),
            )
        )
        stores.catalog.adjust_availability(item_id, -1)
        stores.catalog.increment_borrowed_count(item_id)
        return txn

    def _return(self, stores: LendingStores, txn_id: str, now: datetime) -> ReturnResult:
        txn = stores.ledger.get_by_id(txn_id)
        if txn is None:
            raise UnknownTransaction(txn_id)
        if not txn.is_open:
            logger.debug("Return rejected: %s already returned", txn_id)
            raise AlreadyReturned(txn_id)

        days_late = overdue_days(txn.due_time, now)
        fine = calculate_fine(days_late, self.fine_per_day)

        stores.ledger.mark_returned(txn_id, now, fine)
        stores.catalog.adjust_availability(txn.item_id, +1)

        handoff = None
        reservation = stores.queue.next_waiting(txn.item_id)
        if reservation is not None:
            stores.queue.mark_fulfilled(reservation.res_id, now)
            handoff = self._issue(
                stores, reservation.member_id, txn.item_id, now, reservation_handoff=True
            )

        return ReturnResult(
            txn_id=txn_id,
            fine_amount=fine,
            overdue_days=days_late,
            reservation_fulfilled_member_id=handoff.member_id if handoff else None,
            handoff_transaction=handoff,
        )

    # === Read-only queries ===

    def get_item(self, item_id: str) -> Item:
        """
        Current counters for an item.

        Raises:
            UnknownItem: If the item does not exist
        """
        with self._locks.hold(), self._unit_of_work() as stores:
            item = stores.catalog.get_by_id(item_id)
        if item is None:
            raise UnknownItem(item_id)
        return item

    def get_transaction(self, txn_id: str) -> Transaction:
        """
        Look up one transaction.

        Raises:
            UnknownTransaction: If it does not exist
        """
        with self._locks.hold(), self._unit_of_work() as stores:
            txn = stores.ledger.get_by_id(txn_id)
        if txn is None:
            raise UnknownTransaction(txn_id)
        return txn

    def list_open_transactions_for_member(self, member_id: str) -> list[Transaction]:
        """Loans the member currently holds, oldest first."""
        with self._locks.hold(), self._unit_of_work() as stores:
            return stores.ledger.list_open_for_member(member_id)

    def list_open_transactions(self) -> list[Transaction]:
        """Every loan currently out, in creation order."""
        with self._locks.hold(), self._unit_of_work() as stores:
            return stores.ledger.list_open()

    def member_history(self, member_id: str) -> list[Transaction]:
        """All of a member's transactions, newest first."""
        with self._locks.hold(), self._unit_of_work() as stores:
            return stores.ledger.list_for_member(member_id)

    def reservation_queue(self, item_id: str) -> list[Reservation]:
        """Waiting reservations for an item, in the order they will be served."""
        with self._locks.hold(), self._unit_of_work() as stores:
            return stores.queue.list_waiting(item_id)

    def overdue_report(self) -> list[OverdueEntry]:
        """
        Open loans past their due date, with the fine they would incur today.

        Uses the same calendar-date rule as ``return_item`` and changes
        nothing.
        """
        now = self.clock()
        with self._locks.hold(), self._unit_of_work() as stores:
            overdue = stores.ledger.list_overdue(now.date())

        entries = []
        for txn in overdue:
            days_late = overdue_days(txn.due_time, now)
            entries.append(
                OverdueEntry(
                    txn_id=txn.txn_id,
                    member_id=txn.member_id,
                    item_id=txn.item_id,
                    due_time=txn.due_time,
                    overdue_days=days_late,
                    fine=calculate_fine(days_late, self.fine_per_day),
                )
            )
        return entries

    def top_borrowed(self, n: int) -> list[TopBorrowedEntry]:
        """
        The ``n`` most issued items; equal counts keep catalog order.

        Raises:
            ValueError: If n is below 1
        """
        with self._locks.hold(), self._unit_of_work() as stores:
            return stores.catalog.top_borrowed(n)
