"""
Tests for the lending engine.

Covers issuing, returning and reserving, the invariants those operations
must keep (copy conservation, borrow limits, single return, FIFO handoff),
fine computation on calendar dates and the read-only reports.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from lending_library_mcp.database import (
    ItemRepository,
    ReservationRepository,
    StoreUnavailable,
    TransactionRepository,
)
from lending_library_mcp.lending import (
    AlreadyReturned,
    BorrowLimitExceeded,
    ItemCurrentlyAvailable,
    LendingEngine,
    NoCopiesAvailable,
    UnknownItem,
    UnknownMember,
    UnknownTransaction,
)
from lending_library_mcp.models import ReservationStatus, TransactionStatus


def _lend_out_all(engine: LendingEngine, item_id: str, member_ids: list[str]):
    return [engine.issue_item(member_id, item_id) for member_id in member_ids]


class TestIssueItem:
    """IssueItem preconditions and effects."""

    def test_issue_creates_open_transaction(self, engine, clock):
        txn = engine.issue_item("m001", "b001")

        assert txn.member_id == "m001"
        assert txn.item_id == "b001"
        assert txn.status == TransactionStatus.BORROWED
        assert txn.issue_time == clock()
        assert txn.due_time == clock() + timedelta(days=14)
        assert txn.return_time is None
        assert txn.fine_amount == 0
        assert txn.txn_id == "txn_202610010900000001"

    def test_issue_updates_counters(self, engine, assert_conservation):
        engine.issue_item("m001", "b001")

        item = engine.get_item("b001")
        assert item.available_copies == 2
        assert item.borrowed_count == 1
        assert_conservation()

    @pytest.mark.parametrize(
        ("member_id", "loan_days"),
        [
            ("m001", 14),  # student
            ("f001", 30),  # faculty
            ("s001", 21),  # staff
            ("x001", 14),  # no category
            ("v001", 14),  # unrecognised category
        ],
    )
    def test_due_date_follows_member_category(self, engine, clock, member_id, loan_days):
        txn = engine.issue_item(member_id, "b001")

        assert txn.due_time - txn.issue_time == timedelta(days=loan_days)
        assert txn.due_time == clock() + timedelta(days=loan_days)

    def test_transaction_ids_are_creation_ordered(self, engine, clock):
        first = engine.issue_item("m001", "b001")
        second = engine.issue_item("m002", "b001")
        clock.advance(seconds=1)
        third = engine.issue_item("m003", "b001")

        assert first.txn_id == "txn_202610010900000001"
        assert second.txn_id == "txn_202610010900000002"
        assert third.txn_id == "txn_202610010900010001"
        assert first.txn_id < second.txn_id < third.txn_id

    def test_unknown_member_is_checked_first(self, engine):
        with pytest.raises(UnknownMember) as exc_info:
            engine.issue_item("nobody", "no-such-item")

        assert exc_info.value.member_id == "nobody"

    def test_unknown_item(self, engine):
        with pytest.raises(UnknownItem) as exc_info:
            engine.issue_item("m001", "no-such-item")

        assert exc_info.value.item_id == "no-such-item"

    def test_no_copies_available(self, engine, assert_conservation):
        engine.issue_item("m001", "b003")

        with pytest.raises(NoCopiesAvailable):
            engine.issue_item("m002", "b003")

        item = engine.get_item("b003")
        assert item.available_copies == 0
        assert item.borrowed_count == 1
        assert_conservation()

    def test_availability_checked_before_borrow_limit(self, engine):
        for _ in range(5):
            engine.issue_item("m001", "b010")
        engine.issue_item("m002", "b003")

        with pytest.raises(NoCopiesAvailable):
            engine.issue_item("m001", "b003")

    def test_limit_minus_one_succeeds_and_limit_fails(self, engine):
        for _ in range(4):
            engine.issue_item("m001", "b010")

        # Fifth loan is the last one a student may hold
        engine.issue_item("m001", "b010")
        assert len(engine.list_open_transactions_for_member("m001")) == 5

        with pytest.raises(BorrowLimitExceeded) as exc_info:
            engine.issue_item("m001", "b010")

        assert exc_info.value.limit == 5
        assert len(engine.list_open_transactions_for_member("m001")) == 5
        assert engine.get_item("b010").available_copies == 15

    @pytest.mark.parametrize(("member_id", "limit"), [("f001", 10), ("s001", 7), ("v001", 5)])
    def test_borrow_limit_follows_member_category(self, engine, member_id, limit):
        for _ in range(limit):
            engine.issue_item(member_id, "b010")

        with pytest.raises(BorrowLimitExceeded):
            engine.issue_item(member_id, "b010")

    def test_returned_loans_do_not_count_towards_limit(self, engine):
        txns = [engine.issue_item("m001", "b010") for _ in range(5)]
        engine.return_item(txns[0].txn_id)

        txn = engine.issue_item("m001", "b010")
        assert txn.is_open


class TestReturnItem:
    """ReturnItem preconditions, fines and reservation handoff."""

    def test_on_time_return(self, engine, clock, assert_conservation):
        txn = engine.issue_item("m001", "b001")
        clock.advance(days=3)

        result = engine.return_item(txn.txn_id)

        assert result.txn_id == txn.txn_id
        assert result.fine_amount == 0
        assert result.overdue_days == 0
        assert result.reservation_fulfilled_member_id is None
        assert result.handoff_transaction is None

        closed = engine.get_transaction(txn.txn_id)
        assert closed.status == TransactionStatus.RETURNED
        assert closed.return_time == clock()
        assert engine.get_item("b001").available_copies == 3
        assert_conservation()

    def test_unknown_transaction(self, engine):
        with pytest.raises(UnknownTransaction) as exc_info:
            engine.return_item("txn_209901010000000001")

        assert exc_info.value.txn_id == "txn_209901010000000001"

    def test_double_return_has_no_side_effects(self, engine, clock, assert_conservation):
        txn = engine.issue_item("m001", "b001")
        clock.advance(days=20)
        first = engine.return_item(txn.txn_id)

        clock.advance(days=5)
        with pytest.raises(AlreadyReturned):
            engine.return_item(txn.txn_id)

        closed = engine.get_transaction(txn.txn_id)
        assert closed.fine_amount == first.fine_amount
        assert closed.return_time == datetime(2026, 10, 21, 9, 0, 0)
        assert engine.get_item("b001").available_copies == 3
        assert_conservation()


class TestFines:
    """Overdue fines are whole calendar days past the due date times the rate."""

    def test_five_days_late(self, engine, clock):
        txn = engine.issue_item("m001", "b001")  # due 2026-10-15 09:00
        clock.set(txn.due_time + timedelta(days=5))

        result = engine.return_item(txn.txn_id)

        assert result.overdue_days == 5
        assert result.fine_amount == 10
        assert engine.get_transaction(txn.txn_id).fine_amount == 10

    def test_returned_on_due_date(self, engine, clock):
        txn = engine.issue_item("m001", "b001")
        clock.set(txn.due_time.replace(hour=23, minute=59, second=59))

        assert engine.return_item(txn.txn_id).fine_amount == 0

    def test_returned_early(self, engine, clock):
        txn = engine.issue_item("m001", "b001")
        clock.advance(days=1)

        assert engine.return_item(txn.txn_id).fine_amount == 0

    def test_most_of_a_day_late_on_same_date_is_not_fined(self, engine, clock):
        clock.set(datetime(2026, 10, 1, 1, 0, 0))
        txn = engine.issue_item("m001", "b001")  # due 2026-10-15 01:00

        clock.set(txn.due_time + timedelta(days=0.9))  # 2026-10-15 22:36
        assert clock().date() == txn.due_time.date()

        result = engine.return_item(txn.txn_id)
        assert result.overdue_days == 0
        assert result.fine_amount == 0

    def test_just_past_midnight_counts_a_whole_day(self, engine, clock):
        txn = engine.issue_item("m001", "b001")
        clock.set(datetime(2026, 10, 16, 0, 0, 1))

        result = engine.return_item(txn.txn_id)
        assert result.overdue_days == 1
        assert result.fine_amount == 2

    def test_fine_rate_is_configurable(self, seeded_db, clock):
        engine = LendingEngine(seeded_db, clock=clock, fine_per_day=5)
        txn = engine.issue_item("m001", "b001")
        clock.set(txn.due_time + timedelta(days=3))

        assert engine.return_item(txn.txn_id).fine_amount == 15


class TestReserveItem:
    """ReserveItem preconditions."""

    def test_reserve_exhausted_item(self, engine, clock):
        engine.issue_item("m001", "b003")

        reservation = engine.reserve_item("m002", "b003")

        assert reservation.res_id >= 1
        assert reservation.member_id == "m002"
        assert reservation.item_id == "b003"
        assert reservation.created_time == clock()
        assert reservation.status == ReservationStatus.WAITING
        assert reservation.fulfilled_time is None
        assert engine.reservation_queue("b003") == [reservation]

    def test_unknown_item(self, engine):
        with pytest.raises(UnknownItem):
            engine.reserve_item("nobody", "no-such-item")

    def test_item_currently_available(self, engine):
        with pytest.raises(ItemCurrentlyAvailable) as exc_info:
            engine.reserve_item("m001", "b001")

        assert exc_info.value.available_copies == 3
        assert engine.reservation_queue("b001") == []

    def test_unknown_member(self, engine):
        engine.issue_item("m001", "b003")

        with pytest.raises(UnknownMember):
            engine.reserve_item("nobody", "b003")

        assert engine.reservation_queue("b003") == []

    def test_reservations_are_not_capped(self, engine):
        engine.issue_item("m001", "b003")

        for _ in range(3):
            engine.reserve_item("m002", "b003")

        assert len(engine.reservation_queue("b003")) == 3


class TestReservationHandoff:
    """Returns hand the freed copy to the earliest waiting reservation."""

    def test_end_to_end_single_copy(self, engine, clock, assert_conservation):
        # b003 has one copy, borrowed by m001
        loan = engine.issue_item("m001", "b003")
        assert engine.get_item("b003").available_copies == 0

        clock.advance(days=1)
        reservation = engine.reserve_item("f001", "b003")

        clock.set(loan.due_time + timedelta(days=2))
        result = engine.return_item(loan.txn_id)

        assert result.fine_amount == 4
        assert result.reservation_fulfilled_member_id == "f001"

        handoff = result.handoff_transaction
        assert handoff is not None
        assert handoff.member_id == "f001"
        assert handoff.item_id == "b003"
        assert handoff.issue_time == clock()
        assert handoff.due_time == clock() + timedelta(days=30)
        assert handoff.is_open

        with engine.db.session_scope() as session:
            fulfilled = ReservationRepository(session).get_by_id(reservation.res_id)
        assert fulfilled.status == ReservationStatus.FULFILLED
        assert fulfilled.fulfilled_time == clock()

        item = engine.get_item("b003")
        assert item.available_copies == 0
        assert item.borrowed_count == 2
        assert engine.list_open_transactions_for_member("f001") == [handoff]
        assert_conservation()

    def test_handoff_keeps_availability_and_counts_the_issue(self, engine):
        loans = _lend_out_all(engine, "b002", ["m001", "m002"])
        engine.reserve_item("m003", "b002")
        before = engine.get_item("b002")

        engine.return_item(loans[0].txn_id)

        after = engine.get_item("b002")
        assert after.available_copies == before.available_copies == 0
        assert after.borrowed_count == before.borrowed_count + 1

    def test_fifo_order(self, engine, clock):
        loans = _lend_out_all(engine, "b002", ["m001", "m002"])
        clock.advance(minutes=1)
        first = engine.reserve_item("f001", "b002")
        clock.advance(minutes=1)
        second = engine.reserve_item("s001", "b002")

        clock.advance(days=1)
        result_a = engine.return_item(loans[0].txn_id)
        assert result_a.reservation_fulfilled_member_id == "f001"
        assert [r.res_id for r in engine.reservation_queue("b002")] == [second.res_id]

        result_b = engine.return_item(loans[1].txn_id)
        assert result_b.reservation_fulfilled_member_id == "s001"
        assert engine.reservation_queue("b002") == []
        assert first.res_id < second.res_id

    def test_same_second_reservations_keep_arrival_order(self, engine):
        loan = engine.issue_item("m001", "b003")
        first = engine.reserve_item("m003", "b003")
        second = engine.reserve_item("m002", "b003")
        assert first.created_time == second.created_time

        result = engine.return_item(loan.txn_id)

        assert result.reservation_fulfilled_member_id == "m003"
        assert engine.reservation_queue("b003") == [second]

    def test_only_one_reservation_fulfilled_per_return(self, engine):
        loan = engine.issue_item("m001", "b003")
        engine.reserve_item("m002", "b003")
        engine.reserve_item("m003", "b003")

        engine.return_item(loan.txn_id)

        assert len(engine.reservation_queue("b003")) == 1
        assert len(engine.list_open_transactions()) == 1

    def test_handoff_ignores_borrow_limit(self, engine):
        for _ in range(5):
            engine.issue_item("m002", "b010")
        loan = engine.issue_item("m001", "b003")
        engine.reserve_item("m002", "b003")

        result = engine.return_item(loan.txn_id)

        assert result.reservation_fulfilled_member_id == "m002"
        assert len(engine.list_open_transactions_for_member("m002")) == 6

    def test_no_handoff_without_reservation(self, engine):
        loan = engine.issue_item("m001", "b003")

        result = engine.return_item(loan.txn_id)

        assert result.reservation_fulfilled_member_id is None
        assert engine.get_item("b003").available_copies == 1


class TestReports:
    """Overdue and top-borrowed reports, and the loan listings."""

    def test_overdue_report(self, engine, clock):
        late = engine.issue_item("m001", "b001")  # due 2026-10-15
        engine.issue_item("f001", "b001")  # due 2026-10-31
        clock.set(datetime(2026, 10, 19, 8, 0, 0))

        report = engine.overdue_report()

        assert len(report) == 1
        entry = report[0]
        assert entry.txn_id == late.txn_id
        assert entry.member_id == "m001"
        assert entry.item_id == "b001"
        assert entry.overdue_days == 4
        assert entry.fine == 8

    def test_overdue_report_changes_nothing(self, engine, clock):
        txn = engine.issue_item("m001", "b001")
        clock.set(txn.due_time + timedelta(days=10))

        engine.overdue_report()

        unchanged = engine.get_transaction(txn.txn_id)
        assert unchanged.is_open
        assert unchanged.fine_amount == 0

    def test_loan_due_today_is_not_overdue(self, engine, clock):
        txn = engine.issue_item("m001", "b001")
        clock.set(txn.due_time + timedelta(hours=10))

        assert engine.overdue_report() == []

    def test_returned_loans_are_not_overdue(self, engine, clock):
        txn = engine.issue_item("m001", "b001")
        clock.set(txn.due_time + timedelta(days=3))
        engine.return_item(txn.txn_id)

        assert engine.overdue_report() == []

    def test_top_borrowed_orders_by_count_then_catalog_order(self, engine):
        engine.issue_item("m001", "b003")
        engine.issue_item("m001", "b002")
        engine.issue_item("m002", "b002")
        engine.issue_item("m002", "b001")

        top = engine.top_borrowed(3)

        assert [(e.item_id, e.borrowed_count) for e in top] == [
            ("b002", 2),
            ("b001", 1),
            ("b003", 1),
        ]
        assert top[0].title == "Clean Code"

    def test_top_borrowed_with_large_n(self, engine):
        assert [e.item_id for e in engine.top_borrowed(100)] == ["b001", "b002", "b003", "b010"]

    def test_top_borrowed_rejects_non_positive_n(self, engine):
        with pytest.raises(ValueError):
            engine.top_borrowed(0)

    def test_open_loans_for_unknown_member_is_empty(self, engine):
        assert engine.list_open_transactions_for_member("nobody") == []

    def test_member_history_is_newest_first(self, engine, clock):
        first = engine.issue_item("m001", "b001")
        clock.advance(days=1)
        second = engine.issue_item("m001", "b002")
        engine.return_item(first.txn_id)

        history = engine.member_history("m001")

        assert [t.txn_id for t in history] == [second.txn_id, first.txn_id]
        assert history[1].status == TransactionStatus.RETURNED

    def test_list_open_transactions(self, engine):
        a = engine.issue_item("m001", "b001")
        b = engine.issue_item("f001", "b002")
        engine.return_item(a.txn_id)

        assert engine.list_open_transactions() == [b]

    def test_get_unknown_item_and_transaction(self, engine):
        with pytest.raises(UnknownItem):
            engine.get_item("nope")
        with pytest.raises(UnknownTransaction):
            engine.get_transaction("txn_209901010000000001")


class TestStoreFailure:
    """A store failure rolls back the whole unit of work."""

    def test_failed_issue_leaves_no_trace(self, engine, monkeypatch, assert_conservation):
        def broken(self, item_id):
            raise OperationalError("UPDATE items", {}, Exception("disk I/O error"))

        monkeypatch.setattr(ItemRepository, "increment_borrowed_count", broken)

        with pytest.raises(StoreUnavailable):
            engine.issue_item("m001", "b001")

        monkeypatch.undo()
        assert engine.list_open_transactions() == []
        item = engine.get_item("b001")
        assert item.available_copies == 3
        assert item.borrowed_count == 0
        assert_conservation()

    def test_failed_handoff_rolls_back_the_return(self, engine, monkeypatch):
        loan = engine.issue_item("m001", "b003")
        engine.reserve_item("m002", "b003")

        def broken(self, res_id, fulfilled_time):
            raise OperationalError("UPDATE reservations", {}, Exception("disk I/O error"))

        monkeypatch.setattr(ReservationRepository, "mark_fulfilled", broken)

        with pytest.raises(StoreUnavailable):
            engine.return_item(loan.txn_id)

        monkeypatch.undo()
        assert engine.get_transaction(loan.txn_id).is_open
        assert engine.get_item("b003").available_copies == 0
        assert len(engine.reservation_queue("b003")) == 1

        # The whole operation can simply be retried
        result = engine.return_item(loan.txn_id)
        assert result.reservation_fulfilled_member_id == "m002"


def test_conservation_over_mixed_operations(engine, clock, seeded_db, assert_conservation):
    loans = [engine.issue_item(m, "b002") for m in ("m001", "m002")]
    engine.reserve_item("m003", "b002")
    engine.reserve_item("f001", "b002")
    clock.advance(days=16)

    for loan in loans:
        engine.return_item(loan.txn_id)
        assert_conservation()

    with seeded_db.session_scope() as session:
        assert TransactionRepository(session).count_open_for_item("b002") == 2
    assert engine.get_item("b002").available_copies == 0
