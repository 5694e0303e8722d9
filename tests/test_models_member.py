"""
Tests for members, items and the lending policy table.
"""

import pytest
from pydantic import ValidationError

from lending_library_mcp.models import (
    DEFAULT_POLICY,
    Item,
    LoanPolicy,
    Member,
    MemberCategory,
    policy_for,
)


class TestLoanPolicy:
    """Loan periods and borrow limits per category."""

    @pytest.mark.parametrize(
        ("category", "days", "limit"),
        [("student", 14, 5), ("faculty", 30, 10), ("staff", 21, 7)],
    )
    def test_default_policy(self, category, days, limit):
        policy = policy_for(category)

        assert policy.loan_period_days == days
        assert policy.borrow_limit == limit

    @pytest.mark.parametrize("category", [None, "", "visitor", "STUDENT"])
    def test_unknown_category_falls_back_to_student(self, category):
        assert policy_for(category) == DEFAULT_POLICY[MemberCategory.STUDENT]

    def test_custom_policy_table(self):
        table = {
            MemberCategory.STUDENT: LoanPolicy(loan_period_days=7, borrow_limit=2),
            MemberCategory.FACULTY: LoanPolicy(loan_period_days=60, borrow_limit=20),
        }

        assert policy_for("faculty", table).borrow_limit == 20
        # Categories missing from a custom table use its student row
        assert policy_for("staff", table).loan_period_days == 7

    def test_policy_is_frozen(self):
        policy = LoanPolicy(loan_period_days=14, borrow_limit=5)
        with pytest.raises(ValidationError):
            policy.borrow_limit = 50

    def test_loan_period_must_be_positive(self):
        with pytest.raises(ValidationError):
            LoanPolicy(loan_period_days=0, borrow_limit=5)


class TestMember:
    def test_default_category(self):
        member = Member(id="m001", name="Alice Student")

        assert member.category == "student"
        assert policy_for(member.category).borrow_limit == 5

    def test_unknown_category_loads(self):
        member = Member(id="v001", name="Visiting Scholar", category="visitor")

        assert member.category == "visitor"
        assert policy_for(member.category) == DEFAULT_POLICY[MemberCategory.STUDENT]

    def test_name_required(self):
        with pytest.raises(ValidationError):
            Member(id="m001", name="")


class TestItem:
    def test_counters(self):
        item = Item(
            id="b001", title="The C Programming Language", total_copies=3, available_copies=1
        )

        assert item.on_loan == 2
        assert item.is_available
        assert item.borrowed_count == 0

    def test_available_cannot_exceed_total(self):
        with pytest.raises(ValidationError, match="cannot exceed"):
            Item(id="b001", total_copies=1, available_copies=2)

    def test_negative_counts_rejected(self):
        with pytest.raises(ValidationError):
            Item(id="b001", total_copies=1, available_copies=-1)

    def test_exhausted_item(self):
        item = Item(id="b003", total_copies=1, available_copies=0)

        assert not item.is_available
