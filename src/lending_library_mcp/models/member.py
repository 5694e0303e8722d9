"""
Member model and lending policy for the Lending Library MCP Server.

A member is someone who may borrow items. The engine only ever reads members:
their category decides how long a loan runs and how many loans may be open
at once. Creating and administering members happens outside the engine.

Member resources can be accessed via:
- library://members/{member_id}/loans
- library://members/{member_id}/history
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class MemberCategory(str, Enum):
    """Lending categories recognised by the policy table."""

    STUDENT = "student"
    FACULTY = "faculty"
    STAFF = "staff"


class LoanPolicy(BaseModel):
    """Loan period and borrow limit applied to one member category."""

    loan_period_days: int = Field(..., description="Days until a new loan is due", ge=1)
    borrow_limit: int = Field(..., description="Maximum simultaneous open loans", ge=0)

    model_config = ConfigDict(frozen=True)


DEFAULT_POLICY: dict[MemberCategory, LoanPolicy] = {
    MemberCategory.STUDENT: LoanPolicy(loan_period_days=14, borrow_limit=5),
    MemberCategory.FACULTY: LoanPolicy(loan_period_days=30, borrow_limit=10),
    MemberCategory.STAFF: LoanPolicy(loan_period_days=21, borrow_limit=7),
}


def policy_for(
    category: str | None,
    policy: dict[MemberCategory, LoanPolicy] | None = None,
) -> LoanPolicy:
    """
    Look up the loan policy for a category.

    Unset or unrecognised categories fall back to the student policy.

    Args:
        category: Raw category value stored for the member
        policy: Policy table to consult (defaults to DEFAULT_POLICY)

    Returns:
        The matching LoanPolicy
    """
    table = policy or DEFAULT_POLICY
    try:
        key = MemberCategory(category) if category else MemberCategory.STUDENT
    except ValueError:
        key = MemberCategory.STUDENT
    return table.get(key, table[MemberCategory.STUDENT])


class Member(BaseModel):
    """
    Represents a library member who can borrow and reserve items.

    The category is kept as stored; it is deliberately not validated against
    MemberCategory so that records with an unknown category still load and
    simply receive the student policy.
    """

    id: str = Field(
        ...,
        description="Unique identifier for the member",
        min_length=1,
        max_length=50,
        examples=["m001", "m_faculty_17"],
    )

    name: str = Field(
        ...,
        description="Display name of the member",
        min_length=1,
        max_length=200,
        examples=["Alice Student"],
    )

    category: str | None = Field(
        default=MemberCategory.STUDENT.value,
        description="Lending category (student, faculty or staff)",
        max_length=20,
    )

    created_at: datetime = Field(
        default_factory=datetime.now,
        description="When the member record was created",
    )

    model_config = ConfigDict(
        validate_assignment=True,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "m001",
                "name": "Alice Student",
                "category": "student",
            }
        },
    )
