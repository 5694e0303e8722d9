"""Loan Resources - who holds what

Read-only views over the ledger.

Resources:
- library://members/{member_id}/loans - Loans a member currently holds
- library://members/{member_id}/history - Every loan of a member, newest first
- library://loans/open - Every loan currently out
"""

import logging
from typing import Any

from fastmcp.exceptions import ResourceError
from pydantic import BaseModel, Field

from ..lending.engine import LendingEngine
from ..models.circulation import Transaction
from ..observability.decorators import trace_resource

logger = logging.getLogger(__name__)


class LoanListResponse(BaseModel):
    """Response schema for loan listings."""

    member_id: str | None = Field(None, description="Member the listing is for, if any")
    loans: list[Transaction] = Field(..., description="Transactions in listing order")
    total: int = Field(..., description="Number of transactions listed")


def _listing(loans: list[Transaction], member_id: str | None = None) -> dict[str, Any]:
    return LoanListResponse(member_id=member_id, loans=loans, total=len(loans)).model_dump(
        mode="json"
    )


@trace_resource("member_loans")
async def member_loans_handler(engine: LendingEngine, member_id: str) -> dict[str, Any]:
    """Open loans of one member, oldest first.

    An unknown member simply has no loans.
    """
    try:
        logger.debug("MCP Resource Request - members/%s/loans", member_id)
        return _listing(engine.list_open_transactions_for_member(member_id), member_id)
    except Exception as e:
        logger.exception("Error in members/{member_id}/loans resource")
        raise ResourceError(f"Failed to retrieve loans for {member_id}: {e!s}") from e


@trace_resource("member_history")
async def member_history_handler(engine: LendingEngine, member_id: str) -> dict[str, Any]:
    """All of a member's transactions, returned ones included, newest first."""
    try:
        logger.debug("MCP Resource Request - members/%s/history", member_id)
        return _listing(engine.member_history(member_id), member_id)
    except Exception as e:
        logger.exception("Error in members/{member_id}/history resource")
        raise ResourceError(f"Failed to retrieve history for {member_id}: {e!s}") from e


@trace_resource("open_loans")
async def open_loans_handler(engine: LendingEngine) -> dict[str, Any]:
    try:
        logger.debug("MCP Resource Request - loans/open")
        return _listing(engine.list_open_transactions())
    except Exception as e:
        logger.exception("Error in loans/open resource")
        raise ResourceError(f"Failed to retrieve open loans: {e!s}") from e


loan_resources: list[dict[str, Any]] = [
    {
        "uri": "library://members/{member_id}/loans",
        "name": "Member Loans",
        "description": "Items a member currently has on loan, with due dates",
        "mime_type": "application/json",
        "handler": member_loans_handler,
    },
    {
        "uri": "library://members/{member_id}/history",
        "name": "Member Loan History",
        "description": "Every loan a member has had, newest first, with fines paid",
        "mime_type": "application/json",
        "handler": member_history_handler,
    },
    {
        "uri": "library://loans/open",
        "name": "Open Loans",
        "description": "Every item currently out on loan, across all members",
        "mime_type": "application/json",
        "handler": open_loans_handler,
    },
]
