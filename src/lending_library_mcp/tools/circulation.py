"""
Circulation tools for the Lending Library MCP Server.

Thin caller-facing wrappers around the lending engine:
1. issue_item: lend a copy to a member
2. return_item: privileged return of any open loan
3. return_my_item: self-service return, only for the member's own loan
4. reserve_item: join the wait-list of an exhausted item

Handlers validate their arguments with Pydantic, call exactly one engine
operation and translate the outcome into an MCP tool result. Lending errors
and store failures never escape a handler; they come back as
``{"isError": True, ...}`` so the client can react to them.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from ..database.exceptions import StoreUnavailable
from ..lending.engine import LendingEngine
from ..lending.errors import LendingError
from ..observability.decorators import trace_tool
from ..observability.metrics import record_circulation_event, record_fine

logger = logging.getLogger(__name__)


class NotTransactionOwner(LendingError):
    """A member tried to return a loan that belongs to someone else."""

    def __init__(self, txn_id: str, member_id: str):
        self.txn_id = txn_id
        self.member_id = member_id
        super().__init__(f"Transaction {txn_id} does not belong to member {member_id}")


def _text_result(message: str, data: dict[str, Any]) -> dict[str, Any]:
    return {
        "content": [{"type": "text", "text": message}],
        "data": data,
    }


def _error_result(message: str, error_type: str) -> dict[str, Any]:
    return {
        "isError": True,
        "content": [{"type": "text", "text": message}],
        "data": {"error": error_type},
    }


def _failure(operation: str, error: Exception) -> dict[str, Any]:
    """Map an exception raised by the engine to an error result."""
    if isinstance(error, ValidationError):
        logger.warning("Invalid %s parameters: %s", operation, error)
        return _error_result(f"Invalid {operation} parameters: {error}", "InvalidArguments")
    if isinstance(error, LendingError):
        logger.info("%s rejected: %s", operation.capitalize(), error)
        return _error_result(str(error), type(error).__name__)
    if isinstance(error, StoreUnavailable):
        logger.error("%s failed, store unavailable: %s", operation.capitalize(), error)
        return _error_result(
            "The library store is unavailable; nothing was changed. Please retry.",
            "StoreUnavailable",
        )
    logger.exception("Unexpected error in %s tool", operation)
    return _error_result(f"An unexpected error occurred: {error!s}", "InternalError")


# =============================================================================
# ISSUE
# =============================================================================


class IssueItemInput(BaseModel):
    """Input schema for the issue_item tool."""

    member_id: str = Field(
        ...,
        description="ID of the member borrowing the item",
        min_length=1,
        max_length=50,
        examples=["m001"],
    )

    item_id: str = Field(
        ...,
        description="ID of the item to lend",
        min_length=1,
        max_length=50,
        examples=["b001", "b003"],
    )


@trace_tool("issue_item")
async def issue_item_handler(engine: LendingEngine, arguments: dict[str, Any]) -> dict[str, Any]:
    """
    Handler for the issue_item tool.

    Args:
        engine: Lending engine to issue against
        arguments: Raw arguments from the tools/call request

    Returns:
        Tool result with the new transaction, or an error result
    """
    try:
        params = IssueItemInput.model_validate(arguments)
        txn = engine.issue_item(params.member_id, params.item_id)
    except Exception as e:
        return _failure("issue", e)

    record_circulation_event("issue", txn.item_id)
    message = (
        f"Issued '{txn.item_id}' to member '{txn.member_id}' as {txn.txn_id}. "
        f"Due date: {txn.due_time.strftime('%B %d, %Y')} ({txn.loan_period_days}-day loan)"
    )
    return _text_result(message, {"transaction": txn.model_dump(mode="json")})


# =============================================================================
# RETURN
# =============================================================================


class ReturnItemInput(BaseModel):
    """Input schema for the privileged return_item tool."""

    txn_id: str = Field(
        ...,
        description="ID of the transaction to close",
        pattern=r"^txn_\d{18,}$",
        examples=["txn_202610190930150001"],
    )


class ReturnMyItemInput(ReturnItemInput):
    """Input schema for the self-service return_my_item tool."""

    member_id: str = Field(
        ...,
        description="ID of the member returning their own loan",
        min_length=1,
        max_length=50,
        examples=["m001"],
    )


def _return_message(txn_id: str, result) -> str:
    if result.overdue_days > 0:
        message = (
            f"Returned {txn_id}. It was {result.overdue_days} days late. "
            f"Fine assessed: {result.fine_amount}"
        )
    else:
        message = f"Returned {txn_id} on time - no fine."

    if result.handoff_transaction is not None:
        message += (
            f" The copy was issued to member '{result.reservation_fulfilled_member_id}' "
            f"from the reservation queue as {result.handoff_transaction.txn_id}."
        )
    return message


def _return_success(txn_id: str, item_id: str, result) -> dict[str, Any]:
    record_circulation_event("return", item_id)
    record_fine(result.fine_amount, item_id)
    if result.handoff_transaction is not None:
        record_circulation_event("handoff", item_id)
    return _text_result(_return_message(txn_id, result), {"return": result.model_dump(mode="json")})


@trace_tool("return_item")
async def return_item_handler(engine: LendingEngine, arguments: dict[str, Any]) -> dict[str, Any]:
    """
    Handler for the privileged return_item tool.

    Closes any open loan by its transaction ID. Library staff use this; no
    ownership check is made.
    """
    try:
        params = ReturnItemInput.model_validate(arguments)
        txn = engine.get_transaction(params.txn_id)
        result = engine.return_item(params.txn_id)
    except Exception as e:
        return _failure("return", e)

    return _return_success(params.txn_id, txn.item_id, result)


@trace_tool("return_my_item")
async def return_my_item_handler(
    engine: LendingEngine, arguments: dict[str, Any]
) -> dict[str, Any]:
    """
    Handler for the self-service return_my_item tool.

    The loan must belong to the calling member. Ownership is checked here,
    then the same engine return runs as for the privileged tool.
    """
    try:
        params = ReturnMyItemInput.model_validate(arguments)
        txn = engine.get_transaction(params.txn_id)
        if txn.member_id != params.member_id:
            raise NotTransactionOwner(params.txn_id, params.member_id)
        result = engine.return_item(params.txn_id)
    except Exception as e:
        return _failure("return", e)

    return _return_success(params.txn_id, txn.item_id, result)


# =============================================================================
# RESERVE
# =============================================================================


class ReserveItemInput(BaseModel):
    """Input schema for the reserve_item tool."""

    member_id: str = Field(
        ...,
        description="ID of the member joining the wait-list",
        min_length=1,
        max_length=50,
        examples=["m001"],
    )

    item_id: str = Field(
        ...,
        description="ID of the exhausted item to reserve",
        min_length=1,
        max_length=50,
        examples=["b003"],
    )


@trace_tool("reserve_item")
async def reserve_item_handler(engine: LendingEngine, arguments: dict[str, Any]) -> dict[str, Any]:
    """
    Handler for the reserve_item tool.

    Only items with no copies on the shelf can be reserved; the member is
    told to borrow instead otherwise. The response includes the member's
    position in the queue.
    """
    try:
        params = ReserveItemInput.model_validate(arguments)
        reservation = engine.reserve_item(params.member_id, params.item_id)
        queue = engine.reservation_queue(params.item_id)
    except Exception as e:
        return _failure("reserve", e)

    record_circulation_event("reserve", reservation.item_id)
    position = next(
        (i for i, r in enumerate(queue, start=1) if r.res_id == reservation.res_id),
        len(queue),
    )
    message = (
        f"Reserved '{reservation.item_id}' for member '{reservation.member_id}'. "
        f"Queue position: {position} of {len(queue)}"
    )
    data = reservation.model_dump(mode="json")
    data["queue_position"] = position
    data["total_in_queue"] = len(queue)
    return _text_result(message, {"reservation": data})


# =============================================================================
# TOOL REGISTRATION
# =============================================================================

issue_item = {
    "name": "issue_item",
    "description": (
        "Lend one copy of an item to a member. Checks that the member and item exist, "
        "that a copy is on the shelf and that the member is below the borrow limit of "
        "their category, then records the loan and its due date."
    ),
    "inputSchema": IssueItemInput.model_json_schema(),
    "handler": issue_item_handler,
}

return_item = {
    "name": "return_item",
    "description": (
        "Close an open loan by transaction ID (staff). Assesses the overdue fine and, "
        "if members are waiting for the item, issues the copy to the earliest reservation."
    ),
    "inputSchema": ReturnItemInput.model_json_schema(),
    "handler": return_item_handler,
}

return_my_item = {
    "name": "return_my_item",
    "description": (
        "Return one of your own loans. Fails if the transaction belongs to another member. "
        "Fines and reservation handoff work as for return_item."
    ),
    "inputSchema": ReturnMyItemInput.model_json_schema(),
    "handler": return_my_item_handler,
}

reserve_item = {
    "name": "reserve_item",
    "description": (
        "Join the first-come, first-served wait-list for an item with no copies available. "
        "When a copy comes back it is issued automatically to the earliest reservation."
    ),
    "inputSchema": ReserveItemInput.model_json_schema(),
    "handler": reserve_item_handler,
}
