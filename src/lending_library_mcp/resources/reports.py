"""Report Resources - derived, read-only lending reports

Resources:
- library://reports/overdue - Open loans past their due date with the fine owed today
- library://reports/top-borrowed - Most issued items
"""

import logging
from datetime import datetime
from typing import Any

from fastmcp.exceptions import ResourceError
from pydantic import BaseModel, Field

from ..lending.engine import LendingEngine
from ..models.circulation import OverdueEntry, TopBorrowedEntry
from ..observability.decorators import trace_resource

logger = logging.getLogger(__name__)


class OverdueReportResponse(BaseModel):
    """Overdue report with totals."""

    generated_at: datetime = Field(..., description="Engine time the report was computed at")
    entries: list[OverdueEntry] = Field(..., description="Overdue loans, earliest due first")
    total: int = Field(..., description="Number of overdue loans")
    total_fines: int = Field(..., description="Sum of fines owed if all were returned now")


class TopBorrowedResponse(BaseModel):
    """Top-borrowed report."""

    limit: int = Field(..., description="Maximum number of entries requested")
    entries: list[TopBorrowedEntry] = Field(..., description="Items, most issued first")
    total: int = Field(..., description="Number of entries returned")


@trace_resource("overdue_report")
async def overdue_report_handler(engine: LendingEngine) -> dict[str, Any]:
    """Returns every overdue loan and what it would be fined if returned now.

    Computing the report changes nothing.
    """
    try:
        logger.debug("MCP Resource Request - reports/overdue")
        entries = engine.overdue_report()
        return OverdueReportResponse(
            generated_at=engine.clock(),
            entries=entries,
            total=len(entries),
            total_fines=sum(e.fine for e in entries),
        ).model_dump(mode="json")
    except Exception as e:
        logger.exception("Error in reports/overdue resource")
        raise ResourceError(f"Failed to compute overdue report: {e!s}") from e


@trace_resource("top_borrowed")
async def top_borrowed_handler(engine: LendingEngine, limit: int) -> dict[str, Any]:
    """Returns the ``limit`` most issued items; equal counts keep catalog order."""
    try:
        logger.debug("MCP Resource Request - reports/top-borrowed: limit=%d", limit)
        entries = engine.top_borrowed(limit)
        return TopBorrowedResponse(limit=limit, entries=entries, total=len(entries)).model_dump(
            mode="json"
        )
    except Exception as e:
        logger.exception("Error in reports/top-borrowed resource")
        raise ResourceError(f"Failed to compute top-borrowed report: {e!s}") from e


report_resources: list[dict[str, Any]] = [
    {
        "uri": "library://reports/overdue",
        "name": "Overdue Report",
        "description": (
            "Open loans whose due date has passed, with days overdue and the fine "
            "that would be charged if returned today"
        ),
        "mime_type": "application/json",
        "handler": overdue_report_handler,
    },
    {
        "uri": "library://reports/top-borrowed",
        "name": "Top Borrowed Items",
        "description": "Items ranked by how many times they have been issued",
        "mime_type": "application/json",
        "handler": top_borrowed_handler,
    },
]
