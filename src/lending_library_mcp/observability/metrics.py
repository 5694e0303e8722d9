"""Business metrics for the Lending Library MCP Server."""

import logfire

circulation_events = logfire.metric_counter(
    "library.circulation.events",
    description="Circulation events (issue/return/reserve/handoff)",
)

fines_assessed = logfire.metric_counter(
    "library.fines.assessed",
    unit="currency units",
    description="Fines assessed on returns",
)


def record_circulation_event(event_type: str, item_id: str) -> None:
    """Record a circulation event."""
    circulation_events.add(1, {"event_type": event_type, "item_id": item_id})


def record_fine(amount: int, item_id: str) -> None:
    """Record a fine assessed on return; zero fines are not recorded."""
    if amount > 0:
        fines_assessed.add(amount, {"item_id": item_id})
