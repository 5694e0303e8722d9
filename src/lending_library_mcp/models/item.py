"""
Item model for the Lending Library MCP Server.

An item is one catalog entry with a pool of identical copies. Only the
lending engine changes its counters: ``available_copies`` on every issue and
return, ``borrowed_count`` on every issue.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Item(BaseModel):
    """Represents a lendable catalog item and its copy counters."""

    id: str = Field(
        ...,
        description="Unique identifier for the item",
        min_length=1,
        max_length=50,
        examples=["b001", "b002"],
    )

    title: str = Field(
        default="",
        description="Title shown in reports",
        max_length=500,
        examples=["The C Programming Language"],
    )

    total_copies: int = Field(
        ...,
        description="Number of physical copies owned",
        ge=0,
    )

    available_copies: int = Field(
        ...,
        description="Copies currently on the shelf",
        ge=0,
    )

    borrowed_count: int = Field(
        default=0,
        description="How many times the item has ever been issued",
        ge=0,
    )

    created_at: datetime | None = Field(
        default=None,
        description="When the item was added to the catalog",
    )

    @model_validator(mode="after")
    def validate_copies(self) -> "Item":
        """Ensure available copies never exceed the total."""
        if self.available_copies > self.total_copies:
            raise ValueError("Available copies cannot exceed total copies")
        return self

    @property
    def on_loan(self) -> int:
        """Copies currently out with members."""
        return self.total_copies - self.available_copies

    @property
    def is_available(self) -> bool:
        """Whether at least one copy can be issued right now."""
        return self.available_copies > 0

    model_config = ConfigDict(
        validate_assignment=True,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "b001",
                "title": "The C Programming Language",
                "total_copies": 3,
                "available_copies": 2,
                "borrowed_count": 7,
            }
        },
    )
