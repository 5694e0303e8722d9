"""
Member repository implementation for the Lending Library MCP Server.

The Membership Store. The lending engine only reads from it; ``create`` is
here for seeding scripts and tests, since member administration lives outside
the engine.
"""

from pydantic import BaseModel, Field

from ..database.schema import Member as MemberDB
from ..models.member import Member as MemberModel
from .repository import BaseRepository


class MemberCreateSchema(BaseModel):
    """Schema for registering a member."""

    id: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    category: str | None = "student"


class MemberRepository(BaseRepository[MemberDB, MemberCreateSchema, MemberModel]):
    """Repository for member lookups."""

    @property
    def model_class(self) -> type[MemberDB]:
        return MemberDB

    @property
    def response_schema(self) -> type[MemberModel]:
        return MemberModel

    def create(self, data: MemberCreateSchema) -> MemberModel:
        """
        Register a member.

        Raises:
            DuplicateError: If a member with the same ID exists
        """
        return self._add(MemberDB(**data.model_dump()))
