"""
Sample data for the Lending Library MCP Server.

Loads the small starter catalog the library opens with, one student member,
and optionally a batch of Faker-generated members spread over the lending
categories so that borrow limits and loan periods can be tried out.
"""

import logging
import random

from faker import Faker

from ..models.member import MemberCategory
from .item_repository import ItemCreateSchema, ItemRepository
from .member_repository import MemberCreateSchema, MemberRepository
from .session import DatabaseManager

logger = logging.getLogger(__name__)

SAMPLE_ITEMS = [
    ItemCreateSchema(id="b001", title="The C Programming Language", total_copies=3),
    ItemCreateSchema(id="b002", title="Clean Code", total_copies=2),
    ItemCreateSchema(id="b003", title="Introduction to Algorithms", total_copies=1),
]

SAMPLE_MEMBERS = [
    MemberCreateSchema(id="m001", name="Alice Student", category=MemberCategory.STUDENT.value),
]


def generate_members(count: int, seed: int = 42) -> list[MemberCreateSchema]:
    """
    Generate members with realistic names and random categories.

    IDs continue the sample numbering (m002, m003, ...). The same seed always
    yields the same members.
    """
    fake = Faker()
    Faker.seed(seed)
    rng = random.Random(seed)
    categories = [c.value for c in MemberCategory]

    return [
        MemberCreateSchema(
            id=f"m{n:03d}",
            name=fake.name(),
            category=rng.choice(categories),
        )
        for n in range(len(SAMPLE_MEMBERS) + 1, len(SAMPLE_MEMBERS) + count + 1)
    ]


def load_sample_data(db_manager: DatabaseManager, extra_members: int = 0) -> None:
    """
    Load the starter catalog and members in one unit of work.

    Raises:
        DuplicateError: If any sample record already exists
    """
    members = SAMPLE_MEMBERS + generate_members(extra_members)

    with db_manager.session_scope() as session:
        items = ItemRepository(session)
        for item in SAMPLE_ITEMS:
            items.create(item)

        member_repo = MemberRepository(session)
        for member in members:
            member_repo.create(member)

    logger.info("Created %d items", len(SAMPLE_ITEMS))
    logger.info("Created %d members", len(members))
