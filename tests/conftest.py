"""Test configuration and fixtures for the Lending Library MCP Server.

Every test gets its own in-memory database, a clock it can move by hand and
an engine built on both:
1. Isolated stores - a fresh SQLite database per test
2. Controlled time - due dates and fines are computed from ``clock``
3. Known catalog - a handful of items and one member per lending category
"""

import os
from collections.abc import Generator
from datetime import datetime, timedelta
from pathlib import Path

import logfire
import pytest

from lending_library_mcp.config import ServerConfig, reset_config
from lending_library_mcp.database import (
    DatabaseManager,
    ItemCreateSchema,
    ItemRepository,
    MemberCreateSchema,
    MemberRepository,
    TransactionRepository,
)
from lending_library_mcp.lending import LendingEngine

START = datetime(2026, 10, 1, 9, 0, 0)

# id, title, total copies; insertion order matters for tie-breaking
CATALOG = [
    ("b001", "The C Programming Language", 3),
    ("b002", "Clean Code", 2),
    ("b003", "Introduction to Algorithms", 1),
    ("b010", "Reference Shelf", 20),
]

# id, name, category
MEMBERS = [
    ("m001", "Alice Student", "student"),
    ("m002", "Bob Student", "student"),
    ("m003", "Carol Student", "student"),
    ("f001", "Frank Faculty", "faculty"),
    ("s001", "Sam Staff", "staff"),
    ("x001", "Uncategorised Member", None),
    ("v001", "Visiting Scholar", "visitor"),
]


class ManualClock:
    """Clock that only moves when a test moves it."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def set(self, moment: datetime) -> datetime:
        self.now = moment
        return self.now


@pytest.fixture(scope="session", autouse=True)
def _configure_logfire():
    """Keep spans and metrics local during tests."""
    logfire.configure(send_to_logfire=False, console=False)


def seed(db: DatabaseManager) -> None:
    with db.session_scope() as session:
        items = ItemRepository(session)
        for item_id, title, copies in CATALOG:
            items.create(ItemCreateSchema(id=item_id, title=title, total_copies=copies))

        members = MemberRepository(session)
        for member_id, name, category in MEMBERS:
            members.create(MemberCreateSchema(id=member_id, name=name, category=category))


# === Database Fixtures ===


@pytest.fixture
def db() -> Generator[DatabaseManager, None, None]:
    """Empty in-memory database with the schema created."""
    manager = DatabaseManager("sqlite:///:memory:")
    manager.init_database()
    yield manager
    manager.close()


@pytest.fixture
def seeded_db(db: DatabaseManager) -> DatabaseManager:
    """In-memory database holding CATALOG and MEMBERS."""
    seed(db)
    return db


@pytest.fixture
def file_db(tmp_path: Path) -> Generator[DatabaseManager, None, None]:
    """Seeded file-backed database, where sessions get separate connections."""
    manager = DatabaseManager(f"sqlite:///{tmp_path / 'lending_test.db'}")
    manager.init_database()
    seed(manager)
    yield manager
    manager.close()


# === Engine Fixtures ===


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def engine(seeded_db: DatabaseManager, clock: ManualClock) -> LendingEngine:
    return LendingEngine(seeded_db, clock=clock)


@pytest.fixture
def assert_conservation(seeded_db: DatabaseManager):
    """Check ``available + open loans == total`` for every item."""

    def check(db: DatabaseManager = seeded_db) -> None:
        with db.session_scope() as session:
            ledger = TransactionRepository(session)
            for item in ItemRepository(session).list_all():
                on_loan = ledger.count_open_for_item(item.id)
                assert item.available_copies + on_loan == item.total_copies, item.id

    return check


# === Configuration Fixtures ===


@pytest.fixture
def test_config(tmp_path: Path) -> Generator[ServerConfig, None, None]:
    """Isolated server configuration pointing at a temporary database."""
    reset_config()

    config = ServerConfig(
        server_name="test-lending-library",
        server_version="0.0.1-test",
        database_path=tmp_path / "test_library.db",
        debug=True,
        log_level="DEBUG",
    )

    yield config

    reset_config()


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Remove LENDING_LIBRARY_* variables for the duration of a test."""
    original_env = os.environ.copy()

    for key in list(os.environ.keys()):
        if key.startswith("LENDING_LIBRARY_"):
            del os.environ[key]

    yield

    os.environ.clear()
    os.environ.update(original_env)
