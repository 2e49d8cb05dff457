"""Root conftest for all tests.

Every test gets its own file-backed SQLite database (worker threads in the
concurrency tests share it), a clean schedule lock registry and an empty
notification sink list.
"""

from dataclasses import dataclass

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import shiftswap.db.session as session_module
from shiftswap.config.settings import settings
from shiftswap.core.concurrency import reset_schedule_locks
from shiftswap.db.models import Base, Group, User
from shiftswap.db.session import get_session
from shiftswap.notifications.dispatcher import clear_sinks, reset_sinks
from shiftswap.schedules.service import create_master_schedule

from factories import ALICE, BOB, CAROL, DAVE, DEFAULT_LAYOUT, make_generated_schedule


@dataclass
class Members:
    group_id: str
    alice_id: str
    bob_id: str
    carol_id: str
    dave_id: str  # not in the group


@pytest.fixture(autouse=True)
def db_engine(tmp_path, monkeypatch):
    """Isolated SQLite database patched into the session module."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'shiftswap_test.db'}",
        connect_args={"check_same_thread": False, "timeout": 5},
    )
    Base.metadata.create_all(bind=engine)
    monkeypatch.setattr(session_module, "_engine", engine)
    monkeypatch.setattr(
        session_module,
        "_SessionLocal",
        sessionmaker(autoflush=False, expire_on_commit=False, bind=engine),
    )
    yield engine
    engine.dispose()


@pytest.fixture(autouse=True)
def isolated_runtime(monkeypatch):
    """Fresh lock registry, default trade settings and no notification sinks for every test."""
    monkeypatch.setattr(settings, "allow_unindexed_trade_units", False)
    monkeypatch.setattr(settings, "notifications_enabled", True)
    reset_schedule_locks()
    clear_sinks()
    yield
    reset_schedule_locks()
    reset_sinks()


@pytest.fixture
def lenient_units(monkeypatch):
    monkeypatch.setattr(settings, "allow_unindexed_trade_units", True)


@pytest.fixture
def members(db_engine) -> Members:
    """alice (admin), bob and carol in one group; dave outside it."""
    with get_session() as db:
        alice = User(email=ALICE, first_name="Alice", last_name="Admin")
        bob = User(email=BOB, first_name="Bob")
        carol = User(email=CAROL, first_name="Carol")
        dave = User(email=DAVE, first_name="Dave")
        db.add_all([alice, bob, carol, dave])
        db.flush()

        group = Group(
            name="Night Shift",
            admin_ids=[alice.id],
            member_ids=[alice.id, bob.id, carol.id],
        )
        db.add(group)
        db.flush()
        for user in (alice, bob, carol):
            user.group_ids = [group.id]

        return Members(
            group_id=group.id,
            alice_id=alice.id,
            bob_id=bob.id,
            carol_id=carol.id,
            dave_id=dave.id,
        )


@pytest.fixture
def schedule_id(members: Members) -> str:
    """Active master schedule of the group with DEFAULT_LAYOUT."""
    snapshot = create_master_schedule(make_generated_schedule(DEFAULT_LAYOUT), members.group_id, members.alice_id)
    return snapshot.id
