"""
Compass Test Suite — Shared fixtures and configuration.

Run:  pytest tests/ -v
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest


# ---------------------------------------------------------------------------
# Environment setup — avoid touching real Redis / identity provider in unit tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch):
    """Reset global singletons and secret env vars between tests."""
    import compass.engine.config as cfg_mod
    import compass.engine.logging as log_mod

    cfg_mod._settings = None
    log_mod._global_queue = None
    for name in ("SUPABASE_URL", "SUPABASE_ANON_KEY", "SUPABASE_SERVICE_ROLE_KEY",
                 "SITE_URL", "COMPASS_REDIS_URL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings():
    """Default settings, no compass.yaml involved."""
    from compass.engine.config import Settings

    return Settings()


@pytest.fixture
def uniform_settings():
    """Settings with every lookup response flattened to HTTP 200."""
    from compass.engine.config import LookupConfig, Settings

    return Settings(lookup=LookupConfig(uniform_error_status=True))


@pytest.fixture
def board_store():
    """In-memory board with one project: owner, member and worker."""
    from compass.board.models import MemberRole, Profile, Project, ProjectMember
    from compass.board.store import InMemoryBoardStore

    store = InMemoryBoardStore(profiles=[
        Profile(id="u-owner", name="Olivia Owner"),
        Profile(id="u-member", name="Max Member"),
        Profile(id="u-worker", name="Wes Worker"),
    ])
    store.insert_project(Project(id="p1", name="Launch", owner_id="u-owner"))
    store.insert_member(ProjectMember(id="m-owner", project_id="p1", user_id="u-owner", role=MemberRole.OWNER))
    store.insert_member(ProjectMember(id="m-member", project_id="p1", user_id="u-member", role=MemberRole.MEMBER))
    store.insert_member(ProjectMember(id="m-worker", project_id="p1", user_id="u-worker", role=MemberRole.WORKER))
    return store


@pytest.fixture
def board(board_store):
    from compass.board.service import BoardService

    return BoardService(board_store)


@pytest.fixture
def make_task(board_store):
    """Insert a task in the given status and return it."""
    from compass.board.models import Task, TaskStatus

    def _make(status=TaskStatus.TODO, **fields):
        fields.setdefault("title", "Write release notes")
        return board_store.insert_task(Task(project_id="p1", status=status, **fields))

    return _make


@pytest.fixture
def directory_users():
    """120 directory users; the interesting ones sit on page 1 and page 3."""
    from compass.lookup.identity import DirectoryUser

    users = [DirectoryUser(id=f"u{i}", email=f"user{i}@example.com") for i in range(120)]
    users[3] = DirectoryUser(id="u-alice", email="Alice@Example.com")
    users[110] = DirectoryUser(id="u-late", email="late@example.com")
    return users


@pytest.fixture
def identity(directory_users):
    """In-memory identity provider with one valid token per caller."""
    from compass.board.models import Profile
    from compass.lookup.identity import Caller, InMemoryIdentityProvider

    return InMemoryIdentityProvider(
        tokens={
            "tok-owner": Caller(id="u-owner", email="owner@example.com"),
            "tok-other": Caller(id="u-other", email="other@example.com"),
        },
        users=directory_users,
        profiles=[Profile(id="u-alice", name="Alice Liddell")],
    )


@pytest.fixture
def clock():
    """Mutable millisecond clock for rate limiter tests."""

    class Clock:
        def __init__(self):
            self.now = 1_000_000.0

        def __call__(self):
            return self.now

        def advance(self, ms):
            self.now += ms

    return Clock()


@pytest.fixture
def limiter(clock):
    from compass.engine.rate_limit import FixedWindowRateLimiter, InMemoryWindowStore

    return FixedWindowRateLimiter(InMemoryWindowStore(), max_requests=10, window_ms=60_000, clock=clock)


@pytest.fixture
def lookup_service(identity, limiter, settings):
    from compass.lookup.service import LookupService

    return LookupService(identity, limiter, settings)


@pytest.fixture
def mock_redis():
    """Return a mock Redis client."""
    client = MagicMock()
    client.ping.return_value = True
    client.get.return_value = None
    client.delete.return_value = 1
    return client
