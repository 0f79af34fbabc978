"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import fakeredis.aioredis
import pytest

from teamkit import InMemoryUserDirectory, MemoryAuditSink, Teams, TeamRole
from teamkit.models import User


@pytest.fixture(autouse=True)
async def setup_test_db(tmp_path):
    """Initialize a fresh SQLite database for each test."""
    from teamkit.database import init_db

    await init_db(f"sqlite:///{tmp_path / 'test.db'}")
    yield


@pytest.fixture(autouse=True)
async def setup_test_redis():
    """Provide a fake Redis instance for each test."""
    import teamkit.redis_client as redis_mod

    fake = fakeredis.aioredis.FakeRedis(decode_responses=True)
    redis_mod._redis = fake
    yield
    await fake.aclose()
    redis_mod._redis = None
    redis_mod._holders = 0


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock the tests can move forward."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def users() -> InMemoryUserDirectory:
    directory = InMemoryUserDirectory()
    directory.register("alice", "alice@acme.io")
    directory.register("bob", "b@x.com")
    directory.register("carol", "carol@acme.io")
    directory.register("dave", "dave@acme.io")
    directory.register("erin", "erin@acme.io")
    directory.register("frank", "frank@acme.io")
    return directory


class CasePreservingDirectory:
    """Host directory that stores emails exactly as they were typed."""

    def __init__(self, **emails: str) -> None:
        self._users = {user_id: User(id=user_id, email=email) for user_id, email in emails.items()}

    async def get_user(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    async def get_user_by_email(self, email: str) -> User | None:
        return next(
            (u for u in self._users.values() if u.email.lower() == email.lower()), None
        )


@pytest.fixture
async def mixed_case_teams(audit, clock) -> Teams:
    """Like ``teams``, but the directory keeps bob's address as ``Bob@X.com``."""
    from teamkit.database import get_db_path

    directory = CasePreservingDirectory(alice="Alice@Acme.io", bob="Bob@X.com")
    svc = Teams(
        directory,
        audit_sink=audit,
        clock=clock,
        database_url=f"sqlite:///{get_db_path()}",
    )
    await svc.open()
    return svc


@pytest.fixture
def audit() -> MemoryAuditSink:
    return MemoryAuditSink()


@pytest.fixture
async def teams(users, audit, clock) -> Teams:
    from teamkit.database import get_db_path

    svc = Teams(
        users,
        audit_sink=audit,
        clock=clock,
        database_url=f"sqlite:///{get_db_path()}",
    )
    await svc.open()
    return svc


@pytest.fixture
async def team(teams, audit):
    """A team whose primary owner is alice. Audit log starts empty."""
    result = await teams.create_team("alice", "Acme Labs")
    assert result.ok
    audit.clear()
    return result.data


@pytest.fixture
def add_members(teams):
    """Add members as the primary owner, e.g. ``await add_members(tid, bob=TeamRole.ADMIN)``."""

    async def _add(team_id: str, **roles: TeamRole) -> None:
        for user_id, role in roles.items():
            result = await teams.add_member(team_id, user_id, role, "alice")
            assert result.ok, result

    return _add
