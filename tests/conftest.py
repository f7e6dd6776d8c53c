"""
Shared fixtures.

RecordingDatabase stands in for PostgreSQL in unit tests: it records every
statement and replays queued responses per method, so repository tests
assert on the SQL and parameters that would have been sent.
"""

from __future__ import annotations

from collections import defaultdict, deque
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator

import pytest

from inkwell.auth.credentials import CredentialEngine
from inkwell.auth.roles import Role
from inkwell.config import Settings
from inkwell.config_loader import CategorySeed, SeedData
from inkwell.core.errors import NotFoundError
from inkwell.core.models import User
from inkwell.storage.base import Database


# =============================================================================
# Fake database
# =============================================================================


@dataclass
class Call:
    method: str
    sql: str
    args: tuple


class RecordingDatabase(Database):
    """
    In-memory Database that records calls and replays queued results.

    A queued result may be a value, an exception (raised), or a callable
    taking ``(sql, args)`` whose return value is used.
    """

    defaults = {
        "execute": "",
        "fetch": [],
        "fetchrow": None,
        "fetchval": None,
    }

    def __init__(self):
        self.calls: list[Call] = []
        self.transactions = 0
        self.closed = False
        self._queued: dict[str, deque] = defaultdict(deque)

    def queue(self, method: str, *results: Any) -> RecordingDatabase:
        self._queued[method].extend(results)
        return self

    def calls_to(self, method: str) -> list[Call]:
        return [call for call in self.calls if call.method == method]

    def sql(self) -> list[str]:
        return [call.sql for call in self.calls]

    async def _respond(self, method: str, sql: str, args: tuple) -> Any:
        self.calls.append(Call(method, sql, args))
        queued = self._queued[method]
        if not queued:
            default = self.defaults[method]
            return list(default) if isinstance(default, list) else default

        result = queued.popleft()
        if isinstance(result, BaseException):
            raise result
        if callable(result):
            return result(sql, args)
        return result

    async def execute(self, sql: str, *args: Any) -> str:
        return await self._respond("execute", sql, args)

    async def fetch(self, sql: str, *args: Any):
        return await self._respond("fetch", sql, args)

    async def fetchrow(self, sql: str, *args: Any):
        return await self._respond("fetchrow", sql, args)

    async def fetchval(self, sql: str, *args: Any):
        return await self._respond("fetchval", sql, args)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Database]:
        self.transactions += 1
        yield self

    async def close(self) -> None:
        self.closed = True


# =============================================================================
# Fake user lookup
# =============================================================================


class FakeUserLookup:
    """
    UserLookup backed by a dict: user id -> (role, deleted_at, blacklisted_at).
    """

    def __init__(self):
        self.users: dict[int, dict[str, Any]] = {}
        self.lookups = 0

    def add(
        self,
        user_id: int,
        role: Role | str | None,
        deleted_at: datetime | None = None,
        token_blacklist_date: datetime | None = None,
    ) -> FakeUserLookup:
        self.users[user_id] = {
            "role": role.value if isinstance(role, Role) else role,
            "deleted_at": deleted_at,
            "token_blacklist_date": token_blacklist_date,
        }
        return self

    async def find_one_by_id(self, user_id: int, *, paranoid: bool = True) -> User:
        self.lookups += 1
        user = self.users.get(user_id)
        if user is None or (paranoid and user["deleted_at"] is not None):
            raise NotFoundError()
        return User(
            id=user_id,
            email=f"user{user_id}@example.com",
            role=user["role"],
            deleted_at=user["deleted_at"],
        )

    async def verify_token(self, user_id: int, issued_at: datetime) -> bool:
        user = self.users.get(user_id)
        if user is None or user["deleted_at"] is not None:
            return False
        blacklisted_at = user["token_blacklist_date"]
        return blacklisted_at is None or blacklisted_at < issued_at


# =============================================================================
# Fixtures
# =============================================================================


ADMIN_ID = 1
EDITOR_ID = 2
AUTHOR_ID = 3
COMMENTER_ID = 4
DELETED_ID = 5
OTHER_AUTHOR_ID = 6


class FixedClock:
    """Clock that returns a settable instant."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def settings():
    """Fast hashing, fixed secret."""
    return Settings(
        environment="test",
        jwt_secret_key="test-secret-key-with-enough-length-for-hs256",
        password_hash_iterations=1_000,
        seed_file="",
    )


@pytest.fixture
def seed():
    return SeedData(categories=[CategorySeed(name="Uncategorized", description="Default")])


@pytest.fixture
def db():
    return RecordingDatabase()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def credentials(settings, clock):
    return CredentialEngine(settings, clock=clock)


@pytest.fixture
def lookup():
    """One user per role, plus a soft-deleted admin."""
    return (
        FakeUserLookup()
        .add(ADMIN_ID, Role.ADMIN)
        .add(EDITOR_ID, Role.EDITOR)
        .add(AUTHOR_ID, Role.AUTHOR)
        .add(COMMENTER_ID, Role.COMMENTER)
        .add(DELETED_ID, Role.ADMIN, deleted_at=datetime(2020, 1, 1, tzinfo=timezone.utc))
        .add(OTHER_AUTHOR_ID, Role.AUTHOR)
    )
