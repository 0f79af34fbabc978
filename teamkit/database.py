"""SQLite database layer using aiosqlite.

Provides async database access with simple raw SQL, no ORM.
Tables: team, team_member, team_invite.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager, nullcontext
from pathlib import Path
from typing import AsyncGenerator

import aiosqlite

from teamkit.config import settings

logger = logging.getLogger(__name__)

# Module-level database path, parsed from settings
_db_path: str = ""

# Open anchor connections and transaction locks for in-memory databases
_anchors: dict[str, aiosqlite.Connection] = {}
_memory_locks: dict[str, asyncio.Lock] = {}

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS team (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        slug TEXT NOT NULL,
        owner_id TEXT NOT NULL,
        plan TEXT NOT NULL DEFAULT 'free'
            CHECK (plan IN ('free', 'pro', 'enterprise')),
        status TEXT NOT NULL DEFAULT 'active'
            CHECK (status IN ('active', 'suspended', 'deleted')),
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL
    )
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS team_slug_unique ON team(slug)",
    "CREATE INDEX IF NOT EXISTS team_owner_idx ON team(owner_id)",
    "CREATE INDEX IF NOT EXISTS team_status_idx ON team(status)",
    """
    CREATE TABLE IF NOT EXISTS team_member (
        id TEXT PRIMARY KEY,
        team_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'member'
            CHECK (role IN ('owner', 'admin', 'member', 'viewer')),
        joined_at TIMESTAMP NOT NULL,
        FOREIGN KEY (team_id) REFERENCES team(id) ON DELETE CASCADE
    )
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS team_member_unique ON team_member(team_id, user_id)",
    "CREATE INDEX IF NOT EXISTS team_member_team_idx ON team_member(team_id)",
    "CREATE INDEX IF NOT EXISTS team_member_user_idx ON team_member(user_id)",
    """
    CREATE TABLE IF NOT EXISTS team_invite (
        id TEXT PRIMARY KEY,
        team_id TEXT NOT NULL,
        email TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'member'
            CHECK (role IN ('owner', 'admin', 'member', 'viewer')),
        token TEXT NOT NULL,
        expires_at TIMESTAMP NOT NULL,
        accepted_at TIMESTAMP,
        accepted_by TEXT,
        revoked_at TIMESTAMP,
        created_at TIMESTAMP NOT NULL,
        FOREIGN KEY (team_id) REFERENCES team(id) ON DELETE CASCADE
    )
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS team_invite_token_unique ON team_invite(token)",
    # Only one outstanding invite per (team, email); closed invites don't count.
    """
    CREATE UNIQUE INDEX IF NOT EXISTS team_invite_outstanding_unique
    ON team_invite(team_id, email)
    WHERE accepted_at IS NULL AND revoked_at IS NULL
    """,
    "CREATE INDEX IF NOT EXISTS team_invite_expires_idx ON team_invite(expires_at)",
    "CREATE INDEX IF NOT EXISTS team_invite_accepted_by_idx ON team_invite(accepted_by)",
)


def resolve_db_path(url: str | None = None) -> str:
    """Parse the database URL into a file path or SQLite URI.

    ``:memory:`` becomes a uniquely named shared-cache database so that the
    separate connections opened per operation all see the same data.
    """
    url = url or settings.database_url
    # Strip sqlite:/// prefix
    path = url.removeprefix("sqlite:///")
    if path == ":memory:":
        return f"file:teamkit-{uuid.uuid4().hex}?mode=memory&cache=shared"
    return path


def is_memory(db_path: str) -> bool:
    return db_path.startswith("file:") and "mode=memory" in db_path


def get_db_path() -> str:
    return _db_path


async def create_schema(db_path: str) -> None:
    """Create tables in ``db_path`` if they don't exist.

    An in-memory database lives only while a connection to it is open, so one
    anchor connection is kept until ``close_db``.
    """
    if is_memory(db_path):
        if db_path not in _anchors:
            anchor = await aiosqlite.connect(db_path, uri=True)
            _anchors[db_path] = anchor
            _memory_locks[db_path] = asyncio.Lock()
        db = _anchors[db_path]
        for statement in SCHEMA:
            await db.execute(statement)
        await db.commit()
    else:
        # Ensure parent directory exists
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(db_path) as db:
            # WAL lets readers proceed while a transaction holds the write lock.
            await db.execute("PRAGMA journal_mode = WAL")
            for statement in SCHEMA:
                await db.execute(statement)
            await db.commit()

    logger.info("Database initialized at %s", db_path)


async def init_db(database_url: str | None = None) -> str:
    """Create tables and make this the process default database. Call once at startup."""
    global _db_path
    _db_path = resolve_db_path(database_url)
    await create_schema(_db_path)
    return _db_path


async def close_db(db_path: str) -> None:
    """Drop the anchor of an in-memory database, discarding its data."""
    _memory_locks.pop(db_path, None)
    anchor = _anchors.pop(db_path, None)
    if anchor is not None:
        await anchor.close()
        logger.info("Database closed at %s", db_path)


async def _connect(db_path: str | None = None) -> aiosqlite.Connection:
    db_path = db_path or _db_path
    if not db_path:
        raise RuntimeError("init_db() has not been called")
    if is_memory(db_path) and db_path not in _anchors:
        raise RuntimeError(f"In-memory database {db_path} is not open")
    # isolation_level=None: transactions are opened explicitly below.
    db = await aiosqlite.connect(db_path, isolation_level=None, uri=db_path.startswith("file:"))
    db.row_factory = aiosqlite.Row
    await db.execute("PRAGMA foreign_keys = ON")
    await db.execute("PRAGMA busy_timeout = 5000")
    return db


@asynccontextmanager
async def get_db(db_path: str | None = None) -> AsyncGenerator[aiosqlite.Connection, None]:
    """Async context manager for autocommit database connections.

    Without ``db_path`` the process default set by ``init_db`` is used.

    Usage:
        async with get_db() as db:
            await db.execute("SELECT ...")
    """
    db = await _connect(db_path)
    try:
        yield db
    finally:
        await db.close()


@asynccontextmanager
async def transaction(db_path: str | None = None) -> AsyncGenerator[aiosqlite.Connection, None]:
    """One atomic scope: BEGIN IMMEDIATE, COMMIT on exit, ROLLBACK on error.

    IMMEDIATE takes the write lock up front, so every read inside the block
    sees the snapshot the subsequent writes are applied to. Shared-cache
    memory databases report lock contention without waiting on busy_timeout,
    so their transactions are queued on an asyncio lock instead.
    """
    lock = _memory_locks.get(db_path or _db_path)
    async with lock if lock is not None else nullcontext():
        db = await _connect(db_path)
        try:
            await db.execute("BEGIN IMMEDIATE")
            try:
                yield db
            except BaseException:
                await db.rollback()
                raise
            else:
                await db.commit()
        finally:
            await db.close()
