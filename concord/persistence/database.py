"""SQLite database layer for decision persistence.

Manages the SQLite database connection and schema creation. Uses
aiosqlite for async access with WAL mode for concurrent read
performance. The database is a passive store: all status rules live in
the engine.
"""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

# SQL schema for the decisions database
_SCHEMA = """
CREATE TABLE IF NOT EXISTS decisions (
    id               TEXT PRIMARY KEY,
    name             TEXT NOT NULL,
    proposal         TEXT NOT NULL DEFAULT '',
    success_criteria TEXT NOT NULL,
    deadline         TEXT NOT NULL,
    status           TEXT NOT NULL DEFAULT 'active',
    creator_id       TEXT NOT NULL,
    channel_id       TEXT NOT NULL DEFAULT '',
    message_ts       TEXT NOT NULL DEFAULT '',
    created_at       TEXT NOT NULL,
    updated_at       TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS voters (
    id          TEXT PRIMARY KEY,
    decision_id TEXT NOT NULL REFERENCES decisions(id) ON DELETE CASCADE,
    user_id     TEXT NOT NULL,
    required    INTEGER NOT NULL DEFAULT 1,
    created_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS votes (
    id          TEXT PRIMARY KEY,
    decision_id TEXT NOT NULL REFERENCES decisions(id) ON DELETE CASCADE,
    user_id     TEXT NOT NULL,
    vote_type   TEXT NOT NULL,
    voted_at    TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_decisions_status ON decisions(status);
CREATE INDEX IF NOT EXISTS idx_decisions_channel ON decisions(channel_id);
CREATE INDEX IF NOT EXISTS idx_voters_decision ON voters(decision_id);
CREATE INDEX IF NOT EXISTS idx_votes_decision ON votes(decision_id);
"""


async def init_db(db_path: str) -> aiosqlite.Connection:
    """Initialize the database connection and create tables if needed.

    Creates parent directories if they don't exist, enables WAL mode
    and foreign keys, then runs the schema DDL.

    Args:
        db_path: Path to the SQLite database file. Supports ~ expansion
            and ``:memory:``.

    Returns:
        An open aiosqlite connection ready for use.
    """
    if db_path == ":memory:":
        target = db_path
    else:
        resolved = Path(db_path).expanduser()
        resolved.parent.mkdir(parents=True, exist_ok=True)
        target = str(resolved)

    db = await aiosqlite.connect(target)
    db.row_factory = aiosqlite.Row
    await db.execute("PRAGMA journal_mode=WAL")
    await db.execute("PRAGMA foreign_keys=ON")
    await db.executescript(_SCHEMA)
    await db.commit()

    logger.info("Decision database initialized at %s", target)
    return db


async def close_db(db: aiosqlite.Connection) -> None:
    """Close the database connection."""
    await db.close()
