"""Decision store for saving and querying decisions, rosters, and votes.

Provides the DecisionStore class that wraps low-level database
operations with Pydantic schema serialization/deserialization.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime

import aiosqlite

from concord.schemas.config import DecisionQuery
from concord.schemas.decision import (
    Decision,
    DecisionStatus,
    Vote,
    Voter,
    record_id,
)

logger = logging.getLogger(__name__)


class DecisionStore:
    """Persistent decision store backed by SQLite.

    All methods are async and operate on an aiosqlite connection
    initialized by database.init_db().
    """

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    # ── Decisions ────────────────────────────────────────────────

    async def save_decision(self, decision: Decision) -> None:
        """Insert or replace a decision row."""
        await self._db.execute(
            """
            INSERT OR REPLACE INTO decisions
                (id, name, proposal, success_criteria, deadline, status,
                 creator_id, channel_id, message_ts, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                decision.id,
                decision.name,
                decision.proposal,
                decision.success_criteria.value,
                decision.deadline,
                decision.status.value,
                decision.creator_id,
                decision.channel_id,
                decision.message_ts,
                decision.created_at.isoformat(),
                decision.updated_at.isoformat(),
            ),
        )
        await self._db.commit()
        logger.info("Saved decision %s", decision.id)

    async def get_decision(self, decision_id: str) -> Decision | None:
        """Retrieve a decision by ID, or None if it does not exist."""
        self._db.row_factory = aiosqlite.Row
        async with self._db.execute(
            "SELECT * FROM decisions WHERE id = ?",
            (decision_id,),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_decision(row) if row else None

    async def list_decisions(self, query: DecisionQuery) -> list[Decision]:
        """List decisions matching the query, most recently created first."""
        conditions: list[str] = []
        params: list[object] = []

        if query.status is not None:
            conditions.append("status = ?")
            params.append(query.status.value)
        if query.creator_id:
            conditions.append("creator_id = ?")
            params.append(query.creator_id)
        if query.channel_id:
            conditions.append("channel_id = ?")
            params.append(query.channel_id)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        sql = f"""
            SELECT * FROM decisions
            {where}
            ORDER BY created_at DESC
            LIMIT ? OFFSET ?
        """  # noqa: S608
        params.extend([query.limit, query.offset])

        self._db.row_factory = aiosqlite.Row
        decisions: list[Decision] = []
        async with self._db.execute(sql, params) as cursor:
            async for row in cursor:
                decisions.append(_row_to_decision(row))
        return decisions

    async def transition_status(
        self,
        decision_id: str,
        new_status: DecisionStatus,
        now: datetime | None = None,
    ) -> bool:
        """Move an active decision to ``new_status``.

        The write only applies while the stored status is still
        ``active``, so of several racing callers at most one wins.

        Returns:
            True if this call changed the status, False otherwise.
        """
        stamp = (now or datetime.now(UTC)).isoformat()
        cursor = await self._db.execute(
            "UPDATE decisions SET status = ?, updated_at = ? "
            "WHERE id = ? AND status = ?",
            (new_status.value, stamp, decision_id, DecisionStatus.ACTIVE.value),
        )
        await self._db.commit()
        changed = cursor.rowcount > 0
        if changed:
            logger.info("Decision %s is now %s", decision_id, new_status)
        else:
            logger.info(
                "Decision %s no longer active, %s not applied",
                decision_id, new_status,
            )
        return changed

    # ── Roster ───────────────────────────────────────────────────

    async def add_voters(
        self, decision_id: str, user_ids: Iterable[str],
    ) -> list[Voter]:
        """Add roster entries for a decision. Existing entries are kept."""
        voters: list[Voter] = []
        for user_id in dict.fromkeys(user_ids):
            voter = Voter(decision_id=decision_id, user_id=user_id)
            await self._db.execute(
                """
                INSERT OR IGNORE INTO voters
                    (id, decision_id, user_id, required, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    voter.id,
                    voter.decision_id,
                    voter.user_id,
                    int(voter.required),
                    voter.created_at.isoformat(),
                ),
            )
            voters.append(voter)
        await self._db.commit()
        logger.info("Added %d voters to decision %s", len(voters), decision_id)
        return voters

    async def get_voter(self, decision_id: str, user_id: str) -> Voter | None:
        """Retrieve one roster entry, or None if the user is not on the roster."""
        self._db.row_factory = aiosqlite.Row
        async with self._db.execute(
            "SELECT * FROM voters WHERE id = ?",
            (record_id(decision_id, user_id),),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_voter(row) if row else None

    async def list_voters(self, decision_id: str) -> list[Voter]:
        """All roster entries for a decision, in insertion order."""
        self._db.row_factory = aiosqlite.Row
        async with self._db.execute(
            "SELECT * FROM voters WHERE decision_id = ? ORDER BY rowid",
            (decision_id,),
        ) as cursor:
            return [_row_to_voter(row) for row in await cursor.fetchall()]

    # ── Votes ────────────────────────────────────────────────────

    async def put_vote(self, vote: Vote) -> bool:
        """Store a vote, replacing the voter's previous vote on the decision.

        The stored vote is the one with the latest ``voted_at``: a vote
        that arrives after a newer one for the same voter is ignored.

        Returns:
            True if the vote was stored, False if a newer vote was kept.
        """
        cursor = await self._db.execute(
            """
            INSERT INTO votes
                (id, decision_id, user_id, vote_type, voted_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                vote_type = excluded.vote_type,
                voted_at = excluded.voted_at
            WHERE excluded.voted_at >= votes.voted_at
            """,
            (
                vote.id,
                vote.decision_id,
                vote.user_id,
                vote.vote_type,
                _timestamp(vote.voted_at),
            ),
        )
        await self._db.commit()
        stored = cursor.rowcount > 0
        if stored:
            logger.debug("Stored vote %s (%s)", vote.id, vote.vote_type)
        else:
            logger.info("Ignored vote %s, a newer vote is already stored", vote.id)
        return stored

    async def query_votes(self, decision_id: str) -> list[Vote]:
        """All live votes on a decision, oldest first."""
        self._db.row_factory = aiosqlite.Row
        async with self._db.execute(
            "SELECT * FROM votes WHERE decision_id = ? ORDER BY voted_at",
            (decision_id,),
        ) as cursor:
            return [_row_to_vote(row) for row in await cursor.fetchall()]


def _timestamp(value: datetime) -> str:
    # Fixed-width UTC text so stored vote times compare correctly in SQL
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _row_to_decision(row: aiosqlite.Row) -> Decision:
    return Decision(
        id=row["id"],
        name=row["name"],
        proposal=row["proposal"],
        success_criteria=row["success_criteria"],
        deadline=row["deadline"],
        status=row["status"],
        creator_id=row["creator_id"],
        channel_id=row["channel_id"],
        message_ts=row["message_ts"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _row_to_voter(row: aiosqlite.Row) -> Voter:
    return Voter(
        decision_id=row["decision_id"],
        user_id=row["user_id"],
        required=bool(row["required"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_vote(row: aiosqlite.Row) -> Vote:
    return Vote(
        decision_id=row["decision_id"],
        user_id=row["user_id"],
        vote_type=row["vote_type"],
        voted_at=datetime.fromisoformat(row["voted_at"]),
    )
