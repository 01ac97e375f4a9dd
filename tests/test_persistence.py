"""Tests for decision persistence.

Covers database initialization, DecisionStore CRUD operations for
decisions, rosters, and votes, the guarded status transition, query
filtering, and JSON export.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta, timezone

import pytest

from concord.persistence.database import close_db, init_db
from concord.persistence.export import export_json
from concord.persistence.store import DecisionStore
from concord.schemas.config import DecisionQuery
from concord.schemas.decision import Decision, DecisionStatus, Vote, Voter

_T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=UTC)


# ── Factories ──────────────────────────────────────────────────────


def _make_decision(**overrides) -> Decision:
    defaults = {
        "id": "1700000000.000100",
        "name": "Move standup to 10am",
        "proposal": "Standup at 9:30 clashes with the EU handoff.",
        "success_criteria": "simple_majority",
        "deadline": "2026-03-09",
        "creator_id": "U111",
        "channel_id": "C123",
        "message_ts": "1700000000.000100",
        "created_at": _T0,
        "updated_at": _T0,
    }
    defaults.update(overrides)
    return Decision(**defaults)


def _make_vote(user_id: str, vote_type: str = "yes", minutes: int = 0, **overrides) -> Vote:
    defaults = {
        "decision_id": "1700000000.000100",
        "user_id": user_id,
        "vote_type": vote_type,
        "voted_at": _T0 + timedelta(minutes=minutes),
    }
    defaults.update(overrides)
    return Vote(**defaults)


# ── Database Initialization Tests ─────────────────────────────────


@pytest.mark.asyncio
async def test_init_db_creates_tables(tmp_path):
    """init_db creates the decisions, voters, and votes tables."""
    db = await init_db(str(tmp_path / "test.db"))

    async with db.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
    ) as cursor:
        tables = [row[0] for row in await cursor.fetchall()]

    assert "decisions" in tables
    assert "voters" in tables
    assert "votes" in tables

    await close_db(db)


@pytest.mark.asyncio
async def test_init_db_wal_mode(tmp_path):
    """init_db enables WAL journal mode."""
    db = await init_db(str(tmp_path / "test.db"))

    async with db.execute("PRAGMA journal_mode") as cursor:
        row = await cursor.fetchone()
        assert row[0] == "wal"

    await close_db(db)


@pytest.mark.asyncio
async def test_init_db_foreign_keys(tmp_path):
    """init_db enables foreign key enforcement."""
    db = await init_db(str(tmp_path / "test.db"))

    async with db.execute("PRAGMA foreign_keys") as cursor:
        row = await cursor.fetchone()
        assert row[0] == 1

    await close_db(db)


@pytest.mark.asyncio
async def test_init_db_creates_parent_dirs(tmp_path):
    """init_db creates parent directories if they don't exist."""
    db = await init_db(str(tmp_path / "nested" / "deep" / "test.db"))
    assert (tmp_path / "nested" / "deep").is_dir()
    await close_db(db)


@pytest.mark.asyncio
async def test_init_db_in_memory():
    """init_db accepts :memory: without touching the filesystem."""
    db = await init_db(":memory:")
    store = DecisionStore(db)
    await store.save_decision(_make_decision())
    assert await store.get_decision("1700000000.000100") is not None
    await close_db(db)


@pytest.mark.asyncio
async def test_init_db_idempotent(tmp_path):
    """init_db can be called repeatedly on the same file without losing rows."""
    db_path = str(tmp_path / "test.db")
    db1 = await init_db(db_path)
    await DecisionStore(db1).save_decision(_make_decision())
    await close_db(db1)

    db2 = await init_db(db_path)
    assert await DecisionStore(db2).get_decision("1700000000.000100") is not None
    await close_db(db2)


# ── DecisionStore: decisions ──────────────────────────────────────


@pytest.mark.asyncio
async def test_save_and_get_decision(tmp_path):
    """A saved decision round-trips with every field intact."""
    db = await init_db(str(tmp_path / "test.db"))
    store = DecisionStore(db)
    decision = _make_decision(success_criteria="unanimous")

    await store.save_decision(decision)
    loaded = await store.get_decision(decision.id)

    assert loaded == decision
    assert loaded.status is DecisionStatus.ACTIVE
    assert loaded.created_at == _T0

    await close_db(db)


@pytest.mark.asyncio
async def test_get_decision_nonexistent(tmp_path):
    """get_decision returns None for unknown IDs."""
    db = await init_db(str(tmp_path / "test.db"))
    assert await DecisionStore(db).get_decision("missing") is None
    await close_db(db)


@pytest.mark.asyncio
async def test_save_decision_upsert(tmp_path):
    """Saving the same ID twice replaces the row."""
    db = await init_db(str(tmp_path / "test.db"))
    store = DecisionStore(db)

    await store.save_decision(_make_decision())
    await store.save_decision(_make_decision(name="Move standup to 10:15"))

    loaded = await store.get_decision("1700000000.000100")
    assert loaded.name == "Move standup to 10:15"
    decisions = await store.list_decisions(DecisionQuery())
    assert len(decisions) == 1

    await close_db(db)


@pytest.mark.asyncio
async def test_list_decisions_newest_first(tmp_path):
    """list_decisions orders by creation time, most recent first."""
    db = await init_db(str(tmp_path / "test.db"))
    store = DecisionStore(db)
    for i in range(3):
        await store.save_decision(_make_decision(
            id=f"D{i}", created_at=_T0 + timedelta(hours=i),
        ))

    decisions = await store.list_decisions(DecisionQuery())
    assert [d.id for d in decisions] == ["D2", "D1", "D0"]

    await close_db(db)


@pytest.mark.asyncio
async def test_list_decisions_limit_offset(tmp_path):
    """list_decisions pages with limit and offset."""
    db = await init_db(str(tmp_path / "test.db"))
    store = DecisionStore(db)
    for i in range(5):
        await store.save_decision(_make_decision(
            id=f"D{i}", created_at=_T0 + timedelta(hours=i),
        ))

    page = await store.list_decisions(DecisionQuery(limit=2, offset=1))
    assert [d.id for d in page] == ["D3", "D2"]

    await close_db(db)


@pytest.mark.asyncio
async def test_list_decisions_filters(tmp_path):
    """list_decisions filters by status, creator, and channel."""
    db = await init_db(str(tmp_path / "test.db"))
    store = DecisionStore(db)
    await store.save_decision(_make_decision(id="D1"))
    await store.save_decision(_make_decision(id="D2", status="approved"))
    await store.save_decision(_make_decision(id="D3", creator_id="U222"))
    await store.save_decision(_make_decision(id="D4", channel_id="C999"))

    active = await store.list_decisions(DecisionQuery(status=DecisionStatus.ACTIVE))
    assert {d.id for d in active} == {"D1", "D3", "D4"}

    by_creator = await store.list_decisions(DecisionQuery(creator_id="U222"))
    assert [d.id for d in by_creator] == ["D3"]

    by_channel = await store.list_decisions(DecisionQuery(channel_id="C999"))
    assert [d.id for d in by_channel] == ["D4"]

    await close_db(db)


# ── DecisionStore: transition_status ──────────────────────────────


@pytest.mark.asyncio
async def test_transition_status_from_active(tmp_path):
    """transition_status applies to an active decision and stamps updated_at."""
    db = await init_db(str(tmp_path / "test.db"))
    store = DecisionStore(db)
    await store.save_decision(_make_decision())
    later = _T0 + timedelta(days=2)

    changed = await store.transition_status(
        "1700000000.000100", DecisionStatus.APPROVED, later,
    )

    assert changed is True
    loaded = await store.get_decision("1700000000.000100")
    assert loaded.status is DecisionStatus.APPROVED
    assert loaded.updated_at == later

    await close_db(db)


@pytest.mark.asyncio
async def test_transition_status_only_once(tmp_path):
    """A second transition on a terminal decision is not applied."""
    db = await init_db(str(tmp_path / "test.db"))
    store = DecisionStore(db)
    await store.save_decision(_make_decision())

    first = await store.transition_status("1700000000.000100", DecisionStatus.REJECTED)
    second = await store.transition_status("1700000000.000100", DecisionStatus.CANCELLED)

    assert first is True
    assert second is False
    loaded = await store.get_decision("1700000000.000100")
    assert loaded.status is DecisionStatus.REJECTED

    await close_db(db)


@pytest.mark.asyncio
async def test_transition_status_missing(tmp_path):
    """transition_status on an unknown ID changes nothing."""
    db = await init_db(str(tmp_path / "test.db"))
    changed = await DecisionStore(db).transition_status("nope", DecisionStatus.APPROVED)
    assert changed is False
    await close_db(db)


# ── DecisionStore: roster ─────────────────────────────────────────


@pytest.mark.asyncio
async def test_add_and_list_voters(tmp_path):
    """add_voters stores one entry per distinct user, in order."""
    db = await init_db(str(tmp_path / "test.db"))
    store = DecisionStore(db)
    await store.save_decision(_make_decision())

    added = await store.add_voters("1700000000.000100", ["U1", "U2", "U1", "U3"])
    voters = await store.list_voters("1700000000.000100")

    assert [v.user_id for v in added] == ["U1", "U2", "U3"]
    assert [v.user_id for v in voters] == ["U1", "U2", "U3"]
    assert all(v.required for v in voters)
    assert voters[0].id == "1700000000.000100_U1"

    await close_db(db)


@pytest.mark.asyncio
async def test_add_voters_keeps_existing(tmp_path):
    """Adding a user who is already on the roster does not duplicate them."""
    db = await init_db(str(tmp_path / "test.db"))
    store = DecisionStore(db)
    await store.save_decision(_make_decision())

    await store.add_voters("1700000000.000100", ["U1"])
    await store.add_voters("1700000000.000100", ["U1", "U2"])

    voters = await store.list_voters("1700000000.000100")
    assert [v.user_id for v in voters] == ["U1", "U2"]

    await close_db(db)


@pytest.mark.asyncio
async def test_get_voter(tmp_path):
    """get_voter returns the roster entry or None."""
    db = await init_db(str(tmp_path / "test.db"))
    store = DecisionStore(db)
    await store.save_decision(_make_decision())
    await store.add_voters("1700000000.000100", ["U1"])

    voter = await store.get_voter("1700000000.000100", "U1")
    assert isinstance(voter, Voter)
    assert voter.user_id == "U1"
    assert await store.get_voter("1700000000.000100", "U9") is None

    await close_db(db)


# ── DecisionStore: votes ──────────────────────────────────────────


@pytest.mark.asyncio
async def test_put_and_query_votes(tmp_path):
    """Stored votes come back oldest first."""
    db = await init_db(str(tmp_path / "test.db"))
    store = DecisionStore(db)
    await store.save_decision(_make_decision())

    await store.put_vote(_make_vote("U2", "no", minutes=5))
    await store.put_vote(_make_vote("U1", "yes", minutes=1))

    votes = await store.query_votes("1700000000.000100")
    assert [(v.user_id, v.vote_type) for v in votes] == [("U1", "yes"), ("U2", "no")]

    await close_db(db)


@pytest.mark.asyncio
async def test_put_vote_replaces_previous(tmp_path):
    """A user has at most one vote per decision; the latest write wins."""
    db = await init_db(str(tmp_path / "test.db"))
    store = DecisionStore(db)
    await store.save_decision(_make_decision())

    await store.put_vote(_make_vote("U1", "yes"))
    await store.put_vote(_make_vote("U1", "abstain", minutes=3))

    votes = await store.query_votes("1700000000.000100")
    assert len(votes) == 1
    assert votes[0].vote_type == "abstain"
    assert votes[0].id == "1700000000.000100_U1"

    await close_db(db)


@pytest.mark.asyncio
async def test_put_vote_keeps_newer_vote(tmp_path):
    """A vote stamped earlier than the stored one does not overwrite it."""
    db = await init_db(str(tmp_path / "test.db"))
    store = DecisionStore(db)
    await store.save_decision(_make_decision())

    newer = await store.put_vote(_make_vote("U1", "yes", minutes=5))
    older = await store.put_vote(_make_vote("U1", "no", minutes=1))

    assert newer is True
    assert older is False
    votes = await store.query_votes("1700000000.000100")
    assert len(votes) == 1
    assert votes[0].vote_type == "yes"
    assert votes[0].voted_at == _T0 + timedelta(minutes=5)

    await close_db(db)


@pytest.mark.asyncio
async def test_put_vote_compares_across_timezones(tmp_path):
    """Vote times are compared as instants, whatever offset they carry."""
    db = await init_db(str(tmp_path / "test.db"))
    store = DecisionStore(db)
    await store.save_decision(_make_decision())
    plus_two = timezone(timedelta(hours=2))

    # 10:30+02:00 is 08:30 UTC, earlier than the stored 09:05 UTC vote
    await store.put_vote(_make_vote("U1", "yes", minutes=5))
    stored = await store.put_vote(_make_vote(
        "U1", "no", voted_at=datetime(2026, 3, 2, 10, 30, tzinfo=plus_two),
    ))

    assert stored is False
    votes = await store.query_votes("1700000000.000100")
    assert votes[0].vote_type == "yes"

    await close_db(db)


@pytest.mark.asyncio
async def test_votes_are_scoped_to_decision(tmp_path):
    """query_votes only returns votes on the requested decision."""
    db = await init_db(str(tmp_path / "test.db"))
    store = DecisionStore(db)
    await store.save_decision(_make_decision(id="D1"))
    await store.save_decision(_make_decision(id="D2"))

    await store.put_vote(_make_vote("U1", decision_id="D1"))
    await store.put_vote(_make_vote("U1", "no", decision_id="D2"))

    assert [v.vote_type for v in await store.query_votes("D1")] == ["yes"]
    assert [v.vote_type for v in await store.query_votes("D2")] == ["no"]

    await close_db(db)


@pytest.mark.asyncio
async def test_child_rows_cascade(tmp_path):
    """Removing a decision row removes its roster and votes."""
    db = await init_db(str(tmp_path / "test.db"))
    store = DecisionStore(db)
    await store.save_decision(_make_decision())
    await store.add_voters("1700000000.000100", ["U1"])
    await store.put_vote(_make_vote("U1"))

    await db.execute("DELETE FROM decisions WHERE id = ?", ("1700000000.000100",))
    await db.commit()

    assert await store.list_voters("1700000000.000100") == []
    assert await store.query_votes("1700000000.000100") == []

    await close_db(db)


# ── Export ────────────────────────────────────────────────────────


def test_export_json_format():
    """export_json emits decision, voters, and votes."""
    decision = _make_decision()
    voters = [Voter(decision_id=decision.id, user_id="U1", created_at=_T0)]
    votes = [_make_vote("U1", "no")]

    data = json.loads(export_json(decision, voters, votes))

    assert data["decision"]["id"] == "1700000000.000100"
    assert data["decision"]["status"] == "active"
    assert data["decision"]["success_criteria"] == "simple_majority"
    assert data["voters"][0]["user_id"] == "U1"
    assert data["voters"][0]["id"] == "1700000000.000100_U1"
    assert data["votes"][0]["vote_type"] == "no"


def test_export_json_empty_children():
    data = json.loads(export_json(_make_decision(), [], []))
    assert data["voters"] == []
    assert data["votes"] == []
