"""Tests for vote tallying and read-after-write vote merging."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from concord.consensus.voting import merge_vote, tally_votes
from concord.schemas.decision import Vote

_T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=UTC)


# ── Factories ──────────────────────────────────────────────────────


def _vote(
    user_id: str,
    vote_type: str = "yes",
    decision_id: str = "1700000000.000100",
    minutes: int = 0,
) -> Vote:
    return Vote(
        decision_id=decision_id,
        user_id=user_id,
        vote_type=vote_type,
        voted_at=_T0 + timedelta(minutes=minutes),
    )


# ── Tallying ───────────────────────────────────────────────────────


class TestTallyVotes:
    def test_empty(self):
        counts = tally_votes([])
        assert (counts.yes, counts.no, counts.abstain, counts.total) == (0, 0, 0, 0)

    def test_counts_each_type(self):
        counts = tally_votes([
            _vote("U1", "yes"),
            _vote("U2", "yes"),
            _vote("U3", "no"),
            _vote("U4", "abstain"),
        ])
        assert counts.yes == 2
        assert counts.no == 1
        assert counts.abstain == 1
        assert counts.total == 4

    def test_unknown_type_counts_toward_total_only(self):
        counts = tally_votes([_vote("U1", "yes"), _vote("U2", "maybe")])
        assert counts.yes == 1
        assert counts.total == 2
        assert counts.yes + counts.no + counts.abstain < counts.total

    def test_named_buckets_never_exceed_total(self):
        samples = [
            [],
            [_vote("U1", "no")],
            [_vote("U1", "abstain"), _vote("U2", "abstain")],
            [_vote("U1", "yes"), _vote("U2", ""), _vote("U3", "NO")],
        ]
        for votes in samples:
            counts = tally_votes(votes)
            assert counts.yes + counts.no + counts.abstain <= counts.total

    def test_accepts_generator(self):
        counts = tally_votes(_vote(f"U{i}", "no") for i in range(3))
        assert counts.no == 3
        assert counts.total == 3


# ── Merging ────────────────────────────────────────────────────────


class TestMergeVote:
    def test_appends_missing_write(self):
        """A query that lags behind the write still counts the new vote."""
        queried = [_vote("U1", "yes"), _vote("U2", "no")]
        written = _vote("U3", "yes", minutes=5)

        merged = merge_vote(written, queried)

        assert [v.user_id for v in merged] == ["U1", "U2", "U3"]
        counts = tally_votes(merged)
        assert counts.yes == 2
        assert counts.no == 1
        assert counts.total == 3

    def test_replaces_stale_vote_for_same_user(self):
        queried = [_vote("U1", "yes"), _vote("U2", "no")]
        written = _vote("U2", "yes", minutes=5)

        merged = merge_vote(written, queried)

        assert len(merged) == 2
        u2 = [v for v in merged if v.user_id == "U2"]
        assert len(u2) == 1
        assert u2[0].vote_type == "yes"
        assert [v for v in merged if v.user_id == "U1"][0].vote_type == "yes"

    def test_keeps_strictly_newer_queried_vote(self):
        queried = [_vote("U1", "no", minutes=10)]
        written = _vote("U1", "yes", minutes=5)

        merged = merge_vote(written, queried)

        assert len(merged) == 1
        assert merged[0].vote_type == "no"

    def test_same_timestamp_prefers_written(self):
        queried = [_vote("U1", "no", minutes=5)]
        written = _vote("U1", "abstain", minutes=5)

        merged = merge_vote(written, queried)
        assert merged[0].vote_type == "abstain"

    def test_collapses_duplicate_rows_for_user(self):
        queried = [_vote("U1", "no"), _vote("U1", "no", minutes=1), _vote("U2", "yes")]
        written = _vote("U1", "yes", minutes=5)

        merged = merge_vote(written, queried)

        assert sorted(v.user_id for v in merged) == ["U1", "U2"]

    def test_empty_query(self):
        written = _vote("U1", "yes")
        assert merge_vote(written, []) == [written]

    def test_does_not_mutate_inputs(self):
        queried = [_vote("U1", "no")]
        snapshot = list(queried)
        written = _vote("U1", "yes", minutes=1)

        merge_vote(written, queried)

        assert queried == snapshot
        assert queried[0].vote_type == "no"
