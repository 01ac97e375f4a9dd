"""Vote tallying and read-after-write vote merging.

Provides the counting primitive used by every success rule and the
merge step that corrects a vote query which may not yet reflect the
vote that was just written.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from concord.schemas.consensus import VoteCounts
from concord.schemas.decision import Vote, VoteType

logger = logging.getLogger(__name__)


def tally_votes(votes: Iterable[Vote]) -> VoteCounts:
    """Count votes by type.

    Args:
        votes: Cast votes, in any order.

    Returns:
        VoteCounts where ``total`` is the number of votes given. Votes
        with an unrecognised type count toward ``total`` only.
    """
    yes = no = abstain = total = 0
    for vote in votes:
        total += 1
        if vote.vote_type == VoteType.YES:
            yes += 1
        elif vote.vote_type == VoteType.NO:
            no += 1
        elif vote.vote_type == VoteType.ABSTAIN:
            abstain += 1
        else:
            logger.debug(
                "Vote %s has unknown type %r, counted in total only",
                vote.id, vote.vote_type,
            )
    return VoteCounts(yes=yes, no=no, abstain=abstain, total=total)


def merge_vote(written: Vote, queried: Iterable[Vote]) -> list[Vote]:
    """Merge a just-written vote into a possibly stale query result.

    The backing store is eventually consistent, so a query issued right
    after a write may miss it. The written vote replaces any queried
    vote from the same voter (unless the queried one is strictly newer)
    or is appended when absent. Neither input is mutated.

    Args:
        written: The vote that was just stored.
        queried: Votes returned by the store for the same decision.

    Returns:
        A new list holding exactly one vote from ``written.user_id``.
    """
    merged: list[Vote] = []
    seen = False
    for vote in queried:
        if vote.user_id != written.user_id:
            merged.append(vote)
            continue
        if seen:
            # Duplicate rows for one voter collapse into a single entry
            continue
        seen = True
        merged.append(vote if vote.voted_at > written.voted_at else written)

    if not seen:
        merged.append(written)
    return merged
