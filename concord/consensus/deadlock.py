"""Deadlock detection.

A decision is deadlocked when its success rule can no longer be met no
matter how the outstanding voters vote. The check is advisory: it never
changes state and never finalizes a decision early.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import assert_never

from concord.consensus.evaluator import (
    SIMPLE_MAJORITY_THRESHOLD,
    SUPER_MAJORITY_THRESHOLD,
)
from concord.consensus.voting import tally_votes
from concord.schemas.consensus import DeadlockResult
from concord.schemas.decision import SuccessCriteria, Vote

logger = logging.getLogger(__name__)


def check_deadlock(
    votes: Iterable[Vote],
    success_criteria: SuccessCriteria | str,
    required_voters_count: int,
) -> DeadlockResult:
    """Check whether the outcome is already fixed as a failure.

    Assumes every remaining vote goes "yes" and asks whether the rule
    could still pass.

    Args:
        votes: Votes cast so far.
        success_criteria: Rule the decision is judged by.
        required_voters_count: Roster size.

    Returns:
        DeadlockResult with the tally and the number of outstanding votes.
    """
    counts = tally_votes(votes)
    remaining = required_voters_count - counts.total
    # Surplus votes (more votes than roster entries) add no best-case yes votes
    outstanding = max(remaining, 0)

    try:
        criteria = SuccessCriteria(success_criteria)
    except ValueError:
        return DeadlockResult(
            is_deadlocked=False,
            reason=f"Invalid success criteria: {success_criteria}",
            vote_counts=counts,
            remaining_votes=remaining,
        )

    deadlocked = False
    reason = ""

    match criteria:
        case SuccessCriteria.SIMPLE_MAJORITY:
            best_total = counts.total + outstanding
            already_passing = (
                counts.total > 0
                and counts.yes / counts.total > SIMPLE_MAJORITY_THRESHOLD
            )
            if not already_passing and (
                best_total == 0
                or (counts.yes + outstanding) / best_total <= SIMPLE_MAJORITY_THRESHOLD
            ):
                deadlocked = True
                reason = (
                    "Cannot reach simple majority even if all remaining "
                    "votes are yes"
                )
        case SuccessCriteria.SUPER_MAJORITY:
            if (
                required_voters_count <= 0
                or (counts.yes + outstanding) / required_voters_count
                < SUPER_MAJORITY_THRESHOLD
            ):
                deadlocked = True
                reason = (
                    "Cannot reach supermajority (66%) even if all remaining "
                    "votes are yes"
                )
        case SuccessCriteria.UNANIMOUS:
            if counts.no > 0:
                deadlocked = True
                reason = "Unanimity impossible due to existing no vote(s)"
        case _:
            assert_never(criteria)

    if deadlocked:
        logger.debug("Deadlock under %s: %s", criteria, reason)

    return DeadlockResult(
        is_deadlocked=deadlocked,
        reason=reason,
        vote_counts=counts,
        remaining_votes=remaining,
    )
