"""Success-rule evaluation.

Implements the three success rules (simple majority, supermajority,
unanimity) as pure functions over a VoteCounts tally, and the
``evaluate`` dispatcher that selects one by success criteria.

Invalid input never raises: an unknown success criteria yields a
DecisionResult with ``error=True``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import assert_never

from concord.consensus.voting import tally_votes
from concord.schemas.consensus import DecisionResult, VoteCounts
from concord.schemas.decision import SuccessCriteria, Vote

logger = logging.getLogger(__name__)

# Strict: exactly half does not pass
SIMPLE_MAJORITY_THRESHOLD = 0.5

# Fraction of the whole roster, not of votes cast
SUPER_MAJORITY_THRESHOLD = 0.66


def _pct(numerator: int, denominator: int) -> float:
    return round(numerator / denominator * 100, 2)


def simple_majority(counts: VoteCounts) -> DecisionResult:
    """Pass iff yes votes are more than 50% of votes cast."""
    if counts.total == 0:
        return DecisionResult(
            passed=False,
            reason="No votes have been cast",
            vote_counts=counts,
            percentage=0.0,
        )

    percentage = _pct(counts.yes, counts.total)
    passed = counts.yes / counts.total > SIMPLE_MAJORITY_THRESHOLD
    reason = (
        f"Simple majority achieved with {percentage:.2f}% yes votes"
        if passed
        else f"Simple majority not achieved. Need >50%, got {percentage:.2f}%"
    )
    return DecisionResult(
        passed=passed, reason=reason, vote_counts=counts, percentage=percentage,
    )


def super_majority(counts: VoteCounts, required_voters_count: int) -> DecisionResult:
    """Pass iff yes votes reach 66% of the required voters.

    The denominator is the roster size, so voters who never vote
    count against the proposal.
    """
    if required_voters_count <= 0:
        return DecisionResult(
            passed=False,
            reason="No required voters defined for this decision",
            vote_counts=counts,
            percentage=0.0,
        )

    percentage = _pct(counts.yes, required_voters_count)
    passed = counts.yes / required_voters_count >= SUPER_MAJORITY_THRESHOLD
    reason = (
        f"Supermajority achieved with {percentage:.2f}% yes votes"
        if passed
        else f"Supermajority not achieved. Need ≥66%, got {percentage:.2f}%"
    )
    return DecisionResult(
        passed=passed,
        reason=reason,
        vote_counts=counts,
        percentage=percentage,
        required_voters_count=required_voters_count,
        missing_votes=required_voters_count - counts.total,
    )


def unanimity(
    counts: VoteCounts,
    required_voters_count: int,
    quorum: int | None = None,
) -> DecisionResult:
    """Pass iff the quorum is met, nobody voted no, and someone voted yes.

    Abstentions do not break unanimity.

    Args:
        counts: Current tally.
        required_voters_count: Roster size.
        quorum: Minimum votes cast. Defaults to the roster size.
    """
    if required_voters_count <= 0:
        return DecisionResult(
            passed=False,
            reason="No required voters defined for this decision",
            vote_counts=counts,
            percentage=0.0,
        )

    effective_quorum = quorum if quorum is not None else required_voters_count

    if counts.total < effective_quorum:
        return DecisionResult(
            passed=False,
            reason=(
                f"Quorum not met. Need {effective_quorum} votes, "
                f"got {counts.total}"
            ),
            vote_counts=counts,
            percentage=_pct(counts.yes, required_voters_count),
            quorum=effective_quorum,
            quorum_met=False,
        )

    if counts.no > 0:
        return DecisionResult(
            passed=False,
            reason=f"Unanimity not achieved. {counts.no} vote(s) against",
            vote_counts=counts,
            percentage=_pct(counts.yes, counts.total),
            quorum=effective_quorum,
            quorum_met=True,
        )

    if counts.yes == 0:
        return DecisionResult(
            passed=False,
            reason="No yes votes cast",
            vote_counts=counts,
            percentage=0.0,
            quorum=effective_quorum,
            quorum_met=True,
        )

    return DecisionResult(
        passed=True,
        reason=(
            f"Unanimity achieved with {counts.yes} yes vote(s) "
            f"and {counts.abstain} abstention(s)"
        ),
        vote_counts=counts,
        percentage=_pct(counts.yes, required_voters_count),
        quorum=effective_quorum,
        quorum_met=True,
    )


def evaluate(
    success_criteria: SuccessCriteria | str,
    counts: VoteCounts,
    required_voters_count: int,
    quorum: int | None = None,
) -> DecisionResult:
    """Apply the success rule named by ``success_criteria``.

    Args:
        success_criteria: One of simple_majority, super_majority, unanimous.
        counts: Current tally.
        required_voters_count: Roster size.
        quorum: Optional quorum override (unanimity only).

    Returns:
        DecisionResult. Unknown criteria yield ``error=True``.
    """
    try:
        criteria = SuccessCriteria(success_criteria)
    except ValueError:
        logger.warning("Invalid success criteria: %r", success_criteria)
        return DecisionResult(
            passed=False,
            reason=f"Invalid success criteria: {success_criteria}",
            vote_counts=counts,
            percentage=0.0,
            error=True,
        )

    match criteria:
        case SuccessCriteria.SIMPLE_MAJORITY:
            return simple_majority(counts)
        case SuccessCriteria.SUPER_MAJORITY:
            return super_majority(counts, required_voters_count)
        case SuccessCriteria.UNANIMOUS:
            return unanimity(counts, required_voters_count, quorum)
        case _:
            assert_never(criteria)


def calculate_outcome(
    votes: Iterable[Vote],
    success_criteria: SuccessCriteria | str,
    required_voters_count: int,
    quorum: int | None = None,
) -> DecisionResult:
    """Tally ``votes`` and evaluate them in one step."""
    return evaluate(success_criteria, tally_votes(votes), required_voters_count, quorum)
