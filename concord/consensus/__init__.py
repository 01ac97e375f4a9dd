"""Consensus engine for Concord.

Provides vote tallying, read-after-write vote merging, success-rule
evaluation, and advisory deadlock detection.
"""

from concord.consensus.deadlock import check_deadlock
from concord.consensus.evaluator import (
    calculate_outcome,
    evaluate,
    simple_majority,
    super_majority,
    unanimity,
)
from concord.consensus.voting import merge_vote, tally_votes

__all__ = [
    "calculate_outcome",
    "check_deadlock",
    "evaluate",
    "merge_vote",
    "simple_majority",
    "super_majority",
    "tally_votes",
    "unanimity",
]
