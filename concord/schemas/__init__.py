"""Concord schema definitions.

All Pydantic v2 models used across the consensus engine, persistence,
and service layers.
"""

from concord.schemas.config import DecisionQuery, EngineConfig
from concord.schemas.consensus import DeadlockResult, DecisionResult, VoteCounts
from concord.schemas.decision import (
    Decision,
    DecisionStatus,
    SuccessCriteria,
    Vote,
    Voter,
    VoteType,
    record_id,
)
from concord.schemas.lifecycle import (
    DecisionSnapshot,
    PendingVoters,
    SweepSummary,
    TransitionKind,
    TransitionResult,
    VoteOutcome,
    VoteRejection,
)

__all__ = [
    "DeadlockResult",
    "Decision",
    "DecisionQuery",
    "DecisionResult",
    "DecisionSnapshot",
    "DecisionStatus",
    "EngineConfig",
    "PendingVoters",
    "SuccessCriteria",
    "SweepSummary",
    "TransitionKind",
    "TransitionResult",
    "Vote",
    "VoteCounts",
    "VoteOutcome",
    "VoteRejection",
    "VoteType",
    "Voter",
    "record_id",
]
