"""Consensus result schemas.

Defines vote counting (VoteCounts), the outcome of applying a success
rule (DecisionResult), and the advisory deadlock check (DeadlockResult).
All three are derived data: recomputed on demand, never persisted.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class VoteCounts(BaseModel):
    """Result of counting votes by type.

    ``total`` is the number of votes cast, including votes with an
    unrecognised type, so ``yes + no + abstain <= total``.
    """

    yes: int = Field(default=0, ge=0, description="Number of yes votes")
    no: int = Field(default=0, ge=0, description="Number of no votes")
    abstain: int = Field(default=0, ge=0, description="Number of abstentions")
    total: int = Field(default=0, ge=0, description="Number of votes cast")


class DecisionResult(BaseModel):
    """Verdict of a success rule applied to a vote tally."""

    passed: bool = Field(description="Whether the proposal passes")
    reason: str = Field(description="Human-readable explanation of the verdict")
    vote_counts: VoteCounts = Field(description="Tally the verdict was computed from")
    percentage: float = Field(
        default=0.0, description="Yes share in percent (denominator depends on the rule)",
    )
    required_voters_count: int | None = Field(
        default=None, description="Roster size, reported by the supermajority rule",
    )
    missing_votes: int | None = Field(
        default=None, description="Required voters who have not voted yet",
    )
    quorum: int | None = Field(
        default=None, description="Effective quorum, reported by the unanimity rule",
    )
    quorum_met: bool | None = Field(
        default=None, description="Whether the quorum was reached",
    )
    error: bool = Field(
        default=False, description="True when the input itself was invalid",
    )


class DeadlockResult(BaseModel):
    """Whether the success rule can still be reached.

    Advisory only: a deadlocked decision is not finalized early.
    """

    is_deadlocked: bool = Field(description="True when the outcome can no longer pass")
    reason: str = Field(default="", description="Why the decision is deadlocked")
    vote_counts: VoteCounts = Field(description="Tally the check was computed from")
    remaining_votes: int = Field(
        description="Required voters minus votes cast (negative when votes outnumber the roster)",
    )
