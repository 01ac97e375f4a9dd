"""Lifecycle result schemas.

Every public entry point of the finalization state machine and the
consensus service returns one of these discriminated results instead
of raising, so callers can show a specific message for each outcome.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field

from concord.schemas.consensus import DeadlockResult, DecisionResult, VoteCounts
from concord.schemas.decision import Decision, DecisionStatus


class TransitionKind(StrEnum):
    """What happened when a status transition was requested."""

    TRANSITIONED = "transitioned"
    ALREADY_FINALIZED = "already_finalized"
    NOT_ACTIVE = "not_active"
    NOT_READY = "not_ready"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"


class TransitionResult(BaseModel):
    """Outcome of finalize, cancel, or delete.

    Only ``TRANSITIONED`` means the status was written. All other kinds
    are no-ops and carry a user-facing message.
    """

    kind: TransitionKind = Field(description="Discriminator for the outcome")
    decision_id: str = Field(description="Decision the transition targeted")
    message: str = Field(default="", description="User-facing explanation")
    status: DecisionStatus | None = Field(
        default=None, description="Status of the decision after the call",
    )
    result: DecisionResult | None = Field(
        default=None, description="Computed verdict (finalize only)",
    )
    finalization_reason: str = Field(
        default="", description="'all votes submitted' or 'deadline reached'",
    )
    record: str | None = Field(
        default=None, description="Rendered decision record, when generated",
    )
    record_path: str | None = Field(
        default=None, description="Where the record was written, if anywhere",
    )
    record_error: str | None = Field(
        default=None, description="Record generation failure, if any",
    )

    @property
    def transitioned(self) -> bool:
        return self.kind is TransitionKind.TRANSITIONED


class VoteRejection(StrEnum):
    """Why a vote was not recorded."""

    DECISION_NOT_FOUND = "decision_not_found"
    DECISION_INACTIVE = "decision_inactive"
    NOT_ELIGIBLE = "not_eligible"
    INVALID_VOTE_TYPE = "invalid_vote_type"


class VoteOutcome(BaseModel):
    """Outcome of recording a vote."""

    accepted: bool = Field(description="Whether the vote was stored")
    decision_id: str = Field(description="Decision voted on")
    user_id: str = Field(description="Voter")
    message: str = Field(description="User-facing confirmation or rejection")
    rejection: VoteRejection | None = Field(
        default=None, description="Set when the vote was not stored",
    )
    vote_counts: VoteCounts | None = Field(
        default=None, description="Tally after merging this vote",
    )
    deadlock: DeadlockResult | None = Field(
        default=None, description="Advisory deadlock check after this vote",
    )
    finalization: TransitionResult | None = Field(
        default=None, description="Set when this vote triggered finalization",
    )


class DecisionSnapshot(BaseModel):
    """Read-only view of a decision's progress."""

    decision: Decision
    required_voters_count: int = 0
    vote_counts: VoteCounts
    deadlock: DeadlockResult
    missing_user_ids: list[str] = Field(default_factory=list)
    deadline_passed: bool = False


class PendingVoters(BaseModel):
    """An active decision and the roster members who have not voted."""

    decision_id: str
    name: str
    deadline: str
    channel_id: str = ""
    required_voters_count: int = 0
    votes_cast: int = 0
    missing_user_ids: list[str] = Field(default_factory=list)


class SweepSummary(BaseModel):
    """Summary of a batch finalization pass over active decisions."""

    total: int = Field(default=0, description="Active decisions examined")
    finalized: int = Field(default=0, description="Decisions transitioned")
    skipped: int = Field(default=0, description="Decisions not ready or lost a race")
    results: list[TransitionResult] = Field(default_factory=list)
