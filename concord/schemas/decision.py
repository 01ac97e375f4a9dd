"""Decision, roster, and vote schemas.

Defines the persisted records of the consensus engine: the Decision
itself, the Voter roster entries that say who must vote, and the Vote
records cast against a decision. Status, success criteria, and vote
types are closed string enums.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field, computed_field


def _utcnow() -> datetime:
    return datetime.now(UTC)


def record_id(decision_id: str, user_id: str) -> str:
    """Storage key for a per-voter record of a decision."""
    return f"{decision_id}_{user_id}"


class SuccessCriteria(StrEnum):
    """Rule used to decide whether a proposal passes."""

    SIMPLE_MAJORITY = "simple_majority"
    SUPER_MAJORITY = "super_majority"
    UNANIMOUS = "unanimous"


class DecisionStatus(StrEnum):
    """Lifecycle status of a decision.

    ACTIVE is the only non-terminal state. Every other status is
    reached exactly once and never left.
    """

    ACTIVE = "active"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    DELETED = "deleted"

    @property
    def is_terminal(self) -> bool:
        return self is not DecisionStatus.ACTIVE


class VoteType(StrEnum):
    """A voter's choice on a proposal."""

    YES = "yes"
    NO = "no"
    ABSTAIN = "abstain"


class Decision(BaseModel):
    """A proposal put to a roster of voters.

    The ID is opaque and assigned at creation (typically the timestamp
    of the message that announced the decision).
    """

    id: str = Field(min_length=1, description="Opaque unique decision identifier")
    name: str = Field(min_length=1, description="Short decision title")
    proposal: str = Field(description="Full proposal text")
    success_criteria: SuccessCriteria = Field(
        default=SuccessCriteria.SIMPLE_MAJORITY,
        description="Success rule applied at finalization",
    )
    deadline: str = Field(
        description="ISO 8601 deadline (date or datetime)",
    )
    status: DecisionStatus = Field(
        default=DecisionStatus.ACTIVE, description="Lifecycle status",
    )
    creator_id: str = Field(description="User ID of the decision creator")
    channel_id: str = Field(default="", description="Channel the decision was posted to")
    message_ts: str = Field(default="", description="Timestamp of the voting message")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class Voter(BaseModel):
    """A roster entry: a user required to vote on a decision."""

    decision_id: str = Field(description="Decision this voter belongs to")
    user_id: str = Field(description="User ID of the voter")
    required: bool = Field(default=True, description="Whether this vote is required")
    created_at: datetime = Field(default_factory=_utcnow)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def id(self) -> str:
        return record_id(self.decision_id, self.user_id)


class Vote(BaseModel):
    """A cast vote. At most one live vote exists per (decision, user).

    ``vote_type`` is kept as a plain string so records with unknown
    types survive a round trip through the store. They count toward
    the tally total but toward no named bucket.
    """

    decision_id: str = Field(description="Decision the vote was cast on")
    user_id: str = Field(description="User ID of the voter")
    vote_type: str = Field(description="One of yes, no, abstain")
    voted_at: datetime = Field(default_factory=_utcnow)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def id(self) -> str:
        return record_id(self.decision_id, self.user_id)
