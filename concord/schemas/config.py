"""Engine configuration and query schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field

from concord.schemas.decision import DecisionStatus, SuccessCriteria


class EngineConfig(BaseModel):
    """Top-level configuration for the consensus engine.

    Loaded from defaults.toml and overridden by environment variables
    and CLI flags.
    """

    db_path: str = Field(
        default="~/.concord/decisions.db",
        description="Path to the decision database file",
    )
    default_success_criteria: SuccessCriteria = Field(
        default=SuccessCriteria.SIMPLE_MAJORITY,
        description="Success rule used when a decision does not specify one",
    )
    deadline_business_days: int = Field(
        default=5, ge=1, le=60,
        description="Business days until the default deadline",
    )
    write_records: bool = Field(
        default=False,
        description="Whether finalized decision records are written to disk",
    )
    record_dir: str = Field(
        default="docs/adr",
        description="Directory that finalized decision records are written to",
    )


class DecisionQuery(BaseModel):
    """Filter parameters for listing decisions."""

    status: DecisionStatus | None = Field(default=None, description="Only this status")
    creator_id: str | None = Field(default=None, description="Only this creator")
    channel_id: str | None = Field(default=None, description="Only this channel")
    limit: int = Field(default=20, ge=1, le=500)
    offset: int = Field(default=0, ge=0)
