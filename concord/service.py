"""Consensus service: request handlers for the decision lifecycle.

Each method is one short-lived invocation against the shared store:
create a decision, record a vote (and finalize if that completes the
roster or the deadline has passed), cancel, delete, sweep active
decisions for finalization, and list voters who still owe a vote.
No state is kept between calls.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime

from pydantic import ValidationError

from concord.consensus.deadlock import check_deadlock
from concord.consensus.voting import merge_vote, tally_votes
from concord.dates import default_deadline, is_deadline_passed, parse_deadline
from concord.lifecycle import (
    INACTIVE_MESSAGE,
    NOT_FOUND_MESSAGE,
    FinalizationStateMachine,
    should_finalize,
)
from concord.persistence.store import DecisionStore
from concord.schemas.config import DecisionQuery, EngineConfig
from concord.schemas.decision import (
    Decision,
    DecisionStatus,
    SuccessCriteria,
    Vote,
    VoteType,
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

logger = logging.getLogger(__name__)

NOT_ELIGIBLE_MESSAGE = "You are not listed as a required voter for this decision."

_VOTE_EMOJI: dict[VoteType, str] = {
    VoteType.YES: "✅",
    VoteType.NO: "❌",
    VoteType.ABSTAIN: "⚪",
}


def _new_decision_id(now: datetime) -> str:
    # Same shape as a chat message timestamp: seconds.microseconds
    return f"{now.timestamp():.6f}"


class ConsensusService:
    """Decision lifecycle operations over a DecisionStore.

    Args:
        store: Persistence for decisions, rosters, and votes.
        config: Engine defaults (success rule, deadline, record output).
    """

    def __init__(self, store: DecisionStore, config: EngineConfig | None = None) -> None:
        self._store = store
        self._config = config or EngineConfig()
        self._machine = FinalizationStateMachine(
            store,
            record_dir=self._config.record_dir if self._config.write_records else None,
        )

    @property
    def machine(self) -> FinalizationStateMachine:
        return self._machine

    async def create_decision(
        self,
        name: str,
        proposal: str,
        creator_id: str,
        voter_ids: Iterable[str],
        *,
        success_criteria: SuccessCriteria | str | None = None,
        deadline: str | None = None,
        decision_id: str | None = None,
        channel_id: str = "",
        message_ts: str = "",
        now: datetime | None = None,
    ) -> Decision:
        """Create an active decision and its voter roster.

        Raises:
            ValueError: If the roster is empty, the deadline is not an
                ISO date, or any field fails validation.
        """
        roster = [uid.strip() for uid in voter_ids if uid and uid.strip()]
        roster = list(dict.fromkeys(roster))
        if not roster:
            raise ValueError("A decision needs at least one voter")

        created = now or datetime.now(UTC)
        if deadline is None:
            deadline = default_deadline(
                self._config.deadline_business_days, created.date(),
            )
        else:
            try:
                parse_deadline(deadline)
            except ValueError:
                raise ValueError(f"Invalid deadline '{deadline}'") from None

        new_id = decision_id or message_ts or _new_decision_id(created)
        try:
            decision = Decision(
                id=new_id,
                name=name,
                proposal=proposal,
                success_criteria=success_criteria or self._config.default_success_criteria,
                deadline=deadline,
                creator_id=creator_id,
                channel_id=channel_id,
                message_ts=message_ts or new_id,
                created_at=created,
                updated_at=created,
            )
        except ValidationError as exc:
            raise ValueError(
                "; ".join(
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                    for err in exc.errors()
                )
            ) from None

        await self._store.save_decision(decision)
        await self._store.add_voters(decision.id, roster)
        logger.info(
            "Created decision %s (%s, %d voters, deadline %s)",
            decision.id, decision.success_criteria, len(roster), decision.deadline,
        )
        return decision

    async def record_vote(
        self,
        decision_id: str,
        user_id: str,
        vote_type: VoteType | str,
        *,
        voter_names: Mapping[str, str] | None = None,
        now: datetime | None = None,
    ) -> VoteOutcome:
        """Record a vote and finalize the decision if it is now complete.

        The vote query that follows the write may lag behind it, so the
        written vote is merged into the query result before counting.
        """
        try:
            choice = VoteType(vote_type)
        except ValueError:
            return VoteOutcome(
                accepted=False,
                decision_id=decision_id,
                user_id=user_id,
                message=f"Invalid vote '{vote_type}'. Choose yes, no, or abstain.",
                rejection=VoteRejection.INVALID_VOTE_TYPE,
            )

        decision = await self._store.get_decision(decision_id)
        if decision is None:
            return VoteOutcome(
                accepted=False,
                decision_id=decision_id,
                user_id=user_id,
                message=NOT_FOUND_MESSAGE,
                rejection=VoteRejection.DECISION_NOT_FOUND,
            )
        if decision.status.is_terminal:
            return VoteOutcome(
                accepted=False,
                decision_id=decision_id,
                user_id=user_id,
                message=INACTIVE_MESSAGE,
                rejection=VoteRejection.DECISION_INACTIVE,
            )
        if await self._store.get_voter(decision_id, user_id) is None:
            logger.info("User %s is not on the roster of %s", user_id, decision_id)
            return VoteOutcome(
                accepted=False,
                decision_id=decision_id,
                user_id=user_id,
                message=NOT_ELIGIBLE_MESSAGE,
                rejection=VoteRejection.NOT_ELIGIBLE,
            )

        vote = Vote(
            decision_id=decision_id,
            user_id=user_id,
            vote_type=choice.value,
            voted_at=now or datetime.now(UTC),
        )
        await self._store.put_vote(vote)

        votes = merge_vote(vote, await self._store.query_votes(decision_id))
        voters = await self._store.list_voters(decision_id)
        outcome = VoteOutcome(
            accepted=True,
            decision_id=decision_id,
            user_id=user_id,
            message=(
                f"{_VOTE_EMOJI[choice]} Your vote ({choice.value.upper()}) "
                f'has been recorded for "{decision.name}"'
            ),
            vote_counts=tally_votes(votes),
            deadlock=check_deadlock(votes, decision.success_criteria, len(voters)),
        )

        if should_finalize(decision.status, decision.deadline, len(votes), len(voters), now):
            outcome.finalization = await self._machine.finalize(
                decision_id, votes=votes, voter_names=voter_names, now=now,
            )
        return outcome

    async def cancel_decision(
        self, decision_id: str, actor_id: str, now: datetime | None = None,
    ) -> TransitionResult:
        return await self._machine.cancel(decision_id, actor_id, now)

    async def delete_decision(
        self, decision_id: str, requester_id: str, now: datetime | None = None,
    ) -> TransitionResult:
        return await self._machine.delete(decision_id, requester_id, now)

    async def finalize_decision(
        self,
        decision_id: str,
        *,
        voter_names: Mapping[str, str] | None = None,
        now: datetime | None = None,
    ) -> TransitionResult:
        return await self._machine.finalize(decision_id, voter_names=voter_names, now=now)

    async def finalize_ready(self, now: datetime | None = None) -> SweepSummary:
        """Finalize every active decision that is complete or past its deadline."""
        summary = SweepSummary()
        for decision in await self._active_decisions():
            summary.total += 1
            result = await self._machine.finalize(decision.id, now=now)
            summary.results.append(result)
            if result.kind is TransitionKind.TRANSITIONED:
                summary.finalized += 1
            else:
                summary.skipped += 1
        logger.info(
            "Finalization sweep: %d examined, %d finalized, %d skipped",
            summary.total, summary.finalized, summary.skipped,
        )
        return summary

    async def pending_voters(self, now: datetime | None = None) -> list[PendingVoters]:
        """Active decisions still open for voting, with who has not voted.

        Decisions past their deadline are left out; they finalize on the
        next vote or sweep instead of prompting reminders.
        """
        pending: list[PendingVoters] = []
        for decision in await self._active_decisions():
            if is_deadline_passed(decision.deadline, now):
                logger.debug(
                    "Skipping decision %s, deadline has passed", decision.id,
                )
                continue
            voters = await self._store.list_voters(decision.id)
            votes = await self._store.query_votes(decision.id)
            voted = {v.user_id for v in votes}
            missing = [v.user_id for v in voters if v.user_id not in voted]
            if missing:
                pending.append(PendingVoters(
                    decision_id=decision.id,
                    name=decision.name,
                    deadline=decision.deadline,
                    channel_id=decision.channel_id,
                    required_voters_count=len(voters),
                    votes_cast=len(votes),
                    missing_user_ids=missing,
                ))
        return pending

    async def snapshot(
        self, decision_id: str, now: datetime | None = None,
    ) -> DecisionSnapshot | None:
        """Current tally, deadlock advice, and missing voters for a decision."""
        decision = await self._store.get_decision(decision_id)
        if decision is None:
            return None
        voters = await self._store.list_voters(decision_id)
        votes = await self._store.query_votes(decision_id)
        voted = {v.user_id for v in votes}
        return DecisionSnapshot(
            decision=decision,
            required_voters_count=len(voters),
            vote_counts=tally_votes(votes),
            deadlock=check_deadlock(votes, decision.success_criteria, len(voters)),
            missing_user_ids=[v.user_id for v in voters if v.user_id not in voted],
            deadline_passed=is_deadline_passed(decision.deadline, now),
        )

    async def _active_decisions(self) -> list[Decision]:
        decisions: list[Decision] = []
        offset = 0
        while True:
            page = await self._store.list_decisions(
                DecisionQuery(status=DecisionStatus.ACTIVE, limit=500, offset=offset),
            )
            decisions.extend(page)
            if len(page) < 500:
                return decisions
            offset += 500
