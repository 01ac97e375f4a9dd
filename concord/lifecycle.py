"""Finalization state machine.

Owns the lifecycle status of a decision and is the only component that
changes it::

    active ──finalize──▶ approved | rejected
    active ──cancel────▶ cancelled
    active ──delete────▶ deleted   (creator only)

Every destination is terminal. Concurrent callers are reconciled by
check-then-act on the status field: the decision is re-read right
before the write, and the write itself only applies while the stored
status is still ``active``. A caller that loses the race gets a no-op
result, never an error.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime

from concord.consensus.evaluator import calculate_outcome
from concord.consensus.voting import tally_votes
from concord.dates import is_deadline_passed
from concord.output.record import render_record
from concord.output.writer import write_record
from concord.persistence.store import DecisionStore
from concord.schemas.decision import Decision, DecisionStatus, Vote
from concord.schemas.lifecycle import TransitionKind, TransitionResult

logger = logging.getLogger(__name__)

INACTIVE_MESSAGE = "This decision is no longer active."
ALREADY_FINALIZED_MESSAGE = "Decision already finalized"
NOT_FOUND_MESSAGE = "Decision not found"
NOT_CREATOR_MESSAGE = "Only the decision creator can delete this decision."


def finalization_reason(
    status: DecisionStatus | str,
    deadline: str,
    votes_cast: int,
    required_voters_count: int,
    now: datetime | None = None,
) -> str | None:
    """Why a decision should finalize now, or None if it should not.

    Returns:
        ``"all votes submitted"``, ``"deadline reached"``, or None.
    """
    if status != DecisionStatus.ACTIVE:
        return None
    if votes_cast >= required_voters_count:
        return "all votes submitted"
    if is_deadline_passed(deadline, now):
        return "deadline reached"
    return None


def should_finalize(
    status: DecisionStatus | str,
    deadline: str,
    votes_cast: int,
    required_voters_count: int,
    now: datetime | None = None,
) -> bool:
    """Whether an active decision has every vote in or is past its deadline."""
    return finalization_reason(
        status, deadline, votes_cast, required_voters_count, now,
    ) is not None


class FinalizationStateMachine:
    """Guarded status transitions for decisions in a DecisionStore.

    Args:
        store: Where decisions, rosters, and votes live.
        record_dir: When set, finalized records are also written here.
    """

    def __init__(
        self,
        store: DecisionStore,
        record_dir: str | None = None,
    ) -> None:
        self._store = store
        self._record_dir = record_dir

    async def finalize(
        self,
        decision_id: str,
        *,
        votes: Sequence[Vote] | None = None,
        voter_names: Mapping[str, str] | None = None,
        now: datetime | None = None,
    ) -> TransitionResult:
        """Finalize a decision if it is ready.

        Computes the verdict, moves the decision to approved or
        rejected, then renders the decision record. Record failures are
        logged and reported on the result; they never undo the status.

        Args:
            decision_id: Decision to finalize.
            votes: Vote list to judge. Callers that just wrote a vote pass
                the merged list here. Defaults to a fresh store query.
            voter_names: Display names for the record.
            now: Clock override for the deadline check.
        """
        decision = await self._store.get_decision(decision_id)
        if decision is None:
            return _not_found(decision_id)
        if decision.status.is_terminal:
            logger.info(
                "Decision %s already finalized (%s)", decision_id, decision.status,
            )
            return TransitionResult(
                kind=TransitionKind.ALREADY_FINALIZED,
                decision_id=decision_id,
                message=ALREADY_FINALIZED_MESSAGE,
                status=decision.status,
            )

        voters = await self._store.list_voters(decision_id)
        cast = list(votes) if votes is not None else await self._store.query_votes(decision_id)
        reason = finalization_reason(
            decision.status, decision.deadline, len(cast), len(voters), now,
        )
        if reason is None:
            logger.debug(
                "Decision %s not ready: %d/%d votes",
                decision_id, len(cast), len(voters),
            )
            return TransitionResult(
                kind=TransitionKind.NOT_READY,
                decision_id=decision_id,
                message="Decision not ready for finalization",
                status=decision.status,
            )

        result = calculate_outcome(cast, decision.success_criteria, len(voters))
        new_status = DecisionStatus.APPROVED if result.passed else DecisionStatus.REJECTED
        logger.info(
            "Decision %s outcome: %s (%s)", decision_id, new_status, result.reason,
        )

        committed = await self._commit(decision_id, new_status, now)
        if committed is not None:
            return TransitionResult(
                kind=TransitionKind.ALREADY_FINALIZED,
                decision_id=decision_id,
                message=ALREADY_FINALIZED_MESSAGE,
                status=committed,
            )

        outcome = TransitionResult(
            kind=TransitionKind.TRANSITIONED,
            decision_id=decision_id,
            message=f"Decision {new_status.value}",
            status=new_status,
            result=result,
            finalization_reason=reason,
        )

        try:
            finalized = await self._store.get_decision(decision_id) or decision.model_copy(
                update={"status": new_status},
            )
            outcome.record = render_record(
                finalized,
                tally_votes(cast),
                result,
                voter_names,
                votes=cast,
                required_voters=len(voters),
            )
            if self._record_dir:
                outcome.record_path = str(
                    write_record(finalized, outcome.record, self._record_dir)
                )
        except Exception as exc:
            logger.exception("Failed to generate record for decision %s", decision_id)
            outcome.record_error = str(exc)

        return outcome

    async def cancel(
        self,
        decision_id: str,
        actor_id: str,
        now: datetime | None = None,
    ) -> TransitionResult:
        """Cancel an active decision. Any participant may cancel."""
        decision = await self._store.get_decision(decision_id)
        if decision is None:
            return _not_found(decision_id)
        if decision.status.is_terminal:
            return _inactive(decision)

        committed = await self._commit(decision_id, DecisionStatus.CANCELLED, now)
        if committed is not None:
            return _inactive(decision.model_copy(update={"status": committed}))

        logger.info("Decision %s cancelled by %s", decision_id, actor_id)
        return TransitionResult(
            kind=TransitionKind.TRANSITIONED,
            decision_id=decision_id,
            message=f'🚫 Decision "{decision.name}" has been cancelled.',
            status=DecisionStatus.CANCELLED,
        )

    async def delete(
        self,
        decision_id: str,
        requester_id: str,
        now: datetime | None = None,
    ) -> TransitionResult:
        """Delete an active decision. Only its creator may delete it."""
        decision = await self._store.get_decision(decision_id)
        if decision is None:
            return _not_found(decision_id)
        if decision.creator_id != requester_id:
            logger.warning(
                "User %s may not delete decision %s (creator %s)",
                requester_id, decision_id, decision.creator_id,
            )
            return TransitionResult(
                kind=TransitionKind.UNAUTHORIZED,
                decision_id=decision_id,
                message=NOT_CREATOR_MESSAGE,
                status=decision.status,
            )
        if decision.status.is_terminal:
            return _inactive(decision)

        committed = await self._commit(decision_id, DecisionStatus.DELETED, now)
        if committed is not None:
            return _inactive(decision.model_copy(update={"status": committed}))

        logger.info("Decision %s deleted by %s", decision_id, requester_id)
        return TransitionResult(
            kind=TransitionKind.TRANSITIONED,
            decision_id=decision_id,
            message=f'🗑️ Decision "{decision.name}" has been deleted.',
            status=DecisionStatus.DELETED,
        )

    async def _commit(
        self,
        decision_id: str,
        new_status: DecisionStatus,
        now: datetime | None,
    ) -> DecisionStatus | None:
        """Re-check the status and write ``new_status``.

        Returns:
            None when this call made the transition, otherwise the
            status some other caller left the decision in.
        """
        current = await self._store.get_decision(decision_id)
        if current is None:
            return DecisionStatus.DELETED
        if current.status.is_terminal:
            return current.status

        stamp = now or datetime.now(UTC)
        if await self._store.transition_status(decision_id, new_status, stamp):
            return None

        latest = await self._store.get_decision(decision_id)
        return latest.status if latest else DecisionStatus.DELETED


def _not_found(decision_id: str) -> TransitionResult:
    return TransitionResult(
        kind=TransitionKind.NOT_FOUND,
        decision_id=decision_id,
        message=NOT_FOUND_MESSAGE,
    )


def _inactive(decision: Decision) -> TransitionResult:
    return TransitionResult(
        kind=TransitionKind.NOT_ACTIVE,
        decision_id=decision.id,
        message=INACTIVE_MESSAGE,
        status=decision.status,
    )
