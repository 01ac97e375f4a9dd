"""Decision record (ADR) rendering.

Renders a finalized decision into an Architecture Decision Record in
Markdown. Rendering is deterministic: every value comes from the
decision, the tally, and the verdict, never from the clock, and the
record number is derived from the decision ID rather than a counter.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence

from concord.dates import format_date
from concord.schemas.consensus import DecisionResult, VoteCounts
from concord.schemas.decision import Decision, SuccessCriteria, Vote, VoteType

logger = logging.getLogger(__name__)

_CRITERIA_LABELS: dict[SuccessCriteria, str] = {
    SuccessCriteria.SIMPLE_MAJORITY: "Simple Majority (>50%)",
    SuccessCriteria.SUPER_MAJORITY: "Supermajority (≥66%)",
    SuccessCriteria.UNANIMOUS: "Unanimity (100%)",
}

_VOTE_LABELS: dict[str, str] = {
    VoteType.YES: "Yes",
    VoteType.NO: "No",
    VoteType.ABSTAIN: "Abstain",
}

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9-]")
_SLUG_DASHES_RE = re.compile(r"-+")
_FILENAME_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._-]")


def adr_number(decision_id: str) -> str:
    """Record number for a decision: its ID left-padded with zeros to 4 chars."""
    return decision_id.rjust(4, "0")


def slugify(name: str) -> str:
    """Lowercase, hyphen-separated, ASCII-alphanumeric form of ``name``."""
    slug = re.sub(r"\s+", "-", name.lower())
    slug = _SLUG_STRIP_RE.sub("", slug)
    slug = _SLUG_DASHES_RE.sub("-", slug)
    return slug.strip("-")


def adr_filename(decision: Decision) -> str:
    """File name for a decision's record, e.g. ``ADR-0042-adopt-python.md``."""
    slug = slugify(decision.name)
    # IDs are arbitrary strings; keep path separators out of the name
    number = _FILENAME_UNSAFE_RE.sub("-", adr_number(decision.id))
    return f"ADR-{number}-{slug}.md" if slug else f"ADR-{number}.md"


def _share(count: int, total: int) -> str:
    return f"{count / total * 100:.1f}" if total > 0 else "0.0"


def render_record(
    decision: Decision,
    counts: VoteCounts,
    result: DecisionResult,
    voter_names: Mapping[str, str] | None = None,
    *,
    votes: Sequence[Vote] = (),
    required_voters: int | None = None,
) -> str:
    """Render a finalized decision as an ADR Markdown document.

    Sections, in order: Status, Context, Decision, Consequences,
    Alternatives Considered, Implementation Notes, References.

    Args:
        decision: The finalized decision.
        counts: Final vote tally.
        result: Verdict computed from ``counts``.
        voter_names: Display names keyed by user ID. Users without a
            name are shown by ID.
        votes: Final votes, used for the participant list.
        required_voters: Roster size. Falls back to the verdict's
            ``required_voters_count``.

    Returns:
        The record as a Markdown string.
    """
    names = voter_names or {}
    passed = result.passed
    number = adr_number(decision.id)
    required = required_voters if required_voters is not None else result.required_voters_count
    required_text = str(required) if required is not None else "N/A"
    created = format_date(decision.created_at)
    finalized = format_date(decision.updated_at)
    total = counts.total

    lines: list[str] = []
    lines.append(f"# ADR-{number}: {decision.name}")
    lines.append("")

    lines.append("## Status")
    lines.append("")
    lines.append("Accepted" if passed else "Rejected")
    lines.append("")

    lines.append("## Context")
    lines.append("")
    lines.append(decision.proposal)
    lines.append("")
    lines.append("### Decision Framework")
    lines.append("")
    lines.append("This decision was made by consensus vote with the following parameters:")
    lines.append(
        f"- **Success Criteria**: "
        f"{_CRITERIA_LABELS.get(decision.success_criteria, decision.success_criteria)}"
    )
    lines.append(f"- **Required Voters**: {required_text}")
    lines.append(f"- **Deadline**: {decision.deadline}")
    lines.append(f"- **Created**: {created}")
    lines.append(f"- **Creator**: {names.get(decision.creator_id, decision.creator_id)}")
    lines.append("")

    lines.append("## Decision")
    lines.append("")
    lines.append(f"**Outcome**: {'✅ Approved' if passed else '❌ Rejected'}")
    lines.append("")
    lines.append(
        f"The team has {'approved' if passed else 'rejected'} this decision "
        "through a consensus voting process."
    )
    lines.append("")
    if result.reason:
        lines.append(f"**Outcome Reason**: {result.reason}")
        lines.append("")
    lines.append("### Voting Results")
    lines.append("")
    lines.append(f"- **Yes**: {counts.yes} ({_share(counts.yes, total)}%)")
    lines.append(f"- **No**: {counts.no} ({_share(counts.no, total)}%)")
    lines.append(f"- **Abstain**: {counts.abstain} ({_share(counts.abstain, total)}%)")
    lines.append(f"- **Total Votes**: {total}")
    lines.append("")

    if votes:
        lines.append("### Participants")
        lines.append("")
        for vote in sorted(votes, key=lambda v: names.get(v.user_id, v.user_id)):
            label = _VOTE_LABELS.get(vote.vote_type, vote.vote_type)
            lines.append(f"- {names.get(vote.user_id, vote.user_id)}: {label}")
        lines.append("")

    lines.append("## Consequences")
    lines.append("")
    lines.append("### Positive")
    lines.append("")
    if passed:
        lines.append("- The proposed approach has been validated by the team through consensus")
        lines.append("- Clear direction for implementation")
    else:
        lines.append("- Alternative approaches can be explored")
        lines.append("- Concerns raised during voting can inform next steps")
    lines.append("")
    lines.append("### Negative")
    lines.append("")
    if passed:
        lines.append("- Implementation commitments and resource allocation required")
        lines.append("- May require changes to existing systems or processes")
    else:
        lines.append("- The proposed solution was not accepted")
        lines.append("- Additional time needed to find alternative solutions")
    lines.append("")
    lines.append("### Neutral")
    lines.append("")
    lines.append("- This decision was made using structured consensus voting")
    lines.append("- All team members had the opportunity to participate")
    lines.append("- The decision can be revisited if circumstances change significantly")
    lines.append("")

    lines.append("## Alternatives Considered")
    lines.append("")
    if counts.no > 0:
        plural = counts.no > 1
        lines.append(
            f'The {counts.no} "No" vote{"s" if plural else ""} '
            f'indicate{"" if plural else "s"} alternative approaches or '
            "concerns were considered by the team."
        )
    else:
        lines.append("No significant alternatives were proposed during the voting period.")
    lines.append("")

    lines.append("## Implementation Notes")
    lines.append("")
    if passed:
        lines.append(
            "Implementation should proceed according to the proposal "
            "outlined in the Context section."
        )
    else:
        lines.append(
            "This decision was not approved. Review the voting feedback and "
            "concerns before proposing alternatives."
        )
    lines.append("")

    lines.append("## References")
    lines.append("")
    lines.append(f"- **Decision ID**: {decision.id}")
    lines.append(f"- **Channel**: {decision.channel_id or 'N/A'}")
    lines.append(f"- **Message**: {decision.message_ts or 'N/A'}")
    lines.append("")
    lines.append("---")
    lines.append("")
    lines.append(f"**Date**: {finalized}")
    lines.append("")
    lines.append("**Author(s)**: Team consensus")
    lines.append("")
    lines.append(f"**Reviewers**: All required voters ({required_text})")
    lines.append("")

    logger.debug("Rendered ADR-%s for decision %s", number, decision.id)
    return "\n".join(lines)
