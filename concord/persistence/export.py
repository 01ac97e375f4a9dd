"""Decision export formatters.

Provides a JSON export of a decision together with its roster and votes,
in the persisted record shape.
"""

from __future__ import annotations

import json

from concord.schemas.decision import Decision, Vote, Voter


def export_json(
    decision: Decision,
    voters: list[Voter],
    votes: list[Vote],
) -> str:
    """Export a decision, its roster, and its votes as formatted JSON.

    Returns:
        Pretty-printed JSON string with ``decision``, ``voters``, and
        ``votes`` keys.
    """
    payload = {
        "decision": decision.model_dump(mode="json"),
        "voters": [v.model_dump(mode="json") for v in voters],
        "votes": [v.model_dump(mode="json") for v in votes],
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)
