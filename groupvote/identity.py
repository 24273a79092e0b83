"""Activity identity: derive one id per activity and match vote references to it.

Votes point at activities through an opaque ``activityId`` string whose
scheme has drifted over time (bare provider ids, ``<sessionId>_<index>``
composites, deeper underscore-joined ids). Matching is a best-effort
heuristic, not a strict join: under the last-segment rule two activities
whose ids share a numeric suffix can both claim a vote, and the first one
in resolution order wins. Use ``strict=True`` when votes are known to carry
``<sessionId>_<activityId>`` references.
"""

from __future__ import annotations

from .fields import ACTIVITY_ID_FIELDS, first_of


def resolve_activity_id(activity, index: int) -> str:
    """Canonical id for tallying: first non-empty provider id, else by position."""
    value = first_of(activity, ACTIVITY_ID_FIELDS, skip_empty=True)
    if value is None:
        return f"activity_{index}"
    return str(value)


def ids_match(
    candidate,
    vote_activity_id,
    *,
    session_id: str | None = None,
    strict: bool = False,
) -> bool:
    """Whether a vote's activity reference points at ``candidate``."""
    if candidate == vote_activity_id:
        return True
    if candidate is None or vote_activity_id is None:
        return False

    candidate_str = str(candidate)
    vote_str = str(vote_activity_id)
    if candidate_str == vote_str:
        return True

    if strict and session_id:
        return vote_str == f"{session_id}_{candidate_str}"

    if vote_str.endswith(f"_{candidate_str}"):
        return True

    segments = vote_str.split("_")
    return len(segments) >= 3 and segments[-1] == candidate_str


def find_match(tallies, vote_activity_id, *, session_id=None, strict=False):
    """First tally in resolution order whose id matches, or None."""
    return next(
        (
            t for t in tallies
            if ids_match(t.activity_id, vote_activity_id,
                         session_id=session_id, strict=strict)
        ),
        None,
    )
