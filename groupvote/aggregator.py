"""Vote aggregation: tally yes/no per activity, rank, pick the winner."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from .classifier import session_date
from .fields import (
    ACTIVITY_NAME_FIELDS,
    SESSION_ACTIVITY_FIELDS,
    SESSION_NAME_FIELDS,
    VOTE_ACTIVITY_FIELDS,
    VOTE_VALUE_FIELDS,
    first_of,
)
from .identity import find_match, ids_match, resolve_activity_id
from .models import NO, YES, ActivityTally, Group, SessionResult

logger = logging.getLogger(__name__)


def _vote_value(vote: dict) -> str:
    value = first_of(vote, VOTE_VALUE_FIELDS, "")
    return str(value).strip().lower()


def _activity_name(activity) -> str:
    # Manual lists store bare strings; provider items carry title or name.
    if isinstance(activity, str):
        return activity
    if not isinstance(activity, Mapping):
        raise TypeError(f"Unsupported activity shape: {type(activity).__name__}")
    return str(first_of(activity, ACTIVITY_NAME_FIELDS, "", skip_empty=True))


def _rank_key(tally: ActivityTally):
    return (-tally.yes_count, -tally.yes_ratio, tally.name.casefold(), tally.name)


def empty_result(session: dict | None = None, group: Group | None = None,
                 error: str | None = None) -> SessionResult:
    """Zero-value result carrying whatever metadata is still readable."""
    result = SessionResult(error=error)
    if group is not None:
        result.group_id = group.id
        result.group_name = group.name
    if isinstance(session, dict):
        result.session_id = str(session.get("id") or "")
        result.name = str(first_of(session, SESSION_NAME_FIELDS, ""))
        result.session_date = session_date(session)
        result.description = str(session.get("description") or "")
        result.category = str(session.get("category") or "")
    return result


def aggregate_session(
    session: dict,
    group_votes: list[dict],
    group: Group | None = None,
    *,
    strict: bool = False,
) -> SessionResult:
    """Tally ``group_votes`` against the activities of ``session``.

    Only votes whose activity reference matches one of this session's
    activities are counted, so sessions sharing a group's vote collection
    do not leak into each other. The top-ranked activity wins only if it
    has at least one yes vote.
    """
    result = empty_result(session, group)
    activities = first_of(session, SESSION_ACTIVITY_FIELDS) or []
    if not activities:
        return result

    session_id = result.session_id or None
    tallies = [
        ActivityTally(
            activity_id=resolve_activity_id(activity, index),
            activity=activity,
            name=_activity_name(activity),
        )
        for index, activity in enumerate(activities)
    ]
    activity_ids = [t.activity_id for t in tallies]

    matching: list[tuple[dict, object]] = []
    for vote in group_votes or []:
        ref = first_of(vote, VOTE_ACTIVITY_FIELDS)
        if any(ids_match(aid, ref, session_id=session_id, strict=strict)
               for aid in activity_ids):
            matching.append((vote, ref))

    participants: set[str] = set()
    for vote, ref in matching:
        tally = find_match(tallies, ref, session_id=session_id, strict=strict)
        tally.total_count += 1
        voter = vote.get("userId")
        if voter is not None:
            tally.voters.add(str(voter))
            participants.add(str(voter))
        tally.votes.append(vote)

        value = _vote_value(vote)
        if value == YES:
            tally.yes_count += 1
        elif value == NO:
            tally.no_count += 1

    ranked = sorted(tallies, key=_rank_key)
    top = ranked[0]

    result.winner = top if top.yes_count > 0 else None
    result.total_votes = len(matching)
    result.total_participants = len(participants)
    result.all_results = ranked
    result.has_votes = len(matching) > 0
    return result


def safe_aggregate(
    session: dict,
    group_votes: list[dict],
    group: Group | None = None,
    *,
    strict: bool = False,
) -> SessionResult:
    """aggregate_session that never raises; bad sessions degrade to zero."""
    try:
        return aggregate_session(session, group_votes, group, strict=strict)
    except Exception as exc:
        session_id = session.get("id") if isinstance(session, dict) else None
        logger.exception("Failed to aggregate votes for session %s", session_id)
        return empty_result(session, group, error=str(exc) or type(exc).__name__)
