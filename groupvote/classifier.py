"""Session classification: completed or still open, and the date to sort by."""

from __future__ import annotations

from datetime import datetime, timezone

from .fields import SESSION_DATE_FIELDS, parse_instant
from .models import COMPLETED_STATUSES, COMPLETION_THRESHOLD_HOURS, EPOCH


def _utc(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def is_completed(
    session: dict,
    now: datetime | None = None,
    *,
    threshold_hours: float = COMPLETION_THRESHOLD_HOURS,
    completed_statuses=COMPLETED_STATUSES,
) -> bool:
    """Decide whether a voting session is over.

    Checked in order: explicit status, end time, age since creation.
    Missing or unparseable fields carry no information; with nothing to
    go on the session counts as still open.
    """
    now = _utc(now)

    status = session.get("status")
    if isinstance(status, str) and status.strip().lower() in completed_statuses:
        return True

    end_time = parse_instant(session.get("endTime"))
    if end_time is not None:
        return end_time < now

    created_at = parse_instant(session.get("createdAt"))
    if created_at is not None:
        elapsed_hours = (now - created_at).total_seconds() / 3600
        return elapsed_hours > threshold_hours

    return False


def session_date(session: dict) -> datetime:
    """Best instant for ordering: completion, then end, then creation time."""
    for name in SESSION_DATE_FIELDS:
        parsed = parse_instant(session.get(name))
        if parsed is not None:
            return parsed
    return EPOCH
