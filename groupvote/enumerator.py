"""Completed-session feed: fan out over groups and sessions, isolate failures."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime

import anyio

from .aggregator import empty_result, safe_aggregate
from .classifier import is_completed
from .fields import parse_instant
from .models import (
    COMPLETED_STATUSES,
    COMPLETION_THRESHOLD_HOURS,
    EPOCH,
    Group,
    SessionResult,
)

logger = logging.getLogger(__name__)

FetchVotes = Callable[[str], Awaitable[list[dict]]]
FetchSessions = Callable[[str], Awaitable[list[dict]]]


class ResultsLoadError(Exception):
    """Raised when the results feed as a whole cannot be produced."""


def _normalize_groups(groups) -> list[Group]:
    if isinstance(groups, (str, bytes)) or not isinstance(groups, Iterable):
        raise ResultsLoadError(f"Expected a list of groups, got {type(groups).__name__}")
    try:
        return [Group.from_record(g) for g in groups]
    except ValueError as e:
        raise ResultsLoadError(str(e)) from e


async def _session_result(
    session: dict,
    group: Group,
    fetch_votes: FetchVotes,
    strict: bool,
) -> SessionResult:
    try:
        votes = await fetch_votes(group.id)
    except Exception as exc:
        logger.warning(
            "Failed to fetch votes for session %s in group %s: %s",
            session.get("id"), group.id, exc,
        )
        return empty_result(session, group, error=f"vote fetch failed: {exc}")
    return safe_aggregate(session, votes or [], group, strict=strict)


async def _group_results(
    group: Group,
    fetch_votes: FetchVotes,
    fetch_sessions: FetchSessions,
    now: datetime | None,
    threshold_hours: float,
    completed_statuses,
    strict: bool,
) -> list[SessionResult]:
    try:
        sessions = await fetch_sessions(group.id) or []
    except Exception as exc:
        logger.warning("Failed to fetch sessions for group %s: %s", group.id, exc)
        return []

    completed = []
    for session in sessions:
        try:
            if is_completed(session, now, threshold_hours=threshold_hours,
                            completed_statuses=completed_statuses):
                completed.append(session)
        except Exception:
            logger.exception("Skipping unreadable session in group %s", group.id)
    logger.debug("Group %s: %d of %d sessions completed",
                 group.id, len(completed), len(sessions))

    slots: list[SessionResult | None] = [None] * len(completed)

    async def _one(i: int, session: dict) -> None:
        try:
            slots[i] = await _session_result(session, group, fetch_votes, strict)
        except Exception as exc:
            logger.exception("Failed to compute result for session in group %s", group.id)
            slots[i] = empty_result(None, group, error=str(exc))

    async with anyio.create_task_group() as tg:
        for i, session in enumerate(completed):
            tg.start_soon(_one, i, session)

    return [r for r in slots if r is not None]


async def load_completed_sessions(
    groups,
    fetch_votes: FetchVotes,
    fetch_sessions: FetchSessions,
    *,
    now: datetime | None = None,
    threshold_hours: float = COMPLETION_THRESHOLD_HOURS,
    completed_statuses=COMPLETED_STATUSES,
    strict: bool = False,
) -> list[SessionResult]:
    """Results for every completed session across ``groups``, newest first.

    A group whose sessions cannot be fetched contributes nothing; a
    session whose votes cannot be fetched or tallied contributes a
    zero-value result. Only an unusable ``groups`` argument raises
    ResultsLoadError.
    """
    if groups is None:
        return []
    normalized = _normalize_groups(groups)
    if not normalized:
        return []

    per_group: list[list[SessionResult]] = [[] for _ in normalized]

    async def _one(i: int, group: Group) -> None:
        try:
            per_group[i] = await _group_results(
                group, fetch_votes, fetch_sessions, now,
                threshold_hours, completed_statuses, strict,
            )
        except Exception:
            logger.exception("Failed to load results for group %s", group.id)

    try:
        async with anyio.create_task_group() as tg:
            for i, group in enumerate(normalized):
                tg.start_soon(_one, i, group)
    except Exception as e:
        raise ResultsLoadError(f"group fan-out failed: {e}") from e

    results = [r for group_results in per_group for r in group_results]
    results.sort(key=lambda r: r.session_date, reverse=True)
    logger.info("Loaded %d completed session result(s) from %d group(s)",
                len(results), len(normalized))
    return results


@dataclass
class Page:
    items: list[SessionResult] = field(default_factory=list)
    page: int = 1
    page_size: int = 20
    total: int = 0

    @property
    def has_more(self) -> bool:
        return self.page * self.page_size < self.total


def paginate(results: list[SessionResult], page: int = 1, page_size: int = 20) -> Page:
    """Slice the sorted feed; pages are 1-based."""
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    if page_size < 1:
        raise ValueError(f"page_size must be >= 1, got {page_size}")
    start = (page - 1) * page_size
    return Page(
        items=results[start:start + page_size],
        page=page,
        page_size=page_size,
        total=len(results),
    )


def user_vote_history(votes: list[dict], user_id: str) -> list[dict]:
    """A user's own votes, most recent first."""
    mine = [v for v in votes or [] if str(v.get("userId")) == str(user_id)]
    return sorted(
        mine,
        key=lambda v: parse_instant(v.get("createdAt")) or EPOCH,
        reverse=True,
    )
