"""Ordered field lookup and tolerant timestamp parsing for loose records."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date, datetime, timezone

logger = logging.getLogger(__name__)

# Field names tried in priority order for each concept.
SESSION_ACTIVITY_FIELDS = ("activities", "selectedItems", "items")
SESSION_NAME_FIELDS = ("name", "title")
SESSION_DATE_FIELDS = ("completedAt", "endTime", "createdAt")
ACTIVITY_NAME_FIELDS = ("title", "name")
ACTIVITY_ID_FIELDS = ("tmdbId", "placeId", "id", "activityId")
VOTE_ACTIVITY_FIELDS = ("activityId", "itemId")
VOTE_VALUE_FIELDS = ("vote", "voteType")

_CONVERTERS = ("to_datetime", "ToDatetime", "toDate")


def _is_empty(value) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, dict, set)):
        return len(value) == 0
    return False


def first_of(record, fields, default=None, *, skip_empty: bool = False):
    """Return the first present value among ``fields`` in ``record``.

    A field counts as present when its value is not None; with
    ``skip_empty`` empty strings and containers are skipped as well.
    """
    if record is None:
        return default
    for name in fields:
        value = record.get(name) if isinstance(record, Mapping) else getattr(record, name, None)
        if value is None:
            continue
        if skip_empty and _is_empty(value):
            continue
        return value
    return default


def _from_string(text: str) -> datetime | None:
    text = text.strip()
    if not text:
        return None
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _from_mapping(data: Mapping) -> datetime | None:
    seconds = first_of(data, ("seconds", "_seconds"))
    if seconds is None:
        return None
    nanos = first_of(data, ("nanoseconds", "_nanoseconds"), 0)
    return datetime.fromtimestamp(float(seconds) + float(nanos) / 1e9, tz=timezone.utc)


def _convert(value) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        # Epoch milliseconds, as written by Date.now()
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        return _from_string(value)
    if isinstance(value, Mapping):
        return _from_mapping(value)
    for attr in _CONVERTERS:
        method = getattr(value, attr, None)
        if callable(method):
            converted = method()
            if isinstance(converted, datetime):
                return converted
            return None
    return None


def parse_instant(value) -> datetime | None:
    """Parse a timestamp of any supported shape into an aware UTC datetime.

    Returns None when the value is absent or cannot be parsed.
    """
    if value is None:
        return None
    try:
        parsed = _convert(value)
    except Exception as exc:
        logger.debug("Unparseable timestamp %r: %s", value, exc)
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
