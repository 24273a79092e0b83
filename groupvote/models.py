"""Core data models for groupvote."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

COMPLETED_STATUSES = frozenset({"completed", "ended", "finished", "closed"})
COMPLETION_THRESHOLD_HOURS = 1.0

YES = "yes"
NO = "no"


def js_round(value: float) -> int:
    """Round half up, the way Math.round does (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class Group:
    id: str
    name: str = ""

    @classmethod
    def from_record(cls, record) -> Group:
        """Build from a mapping or any object with ``id``/``name`` attributes."""
        if isinstance(record, Group):
            return record
        if isinstance(record, Mapping):
            group_id = record.get("id")
            name = record.get("name")
        else:
            group_id = getattr(record, "id", None)
            name = getattr(record, "name", None)
        if group_id is None or group_id == "":
            raise ValueError(f"Group record has no id: {record!r}")
        return cls(id=str(group_id), name=name or "")


@dataclass
class ActivityTally:
    """Running yes/no tally for one activity in one session."""

    activity_id: str
    activity: dict | str
    name: str = ""
    yes_count: int = 0
    no_count: int = 0
    total_count: int = 0
    voters: set[str] = field(default_factory=set)
    votes: list[dict] = field(default_factory=list)

    @property
    def yes_ratio(self) -> float:
        if self.total_count == 0:
            return 0.0
        return self.yes_count / self.total_count

    @property
    def support_percentage(self) -> int:
        if self.total_count == 0:
            return 0
        return js_round(self.yes_count / self.total_count * 100)

    @property
    def score(self) -> int:
        return self.yes_count - self.no_count

    @property
    def description(self) -> str:
        if not isinstance(self.activity, Mapping):
            return ""
        for key in ("description", "overview", "address"):
            value = self.activity.get(key)
            if value:
                return str(value)
        return ""

    def to_dict(self) -> dict:
        return {
            "activity_id": self.activity_id,
            "name": self.name,
            "description": self.description,
            "yes_count": self.yes_count,
            "no_count": self.no_count,
            "total_count": self.total_count,
            "unique_voters": len(self.voters),
            "support_percentage": self.support_percentage,
            "score": self.score,
        }


@dataclass
class SessionResult:
    """Aggregated outcome of one voting session."""

    session_id: str = ""
    name: str = ""
    group_id: str = ""
    group_name: str = ""
    winner: ActivityTally | None = None
    total_votes: int = 0
    total_participants: int = 0
    all_results: list[ActivityTally] = field(default_factory=list)
    has_votes: bool = False
    session_date: datetime = EPOCH
    description: str = ""
    category: str = ""
    error: str | None = None  # set only on degraded results

    @property
    def support_percentage(self) -> int:
        return self.winner.support_percentage if self.winner else 0

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "name": self.name,
            "group_id": self.group_id,
            "group_name": self.group_name,
            "winner": self.winner.to_dict() if self.winner else None,
            "support_percentage": self.support_percentage,
            "total_votes": self.total_votes,
            "total_participants": self.total_participants,
            "has_votes": self.has_votes,
            "session_date": self.session_date.isoformat(),
            "description": self.description,
            "category": self.category,
            "all_results": [t.to_dict() for t in self.all_results],
            "error": self.error,
        }
