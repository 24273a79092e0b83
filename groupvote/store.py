"""SQLite document store for groups, voting sessions and votes (WAL mode)."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS groups (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS voting_sessions (
    id TEXT PRIMARY KEY,
    group_id TEXT NOT NULL,
    data TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS votes (
    id TEXT PRIMARY KEY,
    group_id TEXT NOT NULL,
    user_id TEXT,
    data TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sessions_group ON voting_sessions(group_id);
CREATE INDEX IF NOT EXISTS idx_votes_group ON votes(group_id);
CREATE INDEX IF NOT EXISTS idx_votes_user ON votes(user_id);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class DocumentStore:
    """Stores raw session and vote documents as JSON, returns them as dicts."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        self._conn = await aiosqlite.connect(self.db_path)
        self._conn.row_factory = aiosqlite.Row
        if self.db_path != ":memory:":
            await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.executescript(_SCHEMA)
        await self._conn.commit()

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    # ---------------------------------------------------------------
    # Groups
    # ---------------------------------------------------------------

    async def upsert_group(self, group_id: str, name: str = "") -> None:
        await self._conn.execute(
            """INSERT INTO groups (id, name, created_at) VALUES (?,?,?)
               ON CONFLICT(id) DO UPDATE SET name=excluded.name""",
            (group_id, name, _now()),
        )
        await self._conn.commit()

    async def list_groups(self) -> list[dict]:
        cursor = await self._conn.execute("SELECT id, name FROM groups ORDER BY id")
        rows = await cursor.fetchall()
        return [{"id": r["id"], "name": r["name"]} for r in rows]

    # ---------------------------------------------------------------
    # Voting sessions
    # ---------------------------------------------------------------

    async def upsert_session(self, session: dict) -> None:
        session_id = session.get("id")
        group_id = session.get("groupId")
        if not session_id or not group_id:
            raise ValueError("Voting session needs both 'id' and 'groupId'")
        await self._conn.execute(
            """INSERT INTO voting_sessions (id, group_id, data, updated_at)
               VALUES (?,?,?,?)
               ON CONFLICT(id) DO UPDATE SET
                 group_id=excluded.group_id,
                 data=excluded.data,
                 updated_at=excluded.updated_at""",
            (str(session_id), str(group_id), json.dumps(session, default=str), _now()),
        )
        await self._conn.commit()

    async def get_session(self, session_id: str) -> dict | None:
        cursor = await self._conn.execute(
            "SELECT data FROM voting_sessions WHERE id = ?", (session_id,)
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return json.loads(row["data"])

    async def fetch_voting_sessions_by_group(self, group_id: str) -> list[dict]:
        cursor = await self._conn.execute(
            "SELECT data FROM voting_sessions WHERE group_id = ? ORDER BY id",
            (group_id,),
        )
        rows = await cursor.fetchall()
        return [json.loads(r["data"]) for r in rows]

    # ---------------------------------------------------------------
    # Votes
    # ---------------------------------------------------------------

    async def add_vote(
        self,
        user_id: str,
        activity_id: str,
        group_id: str,
        vote: str,
        created_at: str | None = None,
    ) -> str:
        """Record a swipe. Re-voting on the same activity replaces the old vote."""
        vote_id = f"{user_id}_{activity_id}"
        doc = {
            "userId": user_id,
            "activityId": activity_id,
            "groupId": group_id,
            "vote": vote,
            "createdAt": created_at or _now(),
        }
        await self._put_vote(vote_id, doc)
        await self._conn.commit()
        return vote_id

    async def _put_vote(self, vote_id: str, doc: dict) -> None:
        user_id = doc.get("userId")
        await self._conn.execute(
            """INSERT INTO votes (id, group_id, user_id, data, updated_at)
               VALUES (?,?,?,?,?)
               ON CONFLICT(id) DO UPDATE SET
                 group_id=excluded.group_id,
                 user_id=excluded.user_id,
                 data=excluded.data,
                 updated_at=excluded.updated_at""",
            (
                vote_id, str(doc.get("groupId") or ""),
                None if user_id is None else str(user_id),
                json.dumps(doc, default=str), _now(),
            ),
        )

    async def fetch_votes(self, group_id: str) -> list[dict]:
        cursor = await self._conn.execute(
            "SELECT id, data FROM votes WHERE group_id = ? ORDER BY id",
            (group_id,),
        )
        rows = await cursor.fetchall()
        return [{"id": r["id"], **json.loads(r["data"])} for r in rows]

    async def fetch_user_votes(self, user_id: str) -> list[dict]:
        cursor = await self._conn.execute(
            "SELECT id, data FROM votes WHERE user_id = ? ORDER BY id",
            (user_id,),
        )
        rows = await cursor.fetchall()
        return [{"id": r["id"], **json.loads(r["data"])} for r in rows]

    # ---------------------------------------------------------------
    # Bulk import
    # ---------------------------------------------------------------

    async def import_dump(self, data: dict) -> dict[str, int]:
        """Load an export of the form {groups, votingSessions, votes}.

        Returns the number of records imported per collection.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Invalid dump: expected mapping, got {type(data).__name__}")

        counts = {"groups": 0, "votingSessions": 0, "votes": 0}
        for group in data.get("groups") or []:
            await self._conn.execute(
                """INSERT INTO groups (id, name, created_at) VALUES (?,?,?)
                   ON CONFLICT(id) DO UPDATE SET name=excluded.name""",
                (str(group["id"]), group.get("name") or "", _now()),
            )
            counts["groups"] += 1

        for session in data.get("votingSessions") or []:
            await self._conn.execute(
                """INSERT INTO voting_sessions (id, group_id, data, updated_at)
                   VALUES (?,?,?,?)
                   ON CONFLICT(id) DO UPDATE SET
                     group_id=excluded.group_id,
                     data=excluded.data,
                     updated_at=excluded.updated_at""",
                (str(session["id"]), str(session["groupId"]),
                 json.dumps(session, default=str), _now()),
            )
            counts["votingSessions"] += 1

        for vote in data.get("votes") or []:
            vote_id = vote.get("id") or f"{vote.get('userId')}_{vote.get('activityId')}"
            doc = {k: v for k, v in vote.items() if k != "id"}
            await self._put_vote(str(vote_id), doc)
            counts["votes"] += 1

        await self._conn.commit()
        logger.info("Imported %s", counts)
        return counts

    async def import_file(self, path: str | Path) -> dict[str, int]:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return await self.import_dump(data)
