"""Shared fixtures for groupvote tests."""

from datetime import datetime, timezone

import pytest
import pytest_asyncio

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_vote(user, activity_id, value, group="g1", created_at="2024-06-01T10:00:00Z"):
    return {
        "userId": user,
        "activityId": activity_id,
        "groupId": group,
        "vote": value,
        "createdAt": created_at,
    }


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def movie_session():
    """Three TMDB activities in a session that ended an hour ago."""
    return {
        "id": "g1_1717230000000",
        "groupId": "g1",
        "name": "Friday movie night",
        "endTime": "2024-06-01T11:00:00Z",
        "createdAt": "2024-06-01T09:00:00Z",
        "activities": [
            {"tmdbId": 101, "name": "Alien", "overview": "In space no one can hear you scream."},
            {"tmdbId": 202, "name": "Brazil"},
            {"tmdbId": 303, "name": "Casablanca"},
        ],
    }


@pytest.fixture
def movie_votes():
    """Alien 3 yes / 1 no, Brazil 2 yes / 2 no, Casablanca none."""
    return [
        make_vote("u1", "101", "yes"),
        make_vote("u2", "101", "yes"),
        make_vote("u3", "101", "yes"),
        make_vote("u4", "101", "no"),
        make_vote("u1", "202", "yes"),
        make_vote("u2", "202", "no"),
        make_vote("u5", "202", "yes"),
        make_vote("u6", "202", "no"),
    ]


@pytest.fixture
def tmp_project(tmp_path):
    """Temporary project with .groupvote/config.yaml."""
    config_dir = tmp_path / ".groupvote"
    config_dir.mkdir()
    (config_dir / "config.yaml").write_text("""\
source: sqlite
database_path: .groupvote/state.db
completion:
  threshold_hours: 1
matching:
  strict: false
results:
  page_size: 20
logging:
  level: WARNING
""")
    return tmp_path


@pytest_asyncio.fixture
async def store(tmp_path):
    """Real SQLite file store (WAL mode)."""
    from groupvote.store import DocumentStore
    store = DocumentStore(str(tmp_path / "test.db"))
    await store.init()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def memory_store():
    """In-memory store for fast unit tests."""
    from groupvote.store import DocumentStore
    store = DocumentStore(":memory:")
    await store.init()
    yield store
    await store.close()
