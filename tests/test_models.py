"""Tests for data models."""

import pytest
from groupvote.models import EPOCH, ActivityTally, Group, SessionResult, js_round


# --- Group ---

def test_group_from_mapping():
    """Mapping with id/name → Group."""
    assert Group.from_record({"id": 7, "name": "Friends"}) == Group(id="7", name="Friends")


def test_group_missing_name_defaults_empty():
    """Name is optional."""
    assert Group.from_record({"id": "g1"}).name == ""


def test_group_without_id_rejected():
    """Id is mandatory."""
    with pytest.raises(ValueError):
        Group.from_record({"name": "Nameless"})


# --- ActivityTally ---

def test_tally_mutable_defaults_isolated():
    """Tallies have independent voter sets and vote lists."""
    t1 = ActivityTally(activity_id="a", activity={})
    t2 = ActivityTally(activity_id="b", activity={})
    t1.voters.add("u1")
    t1.votes.append({"userId": "u1"})
    assert t2.voters == set()
    assert t2.votes == []


def test_tally_zero_totals():
    """No votes → zero ratio and support."""
    t = ActivityTally(activity_id="a", activity={})
    assert t.yes_ratio == 0.0
    assert t.support_percentage == 0
    assert t.score == 0


def test_tally_description_fallbacks():
    """description → overview → address."""
    assert ActivityTally("a", {"overview": "Plot"}).description == "Plot"
    assert ActivityTally("a", {"address": "1 Main St"}).description == "1 Main St"
    assert ActivityTally("a", {}).description == ""
    assert ActivityTally("a", "Bowling").description == ""


# --- SessionResult ---

def test_session_result_zero_value():
    """Default result is the zero-value result."""
    r = SessionResult()
    assert r.winner is None
    assert r.total_votes == 0
    assert r.total_participants == 0
    assert r.all_results == []
    assert r.has_votes is False
    assert r.session_date == EPOCH
    assert r.support_percentage == 0
    assert r.to_dict()["winner"] is None


# --- Rounding ---

@pytest.mark.parametrize("value, expected", [(62.5, 63), (62.4, 62), (0.5, 1), (74.99, 75)])
def test_js_round_half_up(value, expected):
    """Half rounds up, unlike round()."""
    assert js_round(value) == expected
