"""Tests for CLI commands."""

import json

import pytest
from typer.testing import CliRunner
from groupvote.cli import app

runner = CliRunner()


@pytest.fixture
def dump_file(tmp_path, movie_session, movie_votes):
    path = tmp_path / "dump.json"
    path.write_text(json.dumps({
        "groups": [{"id": "g1", "name": "Film club"}],
        "votingSessions": [movie_session],
        "votes": movie_votes,
    }))
    return path


def test_init_creates_structure(tmp_path, monkeypatch):
    """groupvote init creates .groupvote/ + config files + .gitignore."""
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0
    assert (tmp_path / ".groupvote" / "config.yaml").exists()
    assert (tmp_path / ".groupvote" / "local.config.yaml").exists()
    gitignore = (tmp_path / ".gitignore").read_text()
    assert ".groupvote/local.config.yaml" in gitignore
    assert ".groupvote/state.db" in gitignore


def test_init_idempotent(tmp_path, monkeypatch):
    """Repeated init does not overwrite existing config."""
    monkeypatch.chdir(tmp_path)
    runner.invoke(app, ["init"])
    (tmp_path / ".groupvote" / "config.yaml").write_text("source: http\n")
    runner.invoke(app, ["init"])
    assert "source: http" in (tmp_path / ".groupvote" / "config.yaml").read_text()


def test_results_empty_project(tmp_project, monkeypatch):
    """No data → empty state, exit 0."""
    monkeypatch.chdir(tmp_project)
    result = runner.invoke(app, ["results"])
    assert result.exit_code == 0
    assert "No winners yet" in result.output


def test_import_then_results(tmp_project, dump_file, monkeypatch):
    """Imported sessions show up with their winner."""
    monkeypatch.chdir(tmp_project)
    result = runner.invoke(app, ["import", str(dump_file)])
    assert result.exit_code == 0
    assert "8 vote(s)" in result.output

    result = runner.invoke(app, ["results"])
    assert result.exit_code == 0
    assert "Friday movie night" in result.output
    assert "Alien" in result.output
    assert "Support: 75%" in result.output


def test_results_json(tmp_project, dump_file, monkeypatch):
    """--json emits the page as JSON."""
    monkeypatch.chdir(tmp_project)
    runner.invoke(app, ["import", str(dump_file)])
    result = runner.invoke(app, ["results", "--json"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["total"] == 1
    assert data["items"][0]["winner"]["name"] == "Alien"
    assert data["items"][0]["total_votes"] == 8


def test_results_global_failure_exit_code(tmp_project, monkeypatch):
    """Unreachable source → error message and exit 1, not an empty feed."""
    (tmp_project / ".groupvote" / "config.yaml").write_text("""\
source: http
remote:
  base_url: http://127.0.0.1:9
  timeout_sec: 0.5
""")
    monkeypatch.chdir(tmp_project)
    result = runner.invoke(app, ["results"])
    assert result.exit_code == 1
    assert "Failed to load voting results" in result.output


def test_session_ranking(tmp_project, dump_file, monkeypatch, movie_session):
    """groupvote session prints the ranked tally."""
    monkeypatch.chdir(tmp_project)
    runner.invoke(app, ["import", str(dump_file)])
    result = runner.invoke(app, ["session", movie_session["id"]])
    assert result.exit_code == 0
    assert "Winner: Alien (75%)" in result.output
    assert result.output.index("Alien") < result.output.index("Brazil") < result.output.index("Casablanca")


def test_session_not_found(tmp_project, monkeypatch):
    """Unknown session → exit 1."""
    monkeypatch.chdir(tmp_project)
    result = runner.invoke(app, ["session", "nope"])
    assert result.exit_code == 1


def test_history(tmp_project, dump_file, monkeypatch):
    """groupvote history lists a user's votes."""
    monkeypatch.chdir(tmp_project)
    runner.invoke(app, ["import", str(dump_file)])
    result = runner.invoke(app, ["history", "u2"])
    assert result.exit_code == 0
    assert "You voted YES for activity ID: 101" in result.output
    assert "You voted NO for activity ID: 202" in result.output


def test_config_show_masks_token(tmp_project, monkeypatch):
    """groupvote config shows merged config with the token masked."""
    monkeypatch.setenv("GROUPVOTE_API_TOKEN", "supersecret")
    monkeypatch.chdir(tmp_project)
    result = runner.invoke(app, ["config"])
    assert result.exit_code == 0
    assert "page_size" in result.output
    assert "supersecret" not in result.output


@pytest.mark.parametrize("args", [["session", "s1"], ["history", "u1"]])
def test_store_only_commands_reject_http_source(tmp_project, monkeypatch, args):
    """session/history exit 1 with a clear message when source is http."""
    (tmp_project / ".groupvote" / "config.yaml").write_text("""\
source: http
remote:
  base_url: https://api.example.com
""")
    monkeypatch.chdir(tmp_project)
    result = runner.invoke(app, args)
    assert result.exit_code == 1
    assert "configured source is 'http'" in result.output
