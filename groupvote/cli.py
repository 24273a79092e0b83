"""groupvote CLI: typer-based command interface."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import typer

app = typer.Typer(
    name="groupvote",
    help="groupvote — group activity voting results",
    no_args_is_help=True,
)

# -------------------------------------------------------------------
# Templates
# -------------------------------------------------------------------

DEFAULT_CONFIG_TEMPLATE = """\
# .groupvote/config.yaml: team-shared configuration
source: sqlite            # sqlite | http
database_path: .groupvote/state.db

remote:
  base_url: ""
  timeout_sec: 10

completion:
  threshold_hours: 1
  statuses:
    - completed
    - ended
    - finished
    - closed

matching:
  strict: false

results:
  page_size: 20

logging:
  level: WARNING
"""

DEFAULT_LOCAL_CONFIG_TEMPLATE = """\
# .groupvote/local.config.yaml: personal overrides (DO NOT commit)
# remote:
#   api_token: xxx
"""

GITIGNORE_ENTRIES = [
    ".groupvote/local.config.yaml",
    ".groupvote/state.db",
    ".groupvote/state.db-wal",
    ".groupvote/state.db-shm",
]


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------

def _get_project_root() -> Path:
    return Path.cwd()


def _run_async(coro):
    """Run an async coroutine from sync context."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None
    if loop and loop.is_running():
        import concurrent.futures
        with concurrent.futures.ThreadPoolExecutor() as pool:
            return pool.submit(asyncio.run, coro).result()
    return asyncio.run(coro)


def _load_config(root: Path):
    from .config import load_config
    try:
        return load_config(root)
    except (ValueError, OSError) as e:
        typer.echo(f"  Config error: {e}", err=True)
        raise typer.Exit(1)


async def _get_store(config):
    from .store import DocumentStore
    db_file = config.db_file
    if str(db_file) != ":memory:":
        db_file.parent.mkdir(parents=True, exist_ok=True)
    store = DocumentStore(str(db_file))
    await store.init()
    return store


def _require_store(config, command: str) -> None:
    """Per-session and per-user lookups only exist on the local store."""
    if config.source != "sqlite":
        typer.echo(
            f"  `groupvote {command}` reads the local store; "
            f"configured source is '{config.source}'. Run `groupvote import` "
            "and set `source: sqlite` first.",
            err=True,
        )
        raise typer.Exit(1)


async def _get_source(config):
    """The configured persistence collaborator (needs ``close()`` after use)."""
    if config.source == "http":
        from .remote import RemoteSource
        return RemoteSource(
            config.remote.base_url,
            api_token=config.remote.api_token,
            timeout=config.remote.timeout_sec,
        )
    return await _get_store(config)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Configure logging before any command runs."""
    level_name = "DEBUG" if verbose else None
    if level_name is None:
        from .config import load_config
        try:
            level_name = load_config(_get_project_root()).logging.level
        except (ValueError, OSError):
            level_name = "WARNING"
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# -------------------------------------------------------------------
# Commands
# -------------------------------------------------------------------

@app.command()
def init():
    """Initialize groupvote in the current directory."""
    root = _get_project_root()

    config_dir = root / ".groupvote"
    config_dir.mkdir(exist_ok=True)

    config_path = config_dir / "config.yaml"
    if not config_path.exists():
        config_path.write_text(DEFAULT_CONFIG_TEMPLATE)
        typer.echo(f"  Created {config_path.relative_to(root)}")
    else:
        typer.echo(f"  Exists  {config_path.relative_to(root)}")

    local_path = config_dir / "local.config.yaml"
    if not local_path.exists():
        local_path.write_text(DEFAULT_LOCAL_CONFIG_TEMPLATE)
        typer.echo(f"  Created {local_path.relative_to(root)}")

    gitignore_path = root / ".gitignore"
    existing = ""
    if gitignore_path.exists():
        existing = gitignore_path.read_text()
    additions = [e for e in GITIGNORE_ENTRIES if e not in existing]
    if additions:
        with open(gitignore_path, "a") as f:
            if existing and not existing.endswith("\n"):
                f.write("\n")
            f.write("# groupvote\n")
            for entry in additions:
                f.write(f"{entry}\n")
        typer.echo("  Updated .gitignore")

    typer.echo("\n  groupvote initialized. Run `groupvote import <dump.json>` to load data.")


@app.command("import")
def import_(dump: Path = typer.Argument(..., help="JSON export {groups, votingSessions, votes}")):
    """Load an exported dump into the local store."""
    root = _get_project_root()
    config = _load_config(root)

    async def _import():
        store = await _get_store(config)
        try:
            return await store.import_file(dump)
        finally:
            await store.close()

    try:
        counts = _run_async(_import())
    except (OSError, ValueError, KeyError) as e:
        typer.echo(f"  Import failed: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(
        f"  Imported {counts['groups']} group(s), "
        f"{counts['votingSessions']} session(s), {counts['votes']} vote(s)."
    )


@app.command()
def results(
    group: list[str] = typer.Option(None, "--group", "-g", help="Limit to group id(s)"),
    page: int = typer.Option(1, "--page", min=1),
    page_size: int = typer.Option(None, "--page-size", min=1),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON"),
):
    """Show winners of completed voting sessions, most recent first."""
    root = _get_project_root()
    config = _load_config(root)

    from .enumerator import load_completed_sessions, paginate

    async def _results():
        source = await _get_source(config)
        try:
            groups = await source.list_groups()
            if group:
                wanted = set(group)
                groups = [g for g in groups if g["id"] in wanted]
            return await load_completed_sessions(
                groups,
                source.fetch_votes,
                source.fetch_voting_sessions_by_group,
                threshold_hours=config.completion.threshold_hours,
                completed_statuses=config.completed_statuses,
                strict=config.matching.strict,
            )
        finally:
            await source.close()

    try:
        feed = _run_async(_results())
    except Exception as e:
        # Distinct from an empty feed: the caller should retry.
        logging.getLogger(__name__).debug("results failed", exc_info=True)
        typer.echo(f"  Failed to load voting results: {e}", err=True)
        typer.echo("  Run `groupvote results` again to retry.", err=True)
        raise typer.Exit(1)

    current = paginate(feed, page, page_size or config.results.page_size)

    if as_json:
        typer.echo(json.dumps({
            "page": current.page,
            "page_size": current.page_size,
            "total": current.total,
            "has_more": current.has_more,
            "items": [r.to_dict() for r in current.items],
        }, ensure_ascii=False, indent=2))
        return

    if not feed:
        typer.echo("  No winners yet.")
        typer.echo("  Winners from completed voting sessions will appear here.")
        return

    typer.echo(f"\n  Voting Winners — {current.total} completed session"
               f"{'s' if current.total != 1 else ''}")
    typer.echo("  " + "─" * 60)
    for r in current.items:
        typer.echo(f"  {r.name or r.session_id}  [{r.group_name or r.group_id}]")
        typer.echo(f"    Completed: {r.session_date:%b %d, %Y %H:%M}")
        if r.error:
            typer.echo(f"    ⚠️  results unavailable ({r.error})")
        elif r.winner:
            w = r.winner
            sign = "+" if w.score > 0 else ""
            typer.echo(
                f"    🏆 {w.name}  👍 {w.yes_count}  👎 {w.no_count}  "
                f"Score: {sign}{w.score}  Support: {w.support_percentage}%"
            )
        elif r.has_votes:
            typer.echo("    No winner (no yes votes)")
        else:
            typer.echo("    No votes cast")
        typer.echo(f"    Votes: {r.total_votes} · Participants: {r.total_participants}")
    if current.has_more:
        typer.echo(f"\n  More results: --page {current.page + 1}")
    typer.echo("")


@app.command()
def session(session_id: str = typer.Argument(..., help="Voting session id")):
    """Show the full ranked tally for one session."""
    root = _get_project_root()
    config = _load_config(root)
    _require_store(config, "session")

    from .aggregator import aggregate_session
    from .classifier import is_completed

    async def _session():
        store = await _get_store(config)
        try:
            doc = await store.get_session(session_id)
            if doc is None:
                return None, []
            return doc, await store.fetch_votes(str(doc.get("groupId", "")))
        finally:
            await store.close()

    doc, votes = _run_async(_session())
    if doc is None:
        typer.echo(f"  Session '{session_id}' not found.")
        raise typer.Exit(1)

    result = aggregate_session(doc, votes, strict=config.matching.strict)
    completed = is_completed(
        doc,
        threshold_hours=config.completion.threshold_hours,
        completed_statuses=config.completed_statuses,
    )

    typer.echo(f"\n  {result.name or result.session_id}")
    typer.echo(f"  Status: {'completed' if completed else 'open'}")
    typer.echo(f"  Votes: {result.total_votes} · Participants: {result.total_participants}")
    if result.winner:
        typer.echo(f"  Winner: {result.winner.name} ({result.support_percentage}%)")
    typer.echo("")
    typer.echo(f"  {'#':<3} {'Activity':<30} {'Yes':>4} {'No':>4} {'Total':>6} {'Support':>8}")
    typer.echo(f"  {'---':<3} {'---':<30} {'---':>4} {'---':>4} {'---':>6} {'---':>8}")
    for i, t in enumerate(result.all_results, 1):
        typer.echo(
            f"  {i:<3} {t.name[:30]:<30} {t.yes_count:>4} {t.no_count:>4} "
            f"{t.total_count:>6} {t.support_percentage:>7}%"
        )
    typer.echo("")


@app.command()
def history(user_id: str = typer.Argument(..., help="User id")):
    """Show a user's vote history."""
    root = _get_project_root()
    config = _load_config(root)
    _require_store(config, "history")

    from .enumerator import user_vote_history

    async def _history():
        store = await _get_store(config)
        try:
            return await store.fetch_user_votes(user_id)
        finally:
            await store.close()

    votes = user_vote_history(_run_async(_history()), user_id)
    if not votes:
        typer.echo(f"  No votes for '{user_id}'.")
        return

    typer.echo(f"\n  Vote history — {user_id}")
    typer.echo("  " + "─" * 50)
    for v in votes:
        value = str(v.get("vote") or v.get("voteType") or "?").upper()
        typer.echo(f"  You voted {value} for activity ID: {v.get('activityId')}")
    typer.echo("")


@app.command("config")
def config_show():
    """Show merged configuration."""
    root = _get_project_root()

    import yaml
    from dataclasses import asdict

    config = _load_config(root)
    data = asdict(config)
    token = data["remote"].get("api_token")
    if token:
        data["remote"]["api_token"] = token[:4] + "..."

    typer.echo("\n  groupvote — Merged Configuration")
    typer.echo("  " + "─" * 40)
    typer.echo(yaml.dump(data, default_flow_style=False, allow_unicode=True))


if __name__ == "__main__":
    app()
