"""Three-layer config loading and merging."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .models import COMPLETED_STATUSES, COMPLETION_THRESHOLD_HOURS

CONFIG_DIR = ".groupvote"


# ---------------------------------------------------------------------------
# Config dataclasses
# ---------------------------------------------------------------------------

@dataclass
class RemoteConfig:
    base_url: str = ""
    api_token: str = ""
    timeout_sec: float = 10.0


@dataclass
class CompletionConfig:
    threshold_hours: float = COMPLETION_THRESHOLD_HOURS
    statuses: list[str] = field(default_factory=lambda: sorted(COMPLETED_STATUSES))


@dataclass
class MatchingConfig:
    strict: bool = False


@dataclass
class ResultsConfig:
    page_size: int = 20


@dataclass
class LoggingConfig:
    level: str = "WARNING"


@dataclass
class Config:
    source: str = "sqlite"  # "sqlite" | "http"
    database_path: str = f"{CONFIG_DIR}/state.db"
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    completion: CompletionConfig = field(default_factory=CompletionConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    results: ResultsConfig = field(default_factory=ResultsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    project_root: str = ""

    @property
    def db_file(self) -> Path:
        path = Path(self.database_path)
        if path.is_absolute() or self.database_path == ":memory:":
            return path
        return Path(self.project_root) / path

    @property
    def completed_statuses(self) -> frozenset[str]:
        return frozenset(s.lower() for s in self.completion.statuses)


# ---------------------------------------------------------------------------
# Deep merge
# ---------------------------------------------------------------------------

def deep_merge(base: dict, override: dict) -> dict:
    """Field-level deep merge. Lists are replaced, None values ignored."""
    result = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


# ---------------------------------------------------------------------------
# Dict → Config mapping
# ---------------------------------------------------------------------------

def _dict_to_config(data: dict, project_root: str) -> Config:
    cfg = Config(project_root=project_root)

    if "source" in data:
        source = str(data["source"]).lower()
        if source not in ("sqlite", "http"):
            raise ValueError(f"Invalid source '{data['source']}': expected sqlite or http")
        cfg.source = source
    if "database_path" in data:
        cfg.database_path = str(data["database_path"])

    if "remote" in data and isinstance(data["remote"], dict):
        r = data["remote"]
        cfg.remote = RemoteConfig(
            base_url=r.get("base_url", cfg.remote.base_url),
            api_token=r.get("api_token", cfg.remote.api_token),
            timeout_sec=float(r.get("timeout_sec", cfg.remote.timeout_sec)),
        )

    if "completion" in data and isinstance(data["completion"], dict):
        c = data["completion"]
        cfg.completion = CompletionConfig(
            threshold_hours=float(c.get("threshold_hours", cfg.completion.threshold_hours)),
            statuses=list(c.get("statuses", cfg.completion.statuses)),
        )

    if "matching" in data and isinstance(data["matching"], dict):
        cfg.matching = MatchingConfig(
            strict=bool(data["matching"].get("strict", cfg.matching.strict)),
        )

    if "results" in data and isinstance(data["results"], dict):
        cfg.results = ResultsConfig(
            page_size=int(data["results"].get("page_size", cfg.results.page_size)),
        )

    if "logging" in data and isinstance(data["logging"], dict):
        cfg.logging = LoggingConfig(
            level=str(data["logging"].get("level", cfg.logging.level)).upper(),
        )

    return cfg


def _read_yaml(path: Path, strict: bool) -> dict:
    if not path.exists():
        return {}
    parsed = yaml.safe_load(path.read_text())
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        if strict:
            raise ValueError(
                f"Invalid {path.name}: expected mapping, got {type(parsed).__name__}"
            )
        return {}
    return parsed


# ---------------------------------------------------------------------------
# Load config (3-layer)
# ---------------------------------------------------------------------------

def load_config(project_root: str | Path) -> Config:
    """Load and merge config from up to 3 layers.

    Priority (highest first):
      1. Environment variables
      2. .groupvote/local.config.yaml
      3. .groupvote/config.yaml
    """
    project_root = Path(project_root)
    config_dir = project_root / CONFIG_DIR

    base_data = _read_yaml(config_dir / "config.yaml", strict=True)
    local_data = _read_yaml(config_dir / "local.config.yaml", strict=False)

    merged = deep_merge(base_data, local_data)
    cfg = _dict_to_config(merged, str(project_root))

    env_token = os.environ.get("GROUPVOTE_API_TOKEN")
    if env_token:
        cfg.remote.api_token = env_token

    env_db = os.environ.get("GROUPVOTE_DB_PATH")
    if env_db:
        cfg.database_path = env_db

    env_level = os.environ.get("GROUPVOTE_LOG_LEVEL")
    if env_level:
        cfg.logging.level = env_level.upper()

    return cfg
