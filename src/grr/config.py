"""User configuration (``~/.grrrc``) and the discovery cache (``~/.grrcache``).

Example ``~/.grrrc``::

    gerrit:
      username: jdoe
    jira:
      username: jdoe
      password: "s3cret"
    github:
      token: ghp_...
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

import yaml

from .errors import ConfigurationError
from .logging import get_logger

CONFIG_FILE = "~/.grrrc"
CACHE_FILE = "~/.grrcache"

DEFAULT_GERRIT_HOST = "cr.joyent.us"
DEFAULT_GERRIT_PORT = 29418
DEFAULT_JIRA_URL = "https://jira.joyent.us"
DEFAULT_GITHUB_API_URL = "https://api.github.com"
DEFAULT_MAIN_LINE = "master"
DEFAULT_REVIEW_REMOTE = "cr"

JIRA_CONFIG_HELP = (
    "    jira:\n"
    '      username: "<your jira username>"\n'
    '      password: "<your jira password>"\n'
    "Note: quote the password if it contains YAML special characters."
)


@dataclass
class GrrConfig:
    source_file: Path | None = None
    gerrit_username: str | None = None
    gerrit_host: str = DEFAULT_GERRIT_HOST
    gerrit_port: int = DEFAULT_GERRIT_PORT
    jira_url: str = DEFAULT_JIRA_URL
    jira_username: str | None = None
    jira_password: str | None = None
    github_api_url: str = DEFAULT_GITHUB_API_URL
    github_token: str | None = None
    main_line: str = DEFAULT_MAIN_LINE
    review_remote: str = DEFAULT_REVIEW_REMOTE
    logging_json_enabled: bool = False
    logging_level: str = "WARNING"

    @property
    def display_path(self) -> str:
        return str(self.source_file) if self.source_file else CONFIG_FILE


def config_path() -> Path:
    return Path(os.environ.get("GRR_CONFIG") or CONFIG_FILE).expanduser()


def cache_path() -> Path:
    return Path(os.environ.get("GRR_CACHE") or CACHE_FILE).expanduser()


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(f'invalid "{name}" section in config: expected a mapping')
    return cast(dict[str, Any], value)


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def load_config(path: str | Path | None = None) -> GrrConfig:
    """Load the YAML config; a missing file means all defaults."""
    p = Path(path).expanduser() if path is not None else config_path()
    if not p.exists():
        get_logger().debug("no grr config file", config_path=str(p))
        return GrrConfig()
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        where = f" at line {mark.line + 1}, column {mark.column + 1}" if mark else ""
        raise ConfigurationError(f'invalid config in "{p}"{where}: {exc}') from exc
    except OSError as exc:
        raise ConfigurationError(f'cannot read config file "{p}": {exc}') from exc
    if not isinstance(raw, dict):
        raise ConfigurationError(f'invalid config in "{p}": top level must be a mapping')
    gerrit = _section(raw, "gerrit")
    jira = _section(raw, "jira")
    github = _section(raw, "github")
    git = _section(raw, "git")
    logging_config = _section(raw, "logging")
    get_logger().debug("loaded grr config", config_path=str(p))
    return GrrConfig(
        source_file=p,
        gerrit_username=_opt_str(gerrit.get("username")),
        gerrit_host=_opt_str(gerrit.get("host")) or DEFAULT_GERRIT_HOST,
        gerrit_port=int(gerrit.get("port", DEFAULT_GERRIT_PORT)),
        jira_url=(_opt_str(jira.get("url")) or DEFAULT_JIRA_URL).rstrip("/"),
        jira_username=_opt_str(jira.get("username")),
        jira_password=None if jira.get("password") is None else str(jira.get("password")),
        github_api_url=(_opt_str(github.get("api_url")) or DEFAULT_GITHUB_API_URL).rstrip("/"),
        github_token=_opt_str(github.get("token")),
        main_line=_opt_str(git.get("main_line")) or DEFAULT_MAIN_LINE,
        review_remote=_opt_str(git.get("remote")) or DEFAULT_REVIEW_REMOTE,
        logging_json_enabled=bool(logging_config.get("json_enabled", False)),
        logging_level=str(logging_config.get("level", "WARNING")),
    )


@dataclass
class GrrCache:
    """Small JSON key/value store for values discovered at runtime."""

    path: Path
    data: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str) -> Any:
        return self.data.get(key)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value
        self.save()

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(self.data, indent=2) + "\n", encoding="utf-8")
        tmp.replace(self.path)


def load_cache(path: str | Path | None = None) -> GrrCache:
    p = Path(path).expanduser() if path is not None else cache_path()
    if not p.exists():
        return GrrCache(path=p)
    try:
        raw: Any = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        get_logger().debug("invalid cache, discarding", cache_path=str(p), error=str(exc))
        p.unlink(missing_ok=True)
        return GrrCache(path=p)
    if not isinstance(raw, dict):
        p.unlink(missing_ok=True)
        return GrrCache(path=p)
    return GrrCache(path=p, data=raw)


__all__ = [
    "CACHE_FILE",
    "CONFIG_FILE",
    "GrrCache",
    "GrrConfig",
    "JIRA_CONFIG_HELP",
    "cache_path",
    "config_path",
    "load_cache",
    "load_config",
]
