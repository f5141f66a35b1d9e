"""Tracker credentials from the environment and ``.env`` files.

The config file wins; environment variables fill in whatever it leaves
unset. A ``.env`` in the working directory is loaded first (without
overriding variables that are already exported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .config import GrrConfig
from .logging import get_logger

GITHUB_TOKEN_VARS = ("GRR_GITHUB_TOKEN", "GITHUB_TOKEN", "GH_TOKEN")
JIRA_USERNAME_VAR = "GRR_JIRA_USERNAME"
JIRA_PASSWORD_VAR = "GRR_JIRA_PASSWORD"  # nosec B105 - variable name, not a secret


@dataclass
class TrackerCredentials:
    github_token: str | None = None
    jira_username: str | None = None
    jira_password: str | None = None

    @property
    def has_jira(self) -> bool:
        return bool(self.jira_username and self.jira_password)


def _load_dotenv_files(search: list[Path]) -> None:
    logger = get_logger()
    for env_path in search:
        if env_path.is_file():
            load_dotenv(env_path, override=False)
            logger.debug("loaded environment file", path=str(env_path))
            return


def _first_env(names: tuple[str, ...]) -> str | None:
    for name in names:
        raw = os.environ.get(name)
        if raw and raw.strip():
            return raw.strip()
    return None


def resolve_credentials(cfg: GrrConfig, *, dotenv_dir: Path | None = None) -> TrackerCredentials:
    base = dotenv_dir or Path.cwd()
    _load_dotenv_files([base / ".env", base / ".env.local"])
    return TrackerCredentials(
        github_token=cfg.github_token or _first_env(GITHUB_TOKEN_VARS),
        jira_username=cfg.jira_username or _first_env((JIRA_USERNAME_VAR,)),
        jira_password=cfg.jira_password or _first_env((JIRA_PASSWORD_VAR,)),
    )


__all__ = ["TrackerCredentials", "resolve_credentials"]
