"""Runtime helpers for grr CLI orchestration."""

from __future__ import annotations

import os
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from .auth import TrackerCredentials, resolve_credentials
from .branch_config import BranchMetadataStore
from .config import GrrCache, GrrConfig, load_cache, load_config
from .gerrit import GerritClient
from .git import GitRepo
from .issues import IssueResolver
from .lifecycle import BranchLifecycle
from .logging import configure_logging, get_logger
from .process import ProcessRunner, Runner
from .reconcile import CrSync

_TRUTHY = {"1", "true", "yes", "on"}


class _HandlerCallable(Protocol):
    def __call__(self) -> Any: ...


@dataclass
class Services:
    """Collaborators for one invocation, all bound to the same working tree."""

    config: GrrConfig
    cache: GrrCache
    credentials: TrackerCredentials
    runner: Runner
    git: GitRepo
    store: BranchMetadataStore
    gerrit: GerritClient
    lifecycle: BranchLifecycle

    def resolver(self, repo_name: str) -> IssueResolver:
        return IssueResolver(repo_name, self.config, self.credentials)

    def cr_sync(self) -> CrSync:
        return CrSync(
            self.git,
            self.store,
            self.gerrit,
            self.lifecycle,
            self.resolver,
            main_line=self.config.main_line,
        )


def build_services(
    cfg: GrrConfig,
    *,
    cwd: str | Path | None = None,
    cache: GrrCache | None = None,
    runner: Runner | None = None,
    credentials: TrackerCredentials | None = None,
) -> Services:
    runner = runner or ProcessRunner(cwd=cwd)
    cache = cache if cache is not None else load_cache()
    if credentials is None:
        credentials = resolve_credentials(cfg, dotenv_dir=Path(cwd) if cwd else None)
    git = GitRepo(runner)
    store = BranchMetadataStore(git, cfg.main_line)
    return Services(
        config=cfg,
        cache=cache,
        credentials=credentials,
        runner=runner,
        git=git,
        store=store,
        gerrit=GerritClient(runner, git, cfg, cache),
        lifecycle=BranchLifecycle(git, store, cfg.main_line),
    )


def prepare_config(
    args: Any, *, loader: Callable[[str | None], GrrConfig] = load_config
) -> GrrConfig:
    """Load the config and set up logging for the given argparse namespace."""
    cfg = loader(getattr(args, "config", None))
    json_logging = cfg.logging_json_enabled or (
        os.environ.get("GRR_LOG_JSON", "").strip().lower() in _TRUTHY
    )
    level = "DEBUG" if getattr(args, "verbose", False) else cfg.logging_level
    configure_logging(json_logging=json_logging, level=level)
    return cfg


def execute_command(handler: _HandlerCallable, args: Any, command: str) -> int:
    """Run a command handler, logging its duration and exit code."""
    logger = get_logger()
    start = time.monotonic()
    exit_code = 1
    try:
        result = handler()
        exit_code = int(result) if result is not None else 0
        return exit_code
    finally:
        duration_ms = max(0.0, time.monotonic() - start) * 1000
        logger.log_performance(command, duration_ms, exit_code=exit_code)


__all__ = ["Services", "build_services", "execute_command", "prepare_config"]
