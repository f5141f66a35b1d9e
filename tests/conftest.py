"""Pytest configuration for grr tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install (`pip install -e .`), and keeps every
test away from the developer's real ``~/.grrrc`` / ``~/.grrcache``.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import sys
import time
from pathlib import Path

import pytest

_TEST_START_TIMES: dict[str, float] = {}
_TEST_DURATIONS: list[tuple[str, float]] = []

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from grr.logging import configure_logging  # noqa: E402

GIT_ENV = {
    "GIT_AUTHOR_NAME": "Jane Doe",
    "GIT_AUTHOR_EMAIL": "jane@example.com",
    "GIT_COMMITTER_NAME": "Jane Doe",
    "GIT_COMMITTER_EMAIL": "jane@example.com",
    "GIT_CONFIG_NOSYSTEM": "1",
}


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GRR_CONFIG", str(tmp_path / "grrrc.yaml"))
    monkeypatch.setenv("GRR_CACHE", str(tmp_path / "grrcache.json"))
    for name in (
        "GRR_GITHUB_TOKEN",
        "GITHUB_TOKEN",
        "GH_TOKEN",
        "GRR_JIRA_USERNAME",
        "GRR_JIRA_PASSWORD",
        "GRR_LOG_JSON",
        "NO_COLOR",
    ):
        # undo also drops values a test loaded from a .env file
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    configure_logging(level="WARNING")


def _git(cwd: Path, *args: str) -> str:
    return subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    ).stdout


@pytest.fixture
def git_repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A fresh repository on ``master`` with one commit and a GitHub origin."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for key, value in GIT_ENV.items():
        monkeypatch.setenv(key, value)
    repo = tmp_path / "demo"
    repo.mkdir()
    _git(repo, "init", "-q")
    _git(repo, "symbolic-ref", "HEAD", "refs/heads/master")
    _git(repo, "config", "user.name", GIT_ENV["GIT_AUTHOR_NAME"])
    _git(repo, "config", "user.email", GIT_ENV["GIT_AUTHOR_EMAIL"])
    _git(repo, "config", "commit.gpgsign", "false")
    (repo / "README").write_text("demo\n", encoding="utf-8")
    _git(repo, "add", "README")
    _git(repo, "commit", "-q", "-m", "initial")
    _git(repo, "remote", "add", "origin", "git@github.com:joyent/demo.git")
    return repo


@pytest.fixture
def git():  # type: ignore[no-untyped-def]
    return _git


# --- Timing utilities to help identify slow/stalling tests ---


def pytest_runtest_setup(item):  # type: ignore
    _TEST_START_TIMES[item.nodeid] = time.perf_counter()


def pytest_runtest_teardown(item):  # type: ignore
    start = _TEST_START_TIMES.pop(item.nodeid, None)
    if start is not None:
        _TEST_DURATIONS.append((item.nodeid, time.perf_counter() - start))


def pytest_sessionfinish(session, exitstatus):  # type: ignore
    if not _TEST_DURATIONS or os.environ.get("GRR_TEST_TIMINGS") != "1":
        return
    slow = sorted(_TEST_DURATIONS, key=lambda x: x[1], reverse=True)[:10]
    print("\n=== Slowest Tests (top 10) ===")
    for nodeid, secs in slow:
        print(f"{secs:0.3f}s  {nodeid}")
