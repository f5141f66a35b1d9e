"""Thin, typed wrapper over the ``git`` commands grr needs."""

from __future__ import annotations

import re

from .errors import DetachedHeadError, ExternalToolError
from .models import Commit
from .process import ProcessResult, Runner

# Record/field separators for ``git log`` output; neither can appear in
# commit metadata or messages.
_RS = "\x1e"
_FS = "\x00"
_LOG_FORMAT = "%H%x00%an <%ae>%x00%B%x1e"

_REMOTE_URL_PATTERNS = [
    # ssh://user@host:29418/owner/name.git, https://host/owner/name.git
    re.compile(r"^[a-z+]+://[^/]+/(?P<path>.+?)(?:\.git)?/?$"),
    # git@host:owner/name.git
    re.compile(r"^(?:[^@/]+@)?[^:/]+:(?P<path>[^/].*?)(?:\.git)?/?$"),
]


def repo_name_from_url(url: str) -> str | None:
    """Repository path named by a remote URL, ``.git`` stripped.

    ``git@github.com:joyent/sdc-imgapi.git`` -> ``joyent/sdc-imgapi``
    """
    url = url.strip()
    for pattern in _REMOTE_URL_PATTERNS:
        match = pattern.match(url)
        if match:
            return match.group("path")
    return None


def parse_log(output: str) -> list[Commit]:
    commits: list[Commit] = []
    for record in output.split(_RS):
        record = record.strip("\n")
        if not record.strip():
            continue
        sha, author, message = record.split(_FS, 2)
        commits.append(Commit(sha=sha.strip(), author=author, message=message.strip()))
    return commits


class GitRepo:
    def __init__(self, runner: Runner) -> None:
        self.runner = runner

    def git(self, *args: str, echo: bool = False) -> ProcessResult:
        return self.runner.check(["git", *args], echo=echo)

    def try_git(self, *args: str) -> ProcessResult:
        return self.runner.run(["git", *args])

    # ---- branches ------------------------------------------------------
    def current_branch(self) -> str:
        result = self.try_git("symbolic-ref", "HEAD")
        if not result.ok:
            raise DetachedHeadError(
                "cannot determine current git branch (grr does not work on a detached HEAD)"
            )
        ref = result.stdout.strip()
        if not ref.startswith("refs/heads/"):
            raise ExternalToolError(f"unexpected git symbolic-ref: {ref}")
        return ref[len("refs/heads/"):]

    def list_branches(self) -> list[str]:
        out = self.git("branch", "--list", "--format=%(refname:short)").stdout
        return [line.strip() for line in out.splitlines() if line.strip()]

    def branch_exists(self, name: str) -> bool:
        return self.try_git("show-ref", "--verify", "--quiet", f"refs/heads/{name}").ok

    def create_branch(self, name: str) -> None:
        self.git("checkout", "-b", name)

    def checkout(self, name: str, *, echo: bool = False) -> None:
        self.git("checkout", name, echo=echo)

    def delete_branch(self, name: str, *, echo: bool = False) -> None:
        self.git("branch", "-D", name, echo=echo)

    # ---- remotes -------------------------------------------------------
    def remotes(self) -> list[str]:
        return [r for r in self.git("remote").stdout.split() if r]

    def remote_url(self, name: str) -> str | None:
        result = self.try_git("config", "--get", f"remote.{name}.url")
        if result.exit_code == 1:
            return None
        if not result.ok:
            raise ExternalToolError(
                f"cannot read remote.{name}.url: {result.stderr.strip()}",
                argv=result.argv,
                exit_code=result.exit_code,
                stderr=result.stderr,
            )
        return result.stdout.strip()

    def add_remote(self, name: str, url: str) -> None:
        self.git("remote", "add", name, url)

    def set_remote_url(self, name: str, url: str) -> None:
        self.git("remote", "set-url", name, url)

    # ---- history -------------------------------------------------------
    def commits_since(self, base: str) -> list[Commit]:
        """Commits reachable from HEAD but not ``base``, oldest first."""
        out = self.git("log", "--reverse", f"--format={_LOG_FORMAT}", f"{base}..HEAD").stdout
        return parse_log(out)

    # ---- local config --------------------------------------------------
    def config_get(self, key: str) -> ProcessResult:
        return self.try_git("config", "--local", "--get", key)

    def config_set(self, key: str, value: str) -> ProcessResult:
        return self.try_git("config", "--local", key, value)

    def config_unset(self, key: str) -> ProcessResult:
        return self.try_git("config", "--local", "--unset", key)

    def config_remove_section(self, section: str) -> ProcessResult:
        return self.try_git("config", "--local", "--remove-section", section)


__all__ = ["GitRepo", "parse_log", "repo_name_from_url"]
