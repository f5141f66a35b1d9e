"""Gerrit access over ssh, plus the ``cr`` git remote wiring.

All review queries go through ``ssh -p 29418 <user>@<host> gerrit ...``.
Pushes go through the ``cr`` git remote, whose URL must be
``<user>@<host>:<repo>.git``.
"""

from __future__ import annotations

import json
import re
from typing import Any

from .config import GrrCache, GrrConfig
from .errors import (
    CommentPostError,
    ExternalToolError,
    RemoteConfigConflict,
    ReviewMismatch,
    ReviewNotFound,
    UsernameUnknown,
)
from .git import GitRepo
from .logging import get_logger
from .models import Review
from .process import ProcessResult, Runner

CACHE_KEY_USERNAME = "gerritUsername"

# The greeting from ``ssh -p 29418 <host>`` includes an example clone URL:
#   git clone ssh://jdoe@cr.joyent.us/REPOSITORY_NAME.git
_PROBE_USERNAME = re.compile(r"ssh://(.*?)@.*/REPOSITORY_NAME\.git")

# ``git push cr HEAD:refs/for/master`` reports the new change on stderr as:
#   remote:   https://cr.joyent.us/272 TOOLS-1516 the title [NEW]
_CREATED_REVIEW = re.compile(r"^remote:\s+https://[^/\s]+/(?:c/[^\s]*?/\+/)?(\d+) ", re.MULTILINE)


def parse_created_review_number(text: str) -> int | None:
    match = _CREATED_REVIEW.search(text or "")
    return int(match.group(1)) if match else None


def parse_query_output(stdout: str) -> list[dict[str, Any]]:
    """Parse ``gerrit query --format=JSON`` output, dropping the stats row."""
    hits: list[dict[str, Any]] = []
    for line in stdout.splitlines():
        if not line.strip():
            continue
        row = json.loads(line)
        if not isinstance(row, dict) or row.get("type") == "stats":
            continue
        hits.append(row)
    return hits


def quote_comment(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class GerritClient:
    def __init__(
        self,
        runner: Runner,
        git: GitRepo,
        config: GrrConfig,
        cache: GrrCache,
    ) -> None:
        self.runner = runner
        self.git = git
        self.config = config
        self.cache = cache
        self.logger = get_logger()
        self.username: str | None = None

    @property
    def host(self) -> str:
        return self.config.gerrit_host

    def review_url(self, number: str | int) -> str:
        return f"https://{self.host}/{number}"

    def _ssh_base(self, target: str) -> list[str]:
        return [
            "ssh",
            "-q",
            "-o",
            "StrictHostKeyChecking=no",
            "-o",
            "UserKnownHostsFile=/dev/null",
            "-p",
            str(self.config.gerrit_port),
            target,
        ]

    def _gerrit(self, *args: str) -> ProcessResult:
        if not self.username:
            self.find_username()
        return self.runner.check([*self._ssh_base(f"{self.username}@{self.host}"), "gerrit", *args])

    # ---- identity ------------------------------------------------------
    def find_username(self) -> str:
        """Config, then cache, then asking the server over ssh (the answer is cached)."""
        if self.config.gerrit_username:
            self.username = self.config.gerrit_username
            self.logger.debug("gerrit username from config", username=self.username)
            return self.username
        cached = self.cache.get(CACHE_KEY_USERNAME)
        if isinstance(cached, str) and cached:
            self.username = cached
            self.logger.debug("gerrit username from cache", username=self.username)
            return self.username

        result = self.runner.run(self._ssh_base(self.host))
        match = _PROBE_USERNAME.search(result.stderr or "")
        if not match:
            raise UsernameUnknown(
                "cannot determine your gerrit username, please add this to "
                f'"{self.config.display_path}":\n'
                "    gerrit:\n"
                '      username: "<your gerrit/github username>"'
            )
        self.username = match.group(1)
        self.logger.debug("gerrit username from ssh", username=self.username)
        self.cache.set(CACHE_KEY_USERNAME, self.username)
        return self.username

    def expected_remote_url(self, repo_name: str, username: str) -> str:
        return f"{username}@{self.host}:{repo_name}.git"

    def ensure_remote(self, repo_name: str, username: str) -> None:
        remote = self.config.review_remote
        expected = self.expected_remote_url(repo_name, username)
        current = self.git.remote_url(remote) if remote in self.git.remotes() else None
        if current is None:
            print(f'Adding "{remote}" git remote: {expected}')
            self.git.add_remote(remote, expected)
        elif current == "":
            print(f'Setting "{remote}" git remote url: {expected}')
            self.git.set_remote_url(remote, expected)
        elif current != expected:
            raise RemoteConfigConflict(
                f'unexpected "{remote}" remote url: "{current}" (expected it to be "{expected}")'
            )

    # ---- queries -------------------------------------------------------
    def query_current_review(self, number: str, repo_name: str) -> Review:
        result = self._gerrit("query", "--current-patch-set", "--format=JSON", number)
        try:
            hits = parse_query_output(result.stdout)
        except json.JSONDecodeError as exc:
            raise ReviewNotFound(
                f'unexpected response from "gerrit query" for CR {number}: {exc}'
            ) from exc
        if not hits:
            raise ReviewNotFound(f"gerrit query found no CR {number}")
        review = Review.from_query(hits[0])
        if review.project != repo_name:
            raise ReviewMismatch(
                f"gerrit query for CR {number} returned a hit for project {review.project}"
            )
        if review.number != str(number):
            raise ReviewMismatch(f"gerrit query for CR {number} returned a hit for CR {review.number}")
        self.logger.debug(
            "current CR", number=number, patch_set=review.current_patch_set
        )
        return review

    def list_open_reviews(self, repo_name: str, limit: int = 500) -> list[Review]:
        result = self._gerrit(
            "query", "--format=JSON", f"project:{repo_name}", "status:open", f"limit:{limit}"
        )
        try:
            hits = parse_query_output(result.stdout)
        except json.JSONDecodeError as exc:
            raise ReviewNotFound(
                f'invalid json response from "gerrit query" for project:{repo_name}: {exc}'
            ) from exc
        return [Review.from_query(hit) for hit in hits if "url" in hit]

    # ---- writes --------------------------------------------------------
    def push(self, local_ref: str, destination_ref: str) -> ProcessResult:
        return self.runner.check(
            ["git", "push", self.config.review_remote, f"{local_ref}:{destination_ref}"],
            echo=True,
        )

    def post_comment(self, number: str, patch_set: str, text: str) -> None:
        try:
            self._gerrit("review", "-m", quote_comment(text), f"{number},{patch_set}")
        except ExternalToolError as exc:
            raise CommentPostError(f"could not comment on CR {number}: {exc}") from exc


__all__ = [
    "GerritClient",
    "parse_created_review_number",
    "parse_query_output",
    "quote_comment",
]
