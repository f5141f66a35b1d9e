"""Per-branch grr metadata kept in the repository's ``.git/config``.

It looks like this::

    [branch "grr-TOOLS-1516"]
        issue = TOOLS-1516
        title = testing 1 2 3 grr
        lastPushedSha = 0c1e3d...
        cr = 272

The main line branch must never carry grr metadata: every accessor
silently refuses (empty read, no-op write) when asked about it.
"""

from __future__ import annotations

import json

from .errors import ConfigAccessError
from .git import GitRepo
from .logging import get_logger
from .models import ExtraIssue
from .process import ProcessResult, failure_message

KEY_ISSUE = "issue"
KEY_EXTRA_ISSUES = "extraIssues"
KEY_TITLE = "title"
KEY_PARENTHETICAL = "parenthetical"
KEY_LAST_PUSHED_SHA = "lastPushedSha"
KEY_CR = "cr"

# ``git config`` exit statuses, see git-config(1).
_EXIT_KEY_NOT_FOUND = 1
_EXIT_NOTHING_TO_UNSET = 5
_NO_SUCH_SECTION = "no such section"


def _access_error(result: ProcessResult) -> ConfigAccessError:
    return ConfigAccessError(
        failure_message(result),
        argv=result.argv,
        exit_code=result.exit_code,
        stderr=result.stderr,
    )


class BranchMetadataStore:
    def __init__(self, git: GitRepo, main_line: str) -> None:
        self.git = git
        self.main_line = main_line
        self.logger = get_logger()

    def _key(self, branch: str, key: str) -> str:
        return f"branch.{branch}.{key}"

    # ---- raw key/value -------------------------------------------------
    def get(self, branch: str, key: str) -> str:
        if branch == self.main_line:
            return ""
        result = self.git.config_get(self._key(branch, key))
        if result.exit_code == _EXIT_KEY_NOT_FOUND:
            return ""
        if not result.ok:
            raise _access_error(result)
        return result.stdout.strip()

    def set(self, branch: str, key: str, value: str) -> None:
        if branch == self.main_line:
            return
        result = self.git.config_set(self._key(branch, key), value)
        if not result.ok:
            raise _access_error(result)
        self.logger.debug("set branch config", branch=branch, key=key, value=value)

    def unset(self, branch: str, key: str) -> None:
        if branch == self.main_line:
            return
        result = self.git.config_unset(self._key(branch, key))
        if not result.ok and result.exit_code != _EXIT_NOTHING_TO_UNSET:
            raise _access_error(result)

    def remove_all(self, branch: str) -> None:
        if branch == self.main_line:
            return
        result = self.git.config_remove_section(f"branch.{branch}")
        if result.ok or _NO_SUCH_SECTION in result.stderr.lower():
            return
        raise _access_error(result)

    # ---- typed accessors -----------------------------------------------
    def get_issue(self, branch: str) -> str:
        return self.get(branch, KEY_ISSUE)

    def set_issue(self, branch: str, issue_id: str) -> None:
        self.set(branch, KEY_ISSUE, issue_id)

    def get_title(self, branch: str) -> str:
        return self.get(branch, KEY_TITLE)

    def set_title(self, branch: str, title: str) -> None:
        self.set(branch, KEY_TITLE, title)

    def get_parenthetical(self, branch: str) -> str:
        return self.get(branch, KEY_PARENTHETICAL)

    def set_parenthetical(self, branch: str, text: str) -> None:
        self.set(branch, KEY_PARENTHETICAL, text)

    def get_last_pushed_sha(self, branch: str) -> str:
        return self.get(branch, KEY_LAST_PUSHED_SHA)

    def set_last_pushed_sha(self, branch: str, sha: str) -> None:
        self.set(branch, KEY_LAST_PUSHED_SHA, sha)

    def get_cr(self, branch: str) -> str:
        return self.get(branch, KEY_CR)

    def set_cr(self, branch: str, cr: str) -> None:
        self.set(branch, KEY_CR, cr)

    def get_extra_issues(self, branch: str) -> list[ExtraIssue]:
        raw = self.get(branch, KEY_EXTRA_ISSUES)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ConfigAccessError(
                f'could not parse "{KEY_EXTRA_ISSUES}" JSON value from ".git/config": {raw!r}'
            ) from exc
        if not isinstance(data, list):
            raise ConfigAccessError(f'"{KEY_EXTRA_ISSUES}" in ".git/config" is not a list')
        return [ExtraIssue.from_dict(item) for item in data if isinstance(item, dict)]

    def set_extra_issues(self, branch: str, extras: list[ExtraIssue]) -> None:
        if not extras:
            self.unset(branch, KEY_EXTRA_ISSUES)
            return
        self.set(branch, KEY_EXTRA_ISSUES, serialize_extra_issues(extras))


def serialize_extra_issues(extras: list[ExtraIssue]) -> str:
    return json.dumps([e.to_dict() for e in extras], separators=(",", ":"))


__all__ = ["BranchMetadataStore", "serialize_extra_issues"]
