"""Creating and retiring the per-issue working branch.

Two states: on the main line, or on an issue branch. ``grr <issue>`` on the
main line creates ``grr-<issue>`` and switches to it; any other branch is
used as-is. ``grr -D`` strips the branch's metadata and, for branches that
follow the ``grr-<issue>`` convention only, switches back to the main line
and deletes the branch.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .branch_config import BranchMetadataStore
from .errors import BranchAlreadyExists, CannotDeleteMainLine
from .git import GitRepo
from .logging import get_logger

BRANCH_PREFIX = "grr-"
INTEGRATION_PREFIX = "grr/auto/"

# 'grr-TOOLS-123', or the older 'grr/TOOLS-123'.
_GRR_BRANCH = re.compile(r"^grr[-/]([^/]+)$")


def issue_branch_name(issue_id: str) -> str:
    return BRANCH_PREFIX + issue_id


def integration_branch_name(issue_id: str) -> str:
    return INTEGRATION_PREFIX + issue_id


def is_grr_branch(name: str) -> bool:
    return bool(_GRR_BRANCH.match(name))


@dataclass
class TeardownResult:
    branch: str
    deleted: bool


class BranchLifecycle:
    def __init__(self, git: GitRepo, store: BranchMetadataStore, main_line: str) -> None:
        self.git = git
        self.store = store
        self.main_line = main_line
        self.logger = get_logger()

    def ensure_on_issue_branch(self, current_branch: str, issue_id: str) -> str:
        """Return the issue branch, creating and checking it out if needed."""
        if current_branch != self.main_line:
            return current_branch
        branch = issue_branch_name(issue_id)
        if self.git.branch_exists(branch):
            raise BranchAlreadyExists(
                f'branch "{branch}" already exists: check it out to continue work on '
                f"{issue_id}, or delete it"
            )
        print(f"Creating branch for CR: {branch}")
        self.git.create_branch(branch)
        self.logger.log_operation("branch_created", branch=branch)
        return branch

    def teardown(self, current_branch: str) -> TeardownResult:
        if current_branch == self.main_line:
            raise CannotDeleteMainLine(f"cannot grr -D on branch {self.main_line}")

        print(f'Removing grr config for branch "{current_branch}"')
        self.store.remove_all(current_branch)

        if not is_grr_branch(current_branch):
            self.logger.debug("not a grr branch, leaving it in place", branch=current_branch)
            return TeardownResult(branch=current_branch, deleted=False)

        print(f'Deleting local grr branch "{current_branch}"')
        self.git.checkout(self.main_line)
        self.git.delete_branch(current_branch, echo=True)
        return TeardownResult(branch=current_branch, deleted=True)


__all__ = [
    "BRANCH_PREFIX",
    "BranchLifecycle",
    "INTEGRATION_PREFIX",
    "TeardownResult",
    "integration_branch_name",
    "is_grr_branch",
    "issue_branch_name",
]
