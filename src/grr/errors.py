"""Error taxonomy & redaction helpers.

Every failure the CLI reports derives from :class:`GrrError`. The five
categories mirror how the user is expected to react:

- ``UserInputError``     -> fix the command line / branch state
- ``ConfigurationError`` -> edit ``~/.grrrc`` or the repository remotes
- ``ExternalToolError``  -> a ``git`` / ``ssh`` subprocess failed
- ``BackendError``       -> the issue tracker or review backend misbehaved
- ``CleanupError``       -> post-push cleanup failed

``redact`` masks secrets before command lines or responses hit the logs.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"ghp_[A-Za-z0-9]{20,40}"),  # GitHub classic tokens
    re.compile(r"github_pat_\w{20,}"),  # GitHub fine-grained tokens
    re.compile(r"(?i)(authorization:\s*)(bearer|basic)\s+\S+"),
    re.compile(r"(?i)((?:password|token)\s*[=:]\s*)\S+"),
]

_REDACTION_PLACEHOLDER = "<redacted>"


def redact(text: str) -> str:
    """Redact sensitive tokens in arbitrary text."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        if pat.groups:
            redacted = pat.sub(lambda m: m.group(1) + _REDACTION_PLACEHOLDER, redacted)
        else:
            redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


class GrrError(Exception):
    """Base class for all user-facing failures."""

    exit_status: int = 1


# ---- categories ---------------------------------------------------------


class UserInputError(GrrError):
    pass


class ConfigurationError(GrrError):
    pass


class ExternalToolError(GrrError):
    """A subprocess exited nonzero (or could not be started)."""

    def __init__(
        self,
        message: str,
        *,
        argv: Sequence[str] | None = None,
        exit_code: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.argv = list(argv or [])
        self.exit_code = exit_code
        self.stderr = stderr


class BackendError(GrrError):
    pass


class CleanupError(GrrError):
    pass


# ---- user input ---------------------------------------------------------


class InvalidIssueReference(UserInputError):
    pass


class RepoMismatchError(UserInputError):
    pass


class IssueConflictError(UserInputError):
    pass


class MissingIssueError(UserInputError):
    pass


class CannotRemoveMainIssue(UserInputError):
    pass


class CannotAddMainIssueAsExtra(UserInputError):
    pass


class DuplicateExtraIssue(UserInputError):
    pass


class BranchAlreadyExists(UserInputError):
    pass


class CannotDeleteMainLine(UserInputError):
    pass


class DetachedHeadError(UserInputError):
    pass


class IntegrationBranchActive(UserInputError):
    pass


# ---- configuration ------------------------------------------------------


class UsernameUnknown(ConfigurationError):
    pass


class RemoteConfigConflict(ConfigurationError):
    pass


# ---- external tools -----------------------------------------------------


class ConfigAccessError(ExternalToolError):
    pass


# ---- backends -----------------------------------------------------------


class IssueNotFound(BackendError):
    pass


class IssueFetchError(BackendError):
    pass


class ReviewNotFound(BackendError):
    pass


class ReviewMismatch(BackendError):
    pass


class ReviewNumberNotFound(BackendError):
    pass


class CommentPostError(BackendError):
    pass


__all__ = [
    "BackendError",
    "BranchAlreadyExists",
    "CannotAddMainIssueAsExtra",
    "CannotDeleteMainLine",
    "CannotRemoveMainIssue",
    "CleanupError",
    "CommentPostError",
    "ConfigAccessError",
    "ConfigurationError",
    "DetachedHeadError",
    "DuplicateExtraIssue",
    "ExternalToolError",
    "GrrError",
    "IntegrationBranchActive",
    "InvalidIssueReference",
    "IssueConflictError",
    "IssueFetchError",
    "IssueNotFound",
    "MissingIssueError",
    "RemoteConfigConflict",
    "RepoMismatchError",
    "ReviewMismatch",
    "ReviewNotFound",
    "ReviewNumberNotFound",
    "UserInputError",
    "UsernameUnknown",
    "redact",
]
