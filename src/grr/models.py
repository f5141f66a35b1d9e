from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

JIRA = "jira"
GITHUB = "github"

REVIEW_APPROVAL = "Code-Review"
INTEGRATION_APPROVAL = "Integration-Approval"


@dataclass(frozen=True)
class IssueRef:
    """A resolved issue reference.

    ``id`` is the tracker-native short id (``FOO-123`` or ``123``); ``name``
    is the display form (``FOO-123`` or ``owner/repo#123``). Equality only
    looks at ``type`` and ``id``.
    """

    type: str
    id: str
    name: str = field(compare=False)


@dataclass
class ExtraIssue:
    issue: IssueRef
    title: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "type": self.issue.type,
            "id": self.issue.id,
            "name": self.issue.name,
            "title": self.title,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ExtraIssue:
        # Older branch configs used issueType/issueId/issueName/issueTitle.
        issue_id = str(raw.get("id") or raw.get("issueId") or "")
        name = str(raw.get("name") or raw.get("issueName") or issue_id)
        type_ = str(raw.get("type") or raw.get("issueType") or "")
        title = str(raw.get("title") or raw.get("issueTitle") or "")
        return cls(issue=IssueRef(type=type_, id=issue_id, name=name), title=title)


@dataclass(frozen=True)
class Commit:
    sha: str
    author: str
    message: str

    @property
    def subject(self) -> str:
        return self.message.split("\n", 1)[0]


@dataclass(frozen=True)
class Approval:
    type: str
    value: int
    reviewer_name: str
    reviewer_email: str


@dataclass
class Review:
    number: str
    project: str
    current_patch_set: str
    approvals: list[Approval]
    commit_message: str
    url: str = ""
    subject: str = ""
    owner_email: str | None = None
    created_on: int | None = None

    @classmethod
    def from_query(cls, hit: dict[str, Any]) -> Review:
        patch_set = hit.get("currentPatchSet") or {}
        approvals: list[Approval] = []
        for raw in patch_set.get("approvals") or []:
            by = raw.get("by") or {}
            try:
                value = int(raw.get("value", 0))
            except (TypeError, ValueError):
                value = 0
            approvals.append(
                Approval(
                    type=str(raw.get("type", "")),
                    value=value,
                    reviewer_name=str(by.get("name", "")),
                    reviewer_email=str(by.get("email", "")),
                )
            )
        owner = hit.get("owner") or {}
        created = hit.get("createdOn")
        return cls(
            number=str(hit.get("number", "")),
            project=str(hit.get("project", "")),
            current_patch_set=str(patch_set.get("number", "")),
            approvals=approvals,
            commit_message=str(hit.get("commitMessage", "")),
            url=str(hit.get("url", "")),
            subject=str(hit.get("subject", "")),
            owner_email=owner.get("email"),
            created_on=int(created) if isinstance(created, (int, float)) else None,
        )


class CrAction(str, Enum):
    NONE = "none"
    CREATE = "create"
    UPDATE = "update"
    UPDATE_COMMIT_MESSAGE = "updateCommitMessage"


__all__ = [
    "Approval",
    "Commit",
    "CrAction",
    "ExtraIssue",
    "GITHUB",
    "INTEGRATION_APPROVAL",
    "IssueRef",
    "JIRA",
    "REVIEW_APPROVAL",
    "Review",
]
