"""Turning ``<issue>`` arguments into :class:`IssueRef` and fetching titles.

Supported shapes::

    FOO-123                                   JIRA key
    https://jira.joyent.us/browse/FOO-123     JIRA URL
    123                                       GitHub issue in this repo
    owner/repo#123                            GitHub issue id
    https://github.com/owner/repo/issues/123  GitHub URL
"""

from __future__ import annotations

import re
from collections.abc import Callable
from urllib.parse import urlparse

from .auth import TrackerCredentials
from .config import JIRA_CONFIG_HELP, GrrConfig
from .errors import ConfigurationError, InvalidIssueReference, RepoMismatchError
from .models import GITHUB, JIRA, IssueRef
from .trackers import GitHubClient, JiraClient

_JIRA_KEY = re.compile(r"^[A-Z][A-Z0-9]*-\d+$")
_JIRA_URL_PATH = re.compile(r"^/browse/([A-Z][A-Z0-9]*-\d+)$")
_GH_NUMBER = re.compile(r"^\d+$")
_GH_ID = re.compile(r"^([\w.-]+/[\w.-]+)#(\d+)$")
_GH_URL = re.compile(r"^https://github\.com/([\w.-]+/[\w.-]+)/issues/(\d+)$")


def parse_issue_arg(raw: str, repo_name: str, *, jira_url: str | None = None) -> IssueRef:
    arg = raw.strip()

    if _JIRA_KEY.match(arg):
        return IssueRef(type=JIRA, id=arg, name=arg)

    if arg.startswith(("http://", "https://")) and "/browse/" in arg:
        parsed = urlparse(arg)
        expected_host = urlparse(jira_url).netloc if jira_url else None
        match = _JIRA_URL_PATH.match(parsed.path)
        if match and (expected_host is None or parsed.netloc == expected_host):
            return IssueRef(type=JIRA, id=match.group(1), name=match.group(1))

    if _GH_NUMBER.match(arg):
        return IssueRef(type=GITHUB, id=arg, name=f"{repo_name}#{arg}")

    for pattern in (_GH_ID, _GH_URL):
        match = pattern.match(arg)
        if match:
            project, number = match.group(1), match.group(2)
            if project != repo_name:
                raise RepoMismatchError(
                    f"project from <issue>, {project}, does not match repo name, {repo_name}"
                )
            return IssueRef(type=GITHUB, id=number, name=f"{project}#{number}")

    raise InvalidIssueReference(f"invalid <issue> arg: {raw}")


class IssueResolver:
    """Resolve issue arguments for one repository and fetch their titles."""

    def __init__(
        self,
        repo_name: str,
        config: GrrConfig,
        credentials: TrackerCredentials,
        *,
        jira_factory: Callable[[], JiraClient] | None = None,
        github_factory: Callable[[], GitHubClient] | None = None,
    ) -> None:
        self.repo_name = repo_name
        self.config = config
        self.credentials = credentials
        self._jira_factory = jira_factory
        self._github_factory = github_factory
        self._jira: JiraClient | None = None
        self._github: GitHubClient | None = None

    def resolve(self, raw: str) -> IssueRef:
        return parse_issue_arg(raw, self.repo_name, jira_url=self.config.jira_url)

    def adopt(self, stored_id: str) -> IssueRef:
        """Rebuild the branch's issue from its stored id, without re-validating it."""
        match = _GH_ID.match(stored_id)
        if match:
            return IssueRef(type=GITHUB, id=match.group(2), name=stored_id)
        if _GH_NUMBER.match(stored_id):
            return IssueRef(type=GITHUB, id=stored_id, name=f"{self.repo_name}#{stored_id}")
        return IssueRef(type=JIRA, id=stored_id, name=stored_id)

    def fetch_title(self, issue: IssueRef) -> str:
        if issue.type == JIRA:
            return self._jira_client(issue).fetch_title(issue)
        return self._github_client().fetch_title(issue)

    def _jira_client(self, issue: IssueRef) -> JiraClient:
        if self._jira is None:
            if self._jira_factory is not None:
                self._jira = self._jira_factory()
            else:
                username = self.credentials.jira_username
                password = self.credentials.jira_password
                if not username or not password:
                    raise ConfigurationError(
                        f"cannot retrieve issue {issue.name} info: missing config in "
                        f'"{self.config.display_path}":\n{JIRA_CONFIG_HELP}'
                    )
                self._jira = JiraClient(
                    base_url=self.config.jira_url,
                    username=username,
                    password=password,
                )
        return self._jira

    def _github_client(self) -> GitHubClient:
        if self._github is None:
            if self._github_factory is not None:
                self._github = self._github_factory()
            else:
                self._github = GitHubClient(
                    repo=self.repo_name,
                    base_url=self.config.github_api_url,
                    token=self.credentials.github_token,
                )
        return self._github


__all__ = ["IssueResolver", "parse_issue_arg"]
