"""REST clients for the two issue trackers grr reads titles from.

Only a single read is needed from each (the issue title), so both clients
are intentionally tiny. Failures are never retried.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import requests

from . import __version__
from .errors import IssueFetchError, IssueNotFound
from .models import IssueRef

USER_AGENT = f"grr/{__version__}"
REQUEST_TIMEOUT = 30
HTTP_OK = 200
HTTP_NOT_FOUND = 404


def _get_json(session: requests.Session, url: str, what: str, **kwargs: Any) -> Any:
    try:
        response = session.get(url, timeout=REQUEST_TIMEOUT, **kwargs)
    except requests.RequestException as exc:
        raise IssueFetchError(f"could not retrieve {what} info: {exc}") from exc
    if response.status_code == HTTP_NOT_FOUND:
        raise IssueNotFound(f"no such {what}")
    if response.status_code != HTTP_OK:
        raise IssueFetchError(
            f"unexpected response status for {what}: {response.status_code}"
        )
    try:
        return response.json()
    except ValueError as exc:
        raise IssueFetchError(f"invalid JSON in response for {what}: {exc}") from exc


@dataclass
class JiraClient:
    """``GET <url>/rest/api/2/issue/<key>`` with basic auth."""

    base_url: str
    username: str
    password: str
    session: requests.Session | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._session = self.session or requests.Session()
        self._session.headers.setdefault("User-Agent", USER_AGENT)
        self._session.headers.setdefault("Accept", "application/json")

    def fetch_title(self, issue: IssueRef) -> str:
        url = f"{self.base_url.rstrip('/')}/rest/api/2/issue/{quote(issue.id, safe='')}"
        data = _get_json(
            self._session,
            url,
            f"JIRA issue {issue.name}",
            auth=(self.username, self.password),
        )
        fields = data.get("fields") if isinstance(data, dict) else None
        summary = fields.get("summary") if isinstance(fields, dict) else None
        if not isinstance(summary, str):
            raise IssueFetchError(f"JIRA issue {issue.name} response has no summary")
        return summary


@dataclass
class GitHubClient:
    """``GET <api>/repos/<owner>/<repo>/issues/<n>``; token optional."""

    repo: str
    base_url: str = "https://api.github.com"
    token: str | None = None
    session: requests.Session | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._session = self.session or requests.Session()
        self._session.headers.setdefault("User-Agent", USER_AGENT)
        self._session.headers.setdefault("Accept", "application/vnd.github+json")
        if self.token:
            self._session.headers.setdefault("Authorization", f"Bearer {self.token}")

    def fetch_title(self, issue: IssueRef) -> str:
        repo, _, number = issue.name.partition("#")
        url = f"{self.base_url.rstrip('/')}/repos/{repo or self.repo}/issues/{number or issue.id}"
        data = _get_json(self._session, url, f"GitHub issue {issue.name}")
        title = data.get("title") if isinstance(data, dict) else None
        if not isinstance(title, str):
            raise IssueFetchError(f"GitHub issue {issue.name} response has no title")
        return title


__all__ = ["GitHubClient", "JiraClient", "USER_AGENT"]
