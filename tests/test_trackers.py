from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import pytest
import requests

from grr.errors import IssueFetchError, IssueNotFound
from grr.models import GITHUB, JIRA, IssueRef
from grr.trackers import USER_AGENT, GitHubClient, JiraClient


@dataclass
class _DummyResponse:
    status_code: int
    payload: Any

    def json(self) -> Any:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class _DummySession:
    def __init__(self, responses: list[_DummyResponse | Exception]):
        self._responses = responses
        self.request_log: list[tuple[str, dict[str, Any]]] = []
        self.headers: dict[str, str] = {}

    def get(self, url: str, **kwargs: Any) -> _DummyResponse:
        self.request_log.append((url, kwargs))
        if not self._responses:
            raise AssertionError("No response queued for request")
        nxt = self._responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt


def _jira(session: _DummySession) -> JiraClient:
    return JiraClient(
        base_url="https://jira.example.com/",
        username="jdoe",
        password="s3cret",
        session=session,  # type: ignore[arg-type]
    )


def _github(session: _DummySession, token: str | None = None) -> GitHubClient:
    return GitHubClient(repo="joyent/demo", token=token, session=session)  # type: ignore[arg-type]


def test_jira_title() -> None:
    session = _DummySession([_DummyResponse(200, {"fields": {"summary": "fix thing"}})])
    assert _jira(session).fetch_title(IssueRef(JIRA, "FOO-1", "FOO-1")) == "fix thing"
    url, kwargs = session.request_log[0]
    assert url == "https://jira.example.com/rest/api/2/issue/FOO-1"
    assert kwargs["auth"] == ("jdoe", "s3cret")
    assert kwargs["timeout"] == 30
    assert session.headers["User-Agent"] == USER_AGENT


def test_github_title_uses_issue_repo_and_token() -> None:
    session = _DummySession([_DummyResponse(200, {"title": "gh title"})])
    client = _github(session, token="tok")
    assert client.fetch_title(IssueRef(GITHUB, "7", "joyent/demo#7")) == "gh title"
    assert session.request_log[0][0] == "https://api.github.com/repos/joyent/demo/issues/7"
    assert session.headers["Authorization"] == "Bearer tok"


def test_github_without_token_sends_no_authorization() -> None:
    session = _DummySession([_DummyResponse(200, {"title": "t"})])
    _github(session).fetch_title(IssueRef(GITHUB, "7", "joyent/demo#7"))
    assert "Authorization" not in session.headers


def test_not_found() -> None:
    session = _DummySession([_DummyResponse(404, {"message": "Not Found"})])
    with pytest.raises(IssueNotFound):
        _github(session).fetch_title(IssueRef(GITHUB, "7", "joyent/demo#7"))


@pytest.mark.parametrize(
    "response",
    [
        _DummyResponse(500, {}),
        _DummyResponse(401, {}),
        _DummyResponse(200, ValueError("not json")),
        _DummyResponse(200, {"fields": {}}),
        requests.ConnectionError("connection refused"),
    ],
)
def test_fetch_failures(response: _DummyResponse | Exception) -> None:
    session = _DummySession([response])
    with pytest.raises(IssueFetchError):
        _jira(session).fetch_title(IssueRef(JIRA, "FOO-1", "FOO-1"))
