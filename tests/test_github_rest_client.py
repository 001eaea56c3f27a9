import json
from dataclasses import dataclass
from typing import Any

import pytest

from issuemirror.github_rest import GitHubAPIError, GitHubClient
from issuemirror.retry import RetryConfig


@dataclass
class _DummyResponse:
    status_code: int
    payload: Any

    def json(self) -> Any:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload

    @property
    def text(self) -> str:
        payload = self.payload
        if isinstance(payload, (dict, list)):
            return json.dumps(payload)
        return str(payload)


class _DummySession:
    def __init__(self, responses: list[_DummyResponse]):
        self._responses = responses
        self.request_log: list[dict[str, Any]] = []
        self.headers: dict[str, str] = {}

    def post(
        self,
        url: str,
        *,
        json: Any | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> _DummyResponse:
        self.request_log.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if not self._responses:
            raise AssertionError("No response queued for request")
        return self._responses.pop(0)


def _client(session: _DummySession) -> GitHubClient:
    return GitHubClient(token="tkn", session=session, retry=RetryConfig(attempts=3, base_sleep=0))


def test_graphql_returns_data_and_sends_auth():
    session = _DummySession([_DummyResponse(200, {"data": {"viewer": {"login": "octocat"}}})])

    data = _client(session).graphql("query { viewer { login } }", {"a": 1})

    assert data == {"viewer": {"login": "octocat"}}
    sent = session.request_log[0]
    assert sent["url"] == "https://api.github.com/graphql"
    assert sent["json"] == {"query": "query { viewer { login } }", "variables": {"a": 1}}
    assert sent["headers"]["Authorization"] == "Bearer tkn"
    assert sent["timeout"] == 30


def test_graphql_errors_raise():
    session = _DummySession([_DummyResponse(200, {"errors": [{"message": "Could not resolve"}]})])
    with pytest.raises(GitHubAPIError, match="Could not resolve"):
        _client(session).graphql("query {}")


def test_missing_data_raises():
    session = _DummySession([_DummyResponse(200, {"data": None})])
    with pytest.raises(GitHubAPIError, match="missing data"):
        _client(session).graphql("query {}")


def test_server_errors_are_retried():
    session = _DummySession(
        [_DummyResponse(502, "Bad Gateway"), _DummyResponse(200, {"data": {"ok": True}})]
    )
    assert _client(session).graphql("query {}") == {"ok": True}
    assert len(session.request_log) == 2


def test_client_errors_are_not_retried():
    session = _DummySession([_DummyResponse(401, {"message": "Bad credentials"})])
    with pytest.raises(GitHubAPIError) as excinfo:
        _client(session).graphql("query {}")
    assert excinfo.value.status == 401
    assert len(session.request_log) == 1


def test_graphql_rate_limit_error_is_retried():
    limited = {
        "errors": [
            {"type": "RATE_LIMITED", "message": "API rate limit exceeded for user ID 1."}
        ]
    }
    session = _DummySession(
        [_DummyResponse(200, limited), _DummyResponse(200, {"data": {"ok": True}})]
    )

    assert _client(session).graphql("query {}") == {"ok": True}
    assert len(session.request_log) == 2


def test_graphql_query_errors_are_not_retried():
    session = _DummySession(
        [
            _DummyResponse(200, {"errors": [{"message": "Field 'nope' doesn't exist"}]}),
            _DummyResponse(200, {"data": {"ok": True}}),
        ]
    )
    with pytest.raises(GitHubAPIError, match="doesn't exist"):
        _client(session).graphql("query {}")
    assert len(session.request_log) == 1
