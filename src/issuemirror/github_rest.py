from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import requests

from .retry import RetryConfig, run_with_retries

DEFAULT_GRAPHQL_URL = "https://api.github.com/graphql"
USER_AGENT = "issuemirror/0.1.0"
HTTP_ERROR_STATUS = 400
REQUEST_TIMEOUT = 30


class GitHubAPIError(RuntimeError):
    """Raised when the GitHub GraphQL API returns an error."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text


@dataclass
class GitHubClient:
    """Minimal GraphQL client used by the issue and project sources."""

    token: str
    graphql_url: str = DEFAULT_GRAPHQL_URL
    session: requests.Session | None = None
    retry: RetryConfig | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._session = self.session or requests.Session()
        self._session.headers.setdefault("Authorization", f"Bearer {self.token}")
        self._session.headers.setdefault("Accept", "application/vnd.github+json")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    def _post(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        # GraphQL errors (including RATE_LIMITED) arrive with HTTP 200, so they
        # are raised inside the retried call for classify_error to see.
        def _run() -> dict[str, Any]:
            response = self._session.post(
                self.graphql_url,
                json=payload,
                headers=self._session.headers,
                timeout=REQUEST_TIMEOUT,
            )
            if response.status_code >= HTTP_ERROR_STATUS:
                raise GitHubAPIError(
                    f"GitHub GraphQL request failed with {response.status_code}: {response.text}",
                    status=response.status_code,
                    response_text=response.text,
                )
            body = response.json()
            if not isinstance(body, Mapping):
                raise GitHubAPIError("GraphQL response was not a JSON object")
            errors = body.get("errors")
            if errors:
                raise GitHubAPIError(f"GraphQL query failed: {errors}")
            data = body.get("data")
            if not isinstance(data, Mapping):
                raise GitHubAPIError("GraphQL response missing data")
            return dict(data)

        return run_with_retries(_run, cfg=self.retry)

    def graphql(self, query: str, variables: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Run one GraphQL query and return its ``data`` object."""
        return self._post({"query": query, "variables": dict(variables or {})})


__all__ = ["GitHubAPIError", "GitHubClient", "DEFAULT_GRAPHQL_URL"]
