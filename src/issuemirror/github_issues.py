"""Upstream issue source.

Fetches every issue of a repository through the GraphQL ``issues``
connection, 100 per page. The whole fetch either completes or raises: the
reconciler relies on a complete issue set, so a partially drained listing is
never returned.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import Any, Protocol

from .github_rest import GitHubAPIError
from .models import Issue
from .pagination import Page, iter_pages

ISSUES_PAGE_SIZE = 100

ISSUE_FIELDS = """
  id
  number
  title
  body
  state
  url
  milestone { title }
  repository { nameWithOwner }
  assignees(first: 30) { nodes { login } }
  labels(first: 50) { nodes { name } }
  issueType { name }
"""

ISSUES_QUERY = f"""
query($owner: String!, $repo: String!, $cursor: String, $pageSize: Int!) {{
  repository(owner: $owner, name: $repo) {{
    issues(first: $pageSize, after: $cursor, orderBy: {{field: CREATED_AT, direction: ASC}}) {{
      pageInfo {{ endCursor hasNextPage }}
      nodes {{ {ISSUE_FIELDS} }}
    }}
  }}
}}
"""

ISSUE_QUERY = f"""
query($owner: String!, $repo: String!, $number: Int!) {{
  repository(owner: $owner, name: $repo) {{
    issue(number: $number) {{ {ISSUE_FIELDS} }}
  }}
}}
"""

logger = logging.getLogger(__name__)


class GraphQLTransport(Protocol):  # pragma: no cover - interface only
    def graphql(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]: ...


def split_repo(repo: str) -> tuple[str, str]:
    owner, sep, name = repo.partition("/")
    if not sep or not owner or not name:
        raise ValueError(f"Repository must be 'owner/name', got {repo!r}")
    return owner, name


class IssueSource:
    def __init__(self, client: GraphQLTransport, *, excluded_types: Iterable[str] = ("Feature",)):
        self.client = client
        self.excluded_types = {t.casefold() for t in excluded_types}

    def is_excluded(self, issue: Issue) -> bool:
        return bool(issue.issue_type) and issue.issue_type.casefold() in self.excluded_types

    def _repository(self, data: dict[str, Any], repo: str) -> dict[str, Any]:
        repository = data.get("repository")
        if not isinstance(repository, dict):
            raise GitHubAPIError(f"Repository {repo} not found or not accessible")
        return repository

    def iter_issues(self, repo: str) -> Iterator[Issue]:
        owner, name = split_repo(repo)

        def fetch(cursor: str | None) -> Page[Any]:
            data = self.client.graphql(
                ISSUES_QUERY,
                {"owner": owner, "repo": name, "cursor": cursor, "pageSize": ISSUES_PAGE_SIZE},
            )
            return Page.from_connection(self._repository(data, repo).get("issues"))

        for node in iter_pages(fetch):
            issue = Issue.from_graphql(node)
            if self.is_excluded(issue):
                logger.debug("skipping %s (issue type %s)", issue.url, issue.issue_type)
                continue
            yield issue

    def fetch_issues(self, repo: str) -> list[Issue]:
        return list(self.iter_issues(repo))

    def fetch_issue(self, repo: str, number: int) -> Issue | None:
        """Fetch one issue; ``None`` when it does not exist or its type is excluded."""
        owner, name = split_repo(repo)
        data = self.client.graphql(ISSUE_QUERY, {"owner": owner, "repo": name, "number": number})
        node = self._repository(data, repo).get("issue")
        if not isinstance(node, dict):
            return None
        issue = Issue.from_graphql(node)
        return None if self.is_excluded(issue) else issue


__all__ = ["IssueSource", "ISSUES_QUERY", "ISSUE_QUERY", "split_repo"]
