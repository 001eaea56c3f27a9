"""Upstream GitHub Projects (v2) source.

Collects every project item that points at an issue, together with the
item's custom field values, for either a single repository or a whole
organization. Four connections are paginated independently and all of
them are drained before returning:

* the project list of the owner
* the field definitions of each project
* the items of each project
* the field values of each item

The first page of each nested connection arrives embedded in its parent;
continuation pages are fetched through ``node(id:)`` queries.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .config import ProjectMatch, ProjectScopeKind
from .github_issues import GraphQLTransport
from .github_rest import GitHubAPIError
from .models import FieldValue, Issue, ProjectItem
from .pagination import Page, drain_pages

PROJECTS_PAGE_SIZE = 20
FIELDS_PAGE_SIZE = 50
ITEMS_PAGE_SIZE = 100
VALUES_PAGE_SIZE = 20

_PAGE_INFO = "pageInfo { endCursor hasNextPage }"

FIELD_NODE = "... on ProjectV2FieldCommon { id name dataType }"

VALUE_NODE = """
  ... on ProjectV2ItemFieldSingleSelectValue { name field { ... on ProjectV2FieldCommon { name } } }
  ... on ProjectV2ItemFieldTextValue { text field { ... on ProjectV2FieldCommon { name } } }
  ... on ProjectV2ItemFieldNumberValue { number field { ... on ProjectV2FieldCommon { name } } }
"""

ITEM_NODE = f"""
  id
  isArchived
  content {{ ... on Issue {{ id number url }} }}
  fieldValues(first: {VALUES_PAGE_SIZE}) {{ {_PAGE_INFO} nodes {{ {VALUE_NODE} }} }}
"""

PROJECT_NODE = f"""
  id
  number
  title
  url
  closed
  fields(first: {FIELDS_PAGE_SIZE}) {{ {_PAGE_INFO} nodes {{ {FIELD_NODE} }} }}
  items(first: {ITEMS_PAGE_SIZE}) {{ {_PAGE_INFO} nodes {{ {ITEM_NODE} }} }}
"""

_PROJECTS_CONNECTION = f"""
projectsV2(first: {PROJECTS_PAGE_SIZE}, after: $cursor, orderBy: {{field: NUMBER, direction: ASC}}) {{
  {_PAGE_INFO}
  nodes {{ {PROJECT_NODE} }}
}}
"""

REPOSITORY_PROJECTS_QUERY = f"""
query($owner: String!, $name: String!, $cursor: String) {{
  repository(owner: $owner, name: $name) {{ {_PROJECTS_CONNECTION} }}
}}
"""

ORGANIZATION_PROJECTS_QUERY = f"""
query($owner: String!, $cursor: String) {{
  organization(login: $owner) {{ {_PROJECTS_CONNECTION} }}
}}
"""

PROJECT_FIELDS_QUERY = f"""
query($id: ID!, $cursor: String) {{
  node(id: $id) {{
    ... on ProjectV2 {{
      fields(first: {FIELDS_PAGE_SIZE}, after: $cursor) {{ {_PAGE_INFO} nodes {{ {FIELD_NODE} }} }}
    }}
  }}
}}
"""

PROJECT_ITEMS_QUERY = f"""
query($id: ID!, $cursor: String) {{
  node(id: $id) {{
    ... on ProjectV2 {{
      items(first: {ITEMS_PAGE_SIZE}, after: $cursor) {{ {_PAGE_INFO} nodes {{ {ITEM_NODE} }} }}
    }}
  }}
}}
"""

ITEM_VALUES_QUERY = f"""
query($id: ID!, $cursor: String) {{
  node(id: $id) {{
    ... on ProjectV2Item {{
      fieldValues(first: {VALUES_PAGE_SIZE}, after: $cursor) {{ {_PAGE_INFO} nodes {{ {VALUE_NODE} }} }}
    }}
  }}
}}
"""

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectScope:
    kind: ProjectScopeKind
    owner: str
    name: str | None = None

    @classmethod
    def repository(cls, repo: str) -> ProjectScope:
        owner, _, name = repo.partition("/")
        return cls(ProjectScopeKind.REPOSITORY, owner, name)

    @classmethod
    def organization(cls, owner: str) -> ProjectScope:
        return cls(ProjectScopeKind.ORGANIZATION, owner)

    def describe(self) -> str:
        if self.kind is ProjectScopeKind.REPOSITORY:
            return f"repository {self.owner}/{self.name}"
        return f"organization {self.owner}"


def field_value(node: Mapping[str, Any]) -> tuple[str | None, FieldValue]:
    """Return ``(field name, value)`` for one field-value node.

    Exactly one of ``name``/``text``/``number`` is populated in well-formed
    data; the populated one wins.
    """
    field = node.get("field")
    field_name = field.get("name") if isinstance(field, Mapping) else None
    value: FieldValue = None
    option = node.get("name")
    text = node.get("text")
    num = node.get("number")
    if isinstance(option, str) and option:
        value = option
    elif isinstance(text, str) and text:
        value = text
    elif isinstance(num, (int, float)) and not isinstance(num, bool):
        value = num
    return (field_name if isinstance(field_name, str) else None), value


class ProjectSource:
    def __init__(self, client: GraphQLTransport):
        self.client = client

    # ---- nested connection helpers ---------------------------------------
    def _node_connection(self, query: str, node_id: str, key: str, cursor: str | None) -> Page[Any]:
        data = self.client.graphql(query, {"id": node_id, "cursor": cursor})
        node = data.get("node")
        if not isinstance(node, Mapping):
            raise GitHubAPIError(f"GraphQL node {node_id} not found while paging {key}")
        return Page.from_connection(node.get(key))

    def _drain_nested(
        self, parent: Mapping[str, Any], key: str, query: str
    ) -> list[dict[str, Any]]:
        node_id = str(parent.get("id") or "")
        return drain_pages(
            lambda cursor: self._node_connection(query, node_id, key, cursor),
            first=Page.from_connection(parent.get(key)),
        )

    def _fetch_projects(self, scope: ProjectScope) -> list[dict[str, Any]]:
        if scope.kind is ProjectScopeKind.REPOSITORY:
            query = REPOSITORY_PROJECTS_QUERY
            root_key = "repository"
            base_vars: dict[str, Any] = {"owner": scope.owner, "name": scope.name}
        else:
            query = ORGANIZATION_PROJECTS_QUERY
            root_key = "organization"
            base_vars = {"owner": scope.owner}

        def fetch(cursor: str | None) -> Page[Any]:
            data = self.client.graphql(query, {**base_vars, "cursor": cursor})
            root = data.get(root_key)
            if not isinstance(root, Mapping):
                raise GitHubAPIError(f"{scope.describe()} not found or not accessible")
            return Page.from_connection(root.get("projectsV2"))

        return drain_pages(fetch)

    # ---- public API ------------------------------------------------------
    def fetch_project_data(self, scope: ProjectScope) -> list[ProjectItem]:
        """Fetch every issue-backed item of every open project in ``scope``.

        Items are returned ordered by ascending project number; within a
        project they keep the API order.
        """
        projects = self._fetch_projects(scope)
        out: list[ProjectItem] = []
        for project in sorted(projects, key=lambda p: int(p.get("number") or 0)):
            if project.get("closed"):
                logger.debug(
                    "skipping closed project #%s %s", project.get("number"), project.get("title")
                )
                continue
            out.extend(self._project_items(project))
        logger.debug("collected %d project items from %s", len(out), scope.describe())
        return out

    def _project_items(self, project: Mapping[str, Any]) -> list[ProjectItem]:
        field_names = [
            str(f["name"])
            for f in self._drain_nested(project, "fields", PROJECT_FIELDS_QUERY)
            if isinstance(f.get("name"), str)
        ]
        items: list[ProjectItem] = []
        for item in self._drain_nested(project, "items", PROJECT_ITEMS_QUERY):
            content = item.get("content")
            if item.get("isArchived") or not isinstance(content, Mapping) or not content.get("url"):
                # archived, draft issue or pull request
                continue
            custom: dict[str, FieldValue] = {name: None for name in field_names}
            for value_node in self._drain_nested(item, "fieldValues", ITEM_VALUES_QUERY):
                name, value = field_value(value_node)
                if name:
                    custom[name] = value
            items.append(
                ProjectItem(
                    project_id=str(project.get("id") or ""),
                    project_number=int(project.get("number") or 0),
                    project_title=str(project.get("title") or ""),
                    project_url=str(project.get("url") or ""),
                    item_id=str(item.get("id") or ""),
                    issue_id=str(content.get("id") or ""),
                    issue_number=int(content.get("number") or 0),
                    issue_url=str(content["url"]),
                    custom_fields=custom,
                )
            )
        return items


class ProjectIndex:
    """Project items grouped by the issue they reference."""

    def __init__(self, items: Iterable[ProjectItem]):
        grouped: dict[str, list[ProjectItem]] = defaultdict(list)
        for item in items:
            grouped[item.issue_url].append(item)
        # stable sort keeps API order for items of the same project
        self._by_url = {
            url: sorted(group, key=lambda i: i.project_number) for url, group in grouped.items()
        }

    def __len__(self) -> int:
        return sum(len(v) for v in self._by_url.values())

    def all_for(self, issue: Issue) -> list[ProjectItem]:
        return list(self._by_url.get(issue.url, ()))

    def first_for(self, issue: Issue) -> ProjectItem | None:
        matches = self._by_url.get(issue.url)
        return matches[0] if matches else None

    def for_issue(
        self, issue: Issue, match: ProjectMatch = ProjectMatch.ALL
    ) -> Sequence[ProjectItem]:
        if match is ProjectMatch.FIRST:
            first = self.first_for(issue)
            return [first] if first else []
        return self.all_for(issue)


__all__ = [
    "ProjectIndex",
    "ProjectScope",
    "ProjectSource",
    "field_value",
]
