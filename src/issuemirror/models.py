from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .properties import PropertyValue, UrlValue, parse_properties

FieldValue = str | int | float | None


class IssueState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"

    @classmethod
    def parse(cls, raw: Any) -> IssueState:
        return cls.CLOSED if str(raw or "").strip().lower() == "closed" else cls.OPEN


def _nested_names(connection: Any, key: str) -> tuple[str, ...]:
    if not isinstance(connection, Mapping):
        return ()
    nodes = connection.get("nodes")
    if not isinstance(nodes, list):
        return ()
    return tuple(
        str(n[key]) for n in nodes if isinstance(n, Mapping) and isinstance(n.get(key), str)
    )


@dataclass(frozen=True)
class Issue:
    """Snapshot of one upstream issue for the duration of a run."""

    id: str
    number: int
    url: str
    title: str
    body: str = ""
    state: IssueState = IssueState.OPEN
    labels: tuple[str, ...] = ()
    assignees: tuple[str, ...] = ()
    milestone: str | None = None
    repository: str = ""
    issue_type: str | None = None

    @property
    def closed(self) -> bool:
        return self.state is IssueState.CLOSED

    @property
    def repository_name(self) -> str:
        return self.repository.rsplit("/", 1)[-1]

    @classmethod
    def from_graphql(cls, node: Mapping[str, Any]) -> Issue:
        milestone = node.get("milestone")
        repo = node.get("repository")
        issue_type = node.get("issueType")
        return cls(
            id=str(node.get("id") or ""),
            number=int(node.get("number") or 0),
            url=str(node.get("url") or ""),
            title=str(node.get("title") or ""),
            body=node.get("body") or "",
            state=IssueState.parse(node.get("state")),
            labels=_nested_names(node.get("labels"), "name"),
            assignees=_nested_names(node.get("assignees"), "login"),
            milestone=milestone.get("title") if isinstance(milestone, Mapping) else None,
            repository=str(repo.get("nameWithOwner") or "") if isinstance(repo, Mapping) else "",
            issue_type=issue_type.get("name") if isinstance(issue_type, Mapping) else None,
        )


@dataclass(frozen=True)
class ProjectItem:
    """An issue's membership in one GitHub Projects (v2) board."""

    project_id: str
    project_number: int
    project_title: str
    project_url: str
    item_id: str
    issue_id: str
    issue_number: int
    issue_url: str
    custom_fields: Mapping[str, FieldValue] = field(default_factory=dict)

    def value(self, name: str) -> FieldValue:
        return self.custom_fields.get(name)


@dataclass(frozen=True)
class MirrorRecord:
    record_id: str
    external_id: str | None
    properties: Mapping[str, PropertyValue] = field(default_factory=dict)
    in_trash: bool = False

    @property
    def linked(self) -> bool:
        return bool(self.external_id)

    @classmethod
    def from_page(cls, page: Mapping[str, Any], url_property: str) -> MirrorRecord:
        props = parse_properties(page.get("properties"))
        link = props.get(url_property)
        external_id = link.url if isinstance(link, UrlValue) else None
        return cls(
            record_id=str(page.get("id") or ""),
            external_id=external_id.strip() if external_id else None,
            properties=props,
            in_trash=bool(page.get("in_trash") or page.get("archived")),
        )


@dataclass(frozen=True)
class UserRelation:
    handle: str
    notion_user_id: str


@dataclass(frozen=True)
class ProjectRelation:
    key: str
    record_id: str


@dataclass(frozen=True)
class Relations:
    """Read-only lookup tables for one run.

    ``users`` is keyed by casefolded GitHub handle; ``projects`` by project key.
    """

    users: Mapping[str, str] = field(default_factory=dict)
    projects: Mapping[str, str] = field(default_factory=dict)

    def user_id(self, handle: str) -> str | None:
        return self.users.get(handle.casefold())

    def project_id(self, key: str) -> str | None:
        return self.projects.get(key.strip())


__all__ = [
    "FieldValue",
    "Issue",
    "IssueState",
    "MirrorRecord",
    "ProjectItem",
    "ProjectRelation",
    "Relations",
    "UserRelation",
]
