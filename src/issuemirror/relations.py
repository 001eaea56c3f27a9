"""Identity relation tables.

Two Notion databases link upstream identities to mirror ids:

* users: a URL property holding the GitHub profile URL plus a people
  property holding the Notion user. The handle is the URL's last path
  segment; the first person entry is used.
* projects: a key property (formula-derived key or a plain short code) on
  each project page. Trashed/archived pages are ignored.

Rows that do not satisfy these shapes are skipped silently.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Protocol
from urllib.parse import urlparse

from .config import MirrorConfig
from .models import ProjectRelation, Relations, UserRelation
from .properties import PeopleValue, UrlValue, parse_properties

logger = logging.getLogger(__name__)


class PageQuery(Protocol):  # pragma: no cover - interface only
    def query(self, database_id: str, **kwargs: Any) -> Iterable[dict[str, Any]]: ...


def handle_from_url(url: str) -> str | None:
    path = urlparse(url.strip()).path if "://" in url else url.strip()
    segments = [s for s in path.split("/") if s]
    return segments[-1] if segments else None


def _is_live(page: Mapping[str, Any]) -> bool:
    return not (page.get("in_trash") or page.get("archived"))


def user_relations(
    pages: Iterable[Mapping[str, Any]], *, github_property: str, people_property: str
) -> list[UserRelation]:
    out: list[UserRelation] = []
    for page in pages:
        props = parse_properties(page.get("properties"))
        link = props.get(github_property)
        people = props.get(people_property)
        if not isinstance(link, UrlValue) or not link.url:
            continue
        if not isinstance(people, PeopleValue) or not people.ids:
            continue
        handle = handle_from_url(link.url)
        if handle:
            out.append(UserRelation(handle=handle, notion_user_id=people.ids[0]))
    return out


def project_relations(
    pages: Iterable[Mapping[str, Any]], *, key_property: str
) -> list[ProjectRelation]:
    out: list[ProjectRelation] = []
    for page in pages:
        if not _is_live(page):
            continue
        value = parse_properties(page.get("properties")).get(key_property)
        key = value.canonical().strip() if value is not None else ""
        if key and page.get("id"):
            out.append(ProjectRelation(key=key, record_id=str(page["id"])))
    return out


def resolve_users(
    store: PageQuery,
    database_id: str,
    *,
    github_property: str = "GitHub",
    people_property: str = "Name",
) -> dict[str, str]:
    """Map casefolded GitHub handle -> Notion user id."""
    mapping: dict[str, str] = {}
    relations = user_relations(
        store.query(database_id), github_property=github_property, people_property=people_property
    )
    for rel in relations:
        mapping.setdefault(rel.handle.casefold(), rel.notion_user_id)
    return mapping


def resolve_projects(
    store: PageQuery, database_id: str, *, key_property: str = "Project KEY"
) -> dict[str, str]:
    """Map project key -> Notion project page id; the first page wins on duplicate keys."""
    mapping: dict[str, str] = {}
    for rel in project_relations(store.query(database_id), key_property=key_property):
        if rel.key in mapping:
            logger.debug("duplicate project key %s (keeping %s)", rel.key, mapping[rel.key])
            continue
        mapping[rel.key] = rel.record_id
    return mapping


def load_relations(store: PageQuery, cfg: MirrorConfig) -> Relations:
    users = resolve_users(
        store,
        str(cfg.users_database),
        github_property=cfg.users_github_property,
        people_property=cfg.users_people_property,
    )
    projects = resolve_projects(
        store, str(cfg.projects_database), key_property=cfg.projects_key_property
    )
    logger.info("resolved %d user relations and %d project relations", len(users), len(projects))
    return Relations(users=users, projects=projects)


__all__ = [
    "handle_from_url",
    "load_relations",
    "project_relations",
    "resolve_projects",
    "resolve_users",
    "user_relations",
]
