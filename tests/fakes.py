"""In-memory stand-ins for the Notion SDK and the GitHub sources."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from issuemirror.config import MirrorConfig, config_from_mapping
from issuemirror.models import Issue, IssueState, ProjectItem

REPO = "acme/widgets"
TASKS_DB = "db-tasks"
PROJECTS_DB = "db-projects"
USERS_DB = "db-users"


def issue_url(number: int) -> str:
    return f"https://github.com/{REPO}/issues/{number}"


def make_issue(
    number: int,
    *,
    title: str | None = None,
    body: str = "",
    closed: bool = False,
    labels: Iterable[str] = (),
    assignees: Iterable[str] = (),
    milestone: str | None = None,
    issue_type: str | None = None,
) -> Issue:
    return Issue(
        id=f"I_{number}",
        number=number,
        url=issue_url(number),
        title=title or f"Issue {number}",
        body=body,
        state=IssueState.CLOSED if closed else IssueState.OPEN,
        labels=tuple(labels),
        assignees=tuple(assignees),
        milestone=milestone,
        repository=REPO,
        issue_type=issue_type,
    )


def make_item(
    issue: Issue,
    *,
    project_number: int = 1,
    project_title: str | None = None,
    **custom: Any,
) -> ProjectItem:
    fields: dict[str, Any] = {"Status": None, "Estimate": None, "Project KEY": None}
    for key, value in custom.items():
        fields[key.replace("_", " ")] = value
    return ProjectItem(
        project_id=f"PVT_{project_number}",
        project_number=project_number,
        project_title=project_title or f"Project {project_number}",
        project_url=f"https://github.com/orgs/acme/projects/{project_number}",
        item_id=f"PVTI_{project_number}_{issue.number}",
        issue_id=issue.id,
        issue_number=issue.number,
        issue_url=issue.url,
        custom_fields=fields,
    )


def make_config(**overrides: Any) -> MirrorConfig:
    raw: dict[str, Any] = {
        "github": {"repo": REPO},
        "notion": {
            "tasks_database": TASKS_DB,
            "projects_database": PROJECTS_DB,
            "users_database": USERS_DB,
        },
    }
    for section, values in overrides.items():
        raw.setdefault(section, {}).update(values)
    return config_from_mapping(raw)


# ---- Notion payload helpers ----------------------------------------------


def rich(kind: str, *runs: str) -> dict[str, Any]:
    return {"type": kind, kind: [{"type": "text", "plain_text": r, "text": {"content": r}} for r in runs]}


def url_prop(value: str | None) -> dict[str, Any]:
    return {"type": "url", "url": value}


def people_prop(*ids: str) -> dict[str, Any]:
    return {"type": "people", "people": [{"object": "user", "id": i} for i in ids]}


def formula_prop(value: str) -> dict[str, Any]:
    return {"type": "formula", "formula": {"type": "string", "string": value}}


def page(page_id: str, properties: Mapping[str, Any], **extra: Any) -> dict[str, Any]:
    return {"object": "page", "id": page_id, "properties": dict(properties), **extra}


def user_row(page_id: str, handle: str, notion_user: str) -> dict[str, Any]:
    return page(
        page_id,
        {
            "Name": people_prop(notion_user),
            "GitHub": url_prop(f"https://github.com/{handle}"),
        },
    )


def project_row(page_id: str, key: str, **extra: Any) -> dict[str, Any]:
    return page(page_id, {"Name": rich("title", key), "Project KEY": formula_prop(key)}, **extra)


# page reads return at most this many items of an array-valued property
READBACK_ARRAY_LIMIT = 25


def _readback(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Turn a write payload into the shape Notion returns on read."""
    out: dict[str, Any] = {}
    for name, body in payload.items():
        ((kind, value),) = body.items()
        if kind in ("title", "rich_text"):
            value = [
                {"type": "text", "plain_text": r["text"]["content"], "text": r["text"]}
                for r in value
            ]
        if kind in ("title", "rich_text", "people", "relation"):
            value = value[:READBACK_ARRAY_LIMIT]
        out[name] = {"type": kind, kind: value}
    return out


class _Databases:
    def __init__(self, owner: FakeNotion):
        self.owner = owner

    def query(self, **kwargs: Any) -> dict[str, Any]:
        self.owner.calls.append(("databases.query", kwargs))
        if self.owner.query_errors:
            raise self.owner.query_errors.pop(0)
        rows = [p for p in self.owner.tables.get(kwargs["database_id"], []) if not p.get("in_trash")]
        flt = kwargs.get("filter")
        if flt:
            rows = [p for p in rows if _matches(p, flt)]
        size = int(kwargs.get("page_size") or 100)
        start = int(kwargs.get("start_cursor") or 0)
        chunk = rows[start : start + size]
        more = start + size < len(rows)
        return {
            "object": "list",
            "results": chunk,
            "has_more": more,
            "next_cursor": str(start + size) if more else None,
        }


def _matches(row: Mapping[str, Any], flt: Mapping[str, Any]) -> bool:
    prop = row["properties"].get(flt["property"], {})
    value = prop.get("url")
    cond = flt["url"]
    if cond.get("is_not_empty"):
        return bool(value)
    if "equals" in cond:
        return value == cond["equals"]
    return True


class _Pages:
    def __init__(self, owner: FakeNotion):
        self.owner = owner

    def create(self, **kwargs: Any) -> dict[str, Any]:
        self.owner.calls.append(("pages.create", kwargs))
        if self.owner.write_errors:
            raise self.owner.write_errors.pop(0)
        self.owner.counter += 1
        new = page(f"page-{self.owner.counter}", _readback(kwargs["properties"]))
        self.owner.tables.setdefault(kwargs["parent"]["database_id"], []).append(new)
        return new

    def update(self, **kwargs: Any) -> dict[str, Any]:
        self.owner.calls.append(("pages.update", kwargs))
        if self.owner.write_errors:
            raise self.owner.write_errors.pop(0)
        for rows in self.owner.tables.values():
            for row in rows:
                if row["id"] == kwargs["page_id"]:
                    row["properties"].update(_readback(kwargs["properties"]))
                    return row
        raise KeyError(kwargs["page_id"])


class FakeNotion:
    """Just enough of ``notion_client.Client`` for the mirror store."""

    def __init__(self, tables: Mapping[str, list[dict[str, Any]]] | None = None):
        self.tables: dict[str, list[dict[str, Any]]] = {k: list(v) for k, v in (tables or {}).items()}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.write_errors: list[Exception] = []
        self.query_errors: list[Exception] = []
        self.counter = 0
        self.databases = _Databases(self)
        self.pages = _Pages(self)

    def writes(self) -> list[tuple[str, dict[str, Any]]]:
        return [c for c in self.calls if c[0].startswith("pages.")]


# ---- GitHub fakes --------------------------------------------------------


class FakeIssues:
    def __init__(self, issues: Iterable[Issue]):
        self.issues = list(issues)

    def fetch_issues(self, repo: str) -> list[Issue]:
        return list(self.issues)

    def fetch_issue(self, repo: str, number: int) -> Issue | None:
        return next((i for i in self.issues if i.number == number), None)


class FakeProjects:
    def __init__(self, items: Iterable[ProjectItem]):
        self.items = list(items)

    def fetch_project_data(self, scope: Any) -> list[ProjectItem]:
        return list(self.items)


class ScriptedGraphQL:
    """Answers GraphQL calls from a queue of responders, recording every call."""

    def __init__(self, *responders: Any):
        self.responders = list(responders)
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def graphql(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        variables = dict(variables or {})
        self.calls.append((query, variables))
        responder = self.responders.pop(0)
        return responder(query, variables) if callable(responder) else responder


def connection(nodes: list[Any], *, cursor: str | None = None, more: bool = False) -> dict[str, Any]:
    return {"nodes": nodes, "pageInfo": {"endCursor": cursor, "hasNextPage": more}}
