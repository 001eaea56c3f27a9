from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, cast

import yaml

from .errors import ConfigError

DEFAULT_CONFIG_FILE = "issuemirror.config.yaml"
_REPO_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


class ProjectScopeKind(str, Enum):
    REPOSITORY = "repository"
    ORGANIZATION = "organization"


class ProjectMatch(str, Enum):
    """Which project items feed an issue when it sits on several boards."""

    ALL = "all"
    FIRST = "first"


class TaskGroupPolicy(str, Enum):
    LITERAL = "literal"
    PROJECT_NAME = "project_name"


class WriteFailurePolicy(str, Enum):
    ABORT = "abort"
    ISOLATE = "isolate"


@dataclass(frozen=True)
class TaskFields:
    """Notion property names on the tasks database. ``None`` disables a field."""

    title: str = "Task name"
    description: str | None = "Description"
    status: str | None = "Status"
    assignee: str | None = "Assignee"
    issue_url: str = "Github issue"
    project: str | None = "Project"
    task_group: str | None = "Task Group"
    estimate: str | None = "Estimate hrs"
    repository: str | None = None
    labels: str | None = None
    milestone: str | None = None


@dataclass(frozen=True)
class ProjectFields:
    """Custom field names read from GitHub project boards."""

    status: str = "Status"
    estimate: str = "Estimate"
    project_key: str = "Project KEY"


@dataclass(frozen=True)
class MappingPolicy:
    project_match: ProjectMatch = ProjectMatch.ALL
    require_project: bool = True
    require_assignee: bool = False
    task_group: TaskGroupPolicy = TaskGroupPolicy.LITERAL
    task_group_value: str = "Development"
    status_options: Mapping[str, str] = field(default_factory=dict)
    on_write_error: WriteFailurePolicy = WriteFailurePolicy.ABORT


@dataclass(frozen=True)
class MirrorConfig:
    source_file: Path | None
    github_repo: str | None
    project_scope: ProjectScopeKind
    project_owner: str | None
    excluded_issue_types: tuple[str, ...]
    tasks_database: str | None
    projects_database: str | None
    users_database: str | None
    notion_timeout_ms: int
    only_linked_filter: bool
    fields: TaskFields
    project_fields: ProjectFields
    users_github_property: str
    users_people_property: str
    projects_key_property: str
    policy: MappingPolicy
    # Logging configuration
    logging_json_enabled: bool = False
    logging_level: str = "INFO"
    # Environment authentication configuration
    env_auth_load_dotenv: bool = True
    env_auth_dotenv_path: str | None = None
    summary_json: str | None = None

    @property
    def repo_owner(self) -> str:
        return (self.github_repo or "/").split("/", 1)[0]

    @property
    def repo_name(self) -> str:
        return (self.github_repo or "/").split("/", 1)[1]

    @property
    def scope_owner(self) -> str:
        return self.project_owner or self.repo_owner

    def with_overrides(self, **changes: Any) -> MirrorConfig:
        return replace(self, **changes)

    def validate(self) -> MirrorConfig:
        """Fail fast on missing identifiers; returns ``self`` for chaining."""
        problems: list[str] = []
        if not self.github_repo:
            problems.append("github.repo is required")
        elif not _REPO_PATTERN.match(self.github_repo):
            problems.append(f"github.repo must be 'owner/name', got {self.github_repo!r}")
        for label, value in (
            ("notion.tasks_database", self.tasks_database),
            ("notion.projects_database", self.projects_database),
            ("notion.users_database", self.users_database),
        ):
            if not value or str(value).startswith("$"):
                problems.append(f"{label} is required")
        if not self.fields.title or not self.fields.issue_url:
            problems.append("notion.fields.title and notion.fields.issue_url are required")
        if self.notion_timeout_ms <= 0:
            problems.append("notion.timeout_ms must be positive")
        if problems:
            raise ConfigError("; ".join(problems))
        return self


def _resolve_env_var(value: Any) -> Any:
    """Resolve environment variable if value starts with $."""
    if isinstance(value, str) and value.startswith("$"):
        return os.getenv(value[1:], value)  # Fallback to original if not found
    return value


def _enum(enum_cls: type[Any], raw: Any, default: Any, label: str) -> Any:
    if raw is None:
        return default
    try:
        return enum_cls(str(raw).strip().lower())
    except ValueError as exc:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ConfigError(f"{label} must be one of: {allowed} (got {raw!r})") from exc


def _section(raw: Mapping[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"'{key}' section must be a mapping")
    return dict(value)


def _optional_name(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _task_fields(raw: Mapping[str, Any]) -> TaskFields:
    defaults = TaskFields()
    values: dict[str, Any] = {}
    for name in TaskFields.__dataclass_fields__:
        if name in raw:
            values[name] = _optional_name(raw[name])
        else:
            values[name] = getattr(defaults, name)
    return TaskFields(**values)


def _project_fields(raw: Mapping[str, Any]) -> ProjectFields:
    defaults = ProjectFields()
    return ProjectFields(
        status=str(raw.get("status") or defaults.status),
        estimate=str(raw.get("estimate") or defaults.estimate),
        project_key=str(raw.get("project_key") or defaults.project_key),
    )


def _policy(raw: Mapping[str, Any]) -> MappingPolicy:
    status_options = raw.get("status_options") or {}
    if not isinstance(status_options, Mapping):
        raise ConfigError("policy.status_options must be a mapping")
    return MappingPolicy(
        project_match=_enum(
            ProjectMatch, raw.get("project_match"), ProjectMatch.ALL, "policy.project_match"
        ),
        require_project=bool(raw.get("require_project", True)),
        require_assignee=bool(raw.get("require_assignee", False)),
        task_group=_enum(
            TaskGroupPolicy, raw.get("task_group"), TaskGroupPolicy.LITERAL, "policy.task_group"
        ),
        task_group_value=str(raw.get("task_group_value", "Development")),
        status_options={str(k): str(v) for k, v in status_options.items()},
        on_write_error=_enum(
            WriteFailurePolicy,
            raw.get("on_write_error"),
            WriteFailurePolicy.ABORT,
            "policy.on_write_error",
        ),
    )


def config_from_mapping(raw: Mapping[str, Any], *, source_file: Path | None = None) -> MirrorConfig:
    gh = _section(raw, "github")
    notion = _section(raw, "notion")
    users = _section(notion, "users")
    projects = _section(notion, "projects")
    logging_config = _section(raw, "logging")
    env_auth = _section(raw, "environment")
    out = _section(raw, "output")
    excluded = gh.get("excluded_issue_types", ["Feature"]) or []
    if not isinstance(excluded, list):
        raise ConfigError("github.excluded_issue_types must be a list")

    return MirrorConfig(
        source_file=source_file,
        github_repo=_resolve_env_var(gh.get("repo")),
        project_scope=_enum(
            ProjectScopeKind,
            gh.get("project_scope"),
            ProjectScopeKind.REPOSITORY,
            "github.project_scope",
        ),
        project_owner=_resolve_env_var(gh.get("project_owner")),
        excluded_issue_types=tuple(str(t) for t in excluded),
        tasks_database=_resolve_env_var(notion.get("tasks_database")),
        projects_database=_resolve_env_var(notion.get("projects_database")),
        users_database=_resolve_env_var(notion.get("users_database")),
        notion_timeout_ms=int(notion.get("timeout_ms", 60_000)),
        only_linked_filter=bool(notion.get("only_linked_filter", True)),
        fields=_task_fields(_section(notion, "fields")),
        project_fields=_project_fields(_section(raw, "project_fields")),
        users_github_property=str(users.get("github_property", "GitHub")),
        users_people_property=str(users.get("people_property", "Name")),
        projects_key_property=str(projects.get("key_property", "Project KEY")),
        policy=_policy(_section(raw, "policy")),
        logging_json_enabled=bool(logging_config.get("json_enabled", False)),
        logging_level=str(logging_config.get("level", "INFO")),
        env_auth_load_dotenv=bool(env_auth.get("load_dotenv", True)),
        env_auth_dotenv_path=env_auth.get("dotenv_path"),
        summary_json=out.get("summary_json"),
    )


def load_config(path: str | Path) -> MirrorConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Configuration file not found: {p}")
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {p}: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise ConfigError(f"Configuration root in {p} must be a mapping")
    return config_from_mapping(cast(dict[str, Any], raw), source_file=p)


__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_FILE",
    "MappingPolicy",
    "MirrorConfig",
    "ProjectFields",
    "ProjectMatch",
    "ProjectScopeKind",
    "TaskFields",
    "TaskGroupPolicy",
    "WriteFailurePolicy",
    "config_from_mapping",
    "load_config",
]
