from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from issuemirror.config import (
    ConfigError,
    ProjectMatch,
    ProjectScopeKind,
    TaskGroupPolicy,
    WriteFailurePolicy,
    config_from_mapping,
    load_config,
)

FULL_CONFIG = textwrap.dedent(
    """\
    version: 1
    github:
      repo: acme/widgets
      project_scope: organization
      project_owner: acme-org
      excluded_issue_types: [Feature, Epic]
    notion:
      tasks_database: $TEST_TASKS_DB
      projects_database: db-projects
      users_database: db-users
      timeout_ms: 5000
      only_linked_filter: false
      fields:
        title: Name
        labels: Labels
        estimate: null
      users: {github_property: Profile, people_property: Person}
      projects: {key_property: Code}
    project_fields: {status: Stage, estimate: Points}
    policy:
      project_match: FIRST
      require_project: false
      require_assignee: true
      task_group: project_name
      status_options: {Duplicate: Discarded}
      on_write_error: isolate
    logging: {json_enabled: true, level: DEBUG}
    environment: {load_dotenv: false, dotenv_path: .env.ci}
    output: {summary_json: out/summary.json}
    """
)


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "issuemirror.config.yaml"
    path.write_text(text)
    return path


def test_load_full_config(tmp_path, monkeypatch):
    monkeypatch.setenv("TEST_TASKS_DB", "db-tasks")
    cfg = load_config(_write(tmp_path, FULL_CONFIG)).validate()

    assert cfg.github_repo == "acme/widgets"
    assert cfg.project_scope is ProjectScopeKind.ORGANIZATION
    assert cfg.scope_owner == "acme-org"
    assert cfg.excluded_issue_types == ("Feature", "Epic")
    assert cfg.tasks_database == "db-tasks"
    assert cfg.notion_timeout_ms == 5000
    assert cfg.only_linked_filter is False
    assert cfg.fields.title == "Name"
    assert cfg.fields.labels == "Labels"
    assert cfg.fields.estimate is None
    assert cfg.fields.status == "Status"
    assert cfg.users_github_property == "Profile"
    assert cfg.users_people_property == "Person"
    assert cfg.projects_key_property == "Code"
    assert cfg.project_fields.status == "Stage"
    assert cfg.project_fields.project_key == "Project KEY"
    assert cfg.policy.project_match is ProjectMatch.FIRST
    assert cfg.policy.require_project is False
    assert cfg.policy.require_assignee is True
    assert cfg.policy.task_group is TaskGroupPolicy.PROJECT_NAME
    assert cfg.policy.status_options == {"Duplicate": "Discarded"}
    assert cfg.policy.on_write_error is WriteFailurePolicy.ISOLATE
    assert cfg.logging_json_enabled is True
    assert cfg.logging_level == "DEBUG"
    assert cfg.env_auth_load_dotenv is False
    assert cfg.env_auth_dotenv_path == ".env.ci"
    assert cfg.summary_json == "out/summary.json"


def test_defaults():
    cfg = config_from_mapping(
        {"github": {"repo": "a/b"}, "notion": {"tasks_database": "t", "projects_database": "p", "users_database": "u"}}
    )
    assert cfg.project_scope is ProjectScopeKind.REPOSITORY
    assert cfg.scope_owner == "a"
    assert cfg.excluded_issue_types == ("Feature",)
    assert cfg.notion_timeout_ms == 60_000
    assert cfg.policy.project_match is ProjectMatch.ALL
    assert cfg.policy.require_project is True
    assert cfg.policy.on_write_error is WriteFailurePolicy.ABORT
    assert cfg.policy.task_group_value == "Development"
    assert cfg.fields.issue_url == "Github issue"
    assert cfg.fields.repository is None


def test_unresolved_env_reference_fails_validation(monkeypatch):
    monkeypatch.delenv("MISSING_DB", raising=False)
    cfg = config_from_mapping(
        {
            "github": {"repo": "a/b"},
            "notion": {"tasks_database": "$MISSING_DB", "projects_database": "p", "users_database": "u"},
        }
    )
    with pytest.raises(ConfigError, match="notion.tasks_database is required"):
        cfg.validate()


def test_validation_collects_every_problem():
    cfg = config_from_mapping({"github": {"repo": "not-a-repo"}, "notion": {"timeout_ms": 0}})
    with pytest.raises(ConfigError) as excinfo:
        cfg.validate()
    message = str(excinfo.value)
    assert "github.repo must be 'owner/name'" in message
    assert "notion.projects_database is required" in message
    assert "notion.timeout_ms must be positive" in message


def test_unknown_enum_value_is_rejected():
    with pytest.raises(ConfigError, match="policy.project_match must be one of: all, first"):
        config_from_mapping({"policy": {"project_match": "some"}})


@pytest.mark.parametrize(
    "text",
    ["github: [unclosed", "- just\n- a list\n", "github: 3\n"],
)
def test_malformed_files_raise_config_error(tmp_path, text):
    with pytest.raises(ConfigError):
        load_config(_write(tmp_path, text))


def test_missing_file_raises(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "nope.yaml")


def test_with_overrides_returns_new_config():
    cfg = config_from_mapping({"github": {"repo": "a/b"}})
    other = cfg.with_overrides(github_repo="c/d")
    assert other.github_repo == "c/d"
    assert cfg.github_repo == "a/b"
