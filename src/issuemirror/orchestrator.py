"""Wiring between configuration, credentials and the reconciler.

Builds the GitHub and Notion clients from a validated ``MirrorConfig``, runs a
full or single-issue reconciliation and optionally writes the summary JSON.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, TypedDict, cast

from .config import MirrorConfig
from .env_auth import EnvAuthConfig, EnvironmentAuthManager, create_env_auth_manager
from .github_issues import IssueSource
from .github_projects import ProjectSource
from .github_rest import GitHubClient
from .logging import get_logger
from .notion_store import NotionMirrorStore, create_notion_client
from .reconcile import ReconcileReport, Reconciler

SUMMARY_SCHEMA_VERSION = 1


class EnrichedSummary(TypedDict, total=False):
    schemaVersion: int
    generated_at: str
    dry_run: bool
    repo: str
    totals: dict[str, int]
    results: list[dict[str, Any]]
    duplicates: dict[str, list[str]]
    issue: int


def auth_manager_for(cfg: MirrorConfig) -> EnvironmentAuthManager:
    return create_env_auth_manager(
        EnvAuthConfig(load_dotenv=cfg.env_auth_load_dotenv, dotenv_path=cfg.env_auth_dotenv_path)
    )


def build_reconciler(
    cfg: MirrorConfig,
    *,
    github_token: str,
    notion_token: str,
    dry_run: bool = False,
) -> Reconciler:
    client = GitHubClient(token=github_token)
    notion = create_notion_client(notion_token, timeout_ms=cfg.notion_timeout_ms)
    return Reconciler(
        cfg,
        issues=IssueSource(client, excluded_types=cfg.excluded_issue_types),
        projects=ProjectSource(client),
        mirror=NotionMirrorStore(notion),
        dry_run=dry_run,
        logger=get_logger(),
    )


def summarise(report: ReconcileReport, *, issue_number: int | None = None) -> EnrichedSummary:
    summary = cast(EnrichedSummary, {"schemaVersion": SUMMARY_SCHEMA_VERSION, **report.to_dict()})
    if issue_number is not None:
        summary["issue"] = issue_number
    return summary


def write_summary(summary: EnrichedSummary, path: str | Path) -> Path:
    sp = Path(path)
    sp.parent.mkdir(parents=True, exist_ok=True)
    sp.write_text(json.dumps(summary, indent=2) + "\n")
    return sp


def sync_with_summary(
    cfg: MirrorConfig,
    *,
    dry_run: bool = False,
    issue_number: int | None = None,
    summary_path: str | None = None,
    reconciler: Reconciler | None = None,
) -> tuple[ReconcileReport, EnrichedSummary]:
    """Run one reconciliation and emit the summary JSON when a path is configured.

    ``reconciler`` lets callers supply pre-built collaborators; otherwise tokens
    are resolved from the environment and real clients are constructed.
    """
    cfg.validate()
    if reconciler is None:
        github_token, notion_token = auth_manager_for(cfg).require_tokens()
        reconciler = build_reconciler(
            cfg, github_token=github_token, notion_token=notion_token, dry_run=dry_run
        )
    if issue_number is not None:
        report = reconciler.run_issue(issue_number)
    else:
        report = reconciler.run()
    summary = summarise(report, issue_number=issue_number)
    target = summary_path or cfg.summary_json
    if target:
        written = write_summary(summary, target)
        get_logger().debug(f"wrote summary to {written}")
    return report, summary


__all__ = [
    "EnrichedSummary",
    "SUMMARY_SCHEMA_VERSION",
    "auth_manager_for",
    "build_reconciler",
    "summarise",
    "sync_with_summary",
    "write_summary",
]
