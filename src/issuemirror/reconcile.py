"""Reconciliation of upstream issues into the Notion tasks database.

One run fetches everything once (issues, project items, existing mirror
records, relation tables) and then walks the issues sequentially. Each issue
ends in exactly one outcome:

* ``created``              - no mirror record yet, issue open, record written
* ``updated``              - mirror record differs from the target, rewritten
* ``skipped-no-project``   - no matched project and a project is required
* ``skipped-no-assignee``  - no assignee and an assignee is required
* ``skipped-unchanged``    - mirror record already matches the target
* ``skipped-closed-new``   - closed before it was ever mirrored
* ``failed``               - write raised and the isolate policy is active

Output structure of ``ReconcileReport.to_dict()`` (stable for JSON tooling):

```
{
    "generated_at": str, "dry_run": bool, "repo": str,
    "totals": {"<outcome>": int, ..., "issues": int},
    "results": [{"url", "number", "outcome", "record_id", "changes", "error",
                 "dry_run"}],
    "duplicates": {"<issue url>": [record ids]}
}
```

Concurrent runs against the same database are not coordinated.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

from .config import MirrorConfig, WriteFailurePolicy
from .diffing import compute_diff, needs_write
from .errors import classify_error
from .github_projects import ProjectIndex, ProjectScope
from .logging import StructuredLogger, get_logger
from .mapping import build_target_properties
from .models import Issue, MirrorRecord, ProjectItem, Relations
from .notion_store import index_records
from .properties import PropertyMap
from .relations import load_relations


class Outcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED_NO_PROJECT = "skipped-no-project"
    SKIPPED_NO_ASSIGNEE = "skipped-no-assignee"
    SKIPPED_UNCHANGED = "skipped-unchanged"
    SKIPPED_CLOSED_NEW = "skipped-closed-new"
    FAILED = "failed"

    @property
    def writes(self) -> bool:
        return self in (Outcome.CREATED, Outcome.UPDATED)


# ---- collaborators -------------------------------------------------------


class IssueReader(Protocol):  # pragma: no cover - interface only
    def fetch_issues(self, repo: str) -> list[Issue]: ...

    def fetch_issue(self, repo: str, number: int) -> Issue | None: ...


class ProjectReader(Protocol):  # pragma: no cover - interface only
    def fetch_project_data(self, scope: ProjectScope) -> list[ProjectItem]: ...


class MirrorStore(Protocol):  # pragma: no cover - interface only
    def query(self, database_id: str, **kwargs: Any) -> Iterable[dict[str, Any]]: ...

    def fetch_existing_records(
        self, database_id: str, url_property: str, *, only_linked: bool = True
    ) -> list[MirrorRecord]: ...

    def find_record(self, database_id: str, url_property: str, url: str) -> MirrorRecord | None: ...

    def create_record(self, database_id: str, properties: PropertyMap) -> str: ...

    def update_record(self, record_id: str, properties: PropertyMap) -> str: ...


# ---- results -------------------------------------------------------------


@dataclass
class IssueResult:
    url: str
    number: int
    outcome: Outcome
    record_id: str | None = None
    changes: dict[str, dict[str, Any]] = field(default_factory=dict)
    error: str | None = None
    dry_run: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "number": self.number,
            "outcome": self.outcome.value,
            "record_id": self.record_id,
            "changes": self.changes,
            "error": self.error,
            "dry_run": self.dry_run,
        }


@dataclass
class ReconcileReport:
    repo: str
    dry_run: bool = False
    results: list[IssueResult] = field(default_factory=list)
    duplicates: dict[str, list[str]] = field(default_factory=dict)
    generated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def totals(self) -> dict[str, int]:
        counts = {o.value: 0 for o in Outcome}
        for result in self.results:
            counts[result.outcome.value] += 1
        counts["issues"] = len(self.results)
        return counts

    @property
    def failed(self) -> list[IssueResult]:
        return [r for r in self.results if r.outcome is Outcome.FAILED]

    def to_dict(self) -> dict[str, Any]:
        return {
            "generated_at": self.generated_at,
            "dry_run": self.dry_run,
            "repo": self.repo,
            "totals": self.totals(),
            "results": [r.to_dict() for r in self.results],
            "duplicates": self.duplicates,
        }


def format_report(report: ReconcileReport) -> list[str]:
    totals = report.totals()
    prefix = "[reconcile]" + (" [DRY]" if report.dry_run else "")
    summary = ", ".join(f"{o.value}={totals[o.value]}" for o in Outcome if totals[o.value])
    lines = [f"{prefix} {report.repo}: {totals['issues']} issues ({summary or 'nothing to do'})"]
    for result in report.results:
        if result.outcome.writes:
            fields = ",".join(sorted(result.changes))
            lines.append(
                f"  {result.outcome.value}: #{result.number} {result.url} fields=[{fields}]"
            )
        elif result.outcome is Outcome.FAILED:
            lines.append(f"  failed: #{result.number} {result.url} :: {result.error}")
    for url, ids in sorted(report.duplicates.items()):
        lines.append(f"  duplicate mirror records for {url}: {', '.join(ids)}")
    return lines


# ---- engine --------------------------------------------------------------


class Reconciler:
    def __init__(
        self,
        cfg: MirrorConfig,
        *,
        issues: IssueReader,
        projects: ProjectReader,
        mirror: MirrorStore,
        dry_run: bool = False,
        logger: StructuredLogger | None = None,
    ):
        self.cfg = cfg.validate()
        self.issues = issues
        self.projects = projects
        self.mirror = mirror
        self.dry_run = dry_run
        self.logger = logger or get_logger()

    @property
    def repo(self) -> str:
        return str(self.cfg.github_repo)

    def scope(self) -> ProjectScope:
        if self.cfg.project_scope.value == "organization":
            return ProjectScope.organization(self.cfg.scope_owner)
        return ProjectScope.repository(self.repo)

    # ---- full run --------------------------------------------------------
    def run(self) -> ReconcileReport:
        cfg = self.cfg
        with self.logger.timed_operation("fetch_issues", repo=self.repo):
            issues = self.issues.fetch_issues(self.repo)
        with self.logger.timed_operation("fetch_projects", scope=self.scope().describe()):
            index = ProjectIndex(self.projects.fetch_project_data(self.scope()))
        with self.logger.timed_operation("fetch_mirror", database=cfg.tasks_database):
            records = self.mirror.fetch_existing_records(
                str(cfg.tasks_database), cfg.fields.issue_url, only_linked=cfg.only_linked_filter
            )
        existing, duplicates = index_records(records)
        for url, ids in duplicates.items():
            self.logger.warning(
                f"duplicate mirror records for {url}; using {ids[0]}", external_id=url, records=ids
            )
        with self.logger.timed_operation("resolve_relations"):
            relations = load_relations(self.mirror, cfg)

        self.logger.log_operation(
            "reconcile",
            issues=len(issues),
            project_items=len(index),
            mirror_records=len(existing),
            dry_run=self.dry_run,
        )
        report = ReconcileReport(repo=self.repo, dry_run=self.dry_run, duplicates=duplicates)
        for issue in issues:
            matched = index.for_issue(issue, cfg.policy.project_match)
            report.results.append(
                self.reconcile_issue(issue, matched, existing.get(issue.url), relations)
            )
        return report

    def run_issue(self, number: int) -> ReconcileReport:
        """Reconcile a single issue (issue event mode)."""
        cfg = self.cfg
        report = ReconcileReport(repo=self.repo, dry_run=self.dry_run)
        issue = self.issues.fetch_issue(self.repo, number)
        if issue is None:
            self.logger.info(f"issue #{number} not found or excluded in {self.repo}")
            return report
        index = ProjectIndex(self.projects.fetch_project_data(self.scope()))
        record = self.mirror.find_record(str(cfg.tasks_database), cfg.fields.issue_url, issue.url)
        relations = load_relations(self.mirror, cfg)
        matched = index.for_issue(issue, cfg.policy.project_match)
        report.results.append(self.reconcile_issue(issue, matched, record, relations))
        return report

    # ---- per issue -------------------------------------------------------
    def decide(
        self,
        issue: Issue,
        matched: Sequence[ProjectItem],
        record: MirrorRecord | None,
        target: Mapping[str, Any],
    ) -> Outcome:
        policy = self.cfg.policy
        if not matched and policy.require_project:
            return Outcome.SKIPPED_NO_PROJECT
        if not issue.assignees and policy.require_assignee:
            return Outcome.SKIPPED_NO_ASSIGNEE
        if record is not None:
            if needs_write(record, target):
                return Outcome.UPDATED
            return Outcome.SKIPPED_UNCHANGED
        if issue.closed:
            return Outcome.SKIPPED_CLOSED_NEW
        return Outcome.CREATED

    def reconcile_issue(
        self,
        issue: Issue,
        matched: Sequence[ProjectItem],
        record: MirrorRecord | None,
        relations: Relations,
    ) -> IssueResult:
        target = build_target_properties(issue, matched, relations, self.cfg)
        outcome = self.decide(issue, matched, record, target)
        result = IssueResult(
            url=issue.url,
            number=issue.number,
            outcome=outcome,
            record_id=record.record_id if record else None,
            dry_run=self.dry_run and outcome.writes,
        )
        if outcome is Outcome.UPDATED and record is not None:
            result.changes = compute_diff(record, target)
        elif outcome is Outcome.CREATED:
            result.changes = compute_diff({}, target)
        if outcome.writes and not self.dry_run:
            try:
                result.record_id = self._write(outcome, record, target)
            except Exception as exc:
                if self.cfg.policy.on_write_error is not WriteFailurePolicy.ISOLATE:
                    raise
                info = classify_error(exc)
                self.logger.log_error(
                    f"write failed for {issue.url}",
                    error=info.message,
                    category=info.category,
                    external_id=issue.url,
                )
                result.outcome = Outcome.FAILED
                result.error = info.message
                return result
        self.logger.log_issue_action(
            result.outcome.value,
            issue.url,
            issue_number=issue.number,
            dry_run=result.dry_run,
            fields=sorted(result.changes),
        )
        return result

    def _write(self, outcome: Outcome, record: MirrorRecord | None, target: PropertyMap) -> str:
        if outcome is Outcome.UPDATED and record is not None:
            return self.mirror.update_record(record.record_id, target)
        return self.mirror.create_record(str(self.cfg.tasks_database), target)


__all__ = [
    "IssueResult",
    "Outcome",
    "ReconcileReport",
    "Reconciler",
    "format_report",
]
