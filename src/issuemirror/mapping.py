"""Target property set for one issue.

``build_target_properties`` is a pure function of the issue, the project
items matched to it, the relation tables and the configuration. Fields whose
configured Notion name is ``None`` are left out, and the estimate is left out
entirely (not zeroed) when no matched project carries a positive estimate.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from . import properties as props
from .config import MirrorConfig, TaskGroupPolicy
from .models import FieldValue, Issue, ProjectItem, Relations
from .properties import PropertyMap
from .status import derive_status, status_option


def _as_estimate(value: FieldValue) -> float | int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = value
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            return None
        if number.is_integer():
            number = int(number)
    return number if math.isfinite(number) and number > 0 else None


def aggregate_estimate(items: Sequence[ProjectItem], field_name: str) -> float | int | None:
    """Largest positive estimate across ``items``; ``None`` when none qualifies."""
    estimates = [e for e in (_as_estimate(i.value(field_name)) for i in items) if e is not None]
    return max(estimates) if estimates else None


def _project_key(value: FieldValue) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        # number fields come back as floats; formula keys render 12.0 as "12"
        return props.NumberValue(value).canonical() or None
    return str(value)


def project_record_ids(
    items: Sequence[ProjectItem], key_field: str, relations: Relations
) -> list[str]:
    ids: list[str] = []
    for item in items:
        key = _project_key(item.value(key_field))
        if key is None:
            continue
        record_id = relations.project_id(key)
        if record_id and record_id not in ids:
            ids.append(record_id)
    return ids


def assignee_ids(issue: Issue, relations: Relations) -> list[str]:
    # unmatched handles are dropped
    return [uid for uid in (relations.user_id(h) for h in issue.assignees) if uid]


def task_group(items: Sequence[ProjectItem], cfg: MirrorConfig) -> str:
    if cfg.policy.task_group is TaskGroupPolicy.PROJECT_NAME:
        return items[0].project_title if items else ""
    return cfg.policy.task_group_value


def normalise_body(body: str | None) -> str:
    return (body or "").replace("\r\n", "\n")


def build_target_properties(
    issue: Issue,
    matched: Sequence[ProjectItem],
    relations: Relations,
    cfg: MirrorConfig,
) -> PropertyMap:
    names = cfg.fields
    pf = cfg.project_fields
    target: PropertyMap = {
        names.title: props.title(issue.title),
        names.issue_url: props.url(issue.url),
    }
    if names.description:
        target[names.description] = props.text(normalise_body(issue.body))
    if names.status:
        status = derive_status(issue, (item.value(pf.status) for item in matched))
        target[names.status] = props.status(status_option(status, cfg.policy.status_options))
    if names.assignee:
        target[names.assignee] = props.people(assignee_ids(issue, relations))
    if names.project:
        target[names.project] = props.relation(project_record_ids(matched, pf.project_key, relations))
    if names.task_group:
        target[names.task_group] = props.text(task_group(matched, cfg))
    if names.repository:
        target[names.repository] = props.text(issue.repository_name)
    if names.labels:
        target[names.labels] = props.multi_select(issue.labels)
    if names.milestone:
        target[names.milestone] = props.select(issue.milestone)
    if names.estimate:
        estimate = aggregate_estimate(matched, pf.estimate)
        if estimate is not None:
            target[names.estimate] = props.number(estimate)
    return target


__all__ = [
    "aggregate_estimate",
    "assignee_ids",
    "build_target_properties",
    "normalise_body",
    "project_record_ids",
    "task_group",
]
