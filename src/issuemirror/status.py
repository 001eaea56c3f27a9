"""Status rules: one normalised status per issue.

Evaluated in order, first match wins:

1. closed issue                      -> Done
2. label ``blocked`` (any case)       -> Blocked
3. label ``duplicate`` (any case)     -> Duplicate
4. any project status ``In review``   -> To be checked
5. any project status ``In progress`` -> In progress
6. first non-empty project status verbatim, else Not started

Lifecycle and hygiene labels override board status because boards lag.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .models import Issue

DONE = "Done"
BLOCKED = "Blocked"
DUPLICATE = "Duplicate"
TO_BE_CHECKED = "To be checked"
IN_PROGRESS = "In progress"
NOT_STARTED = "Not started"

_BOARD_IN_REVIEW = "In review"
_BOARD_IN_PROGRESS = "In progress"


def _has_label(issue: Issue, name: str) -> bool:
    return any(label.casefold() == name for label in issue.labels)


def derive_status(issue: Issue, project_statuses: Iterable[object]) -> str:
    statuses = [s.strip() for s in project_statuses if isinstance(s, str) and s.strip()]
    if issue.closed:
        return DONE
    if _has_label(issue, "blocked"):
        return BLOCKED
    if _has_label(issue, "duplicate"):
        return DUPLICATE
    if _BOARD_IN_REVIEW in statuses:
        return TO_BE_CHECKED
    if _BOARD_IN_PROGRESS in statuses:
        return IN_PROGRESS
    return statuses[0] if statuses else NOT_STARTED


def status_option(status: str, options: Mapping[str, str]) -> str:
    """Translate a normalised status into the option name used by the tasks database."""
    return options.get(status, status)


__all__ = [
    "BLOCKED",
    "DONE",
    "DUPLICATE",
    "IN_PROGRESS",
    "NOT_STARTED",
    "TO_BE_CHECKED",
    "derive_status",
    "status_option",
]
