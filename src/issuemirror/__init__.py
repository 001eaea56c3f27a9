"""IssueMirror - one-way reconciliation of GitHub issues into a Notion task database.

High-level public API:

from issuemirror import load_config, sync_with_summary

cfg = load_config('issuemirror.config.yaml')
report, summary = sync_with_summary(cfg, dry_run=True)
print(summary['totals'])

Individual components (sources, mirror store, mapper, reconciler) are importable
from their modules for embedding with custom clients.
"""

from __future__ import annotations

from .config import MirrorConfig, load_config
from .errors import ConfigError, MirrorError
from .models import Issue, MirrorRecord, ProjectItem, Relations
from .orchestrator import sync_with_summary
from .reconcile import Outcome, ReconcileReport, Reconciler

# Keep in sync with pyproject.toml
__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "Issue",
    "MirrorConfig",
    "MirrorError",
    "MirrorRecord",
    "Outcome",
    "ProjectItem",
    "ReconcileReport",
    "Reconciler",
    "Relations",
    "load_config",
    "sync_with_summary",
    "__version__",
]
