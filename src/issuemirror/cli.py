"""IssueMirror CLI.

Subcommands:
  sync      -> reconcile GitHub issues into the Notion tasks database
  validate  -> load and validate the configuration without touching any API

Exit codes: 0 success, 1 failed issues or aborted run, 2 configuration error.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Iterable
from typing import Any

from issuemirror.config import DEFAULT_CONFIG_FILE, MirrorConfig
from issuemirror.errors import ConfigError
from issuemirror.orchestrator import sync_with_summary
from issuemirror.reconcile import format_report
from issuemirror.runtime import EXIT_CONFIG, EXIT_FAILURE, EXIT_OK, execute_command, prepare_config

REPO_HELP = "Override target repository (owner/repo)"

_MAX_HELP_WIDTH = 100


class _HelpFormatter(argparse.HelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


class _FormatterArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", _HelpFormatter)
        super().__init__(*args, **kwargs)


def _build_parser() -> argparse.ArgumentParser:
    p = _FormatterArgumentParser(
        prog="issuemirror", description="Mirror GitHub issues into a Notion task database"
    )
    p.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress informational output (env: ISSUEMIRROR_QUIET=1)",
    )
    sub = p.add_subparsers(
        dest="cmd",
        required=True,
        parser_class=_FormatterArgumentParser,
        metavar="<command>",
    )

    ps = sub.add_parser("sync", help="Reconcile issues into Notion (create/update)")
    ps.add_argument("--config", default=DEFAULT_CONFIG_FILE)
    ps.add_argument("--repo", help=REPO_HELP)
    ps.add_argument("--dry-run", action="store_true", help="Decide everything, write nothing")
    ps.add_argument("--issue", type=int, help="Reconcile a single issue number")
    ps.add_argument(
        "--isolate-failures",
        action="store_true",
        help="Record failed writes and continue instead of aborting",
    )
    ps.add_argument("--summary-json", help="Write the run summary to this path")
    ps.add_argument("--quiet", action="store_true", default=argparse.SUPPRESS)

    pv = sub.add_parser("validate", help="Validate configuration")
    pv.add_argument("--config", default=DEFAULT_CONFIG_FILE)
    pv.add_argument("--repo", help=REPO_HELP)
    return p


def _print_lines(lines: Iterable[str]) -> None:
    for line in lines:
        print(line)


def _cmd_sync(cfg: MirrorConfig, args: argparse.Namespace) -> int:
    report, summary = sync_with_summary(
        cfg,
        dry_run=args.dry_run,
        issue_number=args.issue,
        summary_path=args.summary_json,
    )
    if args.quiet:
        print("[sync] totals", json.dumps(summary.get("totals", {})))
    else:
        _print_lines(format_report(report))
    return EXIT_FAILURE if report.failed else EXIT_OK


def _cmd_validate(cfg: MirrorConfig) -> int:
    cfg.validate()
    print(f"[validate] repo={cfg.github_repo} scope={cfg.project_scope.value}")
    print(
        "[validate] databases tasks={} projects={} users={}".format(
            cfg.tasks_database, cfg.projects_database, cfg.users_database
        )
    )
    print("[validate] ok")
    return EXIT_OK


def _build_handlers(args: argparse.Namespace, cfg: MirrorConfig) -> dict[str, Any]:
    return {
        "sync": lambda: _cmd_sync(cfg, args),
        "validate": lambda: _cmd_validate(cfg),
    }


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "quiet", False) and os.environ.get("ISSUEMIRROR_QUIET") == "1":
        args.quiet = True
    try:
        cfg = prepare_config(args)
    except ConfigError as exc:
        print(f"[{args.cmd}] configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG
    handler = _build_handlers(args, cfg).get(args.cmd)
    if handler is None:  # pragma: no cover - argparse enforces valid choices
        parser.print_help()
        return EXIT_FAILURE
    return execute_command(handler, args, args.cmd)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
