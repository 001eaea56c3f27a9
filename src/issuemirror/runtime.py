"""Runtime helpers for IssueMirror CLI orchestration."""

from __future__ import annotations

import sys
import time
from collections.abc import Callable
from dataclasses import replace
from typing import Any, Protocol

from issuemirror.config import MirrorConfig, WriteFailurePolicy, load_config
from issuemirror.errors import ConfigError, classify_error
from issuemirror.logging import configure_logging, get_logger

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


class _HandlerCallable(Protocol):
    def __call__(self) -> Any: ...


def prepare_config(
    args: Any, *, loader: Callable[[str], MirrorConfig] = load_config
) -> MirrorConfig:
    """Load MirrorConfig for the given argparse namespace and apply CLI overrides."""
    if not hasattr(args, "config"):
        raise AttributeError("Command namespace is missing 'config' attribute")
    cfg = loader(args.config)
    overrides: dict[str, Any] = {}
    repo_override = getattr(args, "repo", None)
    if repo_override:
        overrides["github_repo"] = repo_override
    if getattr(args, "isolate_failures", False):
        overrides["policy"] = replace(cfg.policy, on_write_error=WriteFailurePolicy.ISOLATE)
    if overrides:
        cfg = cfg.with_overrides(**overrides)
    level = "WARNING" if getattr(args, "quiet", False) else cfg.logging_level
    configure_logging(json_logging=cfg.logging_json_enabled, level=level)
    return cfg


def execute_command(handler: _HandlerCallable, args: Any, command: str) -> int:
    """Run a command handler, timing it and mapping failures to exit codes."""
    logger = get_logger()
    start = time.monotonic()
    try:
        result = handler()
        exit_code = int(result) if result is not None else EXIT_OK
    except ConfigError as exc:
        print(f"[{command}] configuration error: {exc}", file=sys.stderr)
        exit_code = EXIT_CONFIG
    except Exception as exc:
        info = classify_error(exc)
        logger.log_error(f"{command} aborted", error=info.message, category=info.category)
        print(f"[{command}] failed ({info.category}): {info.message}", file=sys.stderr)
        exit_code = EXIT_FAILURE
    duration_ms = max(0.0, time.monotonic() - start) * 1000
    logger.log_performance(
        command, duration_ms, exit_code=exit_code, dry_run=bool(getattr(args, "dry_run", False))
    )
    return exit_code


__all__ = ["EXIT_CONFIG", "EXIT_FAILURE", "EXIT_OK", "execute_command", "prepare_config"]
