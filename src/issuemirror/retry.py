"""Centralized retry / backoff helpers.

``run_with_retries`` wraps a single network call with exponential backoff
and jitter. Whether a failure is retried is decided by
:func:`issuemirror.errors.classify_error`; anything not classified as
transient propagates immediately.

Environment overrides:
  ISSUEMIRROR_RETRY_ATTEMPTS (default 3)
  ISSUEMIRROR_RETRY_BASE (seconds base, default 0.5)
  ISSUEMIRROR_RETRY_MAX_SLEEP (cap for any single sleep)
"""

from __future__ import annotations

import logging
import os
import random
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from .errors import classify_error

T = TypeVar("T")

_RE_RETRY_AFTER = re.compile(r"retry[-\s]after:?\s*(\d+)", re.IGNORECASE)
_RE_SECONDS_HINT = re.compile(r"wait\s*(\d+)\s*seconds", re.IGNORECASE)
_JITTER = random.SystemRandom()

logger = logging.getLogger(__name__)


def _extract_explicit_backoff(text: str) -> float | None:
    """Extract an explicit backoff (seconds) from error output.

    Supports patterns like:
      Retry-After: 12
      retry after 12
      wait 30 seconds
    Returns None if no valid positive value found.
    """
    if not text:
        return None
    for pattern in (_RE_RETRY_AFTER, _RE_SECONDS_HINT):
        m = pattern.search(text)
        if m:
            val = float(m.group(1))
            return val if val > 0 else None
    return None


@dataclass
class RetryConfig:
    attempts: int = field(
        default_factory=lambda: int(os.environ.get("ISSUEMIRROR_RETRY_ATTEMPTS", "3"))
    )
    base_sleep: float = field(
        default_factory=lambda: float(os.environ.get("ISSUEMIRROR_RETRY_BASE", "0.5"))
    )


def is_transient(exc: BaseException) -> bool:
    return classify_error(exc).transient


def _compute_sleep(attempt: int, cfg: RetryConfig, out: str) -> float:
    explicit = _extract_explicit_backoff(out)
    backoff = cfg.base_sleep * (2 ** (attempt - 1)) + _JITTER.uniform(0, 0.25)
    sleep_for: float = explicit if explicit is not None else backoff
    max_cap_env = os.environ.get("ISSUEMIRROR_RETRY_MAX_SLEEP")
    if max_cap_env:
        try:
            cap = float(max_cap_env)
        except ValueError:
            return sleep_for
        if cap >= 0:
            sleep_for = min(sleep_for, cap)
    return sleep_for


def run_with_retries(fn: Callable[[], T], *, cfg: RetryConfig | None = None) -> T:
    cfg = cfg or RetryConfig()
    attempts = max(1, cfg.attempts)
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except Exception as exc:
            info = classify_error(exc)
            if attempt >= attempts or not info.transient:
                raise
            sleep_for = _compute_sleep(attempt, cfg, info.message)
            logger.warning(
                "transient %s error, attempt %d/%d, sleeping %.2fs",
                info.category,
                attempt,
                attempts,
                sleep_for,
            )
            time.sleep(sleep_for)
    raise RuntimeError("retry logic exited unexpectedly")  # pragma: no cover


__all__ = ["RetryConfig", "run_with_retries", "is_transient"]
