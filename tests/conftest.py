"""Pytest configuration for IssueMirror tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install (`pip install -e .`), and exposes the
shared fakes module living next to the tests.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
TESTS = Path(__file__).resolve().parent
for path in (SRC, TESTS):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))


@pytest.fixture(autouse=True)
def _fast_retries(monkeypatch: pytest.MonkeyPatch) -> None:
    # keep transient-error tests from sleeping
    monkeypatch.setenv("ISSUEMIRROR_RETRY_BASE", "0")
    monkeypatch.setenv("ISSUEMIRROR_RETRY_MAX_SLEEP", "0")


@pytest.fixture(autouse=True)
def _fresh_logger(monkeypatch: pytest.MonkeyPatch) -> None:
    # the shared logger binds sys.stdout when built; rebuild it under each test's capture
    import issuemirror.logging as structured

    monkeypatch.setattr(structured, "_GLOBAL", None)
