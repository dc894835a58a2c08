"""Pytest configuration for test isolation.

The toolkit reads ``FIREFLY_*`` / ``BUDGET_TOOLKIT_*`` variables and resolves
the excluded-transactions file relative to the working directory. A developer
shell (or a ``.env`` loaded by an earlier CLI test) can leak either into later
tests, so every test runs in its own temporary working directory with those
variables removed.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

_PREFIXES = ("FIREFLY_", "BUDGET_TOOLKIT_")


@pytest.fixture(autouse=True)
def _isolate_env_and_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith(_PREFIXES):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
