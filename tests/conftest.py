"""Shared pytest fixtures for the webinit test suite.

Provides reusable fixtures for:
- Temporary project directories named like real projects
- Validated project identifiers and matching configs
- Mocked subprocess execution (docker / go)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

from webinit.config import Config
from webinit.naming import ProjectIdentifier, make_identifier


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Empty project root called ``myapp`` (auto-cleanup)."""
    project_dir = tmp_path / "myapp"
    project_dir.mkdir()
    yield project_dir


@pytest.fixture
def project() -> ProjectIdentifier:
    return make_identifier("myapp")


@pytest.fixture
def config(tmp_project_dir: Path) -> Config:
    """Config rooted at ``tmp_project_dir`` with every external step disabled."""
    return Config(root_dir=tmp_project_dir, skip_db=True, skip_fetch=True)


# ---------------------------------------------------------------------------
# Mock subprocess
# ---------------------------------------------------------------------------

def make_run_command(responses: dict[str, tuple[int, str, str]] | None = None) -> AsyncMock:
    """Build an ``AsyncMock`` standing in for ``webinit.utils.run_command``.

    *responses* maps a sub-command (``"pull"``, ``"run"``, ``"ps"``, ``"mod"``...)
    to the ``(returncode, stdout, stderr)`` tuple returned for it.  Anything
    not listed succeeds with empty output.  Calls are recorded on the mock.
    """
    responses = responses or {}

    async def _run(cmd: list[str], **kwargs: Any) -> tuple[int, str, str]:
        sub = cmd[1] if len(cmd) > 1 else cmd[0]
        return responses.get(sub, (0, "", ""))

    return AsyncMock(side_effect=_run)


@pytest.fixture
def mock_run_command():
    """Factory fixture returning ``make_run_command``."""
    return make_run_command
