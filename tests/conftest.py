"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from codek.ai.tools import Workspace


@pytest.fixture
def workspace(tmp_path: Path) -> Workspace:
    root = tmp_path / "project"
    root.mkdir()
    return Workspace(root)


@pytest.fixture
def sample_file(workspace: Workspace) -> Path:
    path = workspace.root / "notes.txt"
    path.write_text("alpha\nbeta\ngamma\n", encoding="utf-8", newline="")
    return path
