from __future__ import annotations

from pathlib import Path

import pytest

from repospider.stores import FileSystemResultStore
from tests._fixtures.repo_builder import RepoBuilder


@pytest.fixture
def repo_builder(tmp_path: Path) -> RepoBuilder:
    """Provide a reusable repo builder rooted at the pytest tmp_path."""
    return RepoBuilder(tmp_path)


@pytest.fixture
def store(tmp_path: Path) -> FileSystemResultStore:
    """File system store in a scratch directory."""
    return FileSystemResultStore(tmp_path / "analyses", workspace_id="test")
