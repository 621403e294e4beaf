"""Tests for repospider.git."""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

import pytest

from repospider.git import GitCommandError, run_git


def test_error_message_names_subcommand_only() -> None:
    error = GitCommandError(
        ["git", "-c", "http.extraHeader=Authorization: Basic c2VjcmV0", "clone", "url"],
        128,
        "fatal: repository not found\n",
    )

    assert str(error) == "git clone failed: fatal: repository not found"
    assert "c2VjcmV0" not in str(error)
    assert error.returncode == 128


def test_error_message_falls_back_to_exit_status() -> None:
    error = GitCommandError(["rev-parse", "HEAD"], 1, "")

    assert str(error) == "git rev-parse failed: exit status 1"


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_run_git_raises_outside_repository(tmp_path: Path) -> None:
    with pytest.raises(GitCommandError):
        asyncio.run(run_git(["rev-parse", "HEAD"], cwd=tmp_path))


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_run_git_returns_stdout(tmp_path: Path) -> None:
    output = asyncio.run(run_git(["--version"], cwd=tmp_path))

    assert output.startswith("git version")
