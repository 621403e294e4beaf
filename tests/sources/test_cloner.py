"""Tests for shallow cloning of remote candidates."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List, Optional

import pytest

from repospider.errors import CLONE_FAILED, NOT_A_REPOSITORY, PERMISSION_DENIED, MaterializationError
from repospider.git import GitCommandError
from repospider.sources.cloner import GitCloner, classify_clone_failure
from tests._fixtures.repo_builder import FakeGit, candidate_for


def _fake_clone(args: List[str], cwd: Optional[Path]) -> str:
    target = Path(args[-1])
    (target / ".git").mkdir(parents=True)
    (target / "README.md").write_text("hello", encoding="utf-8")
    return ""


@pytest.mark.parametrize(
    ("stderr", "kind"),
    [
        ("remote: Repository not found.\nfatal: repository 'x' not found", NOT_A_REPOSITORY),
        ("fatal: Authentication failed for 'https://github.com/a/b.git/'", PERMISSION_DENIED),
        ("fatal: unable to access: Could not resolve host: github.com", CLONE_FAILED),
    ],
)
def test_classify_clone_failure(stderr: str, kind: str) -> None:
    assert classify_clone_failure(stderr) == kind


def test_shallow_clone_into_temporary_directory() -> None:
    git = FakeGit({"clone": _fake_clone, "rev-parse HEAD": "abc123\n"})
    cloner = GitCloner(runner=git)

    project = asyncio.run(cloner.clone(candidate_for("acme", "widgets", default_branch="main")))

    clone_args = git.calls[0][0]
    assert clone_args[:6] == ["clone", "--depth", "1", "--single-branch", "--branch", "main"]
    assert clone_args[6] == "https://github.com/acme/widgets.git"
    assert project.read_text("README.md") == "hello"
    assert project.identity.sha == "abc123"

    scratch = project.root.parent
    project.release()
    assert not scratch.exists()


def test_stable_clones_are_kept_and_reused(tmp_path: Path) -> None:
    git = FakeGit({"clone": _fake_clone, "rev-parse HEAD": "abc123\n"})
    cloner = GitCloner(clone_under=tmp_path, runner=git)
    candidate = candidate_for("acme", "widgets")

    first = asyncio.run(cloner.clone(candidate))
    first.release()
    second = asyncio.run(cloner.clone(candidate))

    assert first.root == tmp_path / "acme" / "widgets"
    assert second.root == first.root
    assert (first.root / "README.md").exists()
    assert [call[0][0] for call in git.calls].count("clone") == 1


def test_token_is_sent_as_extra_header() -> None:
    git = FakeGit({"-c http.extraHeader=Authorization: Basic": _fake_clone, "rev-parse": "abc\n"})
    cloner = GitCloner(token="s3cret", runner=git)

    project = asyncio.run(cloner.clone(candidate_for("acme", "widgets")))
    project.release()

    args = git.calls[0][0]
    assert args[0] == "-c"
    assert "s3cret" not in args[1]
    assert args[2] == "clone"


def test_clone_failure_maps_to_materialization_error() -> None:
    failure = GitCommandError(["git", "clone"], 128, "remote: Repository not found.")
    cloner = GitCloner(runner=FakeGit({"clone": failure}))

    with pytest.raises(MaterializationError) as excinfo:
        asyncio.run(cloner.clone(candidate_for("acme", "missing")))

    assert excinfo.value.kind == NOT_A_REPOSITORY
    assert "Repository not found" in str(excinfo.value)
