"""Tests for the local directory source."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List

import pytest

from repospider.errors import NOT_A_REPOSITORY, EnumerationError, MaterializationError
from repospider.models import Candidate, SearchCriteria
from repospider.sources.local import LocalSource, find_repositories, parse_remote_url
from tests._fixtures.repo_builder import FakeGit


def _make_repo(path: Path) -> Path:
    (path / ".git").mkdir(parents=True)
    return path


def test_nested_repositories_are_not_descended_into(tmp_path: Path) -> None:
    first = _make_repo(tmp_path / "a")
    _make_repo(tmp_path / "a" / "vendor" / "nested")
    second = _make_repo(tmp_path / "b" / "c")
    (tmp_path / "d" / "src").mkdir(parents=True)

    assert list(find_repositories(tmp_path)) == [first, second]


def test_root_that_is_a_repository_is_yielded(tmp_path: Path) -> None:
    _make_repo(tmp_path)

    assert list(find_repositories(tmp_path)) == [tmp_path]


def test_missing_root_aborts_enumeration(tmp_path: Path) -> None:
    with pytest.raises(EnumerationError):
        list(find_repositories(tmp_path / "missing"))


def test_root_file_yields_nothing(tmp_path: Path) -> None:
    target = tmp_path / "file.txt"
    target.write_text("x", encoding="utf-8")

    assert list(find_repositories(target)) == []


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("https://github.com/acme/widgets.git", ("acme", "widgets")),
        ("https://github.com/acme/widgets", ("acme", "widgets")),
        ("git@github.com:acme/widgets.git", ("acme", "widgets")),
        ("ssh://git@example.com/acme/widgets.git", ("acme", "widgets")),
        ("not a url", None),
    ],
)
def test_parse_remote_url(url: str, expected) -> None:
    assert parse_remote_url(url) == expected


def test_identity_derived_from_origin(tmp_path: Path) -> None:
    repo = _make_repo(tmp_path / "checkout")
    git = FakeGit(
        {
            "remote get-url origin": "git@github.com:acme/widgets.git\n",
            "rev-parse HEAD": "abc123\n",
        }
    )

    identity = asyncio.run(LocalSource(tmp_path, runner=git).identify(repo))

    assert (identity.owner, identity.name, identity.sha) == ("acme", "widgets", "abc123")
    assert identity.url == "git@github.com:acme/widgets.git"


def test_identity_invented_without_remote(tmp_path: Path) -> None:
    repo = _make_repo(tmp_path / "team" / "service")

    identity = asyncio.run(LocalSource(tmp_path, runner=FakeGit()).identify(repo))

    assert (identity.owner, identity.name) == ("team", "service")
    assert identity.url.startswith("file://")
    assert identity.sha is None


def test_enumerate_yields_candidates_with_paths(tmp_path: Path) -> None:
    _make_repo(tmp_path / "one")
    _make_repo(tmp_path / "two")
    source = LocalSource(tmp_path, runner=FakeGit())

    async def _collect() -> List[Candidate]:
        return [c async for c in source.enumerate(SearchCriteria())]

    candidates = asyncio.run(_collect())

    assert [c.identity.name for c in candidates] == ["one", "two"]
    assert candidates[0].source_metadata == {"path": str(tmp_path / "one")}


def test_materialize_opens_in_place(tmp_path: Path) -> None:
    repo = _make_repo(tmp_path / "one")
    (repo / "README.md").write_text("hi", encoding="utf-8")
    source = LocalSource(tmp_path, runner=FakeGit())

    async def _open():
        candidate = [c async for c in source.enumerate(SearchCriteria())][0]
        return await source.materialize(candidate)

    project = asyncio.run(_open())
    project.release()

    assert project.root == repo
    assert (repo / "README.md").exists()


def test_materialize_rejects_non_repository(tmp_path: Path) -> None:
    plain = tmp_path / "plain"
    plain.mkdir()
    source = LocalSource(tmp_path, runner=FakeGit())
    candidate = Candidate(
        identity=asyncio.run(source.identify(plain)),
        source_metadata={"path": str(plain)},
    )

    with pytest.raises(MaterializationError) as excinfo:
        asyncio.run(source.materialize(candidate))

    assert excinfo.value.kind == NOT_A_REPOSITORY
