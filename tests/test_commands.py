"""Tests for repospider.commands."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from repospider.commands import (
    SpiderRequest,
    build_criteria,
    build_options,
    build_query,
    run_spider,
)
from repospider.config import SearchConfig, SpiderConfig
from repospider.extractors import IndependentExtractor
from repospider.gate import always_keep, never_keep
from repospider.models import Fingerprint
from repospider.orchestrator import Spider
from repospider.project import Project
from repospider.stores import FileSystemResultStore
from tests._fixtures.repo_builder import FakeGit, StubSource, candidate_for


def test_build_query_from_owner_and_search() -> None:
    assert build_query("acme", None, None) == "org:acme"
    assert build_query("acme", "widget", None) == "org:acme widget in:name"
    assert build_query("acme", "widget", "language:python stars:>100") == "language:python stars:>100"


def test_build_query_requires_owner_or_query() -> None:
    with pytest.raises(ValueError):
        build_query(None, "widget", None)


def test_criteria_use_configured_thresholds(tmp_path: Path) -> None:
    config = SpiderConfig(root=tmp_path, search=SearchConfig(max_examined=10, max_kept=5))

    criteria = build_criteria(SpiderRequest(source="github", owner="acme", max_kept=3), config)

    assert criteria.queries == ["org:acme"]
    assert criteria.max_examined == 10
    assert criteria.max_kept == 3
    assert criteria.subproject_finder is not None


def test_local_criteria_have_no_queries(tmp_path: Path) -> None:
    criteria = build_criteria(SpiderRequest(source="local"), SpiderConfig(root=tmp_path))

    assert criteria.queries == []


def test_options_defaults_per_source(tmp_path: Path) -> None:
    config = SpiderConfig(root=tmp_path, store_path=tmp_path / "store", workspace_id="cfg")

    github = build_options(SpiderRequest(source="github"), config)
    local = build_options(SpiderRequest(source="local", update=True, workspace_id="cli"), config)

    assert github.pool_size == 40
    assert github.keep_existing is always_keep
    assert github.workspace_id == "cfg"
    assert local.pool_size == 1
    assert local.keep_existing is never_keep
    assert local.workspace_id == "cli"
    assert isinstance(local.store, FileSystemResultStore)
    assert local.store.base == tmp_path / "store" / "cli"


def test_configured_pool_size_overridden_by_request(tmp_path: Path) -> None:
    config = SpiderConfig(root=tmp_path, store_path=tmp_path, pool_size=8)

    assert build_options(SpiderRequest(source="github"), config).pool_size == 8
    assert build_options(SpiderRequest(source="github", pool_size=3), config).pool_size == 3


def test_unknown_source_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Unknown source"):
        asyncio.run(run_spider(SpiderRequest(source="gitlab"), config=SpiderConfig(root=tmp_path)))


def test_run_spider_with_injected_source(tmp_path: Path) -> None:
    store = FileSystemResultStore(tmp_path / "store", workspace_id="local")
    extractor = IndependentExtractor(name="marker", extract=lambda p: Fingerprint.of("marker", "m", 1))
    (tmp_path / "work").mkdir()
    source = StubSource(
        [candidate_for("acme", "widgets")],
        lambda candidate: Project(tmp_path / "work", candidate.identity, runner=FakeGit()),
    )

    summary = asyncio.run(
        run_spider(
            SpiderRequest(source="github", owner="acme"),
            config=SpiderConfig(root=tmp_path),
            source=source,
            store=store,
            spider=Spider([extractor]),
        )
    )

    assert summary.persisted_analyses == ["acme/widgets.json"]


def test_run_spider_over_local_tree(tmp_path: Path) -> None:
    tree = tmp_path / "tree"
    for name in ("alpha", "beta"):
        (tree / name / ".git").mkdir(parents=True)
        (tree / name / "main.py").write_text("print('hi')\n", encoding="utf-8")

    request = SpiderRequest(
        source="local",
        local_directory=tree,
        store_path=tmp_path / "store",
        extractors=["language", "license"],
    )

    summary = asyncio.run(run_spider(request, config=SpiderConfig(root=tmp_path)))

    assert summary.repositories_detected == 2
    assert summary.projects_detected == 2
    assert len(summary.persisted_analyses) == 2
    assert summary.failed == []

    rerun = asyncio.run(run_spider(request, config=SpiderConfig(root=tmp_path)))
    assert len(rerun.kept_existing) == 2
    assert rerun.persisted_analyses == []
