"""Command-style entry points shared by the CLI and the service."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .config import SpiderConfig, load_config
from .extractors import discover_extractors
from .gate import keep_unless_updating
from .logging import get_logger
from .models import SearchCriteria, SpiderOptions, SpiderSummary
from .orchestrator import Spider
from .sources import GitCloner, GitHubSource, LocalSource, RepositorySource
from .stores import FileSystemResultStore, ResultStore
from .subprojects import SubprojectFinder, file_names_subproject_finder

GITHUB = "github"
LOCAL = "local"
SOURCES = (GITHUB, LOCAL)

DEFAULT_STORE_PATH = Path.home() / ".repospider" / "analyses"
DEFAULT_POOL_SIZES = {GITHUB: 40, LOCAL: 1}
SUBPROJECT_MARKERS = ("pom.xml", "build.gradle", "package.json", "pyproject.toml", "setup.py")


@dataclass
class SpiderRequest:
    """Parameters of one spider invocation; unset values fall back to configuration."""

    source: str
    workspace_id: Optional[str] = None
    update: bool = False
    owner: Optional[str] = None
    query: Optional[str] = None
    search: Optional[str] = None
    clone_under: Optional[Path] = None
    local_directory: Optional[Path] = None
    store_path: Optional[Path] = None
    pool_size: Optional[int] = None
    max_examined: Optional[int] = None
    max_kept: Optional[int] = None
    extractors: List[str] = field(default_factory=list)


def build_query(owner: Optional[str], search: Optional[str], query: Optional[str]) -> str:
    """Return ``query`` or an ``org:`` query narrowed by repository name."""
    if query:
        return query
    if not owner:
        raise ValueError("Either an owner or a query is required to spider GitHub")
    search_in_name = f" {search} in:name" if search else ""
    return f"org:{owner}{search_in_name}"


def default_subproject_finder() -> SubprojectFinder:
    return file_names_subproject_finder(*SUBPROJECT_MARKERS)


def build_source(request: SpiderRequest, config: SpiderConfig) -> RepositorySource:
    if request.source == GITHUB:
        clone_under = request.clone_under or config.clone_under
        token = os.environ.get("GITHUB_TOKEN")
        cloner = GitCloner(
            token=token, clone_under=clone_under, reuse_directories=config.reuse_clones
        )
        return GitHubSource(token=token, cloner=cloner)
    if request.source == LOCAL:
        if request.local_directory is None:
            raise ValueError("A local directory is required to spider local repositories")
        return LocalSource(Path(request.local_directory).expanduser())
    raise ValueError(f"Unknown source '{request.source}'; expected one of {', '.join(SOURCES)}")


def build_criteria(request: SpiderRequest, config: SpiderConfig) -> SearchCriteria:
    queries: List[str] = []
    if request.source == GITHUB:
        queries.append(build_query(request.owner, request.search, request.query))
    return SearchCriteria(
        queries=queries,
        max_examined=request.max_examined or config.search.max_examined,
        max_kept=request.max_kept or config.search.max_kept,
        subproject_finder=default_subproject_finder(),
    )


def build_options(
    request: SpiderRequest,
    config: SpiderConfig,
    store: Optional[ResultStore] = None,
) -> SpiderOptions:
    workspace_id = request.workspace_id or config.workspace_id
    if store is None:
        store_path = request.store_path or config.store_path or DEFAULT_STORE_PATH
        store = FileSystemResultStore(Path(store_path).expanduser(), workspace_id=workspace_id)
    pool_size = request.pool_size or config.pool_size or DEFAULT_POOL_SIZES[request.source]
    if pool_size < 1:
        raise ValueError("pool_size must be at least 1")
    return SpiderOptions(
        store=store,
        keep_existing=keep_unless_updating(request.update),
        workspace_id=workspace_id,
        pool_size=pool_size,
        candidate_timeout=config.candidate_timeout,
        compute_analytics=config.compute_analytics,
    )


async def run_spider(
    request: SpiderRequest,
    *,
    config: Optional[SpiderConfig] = None,
    source: Optional[RepositorySource] = None,
    store: Optional[ResultStore] = None,
    spider: Optional[Spider] = None,
) -> SpiderSummary:
    """Spider a GitHub query or a local directory tree and return the summary."""
    logger = get_logger("commands")
    if request.source not in SOURCES:
        raise ValueError(f"Unknown source '{request.source}'; expected one of {', '.join(SOURCES)}")
    if config is None:
        config = load_config(Path.cwd())

    criteria = build_criteria(request, config)
    options = build_options(request, config, store)
    if spider is None:
        enabled = request.extractors or config.extractors.enabled or None
        spider = Spider(discover_extractors(enabled))
    owns_source = source is None
    if source is None:
        source = build_source(request, config)

    logger.debug(
        "Spidering %s with queries %s into workspace %s (pool size %d, update=%s)",
        request.source,
        criteria.queries,
        options.workspace_id,
        options.pool_size,
        request.update,
    )
    try:
        return await spider.spider(source, criteria, options)
    finally:
        if owns_source:
            await source.aclose()


__all__ = [
    "DEFAULT_POOL_SIZES",
    "DEFAULT_STORE_PATH",
    "GITHUB",
    "LOCAL",
    "SOURCES",
    "SpiderRequest",
    "build_criteria",
    "build_options",
    "build_query",
    "build_source",
    "default_subproject_finder",
    "run_spider",
]
