"""Local directory source: spider git working copies already on disk."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import AsyncIterator, Iterator, List, Optional, Tuple

from ..errors import (
    NOT_A_REPOSITORY,
    PERMISSION_DENIED,
    EnumerationError,
    MaterializationError,
)
from ..git import GitCommandError, GitRunner, run_git
from ..logging import get_logger
from ..models import Candidate, RepoIdentity, SearchCriteria, utcnow
from ..project import Project
from .base import RepositorySource

_REMOTE_PATTERN = re.compile(
    r"""
    ^(?:
        [a-z][a-z0-9+.-]*://(?:[^@/]+@)?[^/]+/   # https://host/ or ssh://git@host/
      | [^@:/]+@[^:]+:                            # scp form: git@host:
    )
    (?P<owner>[^/]+)/(?P<name>[^/]+?)(?:\.git)?/?$
    """,
    re.VERBOSE | re.IGNORECASE,
)


def find_repositories(root: Path) -> Iterator[Path]:
    """Yield every directory under ``root`` holding a ``.git`` entry.

    The walk uses an explicit stack and visits siblings in sorted order. A
    repository is not descended into, so nested repositories are skipped.
    """
    root = Path(root)
    if not root.exists():
        raise EnumerationError(f"Local spider root {root} does not exist")
    if not root.is_dir():
        return
    stack: List[Path] = [root]
    while stack:
        current = stack.pop()
        if (current / ".git").exists():
            yield current
            continue
        try:
            with os.scandir(current) as entries:
                children = sorted(
                    Path(entry.path)
                    for entry in entries
                    if entry.is_dir(follow_symlinks=False)
                )
        except OSError as exc:
            raise EnumerationError(f"Unable to read directory {current}: {exc}") from exc
        # Reversed so the smallest name is popped first.
        stack.extend(reversed(children))


def parse_remote_url(url: str) -> Optional[Tuple[str, str]]:
    """Return ``(owner, name)`` from an https, ssh or scp-style git remote."""
    match = _REMOTE_PATTERN.match(url.strip())
    if not match:
        return None
    return match.group("owner"), match.group("name")


class LocalSource(RepositorySource):
    """Treats every git repository below ``root`` as a candidate."""

    materialize_stage = "open"

    def __init__(self, root: Path, *, runner: GitRunner | None = None) -> None:
        self.root = Path(root)
        self._runner = runner or run_git
        self.logger = get_logger("sources.local")

    async def enumerate(self, criteria: SearchCriteria) -> AsyncIterator[Candidate]:
        self.logger.info("Spidering local directory %s", self.root)
        for directory in find_repositories(self.root):
            identity = await self.identify(directory)
            yield Candidate(
                identity=identity,
                source_metadata={"path": str(directory)},
                discovered_at=utcnow(),
            )

    async def identify(self, directory: Path) -> RepoIdentity:
        """Derive identity from the ``origin`` remote, or invent one from the path."""
        owner_name = None
        url = None
        try:
            remote = (await self._runner(["remote", "get-url", "origin"], cwd=directory)).strip()
        except GitCommandError:
            remote = ""
        if remote:
            owner_name = parse_remote_url(remote)
            url = remote
        if owner_name is None:
            resolved = directory.resolve()
            owner_name = (resolved.parent.name or "local", resolved.name)
            url = resolved.as_uri()
            self.logger.debug("No usable origin for %s; using %s", directory, url)
        sha = await self._head_sha(directory)
        owner, name = owner_name
        return RepoIdentity(owner=owner, name=name, url=url or directory.resolve().as_uri(), sha=sha)

    async def _head_sha(self, directory: Path) -> Optional[str]:
        try:
            output = await self._runner(["rev-parse", "HEAD"], cwd=directory)
        except GitCommandError:
            return None
        return output.strip() or None

    async def materialize(self, candidate: Candidate) -> Project:
        directory = Path(candidate.source_metadata.get("path", ""))
        if not directory.is_dir():
            raise MaterializationError(
                f"{directory} is not a directory", kind=NOT_A_REPOSITORY
            )
        if not (directory / ".git").exists():
            raise MaterializationError(
                f"{directory} is not a git repository", kind=NOT_A_REPOSITORY
            )
        if not os.access(directory, os.R_OK | os.X_OK):
            raise MaterializationError(
                f"Permission denied reading {directory}", kind=PERMISSION_DENIED
            )
        # Opened in place; releasing a local project never deletes it.
        return Project(directory, candidate.identity, runner=self._runner)


__all__ = ["LocalSource", "find_repositories", "parse_remote_url"]
