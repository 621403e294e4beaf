"""Project handles: read access to a materialized working copy."""

from __future__ import annotations

import asyncio
import os
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from .git import GitCommandError, GitRunner, run_git
from .logging import get_logger
from .models import RepoIdentity, parse_timestamp

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".idea",
}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}

_LOGGER = get_logger("project")


@dataclass(frozen=True)
class CommitInfo:
    """Author and timestamp of the HEAD commit."""

    sha: str
    author: str
    timestamp: datetime


class Project:
    """A working copy on the local filesystem owned by one extraction."""

    def __init__(
        self,
        root: Path,
        identity: RepoIdentity,
        *,
        runner: GitRunner | None = None,
        cleanup: Optional[Callable[[], None]] = None,
        vcs_root: Optional[Path] = None,
    ) -> None:
        self.root = Path(root)
        self.identity = identity
        self._runner = runner or run_git
        self._cleanup = cleanup
        self._vcs_root = vcs_root or self.root
        self._released = False

    def __repr__(self) -> str:
        return f"Project({self.identity.url!r}, root={str(self.root)!r})"

    # ------------------------------------------------------------------
    # File access

    def has_file(self, relative: str) -> bool:
        return (self.root / relative).is_file()

    def read_text(self, relative: str) -> Optional[str]:
        """Return the contents of ``relative`` or None when the file is absent."""
        path = self.root / relative
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8", errors="replace")

    def iter_files(self) -> Iterator[str]:
        """Yield project-relative POSIX paths, skipping VCS and tooling directories."""
        for dirpath, dirnames, filenames in os.walk(self.root):
            current_dir = Path(dirpath)
            rel_dir = current_dir.relative_to(self.root).as_posix() if current_dir != self.root else ""
            dirnames[:] = sorted(name for name in dirnames if name not in _EXCLUDED_DIRS)
            for filename in sorted(filenames):
                if filename in _EXCLUDED_FILES:
                    continue
                yield f"{rel_dir}/{filename}" if rel_dir else filename

    def find_files(self, filename: str) -> List[str]:
        """Return every path whose final component equals ``filename``."""
        return [path for path in self.iter_files() if path.rsplit("/", 1)[-1] == filename]

    def total_file_count(self) -> int:
        return sum(1 for _ in self.iter_files())

    def subproject(self, path: str) -> "Project":
        """Return a handle for a directory inside this project, sharing its git metadata."""
        normalized = path.strip("/")
        return Project(
            self.root / normalized,
            self.identity.under(normalized),
            runner=self._runner,
            vcs_root=self._vcs_root,
        )

    # ------------------------------------------------------------------
    # VCS metadata

    async def head_sha(self) -> Optional[str]:
        try:
            output = await self._runner(["rev-parse", "HEAD"], cwd=self._vcs_root)
        except GitCommandError as exc:
            _LOGGER.debug("Unable to resolve HEAD for %s: %s", self.identity.url, exc)
            return None
        sha = output.strip()
        return sha or None

    async def last_commit(self) -> Optional[CommitInfo]:
        try:
            output = await self._runner(
                ["log", "-1", "--format=%H%x00%an%x00%aI"], cwd=self._vcs_root
            )
        except GitCommandError as exc:
            _LOGGER.debug("Unable to read last commit for %s: %s", self.identity.url, exc)
            return None
        parts = output.strip().split("\x00")
        if len(parts) != 3:
            return None
        sha, author, raw_timestamp = parts
        try:
            timestamp = parse_timestamp(raw_timestamp)
        except ValueError:
            return None
        return CommitInfo(sha=sha, author=author, timestamp=timestamp)

    # ------------------------------------------------------------------
    # Lifecycle

    def release(self) -> None:
        """Release the working copy. Safe to call more than once."""
        if self._released:
            return
        self._released = True
        if self._cleanup is not None:
            self._cleanup()

    async def aclose(self) -> None:
        """Release the working copy in a worker thread."""
        await asyncio.to_thread(self.release)


def remove_directory(path: Path) -> Callable[[], None]:
    """Return a cleanup callback that deletes ``path``."""

    def _cleanup() -> None:
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            return
        except OSError as exc:
            _LOGGER.warning("Unable to remove working copy %s: %s", path, exc)

    return _cleanup


__all__ = ["CommitInfo", "Project", "remove_directory"]
