"""Shallow git clones of remote repositories."""

from __future__ import annotations

import asyncio
import base64
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from ..errors import (
    CLONE_FAILED,
    NOT_A_REPOSITORY,
    PERMISSION_DENIED,
    MaterializationError,
)
from ..git import GitCommandError, GitRunner, run_git
from ..logging import get_logger
from ..models import Candidate
from ..project import Project, remove_directory

_NOT_FOUND_MARKERS = (
    "not found",
    "does not appear to be a git repository",
    "does not exist",
)
_PERMISSION_MARKERS = (
    "permission denied",
    "authentication failed",
    "could not read username",
    "403",
)


def classify_clone_failure(stderr: str) -> str:
    lowered = stderr.lower()
    if any(marker in lowered for marker in _PERMISSION_MARKERS):
        return PERMISSION_DENIED
    if any(marker in lowered for marker in _NOT_FOUND_MARKERS):
        return NOT_A_REPOSITORY
    return CLONE_FAILED


class GitCloner:
    """Clones a candidate with ``--depth 1 --single-branch``.

    With ``clone_under`` set, clones land in ``clone_under/owner/name`` and are
    kept after release; ``reuse_directories`` reuses an existing clone there
    instead of cloning again. Without it each clone goes to a temporary
    directory removed on release.
    """

    def __init__(
        self,
        *,
        token: Optional[str] = None,
        clone_under: Optional[Path] = None,
        reuse_directories: bool = True,
        host: str = "github.com",
        runner: GitRunner | None = None,
    ) -> None:
        self.token = token
        self.clone_under = Path(clone_under) if clone_under is not None else None
        self.reuse_directories = reuse_directories
        self.host = host
        self._runner = runner or run_git
        self.logger = get_logger("sources.cloner")

    def clone_url(self, candidate: Candidate) -> str:
        identity = candidate.identity
        return f"https://{self.host}/{identity.owner}/{identity.name}.git"

    async def clone(self, candidate: Candidate) -> Project:
        identity = candidate.identity
        if self.clone_under is not None:
            target = self.clone_under / identity.owner / identity.name
            cleanup = None
            if (target / ".git").exists() and self.reuse_directories:
                self.logger.debug("Reusing existing clone of %s at %s", identity.url, target)
                return await self._open(candidate, target, cleanup)
            if target.exists():
                await asyncio.to_thread(shutil.rmtree, target)
            target.parent.mkdir(parents=True, exist_ok=True)
        else:
            scratch = Path(tempfile.mkdtemp(prefix="repospider-"))
            target = scratch / identity.name
            cleanup = remove_directory(scratch)

        args = ["clone", "--depth", "1", "--single-branch"]
        if identity.default_branch:
            args.extend(["--branch", identity.default_branch])
        args.extend([self.clone_url(candidate), str(target)])
        try:
            await self._runner(self._auth_args() + args, cwd=None)
        except GitCommandError as exc:
            if cleanup is not None:
                await asyncio.to_thread(cleanup)
            raise MaterializationError(
                f"Unable to clone {identity.url}: {exc.stderr.strip() or exc}",
                kind=classify_clone_failure(exc.stderr),
            ) from exc
        return await self._open(candidate, target, cleanup)

    async def _open(self, candidate: Candidate, target: Path, cleanup) -> Project:
        project = Project(target, candidate.identity, runner=self._runner, cleanup=cleanup)
        sha = await project.head_sha()
        project.identity = candidate.identity.with_sha(sha)
        return project

    def _auth_args(self) -> list[str]:
        if not self.token:
            return []
        credentials = base64.b64encode(f"x-access-token:{self.token}".encode("utf-8")).decode("ascii")
        return ["-c", f"http.extraHeader=Authorization: Basic {credentials}"]


__all__ = ["GitCloner", "classify_clone_failure"]
