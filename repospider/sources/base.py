"""Repository source contract: enumerate candidates and materialize them."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator

from ..models import Candidate, SearchCriteria
from ..project import Project


class RepositorySource(ABC):
    """Discovers repositories and turns them into readable working copies."""

    #: Stage name recorded in the summary when materialization fails.
    materialize_stage = "clone"

    @abstractmethod
    def enumerate(self, criteria: SearchCriteria) -> AsyncIterator[Candidate]:
        """Yield candidates lazily. Failures raise ``EnumerationError``."""

    @abstractmethod
    async def materialize(self, candidate: Candidate) -> Project:
        """Return a project handle or raise ``MaterializationError``."""

    async def aclose(self) -> None:
        """Release resources held by the source."""


__all__ = ["RepositorySource"]
