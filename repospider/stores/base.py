"""Persistence contract for analysis results."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from ..models import AnalysisResult, PersistOutcome, RepoIdentity

Persistable = Union[AnalysisResult, Iterable[AnalysisResult]]


class ResultStore(ABC):
    """Basic persistence operations for analysis results.

    Records are keyed by repository identity without revision: persisting the
    same identity again replaces the previous record.
    """

    @abstractmethod
    def location_for(self, identity: RepoIdentity) -> str:
        """Return the deterministic location of the record for ``identity``."""

    @abstractmethod
    def persist(self, results: Persistable) -> PersistOutcome:
        """Upsert one or more results, capturing per-item failures."""

    @abstractmethod
    def load_by_identity(self, identity: RepoIdentity) -> Optional[AnalysisResult]:
        """Return the stored result for ``identity`` (sha is ignored)."""

    @abstractmethod
    def load_all(self) -> List[AnalysisResult]:
        """Return every stored result."""

    def count(self) -> int:
        return len(self.load_all())

    def persist_analytics(self, analytics: Sequence[Dict[str, Any]]) -> None:
        """Store workspace analytics. Stores without analytics support ignore them."""

    def load_analytics(self) -> List[Dict[str, Any]]:
        return []


def as_results(results: Persistable) -> List[AnalysisResult]:
    if isinstance(results, AnalysisResult):
        return [results]
    return list(results)


__all__ = ["Persistable", "ResultStore", "as_results"]
