"""Core data models shared across repospider components."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from .project import Project
    from .stores.base import ResultStore
    from .subprojects import SubprojectFinder


def utcnow() -> datetime:
    return datetime.now(UTC)


def format_timestamp(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def content_hash(data: Any) -> str:
    """Return the SHA-256 digest of the canonical JSON encoding of ``data``."""
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class RepoIdentity:
    """Identifies a repository snapshot.

    ``sha`` distinguishes revisions; ``path`` locates a subproject inside a
    monorepo. Gating ignores ``sha``.
    """

    owner: str
    name: str
    url: str
    default_branch: Optional[str] = None
    sha: Optional[str] = None
    path: Optional[str] = None

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}"

    def without_sha(self) -> "RepoIdentity":
        return replace(self, sha=None)

    def with_sha(self, sha: Optional[str]) -> "RepoIdentity":
        return replace(self, sha=sha)

    def under(self, path: str) -> "RepoIdentity":
        return replace(self, path=path.strip("/") or None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "name": self.name,
            "url": self.url,
            "default_branch": self.default_branch,
            "sha": self.sha,
            "path": self.path,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "RepoIdentity":
        return cls(
            owner=str(payload["owner"]),
            name=str(payload["name"]),
            url=str(payload["url"]),
            default_branch=payload.get("default_branch"),
            sha=payload.get("sha"),
            path=payload.get("path"),
        )


@dataclass(frozen=True)
class Candidate:
    """A discovered repository that has not been materialized yet."""

    identity: RepoIdentity
    source_metadata: Dict[str, Any] = field(default_factory=dict)
    discovered_at: datetime = field(default_factory=utcnow)
    query: Optional[str] = None


@dataclass(frozen=True)
class Fingerprint:
    """One extracted fact about a repository."""

    type: str
    name: str
    data: Any
    content_hash: str

    @classmethod
    def of(cls, type: str, name: str, data: Any) -> "Fingerprint":
        return cls(type=type, name=name, data=data, content_hash=content_hash(data))

    @property
    def key(self) -> Tuple[str, str]:
        return (self.type, self.name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "name": self.name,
            "data": self.data,
            "content_hash": self.content_hash,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Fingerprint":
        return cls(
            type=str(payload["type"]),
            name=str(payload["name"]),
            data=payload.get("data"),
            content_hash=str(payload["content_hash"]),
        )


@dataclass(frozen=True)
class Subproject:
    """A project found below the root of a monorepo."""

    path: str
    reason: str


@dataclass
class AnalysisResult:
    """The atomic persisted unit: fingerprints for one repository plus provenance."""

    identity: RepoIdentity
    fingerprints: List[Fingerprint]
    timestamp: datetime = field(default_factory=utcnow)
    workspace_id: str = "local"
    source_metadata: Dict[str, Any] = field(default_factory=dict)
    query: Optional[str] = None
    subproject: Optional[Subproject] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity.to_dict(),
            "fingerprints": [fp.to_dict() for fp in self.fingerprints],
            "timestamp": format_timestamp(self.timestamp),
            "workspace_id": self.workspace_id,
            "source_metadata": self.source_metadata,
            "query": self.query,
            "subproject": (
                {"path": self.subproject.path, "reason": self.subproject.reason}
                if self.subproject
                else None
            ),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AnalysisResult":
        subproject_payload = payload.get("subproject")
        subproject = None
        if isinstance(subproject_payload, dict):
            subproject = Subproject(
                path=str(subproject_payload.get("path", "")),
                reason=str(subproject_payload.get("reason", "")),
            )
        source_metadata = payload.get("source_metadata")
        return cls(
            identity=RepoIdentity.from_dict(payload["identity"]),
            fingerprints=[Fingerprint.from_dict(fp) for fp in payload.get("fingerprints", [])],
            timestamp=parse_timestamp(str(payload["timestamp"])),
            workspace_id=str(payload.get("workspace_id", "local")),
            source_metadata=source_metadata if isinstance(source_metadata, dict) else {},
            query=payload.get("query"),
            subproject=subproject,
        )


@dataclass(frozen=True)
class SpiderFailure:
    """One candidate failure recorded in the run summary."""

    repo_url: str
    while_trying_to: str
    message: str

    def as_dict(self) -> Dict[str, str]:
        return {
            "repoUrl": self.repo_url,
            "whileTryingTo": self.while_trying_to,
            "message": self.message,
        }


@dataclass
class PersistOutcome:
    """Result of persisting one or more analyses."""

    attempted: int = 0
    succeeded: List[str] = field(default_factory=list)
    failed: List[SpiderFailure] = field(default_factory=list)

    def combine(self, other: "PersistOutcome") -> "PersistOutcome":
        return PersistOutcome(
            attempted=self.attempted + other.attempted,
            succeeded=[*self.succeeded, *other.succeeded],
            failed=[*self.failed, *other.failed],
        )


@dataclass
class SpiderSummary:
    """Running fold of candidate outcomes for one spider run."""

    repositories_detected: int = 0
    projects_detected: int = 0
    failed: List[SpiderFailure] = field(default_factory=list)
    kept_existing: List[str] = field(default_factory=list)
    persisted_analyses: List[str] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "SpiderSummary":
        return cls()

    @property
    def is_empty(self) -> bool:
        return self == SpiderSummary.empty()

    def merge(self, other: "SpiderSummary") -> "SpiderSummary":
        self.repositories_detected += other.repositories_detected
        self.projects_detected += other.projects_detected
        self.failed.extend(other.failed)
        self.kept_existing.extend(other.kept_existing)
        self.persisted_analyses.extend(other.persisted_analyses)
        return self

    def as_dict(self) -> Dict[str, Any]:
        return {
            "repositoriesDetected": self.repositories_detected,
            "projectsDetected": self.projects_detected,
            "failed": [failure.as_dict() for failure in self.failed],
            "keptExisting": list(self.kept_existing),
            "persistedAnalyses": list(self.persisted_analyses),
        }


@dataclass(frozen=True)
class Interpretation:
    """Higher-level view of an analysis used to decide persistence eligibility."""

    fingerprint_types: Tuple[str, ...]
    fingerprint_count: int
    keywords: Tuple[str, ...] = ()

    @classmethod
    def of(cls, fingerprints: Sequence[Fingerprint]) -> "Interpretation":
        types = tuple(sorted({fp.type for fp in fingerprints}))
        keywords = tuple(
            sorted({fp.name for fp in fingerprints if fp.type in {"language", "stack"}})
        )
        return cls(fingerprint_types=types, fingerprint_count=len(fingerprints), keywords=keywords)


MaybeAwaitable = Union[bool, Awaitable[bool]]
ProjectTest = Callable[["Project"], MaybeAwaitable]
InterpretationTest = Callable[[Interpretation], MaybeAwaitable]
KeepExisting = Callable[[AnalysisResult], MaybeAwaitable]
PersistHook = Callable[[AnalysisResult], Union[None, Awaitable[None]]]


@dataclass
class SearchCriteria:
    """What to look for in a repository source."""

    queries: List[str] = field(default_factory=list)
    max_examined: int = 1500
    max_kept: int = 1500
    project_test: Optional[ProjectTest] = None
    interpretation_test: Optional[InterpretationTest] = None
    subproject_finder: Optional["SubprojectFinder"] = None


@dataclass
class SpiderOptions:
    """How to run a spider and where to keep its results."""

    store: "ResultStore"
    keep_existing: KeepExisting
    workspace_id: str = "local"
    pool_size: int = 40
    on_persisted: Optional[PersistHook] = None
    candidate_timeout: Optional[float] = None
    compute_analytics: bool = False


__all__ = [
    "AnalysisResult",
    "Candidate",
    "Fingerprint",
    "Interpretation",
    "PersistOutcome",
    "RepoIdentity",
    "SearchCriteria",
    "SpiderFailure",
    "SpiderOptions",
    "SpiderSummary",
    "Subproject",
    "content_hash",
    "format_timestamp",
    "parse_timestamp",
    "utcnow",
]
