"""Error taxonomy for spider runs."""

from __future__ import annotations

from typing import Optional

CLONE_FAILED = "clone-failed"
NOT_A_REPOSITORY = "not-a-repository"
PERMISSION_DENIED = "permission-denied"

MATERIALIZATION_KINDS = (CLONE_FAILED, NOT_A_REPOSITORY, PERMISSION_DENIED)


class SpiderError(RuntimeError):
    """Base class for errors raised while spidering repositories."""


class EnumerationError(SpiderError):
    """The repository source itself is unreachable or malformed.

    This is the only error that aborts a whole run.
    """


class MaterializationError(SpiderError):
    """A candidate could not be cloned or opened."""

    def __init__(self, message: str, *, kind: str = CLONE_FAILED) -> None:
        if kind not in MATERIALIZATION_KINDS:
            raise ValueError(f"Unknown materialization failure kind: {kind}")
        super().__init__(message)
        self.kind = kind


class PersistenceError(SpiderError):
    """An analysis result could not be written."""

    def __init__(self, message: str, *, location: Optional[str] = None) -> None:
        super().__init__(message)
        self.location = location


__all__ = [
    "CLONE_FAILED",
    "NOT_A_REPOSITORY",
    "PERMISSION_DENIED",
    "EnumerationError",
    "MaterializationError",
    "PersistenceError",
    "SpiderError",
]
