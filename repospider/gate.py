"""Existing-record gate: decide whether a repository needs fresh analysis."""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable

from .logging import get_logger
from .models import AnalysisResult, KeepExisting, RepoIdentity
from .stores.base import ResultStore

_LOGGER = get_logger("gate")


async def resolve(value: Any) -> Any:
    """Await ``value`` when a predicate returned an awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value


async def should_skip(
    store: ResultStore,
    identity: RepoIdentity,
    keep_existing: KeepExisting,
) -> bool:
    """Return True when a stored analysis exists and ``keep_existing`` accepts it.

    The lookup ignores ``sha``: the most recent record for the repository is
    handed to the predicate, which owns the freshness policy.
    """
    found = await asyncio.to_thread(store.load_by_identity, identity.without_sha())
    if found is None:
        return False
    keep = bool(await resolve(keep_existing(found)))
    if keep:
        _LOGGER.debug(
            "Retaining existing analysis for %s:%s", found.identity.url, found.identity.sha
        )
    else:
        _LOGGER.debug(
            "Recomputing analysis for %s:%s", found.identity.url, found.identity.sha
        )
    return keep


def always_keep(existing: AnalysisResult) -> bool:
    return True


def never_keep(existing: AnalysisResult) -> bool:
    return False


def keep_if_same_sha(identity: RepoIdentity) -> Callable[[AnalysisResult], bool]:
    """Keep the stored record only when it was computed for ``identity.sha``."""

    def _keep(existing: AnalysisResult) -> bool:
        return identity.sha is not None and existing.identity.sha == identity.sha

    return _keep


def keep_unless_updating(update: bool) -> KeepExisting:
    return never_keep if update else always_keep


__all__ = [
    "always_keep",
    "keep_if_same_sha",
    "keep_unless_updating",
    "never_keep",
    "resolve",
    "should_skip",
]
