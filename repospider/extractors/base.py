"""Extractor variants consumed by the extraction engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Sequence, Union

from ..models import Fingerprint
from ..project import Project

ExtractResult = Union[None, Fingerprint, Iterable[Fingerprint]]

ExtractFunction = Callable[[Project], Union[ExtractResult, Awaitable[ExtractResult]]]
ConsolidateFunction = Callable[
    [Sequence[Fingerprint]], Union[ExtractResult, Awaitable[ExtractResult]]
]


@dataclass(frozen=True)
class IndependentExtractor:
    """Reads the project handle and emits fingerprints.

    ``extract`` may be a plain function, which then runs in a worker thread,
    or a coroutine function.
    """

    name: str
    extract: ExtractFunction


@dataclass(frozen=True)
class ConsolidatingExtractor:
    """Derives fingerprints from everything the independent phase produced.

    Implementations must not depend on the order of their input.
    """

    name: str
    consolidate: ConsolidateFunction


Extractor = Union[IndependentExtractor, ConsolidatingExtractor]


def flatten(result: Any) -> list[Fingerprint]:
    """Normalise an extractor return value into a list of fingerprints."""
    if result is None:
        return []
    if isinstance(result, Fingerprint):
        return [result]
    flattened: list[Fingerprint] = []
    for item in result:
        if not isinstance(item, Fingerprint):
            raise TypeError(f"Extractor returned {type(item).__name__}, expected Fingerprint")
        flattened.append(item)
    return flattened


__all__ = [
    "ConsolidatingExtractor",
    "Extractor",
    "IndependentExtractor",
    "flatten",
]
