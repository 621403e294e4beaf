"""Extractor implementations and discovery utilities."""

from __future__ import annotations

from importlib import metadata
from typing import Callable, Iterable, List, Sequence, Set

from .base import ConsolidatingExtractor, Extractor, IndependentExtractor, flatten
from .dependencies import npm_dependency_extractor, python_dependency_extractor
from .files import file_count_extractor, git_activity_extractor, gitignore_extractor
from .language import language_extractor
from .license import license_extractor
from .stack import stack_extractor

_ENTRY_POINT_GROUP = "repospider.extractors"

_BUILTIN_FACTORIES: dict[str, Callable[[], Extractor]] = {
    "language": language_extractor,
    "license": license_extractor,
    "python-dependency": python_dependency_extractor,
    "npm-dependency": npm_dependency_extractor,
    "gitignore": gitignore_extractor,
    "file-count": file_count_extractor,
    "git-activity": git_activity_extractor,
    "stack": stack_extractor,
}


def discover_extractors(enabled: Sequence[str] | None = None) -> List[Extractor]:
    """Return extractors, honoring optional enabled names."""

    enabled_set: Set[str] | None = None
    if enabled is not None:
        enabled_set = {name.lower() for name in enabled}

    extractors: List[Extractor] = []
    seen: Set[str] = set()

    def _add(name: str, factory: Callable[[], Extractor]) -> None:
        key = name.lower()
        if enabled_set is not None and key not in enabled_set:
            return
        if key in seen:
            return
        instance = factory()
        if not isinstance(instance, (IndependentExtractor, ConsolidatingExtractor)):
            raise TypeError(f"Extractor factory for '{name}' did not return an extractor")
        extractors.append(instance)
        seen.add(key)
        if enabled_set is not None:
            enabled_set.discard(key)

    for name, factory in _BUILTIN_FACTORIES.items():
        _add(name, factory)

    for entry in _iter_entry_points():
        name = entry.name
        try:
            loaded = entry.load()
        except Exception as exc:
            raise RuntimeError(f"Failed to load extractor entry point '{name}': {exc}") from exc

        def _factory(obj: object = loaded) -> Extractor:
            return _coerce_extractor(obj)

        _add(name, _factory)

    if enabled_set:
        missing = ", ".join(sorted(enabled_set))
        raise ValueError(f"Unknown extractors requested: {missing}")

    return extractors


def _coerce_extractor(obj: object) -> Extractor:
    if isinstance(obj, (IndependentExtractor, ConsolidatingExtractor)):
        return obj
    if callable(obj):
        instance = obj()
        if isinstance(instance, (IndependentExtractor, ConsolidatingExtractor)):
            return instance
    raise TypeError("Extractor entry point must be an extractor or a factory returning one")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "ConsolidatingExtractor",
    "Extractor",
    "IndependentExtractor",
    "discover_extractors",
    "flatten",
]
