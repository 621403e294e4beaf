"""Consolidating extractor that derives a technology stack from raw facts."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Set

from ..models import Fingerprint
from .base import ConsolidatingExtractor
from .dependencies import NPM_DEPENDENCY_TYPE, PYTHON_DEPENDENCY_TYPE
from .language import LANGUAGE_TYPE

STACK_TYPE = "stack"

_FRAMEWORKS: Dict[str, Dict[str, str]] = {
    PYTHON_DEPENDENCY_TYPE: {
        "django": "Django",
        "fastapi": "FastAPI",
        "flask": "Flask",
        "pytest": "pytest",
    },
    NPM_DEPENDENCY_TYPE: {
        "express": "Express",
        "react": "React",
        "vue": "Vue",
        "next": "Next.js",
    },
}


def consolidate_stack(fingerprints: Sequence[Fingerprint]) -> Optional[Fingerprint]:
    """Combine language and dependency fingerprints into one composite.

    Output is sorted so the composite does not depend on input order.
    """
    languages: Set[str] = set()
    frameworks: Set[str] = set()
    for fp in fingerprints:
        if fp.type == LANGUAGE_TYPE:
            languages.add(fp.name)
            continue
        known = _FRAMEWORKS.get(fp.type)
        if known is None:
            continue
        framework = known.get(fp.name.lower())
        if framework is not None:
            frameworks.add(framework)
    if not languages and not frameworks:
        return None
    data: Dict[str, List[str]] = {
        "languages": sorted(languages),
        "frameworks": sorted(frameworks),
    }
    return Fingerprint.of(STACK_TYPE, STACK_TYPE, data)


def stack_extractor() -> ConsolidatingExtractor:
    return ConsolidatingExtractor(name=STACK_TYPE, consolidate=consolidate_stack)


__all__ = ["STACK_TYPE", "consolidate_stack", "stack_extractor"]
