"""Language extractor: one fingerprint per detected source language."""

from __future__ import annotations

from collections import Counter
from pathlib import PurePosixPath
from typing import List

from ..models import Fingerprint
from ..project import Project
from .base import IndependentExtractor

LANGUAGE_TYPE = "language"

_LANGUAGE_BY_SUFFIX = {
    ".py": "Python",
    ".pyi": "Python",
    ".js": "JavaScript",
    ".jsx": "JavaScript",
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".java": "Java",
    ".kt": "Kotlin",
    ".kts": "Kotlin",
    ".go": "Go",
    ".rs": "Rust",
    ".rb": "Ruby",
    ".php": "PHP",
    ".cs": "C#",
    ".c": "C",
    ".h": "C",
    ".cpp": "C++",
    ".hpp": "C++",
    ".cc": "C++",
    ".swift": "Swift",
    ".scala": "Scala",
    ".clj": "Clojure",
    ".sh": "Shell",
}


def detect_language(path: str) -> str | None:
    return _LANGUAGE_BY_SUFFIX.get(PurePosixPath(path).suffix.lower())


def extract_languages(project: Project) -> List[Fingerprint]:
    counts: Counter[str] = Counter()
    for path in project.iter_files():
        language = detect_language(path)
        if language is not None:
            counts[language] += 1
    total = sum(counts.values())
    fingerprints: List[Fingerprint] = []
    for language, files in sorted(counts.items()):
        fingerprints.append(
            Fingerprint.of(
                LANGUAGE_TYPE,
                language,
                {"files": files, "share": round(files / total, 4)},
            )
        )
    return fingerprints


def language_extractor() -> IndependentExtractor:
    return IndependentExtractor(name=LANGUAGE_TYPE, extract=extract_languages)


__all__ = ["LANGUAGE_TYPE", "detect_language", "extract_languages", "language_extractor"]
