"""Extractors over raw repository files and git metadata."""

from __future__ import annotations

from typing import Optional

from ..models import Fingerprint, content_hash, format_timestamp
from ..project import Project
from .base import IndependentExtractor

GITIGNORE_TYPE = "gitignore"
FILE_COUNT_TYPE = "file-count"
GIT_ACTIVITY_TYPE = "git-activity"


def extract_gitignore(project: Project) -> Optional[Fingerprint]:
    content = project.read_text(".gitignore")
    if content is None:
        return None
    entries = sorted(
        {
            line.strip()
            for line in content.splitlines()
            if line.strip() and not line.strip().startswith("#")
        }
    )
    return Fingerprint.of(GITIGNORE_TYPE, GITIGNORE_TYPE, {"entries": entries})


def extract_file_count(project: Project) -> Fingerprint:
    return Fingerprint.of(FILE_COUNT_TYPE, FILE_COUNT_TYPE, {"files": project.total_file_count()})


async def extract_git_activity(project: Project) -> Optional[Fingerprint]:
    commit = await project.last_commit()
    if commit is None:
        return None
    data = {
        "author_hash": content_hash(commit.author),
        "last_commit": format_timestamp(commit.timestamp),
    }
    return Fingerprint.of(GIT_ACTIVITY_TYPE, GIT_ACTIVITY_TYPE, data)


def gitignore_extractor() -> IndependentExtractor:
    return IndependentExtractor(name=GITIGNORE_TYPE, extract=extract_gitignore)


def file_count_extractor() -> IndependentExtractor:
    return IndependentExtractor(name=FILE_COUNT_TYPE, extract=extract_file_count)


def git_activity_extractor() -> IndependentExtractor:
    return IndependentExtractor(name=GIT_ACTIVITY_TYPE, extract=extract_git_activity)


__all__ = [
    "FILE_COUNT_TYPE",
    "GITIGNORE_TYPE",
    "GIT_ACTIVITY_TYPE",
    "extract_file_count",
    "extract_git_activity",
    "extract_gitignore",
    "file_count_extractor",
    "git_activity_extractor",
    "gitignore_extractor",
]
