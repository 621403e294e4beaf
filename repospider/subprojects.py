"""Monorepo detection: find projects nested below a repository root."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from .models import Subproject
from .project import Project


class SubprojectStatus(str, Enum):
    ROOT_ONLY = "RootOnly"
    """Definitely not a monorepo."""
    IDENTIFIED_PATHS = "IdentifiedPaths"
    """Definitely a monorepo."""
    UNKNOWN = "Unknown"


@dataclass
class Subprojects:
    status: SubprojectStatus
    subprojects: List[Subproject] = field(default_factory=list)


@dataclass
class SubprojectFinder:
    """Named strategy that classifies a project as single or multi-project."""

    name: str
    find: Callable[[Project], Subprojects]

    def find_subprojects(self, project: Project) -> Subprojects:
        return self.find(project)


def file_names_subproject_finder(*filenames: str) -> SubprojectFinder:
    """Use marker files such as build.gradle or package.json to locate projects.

    A marker at the root means the repository is a single project. Otherwise
    every directory holding a marker is a subproject.
    """

    def _find(project: Project) -> Subprojects:
        if any(project.has_file(name) for name in filenames):
            return Subprojects(status=SubprojectStatus.ROOT_ONLY)
        found: List[Subproject] = []
        seen: set[str] = set()
        for name in filenames:
            for path in project.find_files(name):
                directory = posixpath.dirname(path)
                if not directory or directory in seen:
                    continue
                seen.add(directory)
                found.append(Subproject(path=directory, reason=f"has file: {name}"))
        if found:
            return Subprojects(status=SubprojectStatus.IDENTIFIED_PATHS, subprojects=found)
        return Subprojects(status=SubprojectStatus.UNKNOWN)

    return SubprojectFinder(name="fileNames: " + ",".join(filenames), find=_find)


def first_subproject_finder_of(*finders: SubprojectFinder) -> SubprojectFinder:
    """Combine finders; any finder reporting RootOnly wins."""

    def _find(project: Project) -> Subprojects:
        collected: List[Subproject] = []
        for finder in finders:
            result = finder.find_subprojects(project)
            if result.status is SubprojectStatus.ROOT_ONLY:
                return Subprojects(status=SubprojectStatus.ROOT_ONLY)
            collected.extend(result.subprojects)
        status = SubprojectStatus.IDENTIFIED_PATHS if collected else SubprojectStatus.UNKNOWN
        return Subprojects(status=status, subprojects=collected)

    return SubprojectFinder(name="Composite subproject finder", find=_find)


def resolve_subprojects(
    project: Project, finder: Optional[SubprojectFinder]
) -> List[Subproject]:
    if finder is None:
        return []
    result = finder.find_subprojects(project)
    if result.status is SubprojectStatus.IDENTIFIED_PATHS:
        return list(result.subprojects)
    return []


__all__ = [
    "SubprojectFinder",
    "SubprojectStatus",
    "Subprojects",
    "file_names_subproject_finder",
    "first_subproject_finder_of",
    "resolve_subprojects",
]
