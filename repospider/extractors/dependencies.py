"""Dependency extractors: one fingerprint per declared dependency."""

from __future__ import annotations

import json
import re
import tomllib
from typing import Dict, List, Tuple

from ..models import Fingerprint
from ..project import Project
from .base import IndependentExtractor

PYTHON_DEPENDENCY_TYPE = "python-dependency"
NPM_DEPENDENCY_TYPE = "npm-dependency"

_SPEC_SPLIT = re.compile(r"[<>=!~;\[ ]")


def _split_requirement(requirement: str) -> Tuple[str, str]:
    requirement = requirement.strip()
    match = _SPEC_SPLIT.search(requirement)
    if match is None:
        return requirement, "*"
    name = requirement[: match.start()].strip()
    version = requirement[match.start():].strip() or "*"
    return name, version


def _parse_requirements(text: str) -> Dict[str, str]:
    packages: Dict[str, str] = {}
    for line in text.splitlines():
        stripped = line.split("#", 1)[0].strip()
        if not stripped or stripped.startswith("-"):
            continue
        name, version = _split_requirement(stripped)
        if name:
            packages[name] = version
    return packages


def _parse_pyproject(text: str) -> Dict[str, str]:
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError:
        return {}

    packages: Dict[str, str] = {}
    project = data.get("project")
    if isinstance(project, dict):
        for dep in project.get("dependencies", []) or []:
            if isinstance(dep, str):
                name, version = _split_requirement(dep)
                if name:
                    packages[name] = version

    tool = data.get("tool")
    poetry = tool.get("poetry", {}) if isinstance(tool, dict) else {}
    if isinstance(poetry, dict):
        poetry_deps = poetry.get("dependencies", {}) or {}
        for name, spec in poetry_deps.items():
            if name.lower() == "python":
                continue
            packages[name] = spec if isinstance(spec, str) else "*"
    return packages


def extract_python_dependencies(project: Project) -> List[Fingerprint]:
    packages: Dict[str, str] = {}
    requirements = project.read_text("requirements.txt")
    if requirements is not None:
        packages.update(_parse_requirements(requirements))
    pyproject = project.read_text("pyproject.toml")
    if pyproject is not None:
        packages.update(_parse_pyproject(pyproject))
    return [
        Fingerprint.of(PYTHON_DEPENDENCY_TYPE, name, {"name": name, "version": version})
        for name, version in sorted(packages.items())
    ]


def extract_npm_dependencies(project: Project) -> List[Fingerprint]:
    raw = project.read_text("package.json")
    if raw is None:
        return []
    data = json.loads(raw)
    if not isinstance(data, dict):
        return []
    fingerprints: List[Fingerprint] = []
    for scope in ("dependencies", "devDependencies"):
        deps = data.get(scope, {})
        if not isinstance(deps, dict):
            continue
        for name, version in sorted(deps.items()):
            fingerprints.append(
                Fingerprint.of(
                    NPM_DEPENDENCY_TYPE,
                    name,
                    {"name": name, "version": str(version), "dev": scope == "devDependencies"},
                )
            )
    return fingerprints


def python_dependency_extractor() -> IndependentExtractor:
    return IndependentExtractor(name=PYTHON_DEPENDENCY_TYPE, extract=extract_python_dependencies)


def npm_dependency_extractor() -> IndependentExtractor:
    return IndependentExtractor(name=NPM_DEPENDENCY_TYPE, extract=extract_npm_dependencies)


__all__ = [
    "NPM_DEPENDENCY_TYPE",
    "PYTHON_DEPENDENCY_TYPE",
    "extract_npm_dependencies",
    "extract_python_dependencies",
    "npm_dependency_extractor",
    "python_dependency_extractor",
]
