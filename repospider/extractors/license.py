"""License extractor."""

from __future__ import annotations

from ..models import Fingerprint
from ..project import Project
from .base import IndependentExtractor

LICENSE_TYPE = "license"
NO_LICENSE = "None"

_LICENSE_FILES = ("LICENSE", "LICENSE.txt", "LICENSE.md", "license.txt", "COPYING")


def extract_license(project: Project) -> Fingerprint:
    """Classify the license by the first non-blank line of the license file."""
    classification = NO_LICENSE
    found_path = None
    for candidate in _LICENSE_FILES:
        content = project.read_text(candidate)
        if content is None:
            continue
        found_path = candidate
        for line in content.splitlines():
            if line.strip():
                classification = line.strip()
                break
        break
    return Fingerprint.of(
        LICENSE_TYPE,
        LICENSE_TYPE,
        {"path": found_path, "classification": classification},
    )


def license_extractor() -> IndependentExtractor:
    return IndependentExtractor(name=LICENSE_TYPE, extract=extract_license)


__all__ = ["LICENSE_TYPE", "NO_LICENSE", "extract_license", "license_extractor"]
