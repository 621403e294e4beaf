"""Repository spider: discover repositories, fingerprint them and persist the results."""

from .models import (
    AnalysisResult,
    Candidate,
    Fingerprint,
    RepoIdentity,
    SearchCriteria,
    SpiderFailure,
    SpiderOptions,
    SpiderSummary,
)
from .orchestrator import Spider

__all__ = [
    "AnalysisResult",
    "Candidate",
    "Fingerprint",
    "RepoIdentity",
    "SearchCriteria",
    "SpiderFailure",
    "SpiderOptions",
    "SpiderSummary",
    "Spider",
]

__version__ = "0.1.0"
