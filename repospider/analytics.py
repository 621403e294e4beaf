"""Workspace analytics computed over persisted fingerprints."""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import asdict, dataclass
from typing import Dict, List, Sequence, Tuple

from .logging import get_logger
from .models import Fingerprint
from .stores.base import ResultStore


@dataclass(frozen=True)
class CohortAnalysis:
    """Spread of one fingerprint kind across repositories."""

    count: int
    variants: int
    entropy: float


def analyze_cohort(fingerprints: Sequence[Fingerprint]) -> CohortAnalysis:
    """Count variants of a fingerprint kind and the Shannon entropy of their distribution."""
    total = len(fingerprints)
    if total == 0:
        return CohortAnalysis(count=0, variants=0, entropy=0.0)
    groups: Dict[str, int] = defaultdict(int)
    for fp in fingerprints:
        groups[fp.content_hash] += 1
    entropy = 0.0
    for size in groups.values():
        p = size / total
        entropy -= p * math.log(p)
    return CohortAnalysis(count=total, variants=len(groups), entropy=entropy)


def compute_analytics(store: ResultStore) -> List[Dict[str, object]]:
    """Group every stored fingerprint by (type, name), analyze each cohort and persist the result."""
    cohorts: Dict[Tuple[str, str], List[Fingerprint]] = defaultdict(list)
    for result in store.load_all():
        for fp in result.fingerprints:
            cohorts[fp.key].append(fp)

    analytics: List[Dict[str, object]] = []
    for (fp_type, name), members in sorted(cohorts.items()):
        analytics.append({"type": fp_type, "name": name, **asdict(analyze_cohort(members))})

    store.persist_analytics(analytics)
    get_logger("analytics").debug("Computed analytics for %d fingerprint kind(s)", len(analytics))
    return analytics


__all__ = ["CohortAnalysis", "analyze_cohort", "compute_analytics"]
