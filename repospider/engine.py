"""Two-phase fingerprint extraction."""

from __future__ import annotations

import asyncio
import inspect
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .extractors.base import (
    ConsolidatingExtractor,
    Extractor,
    IndependentExtractor,
    flatten,
)
from .logging import get_logger
from .models import Fingerprint
from .project import Project

_SLOW_EXTRACTION_SECONDS = 0.5


@dataclass
class Timing:
    """Cumulative cost of one extractor."""

    extractions: int = 0
    total_seconds: float = 0.0


class TimingRecorder:
    """Accumulates per-extractor timings.

    Instances are passed into extraction explicitly and merged by the caller,
    so concurrent runs never share hidden state.
    """

    def __init__(self) -> None:
        self._timings: Dict[str, Timing] = {}
        self._lock = threading.Lock()

    def record(self, name: str, seconds: float) -> None:
        with self._lock:
            timing = self._timings.setdefault(name, Timing())
            timing.extractions += 1
            timing.total_seconds += seconds

    def merge(self, other: "TimingRecorder") -> "TimingRecorder":
        for name, timing in other.snapshot().items():
            with self._lock:
                mine = self._timings.setdefault(name, Timing())
                mine.extractions += timing.extractions
                mine.total_seconds += timing.total_seconds
        return self

    def snapshot(self) -> Dict[str, Timing]:
        with self._lock:
            return {
                name: Timing(timing.extractions, timing.total_seconds)
                for name, timing in self._timings.items()
            }

    def total_seconds(self) -> float:
        return sum(timing.total_seconds for timing in self.snapshot().values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._timings)


def log_timings(recorder: TimingRecorder) -> None:
    logger = get_logger("engine")
    timings = sorted(recorder.snapshot().items(), key=lambda item: -item[1].total_seconds)
    if not timings:
        return
    logger.info("Extraction total so far: %.2f seconds", recorder.total_seconds())
    for name, timing in timings:
        logger.info(
            "\t%s: %.3f seconds over %d extraction(s)",
            name,
            timing.total_seconds,
            timing.extractions,
        )


class ExtractionEngine:
    """Runs independent extractors, then consolidating extractors over their output."""

    def __init__(self) -> None:
        self.logger = get_logger("engine")

    async def extract(
        self,
        project: Project,
        extractors: Sequence[Extractor],
        timings: Optional[TimingRecorder] = None,
    ) -> List[Fingerprint]:
        recorder = timings if timings is not None else TimingRecorder()
        independent = [e for e in extractors if isinstance(e, IndependentExtractor)]
        consolidating = [e for e in extractors if isinstance(e, ConsolidatingExtractor)]

        phase_one = await asyncio.gather(
            *(self._run_independent(extractor, project, recorder) for extractor in independent)
        )
        fingerprints: List[Fingerprint] = [fp for group in phase_one for fp in group]

        # Every consolidator sees the complete phase-one output.
        produced: Tuple[Fingerprint, ...] = tuple(fingerprints)
        phase_two = await asyncio.gather(
            *(
                self._run_consolidating(extractor, produced, project, recorder)
                for extractor in consolidating
            )
        )
        for group in phase_two:
            fingerprints.extend(group)
        return fingerprints

    async def _run_independent(
        self,
        extractor: IndependentExtractor,
        project: Project,
        recorder: TimingRecorder,
    ) -> List[Fingerprint]:
        return await self._run(extractor.name, extractor.extract, project, project, recorder)

    async def _run_consolidating(
        self,
        extractor: ConsolidatingExtractor,
        fingerprints: Tuple[Fingerprint, ...],
        project: Project,
        recorder: TimingRecorder,
    ) -> List[Fingerprint]:
        return await self._run(
            extractor.name, extractor.consolidate, fingerprints, project, recorder
        )

    async def _run(
        self,
        name: str,
        function: Callable[[Any], Any],
        argument: Any,
        project: Project,
        recorder: TimingRecorder,
    ) -> List[Fingerprint]:
        started = time.perf_counter()
        try:
            result = await _invoke(function, argument)
            return flatten(result)
        except Exception as exc:
            self.logger.error(
                "Please check your configuration of extractor %s (repository %s): %s",
                name,
                project.identity.url,
                exc,
            )
            return []
        finally:
            elapsed = time.perf_counter() - started
            recorder.record(name, elapsed)
            if elapsed > _SLOW_EXTRACTION_SECONDS:
                self.logger.info(
                    "Slow extraction of %s on %s: took %.2f seconds",
                    name,
                    project.identity.url,
                    elapsed,
                )


async def _invoke(function: Callable[[Any], Any], argument: Any) -> Any:
    if inspect.iscoroutinefunction(function):
        return await function(argument)
    result = await asyncio.to_thread(function, argument)
    if inspect.isawaitable(result):
        return await result
    return result


def fingerprint_keys(fingerprints: Iterable[Fingerprint]) -> set[tuple[str, str]]:
    return {fp.key for fp in fingerprints}


__all__ = [
    "ExtractionEngine",
    "Timing",
    "TimingRecorder",
    "fingerprint_keys",
    "log_timings",
]
