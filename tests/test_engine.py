"""Tests for repospider.engine."""

from __future__ import annotations

import asyncio
import threading
from typing import List, Sequence

from repospider.engine import ExtractionEngine, TimingRecorder, fingerprint_keys
from repospider.extractors import ConsolidatingExtractor, IndependentExtractor
from repospider.models import Fingerprint
from repospider.project import Project
from tests._fixtures.repo_builder import RepoBuilder


def _constant(name: str, *values: str) -> IndependentExtractor:
    def _extract(project: Project) -> List[Fingerprint]:
        return [Fingerprint.of(name, value, {"value": value}) for value in values]

    return IndependentExtractor(name=name, extract=_extract)


def _failing(name: str) -> IndependentExtractor:
    def _extract(project: Project) -> None:
        raise ValueError("malformed pattern")

    return IndependentExtractor(name=name, extract=_extract)


def _counting_consolidator(name: str, seen: List[int]) -> ConsolidatingExtractor:
    def _consolidate(fingerprints: Sequence[Fingerprint]) -> Fingerprint:
        seen.append(len(fingerprints))
        return Fingerprint.of(name, name, {"inputs": sorted(fp.name for fp in fingerprints)})

    return ConsolidatingExtractor(name=name, consolidate=_consolidate)


def test_failing_extractor_does_not_affect_siblings(repo_builder: RepoBuilder) -> None:
    engine = ExtractionEngine()
    extractors = [_constant("a", "one"), _failing("broken"), _constant("b", "two", "three")]

    fingerprints = asyncio.run(engine.extract(repo_builder.project(), extractors))

    assert fingerprint_keys(fingerprints) == {("a", "one"), ("b", "two"), ("b", "three")}


def test_single_fingerprint_and_none_results_are_flattened(repo_builder: RepoBuilder) -> None:
    single = IndependentExtractor(name="single", extract=lambda p: Fingerprint.of("single", "x", 1))
    empty = IndependentExtractor(name="empty", extract=lambda p: None)

    fingerprints = asyncio.run(ExtractionEngine().extract(repo_builder.project(), [single, empty]))

    assert [fp.key for fp in fingerprints] == [("single", "x")]


def test_async_extractors_are_awaited(repo_builder: RepoBuilder) -> None:
    async def _extract(project: Project) -> Fingerprint:
        await asyncio.sleep(0)
        return Fingerprint.of("async", "x", {})

    extractor = IndependentExtractor(name="async", extract=_extract)

    fingerprints = asyncio.run(ExtractionEngine().extract(repo_builder.project(), [extractor]))

    assert fingerprint_keys(fingerprints) == {("async", "x")}


def test_consolidators_see_complete_phase_one_output(repo_builder: RepoBuilder) -> None:
    seen: List[int] = []
    extractors = [
        _counting_consolidator("first", seen),
        _constant("a", "one", "two"),
        _counting_consolidator("second", seen),
        _constant("b", "three"),
    ]

    fingerprints = asyncio.run(ExtractionEngine().extract(repo_builder.project(), extractors))

    assert seen == [3, 3]
    by_key = {fp.key: fp for fp in fingerprints}
    # Neither consolidator sees the other's output.
    assert by_key[("first", "first")].data == {"inputs": ["one", "three", "two"]}
    assert by_key[("second", "second")].data == by_key[("first", "first")].data


def test_failing_consolidator_is_isolated(repo_builder: RepoBuilder) -> None:
    def _broken(fingerprints: Sequence[Fingerprint]) -> None:
        raise RuntimeError("boom")

    extractors = [
        _constant("a", "one"),
        ConsolidatingExtractor(name="broken", consolidate=_broken),
        _counting_consolidator("ok", []),
    ]

    fingerprints = asyncio.run(ExtractionEngine().extract(repo_builder.project(), extractors))

    assert fingerprint_keys(fingerprints) == {("a", "one"), ("ok", "ok")}


def test_non_fingerprint_results_count_as_failures(repo_builder: RepoBuilder) -> None:
    bad = IndependentExtractor(name="bad", extract=lambda p: ["not a fingerprint"])

    assert asyncio.run(ExtractionEngine().extract(repo_builder.project(), [bad])) == []


def test_timings_recorded_for_every_invocation(repo_builder: RepoBuilder) -> None:
    recorder = TimingRecorder()
    extractors = [_constant("a", "one"), _failing("broken")]
    engine = ExtractionEngine()

    asyncio.run(engine.extract(repo_builder.project(), extractors, recorder))
    asyncio.run(engine.extract(repo_builder.project(), extractors, recorder))

    snapshot = recorder.snapshot()
    assert snapshot["a"].extractions == 2
    assert snapshot["broken"].extractions == 2
    assert len(recorder) == 2


def test_timing_recorder_merge_and_concurrent_records() -> None:
    recorder = TimingRecorder()

    def _record() -> None:
        for _ in range(1000):
            recorder.record("x", 0.001)

    threads = [threading.Thread(target=_record) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    other = TimingRecorder()
    other.record("x", 1.0)
    other.record("y", 2.0)
    recorder.merge(other)

    snapshot = recorder.snapshot()
    assert snapshot["x"].extractions == 4001
    assert snapshot["y"].total_seconds == 2.0
    assert abs(recorder.total_seconds() - 7.0) < 1e-6
