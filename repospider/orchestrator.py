"""Spider orchestration: drive candidates from a source into the store."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from .analytics import compute_analytics
from .engine import ExtractionEngine, TimingRecorder, log_timings
from .extractors import Extractor, discover_extractors
from .gate import resolve, should_skip
from .logging import get_logger
from .models import (
    AnalysisResult,
    Candidate,
    Interpretation,
    SearchCriteria,
    SpiderFailure,
    SpiderOptions,
    SpiderSummary,
    Subproject,
    utcnow,
)
from .project import Project
from .sources.base import RepositorySource
from .subprojects import resolve_subprojects

TIMEOUT_STAGE = "timeout"
ANALYZE_STAGE = "analyze"
GATE_STAGE = "gate"


@dataclass
class _CandidateOutcome:
    summary: SpiderSummary
    timings: TimingRecorder = field(default_factory=TimingRecorder)
    persisted: List[AnalysisResult] = field(default_factory=list)


class Spider:
    """Runs every candidate of a source through gate, materialization, extraction and persistence.

    Candidates are processed in batches of ``pool_size``. A batch runs
    concurrently and must finish before the next one starts. Every candidate
    ends in exactly one summary bucket; failures are recorded, never raised,
    except for enumeration errors which abort the run.
    """

    def __init__(
        self,
        extractors: Optional[Iterable[Extractor]] = None,
        *,
        engine: ExtractionEngine | None = None,
    ) -> None:
        self._extractors: Optional[List[Extractor]] = (
            list(extractors) if extractors is not None else None
        )
        self.engine = engine or ExtractionEngine()
        self.timings = TimingRecorder()
        self.logger = get_logger("orchestrator")

    @property
    def extractors(self) -> List[Extractor]:
        if self._extractors is None:
            self._extractors = discover_extractors()
        return self._extractors

    async def spider(
        self,
        source: RepositorySource,
        criteria: SearchCriteria,
        options: SpiderOptions,
    ) -> SpiderSummary:
        if options.pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        summary = SpiderSummary.empty()
        batch: List[Candidate] = []
        batches = 0
        started = time.perf_counter()

        async for candidate in source.enumerate(criteria):
            batch.append(candidate)
            if len(batch) >= options.pool_size:
                batches += 1
                summary.merge(await self._run_batch(source, batch, criteria, options, batches))
                batch = []
        if batch:
            batches += 1
            summary.merge(await self._run_batch(source, batch, criteria, options, batches))

        self.logger.info(
            "Spidered %d repositories (%d projects) in %.1f seconds: %d persisted, %d kept, %d failed",
            summary.repositories_detected,
            summary.projects_detected,
            time.perf_counter() - started,
            len(summary.persisted_analyses),
            len(summary.kept_existing),
            len(summary.failed),
        )
        return summary

    async def _run_batch(
        self,
        source: RepositorySource,
        batch: Sequence[Candidate],
        criteria: SearchCriteria,
        options: SpiderOptions,
        number: int,
    ) -> SpiderSummary:
        self.logger.debug("Dispatching batch %d of %d candidate(s)", number, len(batch))
        outcomes = await asyncio.gather(
            *(self._run_candidate(source, candidate, criteria, options) for candidate in batch)
        )
        combined = SpiderSummary.empty()
        for outcome in outcomes:
            combined.merge(outcome.summary)
            self.timings.merge(outcome.timings)
        log_timings(self.timings)
        if options.compute_analytics:
            self.logger.info("Computing analytics over fingerprints...")
            await asyncio.to_thread(compute_analytics, options.store)
        return combined

    async def _run_candidate(
        self,
        source: RepositorySource,
        candidate: Candidate,
        criteria: SearchCriteria,
        options: SpiderOptions,
    ) -> _CandidateOutcome:
        outcome = _CandidateOutcome(summary=SpiderSummary(repositories_detected=1))
        if options.candidate_timeout is None:
            await self._process(source, candidate, criteria, options, outcome)
            await self._run_hooks(options, outcome)
            return outcome
        try:
            await asyncio.wait_for(
                self._process(source, candidate, criteria, options, outcome),
                timeout=options.candidate_timeout,
            )
        except asyncio.TimeoutError:
            self.logger.error(
                "Gave up on %s after %.1f seconds", candidate.identity.url, options.candidate_timeout
            )
            # Records already written stay reported; everything else is discarded.
            outcome = _CandidateOutcome(
                summary=SpiderSummary(
                    repositories_detected=1,
                    projects_detected=outcome.summary.projects_detected,
                    failed=[
                        SpiderFailure(
                            repo_url=candidate.identity.url,
                            while_trying_to=TIMEOUT_STAGE,
                            message=f"timed out after {options.candidate_timeout} seconds",
                        )
                    ],
                    persisted_analyses=list(outcome.summary.persisted_analyses),
                ),
                timings=outcome.timings,
                persisted=outcome.persisted,
            )
        await self._run_hooks(options, outcome)
        return outcome

    async def _process(
        self,
        source: RepositorySource,
        candidate: Candidate,
        criteria: SearchCriteria,
        options: SpiderOptions,
        outcome: _CandidateOutcome,
    ) -> None:
        summary = outcome.summary
        url = candidate.identity.url

        try:
            skip = await should_skip(options.store, candidate.identity, options.keep_existing)
        except Exception as exc:
            self.logger.error("Unable to check existing analysis for %s: %s", url, exc)
            summary.failed.append(SpiderFailure(url, GATE_STAGE, str(exc)))
            return
        if skip:
            self.logger.info("Found valid record for %s", url)
            summary.kept_existing.append(url)
            return

        self.logger.info("Performing fresh analysis of %s", url)
        try:
            project = await source.materialize(candidate)
        except Exception as exc:
            stage = source.materialize_stage
            self.logger.error("Failure analyzing repo at %s: %s", url, exc)
            summary.failed.append(SpiderFailure(url, stage, str(exc)))
            return

        try:
            await self._analyze_and_persist(project, candidate, criteria, options, outcome)
        finally:
            await project.aclose()

    async def _analyze_and_persist(
        self,
        project: Project,
        candidate: Candidate,
        criteria: SearchCriteria,
        options: SpiderOptions,
        outcome: _CandidateOutcome,
    ) -> None:
        summary = outcome.summary
        url = candidate.identity.url
        try:
            if criteria.project_test is not None and not await resolve(criteria.project_test(project)):
                self.logger.debug("Skipping %s: project test rejected it", url)
                return
            analyses = await self._analyze(project, candidate, criteria, options, outcome.timings)
        except Exception as exc:
            self.logger.error("Failure analyzing repo at %s: %s", url, exc)
            summary.failed.append(SpiderFailure(url, ANALYZE_STAGE, str(exc)))
            return

        summary.projects_detected += len(analyses)
        for analysis in analyses:
            if criteria.interpretation_test is not None:
                interpretation = Interpretation.of(analysis.fingerprints)
                if not await resolve(criteria.interpretation_test(interpretation)):
                    self.logger.debug(
                        "Not persisting %s: interpretation test rejected it", analysis.identity.url
                    )
                    continue
            persisted = await asyncio.to_thread(options.store.persist, analysis)
            summary.failed.extend(persisted.failed)
            summary.persisted_analyses.extend(persisted.succeeded)
            if persisted.succeeded:
                outcome.persisted.append(analysis)

    async def _analyze(
        self,
        project: Project,
        candidate: Candidate,
        criteria: SearchCriteria,
        options: SpiderOptions,
        timings: TimingRecorder,
    ) -> List[AnalysisResult]:
        subprojects = await asyncio.to_thread(
            resolve_subprojects, project, criteria.subproject_finder
        )
        targets: List[tuple[Project, Optional[Subproject]]]
        if subprojects:
            self.logger.info(
                "Found %d subproject(s) in %s", len(subprojects), candidate.identity.url
            )
            targets = [(project.subproject(sub.path), sub) for sub in subprojects]
        else:
            targets = [(project, None)]

        analyses: List[AnalysisResult] = []
        for target, subproject in targets:
            fingerprints = await self.engine.extract(target, self.extractors, timings)
            analyses.append(
                AnalysisResult(
                    identity=target.identity,
                    fingerprints=fingerprints,
                    timestamp=utcnow(),
                    workspace_id=options.workspace_id,
                    source_metadata=dict(candidate.source_metadata),
                    query=candidate.query,
                    subproject=subproject,
                )
            )
        return analyses

    async def _run_hooks(self, options: SpiderOptions, outcome: _CandidateOutcome) -> None:
        """Notify the post-persist hook once per stored analysis, outside the candidate timeout."""
        if options.on_persisted is None:
            return
        for analysis in outcome.persisted:
            try:
                await resolve(options.on_persisted(analysis))
            except Exception as exc:
                self.logger.warning(
                    "Post-persist hook failed for %s: %s", analysis.identity.url, exc
                )


__all__ = ["ANALYZE_STAGE", "GATE_STAGE", "Spider", "TIMEOUT_STAGE"]
