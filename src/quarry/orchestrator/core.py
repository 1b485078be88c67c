"""
Cycle scheduler for research jobs.

The ResearchOrchestrator drives one job through its phases:
- planning: initial queries (fatal on failure)
- searching: concurrent search and scrape, merged into the job
- evaluating: follow-up queries, skipped once the cycle budget is spent
- finalizing: bounded, deduplicated, ranked source list
- synthesizing: the cited report (fatal on failure, findings kept)

Job-level failures are recorded on the job, never raised. Only
cancellation propagates, after the job has been marked cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from ..exceptions import EvaluationError, NoFindingsError, PlanningError, QuarryError, SynthesisError
from ..jobs.models import CycleRecord, Query, ResearchJob, ResearchPhase, Source
from ..utils.logging import StructuredLogger
from .cycle import ResearchCycle

if TYPE_CHECKING:
    from ..jobs.store import JobStore
    from .evaluator import GapEvaluator
    from .fanout import FanOutEngine
    from .planner import ResearchPlanner
    from .report import ReportSynthesizer
    from .selection import SourceSelector
    from .summarize import FindingSummarizer

logger = logging.getLogger(__name__)


class ResearchOrchestrator:
    """
    Runs research jobs end to end.

    Holds no per-job state, so one orchestrator can run many jobs
    concurrently. Each job's findings and sources are mutated only by the
    run() call that owns it.
    """

    def __init__(
        self,
        engine: FanOutEngine,
        planner: ResearchPlanner,
        evaluator: GapEvaluator,
        selector: SourceSelector,
        synthesizer: ReportSynthesizer,
        summarizer: FindingSummarizer | None = None,
        store: JobStore | None = None,
        event_callback: Callable[[dict[str, Any]], Awaitable[None]] | None = None,
    ):
        """
        Initialize orchestrator.

        Args:
            engine: Search-and-scrape fan-out
            planner: Initial query planner
            evaluator: Gap evaluator for follow-up queries
            selector: Final source selector
            synthesizer: Report writer
            summarizer: Optional per-finding summarizer
            store: Optional job store, written at every phase transition
            event_callback: Optional callback for lifecycle events
        """
        self.engine = engine
        self.planner = planner
        self.evaluator = evaluator
        self.selector = selector
        self.synthesizer = synthesizer
        self.summarizer = summarizer
        self.store = store
        self.event_callback = event_callback

    async def _emit_event(self, event: dict[str, Any]) -> None:
        if self.event_callback:
            try:
                await self.event_callback(event)
            except Exception as e:
                logger.warning(f"Event callback failed: {e}")

    async def _save(self, job: ResearchJob, log: StructuredLogger) -> None:
        if self.store is None:
            return
        try:
            await self.store.save_job_state(job)
        except Exception as e:
            log.warning(f"Failed to persist job state ({job.phase}): {e}")

    async def _enter(self, job: ResearchJob, phase: ResearchPhase, log: StructuredLogger) -> None:
        """Transition, persist and announce a phase."""
        job.transition(phase)
        log.debug(f"Phase -> {phase}")
        await self._save(job, log)
        await self._emit_event({
            "type": "job.phase",
            "data": {"job_id": job.id, "phase": phase, "status": job.status},
        })

    async def _fail(self, job: ResearchJob, error: QuarryError, log: StructuredLogger) -> ResearchJob:
        job.fail(error)
        log.error(f"Job failed in {type(error).__name__}: {error}")
        await self._save(job, log)
        await self._emit_event({
            "type": "job.failed",
            "data": {
                "job_id": job.id,
                "error": job.error,
                "error_code": job.error_code,
                "findings": len(job.findings),
                "sources": len(job.sources),
            },
        })
        return job

    async def run(self, job: ResearchJob) -> ResearchJob:
        """
        Run a job to a terminal phase.

        Args:
            job: A pending job in phase 'created'

        Returns:
            The same job, now completed or failed

        Raises:
            asyncio.CancelledError: If the running task is cancelled (the job
                is marked cancelled and persisted first)
        """
        log = StructuredLogger(__name__, job=job.id[:8])

        try:
            return await self._run(job, log)
        except asyncio.CancelledError:
            if not job.is_terminal:
                job.cancel()
            log.warning(
                f"Cancelled in {job.phase} with {len(job.findings)} findings, "
                f"{len(job.sources)} sources"
            )
            # Persist even though this task is being torn down
            await asyncio.shield(self._save(job, log))
            await self._emit_event({"type": "job.cancelled", "data": {"job_id": job.id}})
            raise

    async def _run(self, job: ResearchJob, log: StructuredLogger) -> ResearchJob:
        budget = job.budget
        log.info(
            f"Starting research on {job.topic[:80]!r} (cycles={budget.cycle_budget}+1, "
            f"queries/cycle={budget.max_queries_per_cycle}, sources={budget.max_sources})"
        )

        # --- Planning ---
        await self._enter(job, "planning", log)
        try:
            plan = await self.planner.plan(job.topic)
        except PlanningError as e:
            return await self._fail(job, e, log)

        job.plan_summary = plan.summary
        queries: list[Query] = plan.queries

        # --- Searching / evaluating ---
        cycle = 0
        while True:
            await self._enter(job, "searching", log)
            cycle_log = log.add_context(cycle=cycle)

            result = await ResearchCycle(
                engine=self.engine,
                cycle_id=cycle,
                max_queries=budget.max_queries_per_cycle,
                event_callback=self.event_callback,
            ).execute(queries)

            known = job.finding_urls
            new_findings = [f for f in result.findings if f.url not in known]
            if self.summarizer and new_findings:
                new_findings = await self.summarizer.summarize(job.topic, new_findings)

            added = job.merge_findings(new_findings)
            job.cycles.append(
                CycleRecord(
                    index=cycle,
                    queries=[q.text for q in result.queries],
                    hits=result.hits,
                    findings_added=added,
                    failures=result.failures,
                )
            )
            cycle_log.info(f"Added {added} findings ({len(job.findings)} total)")

            if cycle >= budget.cycle_budget:
                cycle_log.info("Cycle budget exhausted")
                break

            await self._enter(job, "evaluating", log)
            try:
                evaluation = await self.evaluator.evaluate(job.topic, job.findings, next_cycle=cycle + 1)
            except EvaluationError as e:
                cycle_log.warning(f"{e}; treating as no further queries")
                break

            if not evaluation.queries:
                cycle_log.info("Evaluator needs no further queries")
                break

            queries = evaluation.queries
            cycle += 1

        # --- Finalizing ---
        await self._enter(job, "finalizing", log)
        if not job.findings:
            return await self._fail(job, NoFindingsError(len(job.cycles)), log)

        selected = await self.selector.select_findings(job.topic, job.findings, budget.max_sources)
        job.sources = [Source.from_finding(f) for f in selected]

        # --- Synthesizing ---
        await self._enter(job, "synthesizing", log)
        try:
            report = await self.synthesizer.synthesize(job.topic, selected, budget.max_report_tokens)
        except SynthesisError as e:
            return await self._fail(job, e, log)

        job.report = report
        job.transition("completed")
        await self._save(job, log)

        log.info(
            f"Completed: {len(job.cycles)} cycles, {len(job.findings)} findings, "
            f"{len(job.sources)} sources"
        )
        await self._emit_event({
            "type": "job.completed",
            "data": {
                "job_id": job.id,
                "cycles": len(job.cycles),
                "findings": len(job.findings),
                "sources": len(job.sources),
            },
        })
        return job
