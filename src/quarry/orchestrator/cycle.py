"""
One searching round of a research job.

A cycle runs its queries through the fan-out engine, waits for every
search and scrape to settle, and merges the findings of all queries,
deduplicated by URL. It never mutates the job; the scheduler does that
with the returned CycleResult.
"""

import logging
import time
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from typing import Any

from ..jobs.models import Finding, Query
from .fanout import FanOutEngine, QueryResult

logger = logging.getLogger(__name__)

# Type alias for event callback
EventCallback = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]


@dataclass
class CycleResult:
    """Result of a single searching round."""

    cycle_id: int
    queries: list[Query]
    findings: list[Finding]
    hits: int
    failures: int
    duration_seconds: float
    query_results: list[QueryResult] = field(default_factory=list)


class ResearchCycle:
    """Executes a single searching round."""

    def __init__(
        self,
        engine: FanOutEngine,
        cycle_id: int,
        max_queries: int,
        event_callback: EventCallback | None = None,
    ):
        """
        Initialize research cycle.

        Args:
            engine: Fan-out engine for search and scrape
            cycle_id: Zero-based cycle index (0 is the initial search)
            max_queries: Most queries this cycle may issue
            event_callback: Optional async callback for real-time events
        """
        self.engine = engine
        self.cycle_id = cycle_id
        self.max_queries = max_queries
        self.event_callback = event_callback

    async def _emit_event(self, event: dict[str, Any]) -> None:
        if self.event_callback:
            try:
                await self.event_callback(event)
            except Exception as e:
                logger.warning(f"Event callback failed: {e}")

    async def execute(self, queries: list[Query]) -> CycleResult:
        """
        Run the cycle's queries (at most max_queries of them).

        Returns:
            CycleResult once every search and scrape has settled
        """
        start_time = time.time()

        batch = [q.model_copy(update={"cycle": self.cycle_id}) for q in queries[: self.max_queries]]
        if len(queries) > len(batch):
            logger.info(
                f"[Cycle {self.cycle_id}] Dropping {len(queries) - len(batch)} queries "
                f"over the per-cycle limit of {self.max_queries}"
            )

        await self._emit_event({
            "type": "cycle.started",
            "data": {"cycle_id": self.cycle_id, "queries": [q.text for q in batch]},
        })

        results = await self.engine.run_queries(batch)

        findings: list[Finding] = []
        seen: set[str] = set()
        for result in results:
            for finding in result.findings:
                if finding.url in seen:
                    continue
                seen.add(finding.url)
                findings.append(finding)

        cycle_result = CycleResult(
            cycle_id=self.cycle_id,
            queries=batch,
            findings=findings,
            hits=sum(len(r.hits) for r in results),
            failures=sum(len(r.failures) for r in results),
            duration_seconds=time.time() - start_time,
            query_results=results,
        )

        logger.info(
            f"[Cycle {self.cycle_id}] {len(batch)} queries, {cycle_result.hits} hits, "
            f"{len(findings)} findings, {cycle_result.failures} failures "
            f"({cycle_result.duration_seconds:.1f}s)"
        )

        await self._emit_event({
            "type": "cycle.completed",
            "data": {
                "cycle_id": self.cycle_id,
                "hits": cycle_result.hits,
                "findings": len(findings),
                "failures": cycle_result.failures,
            },
        })

        return cycle_result
