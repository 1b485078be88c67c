"""
Concurrent search-and-scrape fan-out.

Each query is searched once; every hit it returns is scraped concurrently,
and the call waits for all scrapes to settle before returning. A single
failed search or scrape never affects its siblings: outcomes are collected
as tagged successes and failures and filtered afterwards.

Scrape concurrency is capped by one limiter shared by every job in the
process (see configure_scrape_concurrency()).
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import AsyncIterator, Awaitable, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from ..exceptions import SearchProviderError
from ..jobs.models import Finding, Query
from ..retrieval.gateway import FetcherGateway, ScrapeOutcome
from ..retrieval.sanitize import sanitize
from ..retrieval.search import RawHit

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_SCRAPE_CONCURRENCY = 8


@dataclass
class TaskOutcome(Generic[T]):
    """Tagged result of one fan-out task: a value or the exception it raised."""

    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def gather_outcomes(aws: Iterable[Awaitable[T]]) -> list[TaskOutcome[T]]:
    """
    Run awaitables concurrently and wait for every one of them to settle.

    A failing task never cancels its siblings. Outcomes keep input order.
    Cancellation is not an outcome: if the caller is cancelled, every
    pending task is cancelled and CancelledError propagates.
    """
    results = await asyncio.gather(*aws, return_exceptions=True)

    outcomes: list[TaskOutcome[T]] = []
    for result in results:
        if isinstance(result, Exception):
            outcomes.append(TaskOutcome(error=result))
        elif isinstance(result, BaseException):
            # CancelledError and friends
            raise result
        else:
            outcomes.append(TaskOutcome(value=result))
    return outcomes


class ConcurrencyLimiter:
    """
    Counting semaphore shared by all callers in the process.

    asyncio primitives belong to one event loop, so one semaphore is kept
    per running loop; every loop gets the same ceiling.
    """

    def __init__(self, limit: int):
        if limit < 1:
            raise ValueError("Concurrency limit must be at least 1")
        self.limit = limit
        self._semaphores: weakref.WeakKeyDictionary[
            asyncio.AbstractEventLoop, asyncio.Semaphore
        ] = weakref.WeakKeyDictionary()
        self.in_flight = 0
        self.peak = 0

    def _semaphore(self) -> asyncio.Semaphore:
        loop = asyncio.get_running_loop()
        semaphore = self._semaphores.get(loop)
        if semaphore is None:
            semaphore = asyncio.Semaphore(self.limit)
            self._semaphores[loop] = semaphore
        return semaphore

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold one slot for the duration of the block."""
        async with self._semaphore():
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
            try:
                yield
            finally:
                self.in_flight -= 1


_scrape_limiter = ConcurrencyLimiter(DEFAULT_SCRAPE_CONCURRENCY)


def configure_scrape_concurrency(limit: int) -> ConcurrencyLimiter:
    """Replace the process-wide scrape limiter (call before starting jobs)."""
    global _scrape_limiter
    _scrape_limiter = ConcurrencyLimiter(limit)
    logger.info(f"Scrape concurrency ceiling set to {limit}")
    return _scrape_limiter


def get_scrape_limiter() -> ConcurrencyLimiter:
    return _scrape_limiter


@dataclass
class QueryResult:
    """Everything one query's fan-out produced."""

    query: Query
    hits: list[RawHit] = field(default_factory=list)
    findings: list[Finding] = field(default_factory=list)
    failures: list[ScrapeOutcome] = field(default_factory=list)
    search_error: str | None = None


class FanOutEngine:
    """Searches queries and scrapes their hits concurrently."""

    def __init__(
        self,
        gateway: FetcherGateway,
        limiter: ConcurrencyLimiter | None = None,
    ):
        """
        Initialize fan-out engine.

        Args:
            gateway: Search and scrape gateway
            limiter: Scrape concurrency limiter (defaults to the process-wide one)
        """
        self.gateway = gateway
        self._limiter = limiter

    @property
    def limiter(self) -> ConcurrencyLimiter:
        # Resolved per call so configure_scrape_concurrency() applies to existing engines
        return self._limiter or get_scrape_limiter()

    async def _scrape(self, hit: RawHit) -> ScrapeOutcome:
        async with self.limiter.slot():
            return await self.gateway.scrape(hit.url, hit.title)

    async def fetch_and_scrape(self, query: Query) -> QueryResult:
        """
        Search one query and scrape every hit.

        Returns only after every scrape has succeeded or failed. Search
        failures and zero hits both give an empty result; neither raises.

        Args:
            query: Query to run

        Returns:
            QueryResult with sanitized findings and the failed outcomes
        """
        try:
            hits = await self.gateway.search(query.text)
        except SearchProviderError as e:
            logger.warning(f"Search failed, no findings for this query: {e}")
            return QueryResult(query=query, search_error=str(e))

        # One scrape per URL even if the provider repeats a result
        unique: dict[str, RawHit] = {}
        for hit in hits:
            unique.setdefault(hit.url, hit)
        hits = list(unique.values())

        if not hits:
            logger.info(f"No search results for {query.text!r}")
            return QueryResult(query=query)

        outcomes = await gather_outcomes(self._scrape(hit) for hit in hits)

        result = QueryResult(query=query, hits=hits)
        for hit, outcome in zip(hits, outcomes):
            if not outcome.ok:
                logger.warning(f"Scrape task crashed for {hit.url}: {outcome.error}")
                result.failures.append(
                    ScrapeOutcome.failure(hit.url, f"{type(outcome.error).__name__}: {outcome.error}", hit.title)
                )
                continue

            scraped = outcome.value
            if not scraped.ok:
                result.failures.append(scraped)
                continue

            content = sanitize(scraped.content)
            if not content:
                logger.debug(f"Dropping {hit.url}: nothing left after sanitizing")
                result.failures.append(ScrapeOutcome.failure(hit.url, "empty after sanitizing", hit.title))
                continue

            result.findings.append(
                Finding(
                    url=hit.url,
                    title=scraped.title or hit.title,
                    content=content,
                    query=query.text,
                    cycle=query.cycle,
                    favicon=hit.favicon,
                )
            )

        logger.info(
            f"Query {query.text[:60]!r}: {len(hits)} hits, "
            f"{len(result.findings)} findings, {len(result.failures)} failed"
        )
        return result

    async def run_queries(self, queries: list[Query]) -> list[QueryResult]:
        """
        Fan out over several queries at once.

        Returns:
            One QueryResult per query, in query order
        """
        outcomes = await gather_outcomes(self.fetch_and_scrape(q) for q in queries)

        results: list[QueryResult] = []
        for query, outcome in zip(queries, outcomes):
            if outcome.ok:
                results.append(outcome.value)
            else:
                logger.error(f"Fan-out for {query.text!r} crashed: {outcome.error}")
                results.append(QueryResult(query=query, search_error=str(outcome.error)))
        return results
