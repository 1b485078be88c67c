"""
Tests for the cycle scheduler (ResearchOrchestrator).

These tests verify:
- The end-to-end scenario (plan, two cycles, rank, synthesize)
- Cycle and query budgets
- Fatal planning and synthesis failures
- NoFindingsError when nothing was ever found
- Evaluator failure treated as "no further queries"
- Cancellation and persistence
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from quarry.config import BudgetConfig
from quarry.exceptions import EvaluationError, PlanningError
from quarry.jobs import JobStore, ResearchJob
from quarry.jobs.models import EvaluationResult, Query
from quarry.llm import Completion, StructuredExtractor
from quarry.orchestrator import (
    ConcurrencyLimiter,
    FanOutEngine,
    ReportSynthesizer,
    ResearchOrchestrator,
    SourceSelector,
)
from quarry.orchestrator.planner import ResearchPlan
from quarry.retrieval.gateway import ScrapeOutcome
from quarry.retrieval.search import RawHit


class FakeGateway:
    """Hits per query text; page text per URL ("FAIL:<cause>" fails the scrape)."""

    def __init__(self, hits=None, pages=None, default_page="page text"):
        self.hits = hits or {}
        self.pages = pages or {}
        self.default_page = default_page
        self.searched: list[str] = []
        self.hang = asyncio.Event()  # never set unless a test blocks on it
        self.hang_urls: set[str] = set()

    async def search(self, query):
        self.searched.append(query)
        return [RawHit(url=u, title=u.rsplit("/", 1)[-1]) for u in self.hits.get(query, [])]

    async def scrape(self, url, title=""):
        if url in self.hang_urls:
            await self.hang.wait()
        page = self.pages.get(url, self.default_page)
        if page.startswith("FAIL:"):
            return ScrapeOutcome.failure(url, page[5:], title)
        return ScrapeOutcome.success(url, title, f"{page} ({url})")


class StubPlanner:
    def __init__(self, queries=("q1", "q2"), error=None):
        self.queries = list(queries)
        self.error = error

    async def plan(self, topic):
        if self.error:
            raise self.error
        return ResearchPlan(
            text="plan",
            queries=[Query(text=q, cycle=0) for q in self.queries],
            summary="Short plan summary.",
        )


class StubEvaluator:
    def __init__(self, rounds=(), always=None, error=None):
        self.rounds = [list(r) for r in rounds]
        self.always = always
        self.error = error
        self.calls: list[int] = []

    async def evaluate(self, topic, findings, next_cycle):
        self.calls.append(next_cycle)
        if self.error:
            raise self.error
        if self.always is not None:
            texts = [f"{t} c{next_cycle}" for t in self.always]
        else:
            texts = self.rounds.pop(0) if self.rounds else []
        return EvaluationResult(summary="gaps", queries=[Query(text=t, cycle=next_cycle) for t in texts])


class MockAdapter:
    def __init__(self, text="", error=None, name="mock"):
        self._name = name
        self.text = text
        self.error = error
        self.calls = 0

    @property
    def name(self):
        return self._name

    async def infer(self, system_prompt, user_prompt, max_tokens=4096):
        self.calls += 1
        if self.error:
            raise self.error
        return Completion(text=self.text, model="mock-model")


def _urls(prefix, n):
    return [f"https://{prefix}.example.com/{i}" for i in range(n)]


def _orchestrator(
    gateway,
    planner=None,
    evaluator=None,
    ranking='{"sources": []}',
    answer="# Report\n\nBody",
    answer_error=None,
    store=None,
    events=None,
):
    async def record(event):
        if events is not None:
            events.append(event)

    answer_adapter = MockAdapter(answer, error=answer_error, name="answer")
    orchestrator = ResearchOrchestrator(
        engine=FanOutEngine(gateway, ConcurrencyLimiter(4)),
        planner=planner or StubPlanner(),
        evaluator=evaluator or StubEvaluator(),
        selector=SourceSelector(MockAdapter("ranked"), StructuredExtractor(MockAdapter(ranking))),
        synthesizer=ReportSynthesizer(answer_adapter),
        store=store,
        event_callback=record,
    )
    return orchestrator, answer_adapter


@pytest.mark.asyncio
async def test_two_cycle_scenario_completes_with_five_sources():
    cycle0_a, cycle0_b, cycle1 = _urls("a", 3), _urls("b", 3), _urls("c", 2)
    gateway = FakeGateway(
        hits={"q1": cycle0_a, "q2": cycle0_b, "follow-up": cycle1},
        pages={cycle0_b[1]: "FAIL:timeout after 15s"},
    )
    evaluator = StubEvaluator(rounds=[["follow-up"]])
    orchestrator, answer = _orchestrator(
        gateway, evaluator=evaluator, ranking='{"sources": [7, 6, 5, 4, 3, 2, 1]}'
    )

    job = ResearchJob(topic="X", budget=BudgetConfig(cycle_budget=2, max_queries_per_cycle=2, max_sources=5))
    job = await orchestrator.run(job)

    assert job.status == "completed"
    assert job.phase == "completed"
    assert [c.findings_added for c in job.cycles] == [5, 2]
    assert [c.hits for c in job.cycles] == [6, 2]
    assert job.cycles[0].failures == 1
    assert len(job.findings) == 7
    assert cycle0_b[1] not in job.finding_urls
    # Second evaluation proposes nothing new, so cycle 2 never runs
    assert evaluator.calls == [1, 2]
    assert len(job.sources) == 5
    assert [s.url for s in job.sources] == [f.url for f in reversed(job.findings)][:5]
    assert job.report is not None
    assert job.report.sources == job.sources
    assert job.plan_summary == "Short plan summary."
    assert answer.calls == 1


@pytest.mark.asyncio
async def test_evaluation_skipped_when_budget_reached():
    gateway = FakeGateway(hits={"q1": _urls("a", 2), "q2": [], "next": _urls("b", 2)})
    evaluator = StubEvaluator(always=["next"])
    orchestrator, _ = _orchestrator(gateway, evaluator=evaluator)

    job = await orchestrator.run(ResearchJob(topic="X", budget=BudgetConfig(cycle_budget=1)))

    assert job.status == "completed"
    assert len(job.cycles) == 2
    # Evaluated after cycle 0 only; cycle 1 == budget goes straight to finalizing
    assert evaluator.calls == [1]


@pytest.mark.asyncio
@pytest.mark.parametrize("cycle_budget", [0, 1, 3])
async def test_cycle_and_query_budgets_hold(cycle_budget):
    gateway = FakeGateway(default_page="text")
    # Every query returns a fresh hit so the evaluator never runs out of work
    gateway.hits = _EveryQueryHits()
    evaluator = StubEvaluator(always=["a", "b", "c", "d", "e"])
    orchestrator, _ = _orchestrator(gateway, planner=StubPlanner(["p1", "p2", "p3", "p4"]), evaluator=evaluator)

    budget = BudgetConfig(cycle_budget=cycle_budget, max_queries_per_cycle=2, max_sources=3)
    job = await orchestrator.run(ResearchJob(topic="X", budget=budget))

    assert len(job.cycles) == cycle_budget + 1
    assert all(len(c.queries) <= 2 for c in job.cycles)
    assert len(gateway.searched) == 2 * (cycle_budget + 1)
    assert len(job.sources) <= 3
    assert len({s.url for s in job.sources}) == len(job.sources)


class _EveryQueryHits(dict):
    def get(self, query, default=None):
        return [f"https://hits.example.com/{query.replace(' ', '-')}"]


@pytest.mark.asyncio
async def test_planning_failure_fails_job_without_searching():
    gateway = FakeGateway()
    planner = StubPlanner(error=PlanningError("Could not parse research plan"))
    orchestrator, answer = _orchestrator(gateway, planner=planner)

    job = await orchestrator.run(ResearchJob(topic="X"))

    assert job.status == "failed"
    assert job.phase == "failed"
    assert job.error_code == "PlanningError"
    assert "parse research plan" in job.error
    assert job.findings == [] and job.sources == []
    assert gateway.searched == []
    assert answer.calls == 0


@pytest.mark.asyncio
async def test_zero_hits_everywhere_fails_with_no_findings():
    gateway = FakeGateway()
    evaluator = StubEvaluator(always=["different angle"])
    orchestrator, answer = _orchestrator(gateway, evaluator=evaluator)

    job = await orchestrator.run(ResearchJob(topic="X", budget=BudgetConfig(cycle_budget=2)))

    assert job.status == "failed"
    assert job.error_code == "NoFindingsError"
    # Empty cycles still count toward the budget
    assert len(job.cycles) == 3
    assert answer.calls == 0
    assert job.report is None


@pytest.mark.asyncio
async def test_evaluator_failure_means_no_further_queries():
    gateway = FakeGateway(hits={"q1": _urls("a", 2)})
    evaluator = StubEvaluator(error=EvaluationError("Evaluation call failed"))
    orchestrator, _ = _orchestrator(gateway, evaluator=evaluator)

    job = await orchestrator.run(ResearchJob(topic="X", budget=BudgetConfig(cycle_budget=2)))

    assert job.status == "completed"
    assert len(job.cycles) == 1
    assert evaluator.calls == [1]


@pytest.mark.asyncio
async def test_empty_follow_ups_stop_searching():
    gateway = FakeGateway(hits={"q1": _urls("a", 1)})
    evaluator = StubEvaluator(rounds=[[]])
    orchestrator, _ = _orchestrator(gateway, evaluator=evaluator)

    job = await orchestrator.run(ResearchJob(topic="X", budget=BudgetConfig(cycle_budget=5)))

    assert job.status == "completed"
    assert len(job.cycles) == 1


@pytest.mark.asyncio
async def test_synthesis_failure_keeps_findings_and_sources():
    gateway = FakeGateway(hits={"q1": _urls("a", 3)})
    orchestrator, _ = _orchestrator(gateway, answer_error=RuntimeError("upstream 500"))

    job = await orchestrator.run(ResearchJob(topic="X", budget=BudgetConfig(cycle_budget=0)))

    assert job.status == "failed"
    assert job.error_code == "SynthesisError"
    assert len(job.findings) == 3
    assert len(job.sources) == 3
    assert job.report is None


@pytest.mark.asyncio
async def test_findings_deduplicated_across_cycles():
    shared = _urls("shared", 2)
    gateway = FakeGateway(hits={"q1": shared, "again": shared + _urls("new", 1)})
    evaluator = StubEvaluator(rounds=[["again"]])
    orchestrator, _ = _orchestrator(gateway, evaluator=evaluator)

    job = await orchestrator.run(ResearchJob(topic="X", budget=BudgetConfig(cycle_budget=1)))

    assert len(job.findings) == 3
    assert [c.findings_added for c in job.cycles] == [2, 1]
    assert job.findings[0].cycle == 0
    assert job.findings[2].cycle == 1


@pytest.mark.asyncio
async def test_phases_are_announced_in_order_and_persisted():
    store = JobStore(":memory:")
    await store.initialize()
    events: list[dict] = []

    gateway = FakeGateway(hits={"q1": _urls("a", 2), "more": _urls("b", 1)})
    evaluator = StubEvaluator(rounds=[["more"]])
    orchestrator, _ = _orchestrator(gateway, evaluator=evaluator, store=store, events=events)

    job = await store.create_job("X", budget=BudgetConfig(cycle_budget=1))
    await orchestrator.run(job)

    phases = [e["data"]["phase"] for e in events if e["type"] == "job.phase"]
    assert phases == ["planning", "searching", "evaluating", "searching", "finalizing", "synthesizing"]
    assert events[-1]["type"] == "job.completed"

    saved = await store.load_job(job.id)
    assert saved.status == "completed"
    assert saved.report.markdown == "# Report\n\nBody"
    assert [s.url for s in saved.sources] == [s.url for s in job.sources]
    assert len(saved.findings) == 3

    await store.close()


@pytest.mark.asyncio
async def test_cancellation_marks_job_cancelled_and_keeps_settled_findings():
    store = JobStore(":memory:")
    await store.initialize()

    gateway = FakeGateway(hits={"q1": _urls("a", 2), "slow": _urls("slow", 2)})
    gateway.hang_urls = set(_urls("slow", 2))
    evaluator = StubEvaluator(rounds=[["slow"]])
    orchestrator, answer = _orchestrator(gateway, evaluator=evaluator, store=store)

    job = await store.create_job("X", budget=BudgetConfig(cycle_budget=2))
    task = asyncio.create_task(orchestrator.run(job))

    while "slow" not in gateway.searched:
        await asyncio.sleep(0.01)
    await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert job.status == "cancelled"
    assert job.phase == "cancelled"
    assert len(job.findings) == 2
    assert answer.calls == 0

    saved = await store.load_job(job.id)
    assert saved.status == "cancelled"
    assert saved.error == "Research was cancelled"
    assert len(saved.findings) == 2

    await store.close()


@pytest.mark.asyncio
async def test_store_errors_do_not_fail_the_job():
    store = MagicMock()
    store.save_job_state = AsyncMock(side_effect=RuntimeError("database is locked"))
    gateway = FakeGateway(hits={"q1": _urls("a", 1)})
    orchestrator, _ = _orchestrator(gateway, store=store)

    job = await orchestrator.run(ResearchJob(topic="X", budget=BudgetConfig(cycle_budget=0)))

    assert job.status == "completed"
    assert store.save_job_state.await_count >= 5
