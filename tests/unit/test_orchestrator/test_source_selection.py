"""
Tests for source selection: dedupe, ranking, truncation and fallback.
"""

import pytest

from quarry.jobs.models import Finding
from quarry.llm import Completion, StructuredExtractor
from quarry.orchestrator.selection import SourceSelector, dedupe_findings


class MockAdapter:
    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.calls = 0

    @property
    def name(self):
        return "mock"

    async def infer(self, system_prompt, user_prompt, max_tokens=4096):
        self.calls += 1
        if self.error:
            raise self.error
        return Completion(text=self.text, model="mock-model")


def _findings(n, prefix="https://example.com/"):
    return [Finding(url=f"{prefix}{i}", title=f"T{i}", content=f"content {i}") for i in range(n)]


def _selector(ranking_json, error=None):
    return SourceSelector(MockAdapter("ranking narrative"), StructuredExtractor(MockAdapter(ranking_json, error)))


def test_dedupe_keeps_first_occurrence():
    first = Finding(url="https://a.com", title="first", content="x")
    dup = Finding(url="https://a.com", title="second", content="y")
    other = Finding(url="https://b.com", title="b", content="z")

    assert dedupe_findings([first, other, dup]) == [first, other]


@pytest.mark.asyncio
async def test_ranked_order_is_used_and_truncated():
    findings = _findings(7)
    selector = _selector('{"sources": [3, 1, 7, 2, 5, 4]}')

    sources = await selector.select("topic", findings, max_sources=5)

    assert [s.url for s in sources] == [findings[i].url for i in (2, 0, 6, 1, 4)]


@pytest.mark.asyncio
async def test_ranking_can_filter_out_irrelevant():
    findings = _findings(4)
    selected = await _selector('{"sources": [4, 2]}').select_findings("topic", findings, max_sources=5)

    assert selected == [findings[3], findings[1]]


@pytest.mark.asyncio
async def test_invalid_and_repeated_numbers_are_ignored():
    findings = _findings(3)
    selected = await _selector('{"sources": [0, 2, 2, 9, -1, 3]}').select_findings("t", findings, 5)

    assert selected == [findings[1], findings[2]]


@pytest.mark.asyncio
async def test_ranking_failure_falls_back_to_discovery_order():
    findings = _findings(7)
    selector = _selector("", error=RuntimeError("json model down"))

    sources = await selector.select("topic", findings, max_sources=5)

    assert [s.url for s in sources] == [f.url for f in findings[:5]]


@pytest.mark.asyncio
async def test_unusable_ranking_falls_back():
    findings = _findings(3)
    selected = await _selector('{"sources": [42]}').select_findings("t", findings, 2)

    assert selected == findings[:2]


@pytest.mark.asyncio
async def test_duplicates_never_reach_ranking_or_output():
    findings = _findings(3) + _findings(3)
    ranking = MockAdapter("narrative")
    selector = SourceSelector(ranking, StructuredExtractor(MockAdapter('{"sources": [1, 2, 3]}')))

    sources = await selector.select("t", findings, max_sources=10)

    urls = [s.url for s in sources]
    assert len(urls) == len(set(urls)) == 3


@pytest.mark.asyncio
async def test_without_ranker_uses_dedupe_and_cap():
    findings = _findings(4)

    sources = await SourceSelector().select("t", findings + findings, max_sources=3)

    assert [s.url for s in sources] == [f.url for f in findings[:3]]


@pytest.mark.asyncio
async def test_no_findings_selects_nothing():
    ranking = MockAdapter("x")
    selector = SourceSelector(ranking, StructuredExtractor(MockAdapter('{"sources": [1]}')))

    assert await selector.select("t", [], max_sources=5) == []
    assert ranking.calls == 0
