"""
Tests for finding summarization.
"""

import asyncio

import pytest

from quarry.jobs.models import Finding
from quarry.llm import Completion
from quarry.orchestrator.summarize import FindingSummarizer


class MockAdapter:
    def __init__(self, name="summary", fail_on=(), delay=0.0):
        self._name = name
        self.fail_on = set(fail_on)
        self.delay = delay
        self.seen: list[str] = []
        self.active = 0
        self.peak = 0

    @property
    def name(self):
        return self._name

    async def infer(self, system_prompt, user_prompt, max_tokens=4096):
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            url = user_prompt.split("Source: ", 1)[1].split("\n", 1)[0]
            self.seen.append(url)
            if url in self.fail_on:
                raise RuntimeError("model overloaded")
            return Completion(text=f"summary of {url}", model="mock-model")
        finally:
            self.active -= 1


@pytest.mark.asyncio
async def test_summaries_are_attached_in_order():
    findings = [Finding(url=f"https://e.com/{i}", content=f"text {i}") for i in range(3)]

    result = await FindingSummarizer(MockAdapter()).summarize("topic", findings)

    assert [f.summary for f in result] == [f"summary of https://e.com/{i}" for i in range(3)]
    # Originals are not mutated
    assert all(f.summary is None for f in findings)


@pytest.mark.asyncio
async def test_failure_leaves_finding_unsummarized():
    findings = [Finding(url=f"https://e.com/{i}", content="text") for i in range(3)]
    adapter = MockAdapter(fail_on={"https://e.com/1"})

    result = await FindingSummarizer(adapter).summarize("topic", findings)

    assert result[1].summary is None
    assert result[0].summary and result[2].summary


@pytest.mark.asyncio
async def test_long_pages_use_long_model():
    short = Finding(url="https://e.com/short", content="x" * 100)
    long = Finding(url="https://e.com/long", content="x" * 500)
    regular, long_model = MockAdapter("regular"), MockAdapter("long")

    await FindingSummarizer(regular, long_model, long_page_threshold=200).summarize("t", [short, long])

    assert regular.seen == ["https://e.com/short"]
    assert long_model.seen == ["https://e.com/long"]


@pytest.mark.asyncio
async def test_concurrency_is_bounded():
    findings = [Finding(url=f"https://e.com/{i}", content="text") for i in range(6)]
    adapter = MockAdapter(delay=0.02)

    await FindingSummarizer(adapter, concurrency=2).summarize("t", findings)

    assert adapter.peak == 2
