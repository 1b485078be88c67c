"""
Tests for report synthesis.
"""

import pytest

from quarry.exceptions import SynthesisError
from quarry.jobs.models import Finding
from quarry.llm import Completion
from quarry.orchestrator.report import ReportSynthesizer


class MockAdapter:
    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.calls = []

    @property
    def name(self):
        return "mock-answer"

    async def infer(self, system_prompt, user_prompt, max_tokens=4096):
        self.calls.append((user_prompt, max_tokens))
        if self.error:
            raise self.error
        return Completion(text=self.text, model="mock-model", input_tokens=900, output_tokens=300)


FINDINGS = [
    Finding(url="https://a.example.com", title="A", content="alpha facts"),
    Finding(url="https://b.example.com", title="B", content="beta facts"),
]


@pytest.mark.asyncio
async def test_report_cites_exactly_the_given_sources():
    adapter = MockAdapter("## Abstract\n\nFindings [INLINE_CITATION](https://a.example.com)")

    report = await ReportSynthesizer(adapter).synthesize("topic", FINDINGS, max_tokens=4000)

    assert report.markdown.startswith("## Abstract")
    assert [s.url for s in report.sources] == ["https://a.example.com", "https://b.example.com"]
    user_prompt, max_tokens = adapter.calls[0]
    assert max_tokens == 4000
    assert "alpha facts" in user_prompt and "beta facts" in user_prompt


@pytest.mark.asyncio
async def test_call_failure_raises_synthesis_error():
    with pytest.raises(SynthesisError, match="context length"):
        await ReportSynthesizer(MockAdapter(error=RuntimeError("context length exceeded"))).synthesize(
            "topic", FINDINGS
        )


@pytest.mark.asyncio
async def test_empty_report_raises_synthesis_error():
    with pytest.raises(SynthesisError):
        await ReportSynthesizer(MockAdapter("   ")).synthesize("topic", FINDINGS)


@pytest.mark.asyncio
async def test_no_sources_raises_without_calling_model():
    adapter = MockAdapter("report")

    with pytest.raises(SynthesisError):
        await ReportSynthesizer(adapter).synthesize("topic", [])

    assert adapter.calls == []
