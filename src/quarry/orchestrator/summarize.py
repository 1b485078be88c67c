"""
Topic-focused summaries of scraped pages.

Each new finding gets a 3-4 sentence summary that later prompts use instead
of the raw page. Pages longer than long_page_threshold characters go to the
long-context model. A failed summary leaves the finding unsummarized.
"""

import asyncio
import logging

from ..jobs.models import Finding
from ..llm import ModelAdapter
from . import prompts
from .fanout import gather_outcomes

logger = logging.getLogger(__name__)


class FindingSummarizer:
    """Summarizes findings with bounded concurrency."""

    def __init__(
        self,
        adapter: ModelAdapter,
        long_adapter: ModelAdapter | None = None,
        concurrency: int = 4,
        long_page_threshold: int = 40_000,
    ):
        """
        Initialize summarizer.

        Args:
            adapter: Summary model
            long_adapter: Model for pages over the threshold (defaults to adapter)
            concurrency: Summaries in flight at once
            long_page_threshold: Content length (chars) that counts as a long page
        """
        self.adapter = adapter
        self.long_adapter = long_adapter or adapter
        self.concurrency = concurrency
        self.long_page_threshold = long_page_threshold

    def _adapter_for(self, finding: Finding) -> ModelAdapter:
        if len(finding.content) > self.long_page_threshold:
            return self.long_adapter
        return self.adapter

    async def _summarize_one(
        self, topic: str, finding: Finding, semaphore: asyncio.Semaphore
    ) -> Finding:
        adapter = self._adapter_for(finding)
        async with semaphore:
            completion = await adapter.infer(
                prompts.summarizer_prompt(),
                f"Research Topic: {topic}\n\nSource: {finding.url}\n\n{finding.content}",
                max_tokens=512,
            )
        summary = completion.text.strip()
        return finding.model_copy(update={"summary": summary or None})

    async def summarize(self, topic: str, findings: list[Finding]) -> list[Finding]:
        """
        Summarize findings concurrently.

        Returns:
            Findings in input order, with summary set where it succeeded
        """
        if not findings:
            return []

        semaphore = asyncio.Semaphore(self.concurrency)
        outcomes = await gather_outcomes(
            self._summarize_one(topic, finding, semaphore) for finding in findings
        )

        summarized: list[Finding] = []
        failed = 0
        for finding, outcome in zip(findings, outcomes):
            if outcome.ok:
                summarized.append(outcome.value)
            else:
                failed += 1
                logger.warning(f"Summary failed for {finding.url}: {outcome.error}")
                summarized.append(finding)

        logger.info(f"Summarized {len(findings) - failed}/{len(findings)} findings")
        return summarized
