"""
Final report synthesis.

Writes the cited markdown report from the selected sources with the answer
model. Unlike the evaluator and selector, a failure here fails the job, but
the findings and sources already on it are kept.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..exceptions import SynthesisError
from ..jobs.models import Finding, Report, Source
from ..llm import ModelAdapter
from . import prompts

logger = logging.getLogger(__name__)


@dataclass
class _SourceBudget:
    """Characters of each source passed to the answer model."""

    per_source: int = 12_000


class ReportSynthesizer:
    """Generates the research report from selected findings."""

    def __init__(self, adapter: ModelAdapter, budget: _SourceBudget | None = None) -> None:
        self.adapter = adapter
        self.budget = budget or _SourceBudget()

    def _render_sources(self, findings: list[Finding]) -> str:
        blocks = []
        for i, finding in enumerate(findings, start=1):
            content = finding.content[: self.budget.per_source]
            blocks.append(
                f"Source {i}: {finding.title or finding.url}\nURL: {finding.url}\n\n{content}"
            )
        return "\n\n---\n\n".join(blocks)

    async def synthesize(
        self,
        topic: str,
        findings: list[Finding],
        max_tokens: int = 8192,
    ) -> Report:
        """Write the report.

        Args:
            topic: Research topic
            findings: Selected findings, in citation order
            max_tokens: Output token cap for the report

        Returns:
            Report citing exactly the given findings

        Raises:
            SynthesisError: If there is nothing to synthesize or the call fails
        """
        if not findings:
            raise SynthesisError("No sources to synthesize from")

        user_prompt = (
            f"Research Topic: {topic}\n\n"
            f"Sources ({len(findings)}):\n\n{self._render_sources(findings)}"
        )

        try:
            completion = await self.adapter.infer(prompts.answer_prompt(), user_prompt, max_tokens=max_tokens)
        except Exception as e:
            raise SynthesisError(f"Report synthesis failed ({self.adapter.name}): {e}") from e

        markdown = completion.text.strip()
        if not markdown:
            raise SynthesisError(f"Answer model {self.adapter.name} returned an empty report")

        logger.info(
            f"Report synthesized: {len(markdown)} chars from {len(findings)} sources "
            f"({completion.total_tokens} tokens, ${completion.cost_usd:.4f})"
        )
        return Report(markdown=markdown, sources=[Source.from_finding(f) for f in findings])
