"""
Source selection for the final report.

Findings are deduplicated by URL (first occurrence wins), optionally ranked
by the planning model, and truncated to the source budget. Ranking is best
effort: if it fails or returns nothing usable, the deduplicated discovery
order is used instead.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field, field_validator

from ..exceptions import ExtractionError, RankingError
from ..jobs.models import Finding, Source
from ..llm import ModelAdapter, StructuredExtractor
from . import prompts

logger = logging.getLogger(__name__)


def dedupe_findings(findings: list[Finding]) -> list[Finding]:
    """Drop findings whose URL was already seen, keeping the earliest."""
    seen: set[str] = set()
    unique: list[Finding] = []
    for finding in findings:
        if finding.url in seen:
            continue
        seen.add(finding.url)
        unique.append(finding)
    return unique


class RankedSources(BaseModel):
    """1-based source numbers, most relevant first."""

    sources: list[int] = Field(default_factory=list)

    @field_validator("sources", mode="before")
    @classmethod
    def keep_integers(cls, v: Any) -> Any:
        if not isinstance(v, list):
            return v
        return [n for n in v if isinstance(n, int) and not isinstance(n, bool)]


class SourceSelector:
    """Picks the bounded, deduplicated source list for synthesis."""

    def __init__(
        self,
        adapter: ModelAdapter | None = None,
        extractor: StructuredExtractor | None = None,
    ):
        """
        Initialize selector.

        Args:
            adapter: Model used for relevance ranking (None skips ranking)
            extractor: Parses the ranking into source numbers
        """
        self.adapter = adapter
        self.extractor = extractor

    async def _rank(self, topic: str, candidates: list[Finding]) -> list[Finding]:
        """
        Reorder and filter candidates by relevance.

        Raises:
            RankingError: If the ranking call or parse fails
        """
        user_prompt = (
            f"Research Topic: {topic}\n\n"
            f"Search results:\n\n{prompts.format_findings(candidates, max_chars=500)}"
        )
        try:
            completion = await self.adapter.infer(prompts.ranking_prompt(), user_prompt)
            parsed = await self.extractor.extract(
                completion.text, RankedSources, prompts.ranking_parsing_instructions()
            )
        except ExtractionError as e:
            raise RankingError(f"Could not parse source ranking: {e}") from e
        except Exception as e:
            raise RankingError(f"Ranking call failed ({self.adapter.name}): {e}") from e

        ranked: list[Finding] = []
        used: set[int] = set()
        for number in parsed.sources:
            # Out-of-range and repeated numbers are ignored
            if 1 <= number <= len(candidates) and number not in used:
                used.add(number)
                ranked.append(candidates[number - 1])
        return ranked

    async def select_findings(
        self, topic: str, findings: list[Finding], max_sources: int
    ) -> list[Finding]:
        """
        Choose the findings to synthesize from.

        Never raises for ranking problems.

        Returns:
            At most max_sources findings with distinct URLs
        """
        candidates = dedupe_findings(findings)
        if not candidates:
            return []

        if self.adapter is not None and self.extractor is not None:
            try:
                ranked = await self._rank(topic, candidates)
            except RankingError as e:
                logger.warning(f"{e}; using discovery order")
                ranked = []

            if ranked:
                logger.info(f"Ranking kept {len(ranked)}/{len(candidates)} sources")
                candidates = ranked
            else:
                logger.warning("Ranking returned no usable sources; using discovery order")

        selected = candidates[:max_sources]
        logger.info(f"Selected {len(selected)} sources (limit {max_sources})")
        return selected

    async def select(self, topic: str, findings: list[Finding], max_sources: int) -> list[Source]:
        """Same as select_findings(), as report Sources."""
        selected = await self.select_findings(topic, findings, max_sources)
        return [Source.from_finding(f) for f in selected]
