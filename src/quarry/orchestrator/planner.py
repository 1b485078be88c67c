"""
Research planning: topic -> initial queries.

One model call writes a free-form plan; the structured extractor then pulls
the query list out of it. Any failure on that path raises PlanningError,
which ends the job because there is nothing to search.
"""

import logging
from dataclasses import dataclass

from pydantic import BaseModel, Field, field_validator

from ..exceptions import ExtractionError, PlanningError
from ..jobs.models import Query
from ..llm import ModelAdapter, StructuredExtractor
from . import prompts

logger = logging.getLogger(__name__)


class PlannedQueries(BaseModel):
    """Strict shape of the parsed plan: a non-empty list of non-empty strings."""

    queries: list[str] = Field(..., min_length=1)

    @field_validator("queries")
    @classmethod
    def validate_queries(cls, v: list[str]) -> list[str]:
        stripped = [q.strip() for q in v]
        if any(not q for q in stripped):
            raise ValueError("Queries must be non-empty strings")
        return stripped


@dataclass
class ResearchPlan:
    """Planner output."""

    text: str
    queries: list[Query]
    summary: str | None = None


class ResearchPlanner:
    """Turns a topic into an ordered list of first-cycle queries."""

    def __init__(
        self,
        adapter: ModelAdapter,
        extractor: StructuredExtractor,
        summarize_plan: bool = True,
    ):
        """
        Initialize planner.

        Args:
            adapter: Planning model
            extractor: JSON model used to parse the plan
            summarize_plan: Also condense the plan into one sentence
        """
        self.adapter = adapter
        self.extractor = extractor
        self.summarize_plan = summarize_plan

    async def plan(self, topic: str) -> ResearchPlan:
        """
        Plan the research for a topic.

        Returns:
            ResearchPlan with at least one query

        Raises:
            PlanningError: If the planning call or the parse step fails
        """
        try:
            completion = await self.adapter.infer(prompts.planning_prompt(), f"Research Topic: {topic}")
        except Exception as e:
            raise PlanningError(f"Planning call failed ({self.adapter.name}): {e}") from e

        if not completion.text.strip():
            raise PlanningError(f"Planning model {self.adapter.name} returned no text")

        try:
            parsed = await self.extractor.extract(
                completion.text,
                PlannedQueries,
                prompts.plan_parsing_instructions(),
            )
        except ExtractionError as e:
            raise PlanningError(f"Could not parse research plan: {e}") from e

        queries = [Query(text=q, cycle=0) for q in parsed.queries]
        logger.info(f"Planned {len(queries)} queries for {topic[:60]!r}")

        summary = await self._summarize(completion.text) if self.summarize_plan else None
        return ResearchPlan(text=completion.text, queries=queries, summary=summary)

    async def _summarize(self, plan_text: str) -> str | None:
        """One-sentence plan summary; None on any failure."""
        try:
            completion = await self.adapter.infer(
                prompts.plan_summary_prompt(), f"Research Plan: {plan_text}", max_tokens=256
            )
        except Exception as e:
            logger.warning(f"Plan summary failed, continuing without it: {e}")
            return None
        return completion.text.strip() or None
