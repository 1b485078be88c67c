"""
Gap evaluation between searching rounds.

Produces a narrative of what is known and missing, plus up to five
follow-up queries. An empty list is a real answer ("done"), distinct from
an EvaluationError.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field, field_validator

from ..exceptions import EvaluationError, ExtractionError
from ..jobs.models import EvaluationResult, Finding, Query
from ..llm import ModelAdapter, StructuredExtractor
from . import prompts

logger = logging.getLogger(__name__)

MAX_FOLLOW_UP_QUERIES = 5


class FollowUpQueries(BaseModel):
    """Parsed follow-ups. Blank or non-string entries are dropped, not fatal."""

    queries: list[str] = Field(default_factory=list)

    @field_validator("queries", mode="before")
    @classmethod
    def keep_non_empty_strings(cls, v: Any) -> Any:
        if not isinstance(v, list):
            return v
        return [q.strip() for q in v if isinstance(q, str) and q.strip()]


class GapEvaluator:
    """Decides whether the accumulated findings cover the topic."""

    def __init__(
        self,
        adapter: ModelAdapter,
        extractor: StructuredExtractor,
        max_follow_ups: int = MAX_FOLLOW_UP_QUERIES,
    ):
        self.adapter = adapter
        self.extractor = extractor
        self.max_follow_ups = max_follow_ups

    async def evaluate(
        self,
        topic: str,
        findings: list[Finding],
        next_cycle: int,
    ) -> EvaluationResult:
        """
        Evaluate accumulated findings against the topic.

        Args:
            topic: Research topic
            findings: Everything accumulated so far
            next_cycle: Cycle index to tag follow-up queries with

        Returns:
            EvaluationResult; empty queries means no further search needed

        Raises:
            EvaluationError: If the evaluation or parse call fails
        """
        user_prompt = (
            f"Research Topic: {topic}\n\n"
            f"Search results so far ({len(findings)}):\n\n"
            f"{prompts.format_findings(findings) or '(none)'}"
        )

        try:
            completion = await self.adapter.infer(prompts.evaluation_prompt(), user_prompt)
        except Exception as e:
            raise EvaluationError(f"Evaluation call failed ({self.adapter.name}): {e}") from e

        try:
            parsed = await self.extractor.extract(
                completion.text,
                FollowUpQueries,
                prompts.evaluation_parsing_instructions(),
            )
        except ExtractionError as e:
            raise EvaluationError(f"Could not parse follow-up queries: {e}") from e

        proposed = parsed.queries
        if len(proposed) > self.max_follow_ups:
            logger.debug(f"Evaluator proposed {len(proposed)} queries, keeping {self.max_follow_ups}")

        queries = [Query(text=q, cycle=next_cycle) for q in proposed[: self.max_follow_ups]]
        logger.info(f"Evaluation: {len(queries)} follow-up queries")
        return EvaluationResult(summary=completion.text, queries=queries)
