"""Research orchestration: planning, fan-out, evaluation, selection and synthesis."""

from .core import ResearchOrchestrator
from .cycle import CycleResult, ResearchCycle
from .evaluator import GapEvaluator
from .fanout import (
    ConcurrencyLimiter,
    FanOutEngine,
    QueryResult,
    TaskOutcome,
    configure_scrape_concurrency,
    gather_outcomes,
    get_scrape_limiter,
)
from .planner import ResearchPlan, ResearchPlanner
from .report import ReportSynthesizer
from .selection import SourceSelector, dedupe_findings
from .summarize import FindingSummarizer

__all__ = [
    "ConcurrencyLimiter",
    "CycleResult",
    "FanOutEngine",
    "FindingSummarizer",
    "GapEvaluator",
    "QueryResult",
    "ReportSynthesizer",
    "ResearchCycle",
    "ResearchOrchestrator",
    "ResearchPlan",
    "ResearchPlanner",
    "SourceSelector",
    "TaskOutcome",
    "configure_scrape_concurrency",
    "dedupe_findings",
    "gather_outcomes",
    "get_scrape_limiter",
]
