"""Research job records, lifecycle and persistence."""

from .models import (
    CycleRecord,
    EvaluationResult,
    Finding,
    Query,
    Report,
    ResearchJob,
    Source,
)
from .store import JobStore

__all__ = [
    "CycleRecord",
    "EvaluationResult",
    "Finding",
    "JobStore",
    "Query",
    "Report",
    "ResearchJob",
    "Source",
]
