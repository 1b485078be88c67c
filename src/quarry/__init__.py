"""
Quarry: iterative web research with cited reports.

Plans search queries for a topic, searches and scrapes the web concurrently,
evaluates what is still missing over a bounded number of cycles, and
synthesizes a report from a ranked, deduplicated set of sources.
"""

__version__ = "0.1.0"

from .config import BudgetConfig, ResearchConfig, load_config
from .jobs import Finding, JobStore, Report, ResearchJob, Source
from .orchestrator import ResearchOrchestrator

__all__ = [
    "BudgetConfig",
    "Finding",
    "JobStore",
    "Report",
    "ResearchConfig",
    "ResearchJob",
    "ResearchOrchestrator",
    "Source",
    "load_config",
]
