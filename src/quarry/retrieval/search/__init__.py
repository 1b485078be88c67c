"""Multi-provider web search."""

from .base import RawHit, SearchManager, SearchProvider
from .brave import BraveSearchProvider
from .serper import SerperSearchProvider
from .tavily import TavilySearchProvider

__all__ = [
    "RawHit",
    "SearchProvider",
    "SearchManager",
    "BraveSearchProvider",
    "SerperSearchProvider",
    "TavilySearchProvider",
]
