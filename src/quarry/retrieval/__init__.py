"""Web retrieval: search, scrape and sanitize."""

from .gateway import FetcherGateway, ScrapeOutcome
from .sanitize import MAX_CONTENT_CHARS, sanitize
from .scrape import (
    ChainedScraper,
    DirectFetchScraper,
    FirecrawlScraper,
    JinaReaderScraper,
    ScrapeProvider,
    ScrapeResponse,
)
from .search import RawHit, SearchManager

__all__ = [
    "ChainedScraper",
    "DirectFetchScraper",
    "FetcherGateway",
    "FirecrawlScraper",
    "JinaReaderScraper",
    "MAX_CONTENT_CHARS",
    "RawHit",
    "ScrapeOutcome",
    "ScrapeProvider",
    "ScrapeResponse",
    "SearchManager",
    "sanitize",
]
