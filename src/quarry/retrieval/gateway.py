"""
Fetcher gateway over the search and scrape providers.

search() raises SearchProviderError when the provider cannot answer.
scrape() never raises for provider trouble: it returns a ScrapeOutcome
that is either content or a failure with its cause. The per-call scrape
timeout is enforced here and nowhere else.
"""

import asyncio
import logging
from dataclasses import dataclass

from ..exceptions import SearchProviderError
from .scrape import ScrapeProvider
from .search import RawHit, SearchManager

logger = logging.getLogger(__name__)

SCRAPE_TIMEOUT_SECONDS = 15.0
MAX_CACHE_AGE_SECONDS = 12 * 60 * 60


@dataclass(frozen=True)
class ScrapeOutcome:
    """Result of scraping one URL: content or a failure cause, never both."""

    url: str
    title: str = ""
    content: str | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        if (self.content is None) == (self.error is None):
            raise ValueError("ScrapeOutcome needs exactly one of content or error")

    @property
    def ok(self) -> bool:
        return self.content is not None

    @classmethod
    def success(cls, url: str, title: str, content: str) -> "ScrapeOutcome":
        return cls(url=url, title=title, content=content)

    @classmethod
    def failure(cls, url: str, error: str, title: str = "") -> "ScrapeOutcome":
        return cls(url=url, title=title, error=error)


class FetcherGateway:
    """Single entry point for web search and page scraping."""

    def __init__(
        self,
        search_manager: SearchManager,
        scraper: ScrapeProvider,
        result_count: int = 5,
        scrape_timeout: float = SCRAPE_TIMEOUT_SECONDS,
        max_cache_age: float = MAX_CACHE_AGE_SECONDS,
    ):
        """
        Initialize gateway.

        Args:
            search_manager: Search providers with fallback
            scraper: Scrape backend (possibly a ChainedScraper)
            result_count: Hits requested per search
            scrape_timeout: Hard per-URL scrape timeout in seconds
            max_cache_age: Acceptable scrape cache staleness in seconds
        """
        self.search_manager = search_manager
        self.scraper = scraper
        self.result_count = result_count
        self.scrape_timeout = scrape_timeout
        self.max_cache_age = max_cache_age

    async def search(self, query: str) -> list[RawHit]:
        """
        Search the web for a query.

        Returns:
            Validated hits, possibly empty

        Raises:
            SearchProviderError: On transport failure or unusable response
        """
        try:
            return await self.search_manager.search(query, self.result_count)
        except SearchProviderError:
            raise
        except Exception as e:
            raise SearchProviderError(query, str(e)) from e

    async def scrape(self, url: str, title: str = "") -> ScrapeOutcome:
        """
        Scrape one URL within the fixed timeout.

        Returns:
            Success with the raw (unsanitized) markdown, or a failure outcome
            for timeouts, provider errors and empty pages
        """
        try:
            async with asyncio.timeout(self.scrape_timeout):
                response = await self.scraper.scrape(url, self.scrape_timeout, self.max_cache_age)
        except TimeoutError:
            logger.warning(f"Scrape timed out after {self.scrape_timeout:.0f}s: {url}")
            return ScrapeOutcome.failure(url, f"timeout after {self.scrape_timeout:.0f}s", title)
        except Exception as e:
            logger.warning(f"Scrape error for {url}: {type(e).__name__}: {e}")
            return ScrapeOutcome.failure(url, f"{type(e).__name__}: {e}", title)

        if not response.success:
            logger.warning(f"Scrape provider failed for {url}: {response.error}")
            return ScrapeOutcome.failure(url, response.error or "provider error", title)

        if not response.markdown or not response.markdown.strip():
            logger.warning(f"Scrape returned no content: {url}")
            return ScrapeOutcome.failure(url, "empty content", title)

        return ScrapeOutcome.success(url, title, response.markdown)
