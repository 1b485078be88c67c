"""
Page scraping backends.

Strategies:
1. Firecrawl scrape API (markdown, served from cache when fresh enough)
2. Jina Reader API (fast, clean markdown)
3. Direct fetch + readability + markdownify

Every backend answers with a ScrapeResponse instead of raising for
provider-side failures. Transport exceptions may still escape and are
handled by the FetcherGateway.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

import httpx
from bs4 import BeautifulSoup
from markdownify import markdownify
from readability import Document

logger = logging.getLogger(__name__)


@dataclass
class ScrapeResponse:
    """Raw scrape provider answer."""

    success: bool
    markdown: str | None = None
    error: str | None = None


class ScrapeProvider(Protocol):
    """Protocol for scrape backends."""

    @property
    def name(self) -> str:
        ...

    async def scrape(self, url: str, timeout: float, max_cache_age: float) -> ScrapeResponse:
        """
        Scrape a URL to markdown.

        Args:
            url: Page to scrape
            timeout: Seconds the provider may spend on the page
            max_cache_age: Seconds of acceptable cache staleness
        """
        ...


class FirecrawlScraper:
    """Firecrawl /v1/scrape backend."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.firecrawl.dev",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    @property
    def name(self) -> str:
        return "firecrawl"

    async def scrape(self, url: str, timeout: float, max_cache_age: float) -> ScrapeResponse:
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(
                f"{self.base_url}/v1/scrape",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "url": url,
                    "formats": ["markdown"],
                    "timeout": int(timeout * 1000),
                    "maxAge": int(max_cache_age * 1000),
                },
                # Leave headroom for the provider to report its own timeout
                timeout=timeout + 5.0,
            )

        try:
            data = response.json()
        except ValueError:
            return ScrapeResponse(success=False, error=f"HTTP {response.status_code}: non-JSON body")

        if not isinstance(data, dict):
            return ScrapeResponse(success=False, error="Unexpected response shape")

        if response.status_code >= 400 or not data.get("success"):
            return ScrapeResponse(
                success=False,
                error=str(data.get("error") or f"HTTP {response.status_code}"),
            )

        markdown = (data.get("data") or {}).get("markdown")
        return ScrapeResponse(success=True, markdown=markdown or "")


class JinaReaderScraper:
    """Jina Reader backend (r.jina.ai)."""

    def __init__(self, api_key: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.api_key = api_key
        self._transport = transport

    @property
    def name(self) -> str:
        return "jina"

    async def scrape(self, url: str, timeout: float, max_cache_age: float) -> ScrapeResponse:
        headers = {
            "X-Return-Format": "markdown",
            "X-Timeout": str(int(timeout)),
            "X-Cache-Tolerance": str(int(max_cache_age)),
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.get(f"https://r.jina.ai/{url}", headers=headers, timeout=timeout)

        if response.status_code != 200:
            return ScrapeResponse(success=False, error=f"HTTP {response.status_code}")

        logger.debug(f"Fetched via Jina Reader: {url}")
        return ScrapeResponse(success=True, markdown=response.text)


def html_to_markdown(html: str) -> str:
    """Extract the main content of an HTML page as markdown."""
    doc = Document(html)
    title = doc.title()
    content_md = markdownify(doc.summary(), heading_style="ATX").strip()

    if not content_md:
        # Readability found nothing; fall back to all visible text
        soup = BeautifulSoup(html, "html.parser")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        content_md = soup.get_text("\n", strip=True)

    if not content_md:
        return ""
    return f"# {title}\n\n{content_md}" if title else content_md


class DirectFetchScraper:
    """Fetch the page ourselves and extract content with readability."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self._transport = transport

    @property
    def name(self) -> str:
        return "direct"

    async def scrape(self, url: str, timeout: float, max_cache_age: float) -> ScrapeResponse:
        async with httpx.AsyncClient(follow_redirects=True, transport=self._transport) as client:
            response = await client.get(
                url,
                headers={"User-Agent": "Mozilla/5.0 (compatible; QuarryBot/1.0)"},
                timeout=timeout,
            )

        if response.status_code >= 400:
            return ScrapeResponse(success=False, error=f"HTTP {response.status_code}")

        content_type = response.headers.get("content-type", "")
        if "html" not in content_type and "text" not in content_type:
            return ScrapeResponse(success=False, error=f"Unsupported content type: {content_type}")

        # Parsing is CPU-bound
        markdown = await asyncio.to_thread(html_to_markdown, response.text)
        logger.debug(f"Fetched via readability: {url}")
        return ScrapeResponse(success=True, markdown=markdown)


class ChainedScraper:
    """Try backends in order until one returns non-empty markdown."""

    def __init__(self, providers: list[ScrapeProvider]):
        if not providers:
            raise ValueError("At least one scrape provider required")
        self.providers = providers

    @property
    def name(self) -> str:
        return "+".join(p.name for p in self.providers)

    async def scrape(self, url: str, timeout: float, max_cache_age: float) -> ScrapeResponse:
        errors: list[str] = []

        for provider in self.providers:
            try:
                response = await provider.scrape(url, timeout, max_cache_age)
            except httpx.HTTPError as e:
                errors.append(f"{provider.name}: {type(e).__name__}: {e}")
                continue

            if response.success and response.markdown and response.markdown.strip():
                return response

            errors.append(f"{provider.name}: {response.error or 'empty content'}")
            logger.debug(f"Scrape backend {provider.name} gave nothing for {url}")

        return ScrapeResponse(success=False, error="; ".join(errors))
