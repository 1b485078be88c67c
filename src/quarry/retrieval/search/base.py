"""
Base search provider protocol and manager.

Providers return RawHit lists parsed from their native responses. A response
whose top-level shape is wrong raises SearchResponseError; individual entries
that fail validation are dropped.
"""

import logging
from typing import Any, Callable, Protocol

from pydantic import BaseModel, Field, ValidationError, field_validator

from ...exceptions import SearchProviderError, SearchResponseError

logger = logging.getLogger(__name__)


class RawHit(BaseModel):
    """A search result not yet known to contain usable content."""

    url: str
    title: str
    favicon: str | None = None
    snippets: list[str] = Field(default_factory=list)
    thumbnail: str | None = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Not an http(s) URL: {v!r}")
        return v


def parse_hits(
    entries: list[Any],
    to_hit: Callable[[dict[str, Any]], dict[str, Any]],
    provider: str,
) -> list[RawHit]:
    """
    Validate provider entries into RawHits, dropping the malformed ones.

    Args:
        entries: Raw result entries from the provider response
        to_hit: Maps one native entry to RawHit fields
        provider: Provider name for logging

    Returns:
        Valid hits in provider order
    """
    hits: list[RawHit] = []
    for entry in entries:
        try:
            if not isinstance(entry, dict):
                raise TypeError(f"expected object, got {type(entry).__name__}")
            hits.append(RawHit.model_validate(to_hit(entry)))
        except (ValidationError, TypeError, KeyError, AttributeError) as e:
            logger.debug(f"Dropping malformed {provider} result: {e}")

    dropped = len(entries) - len(hits)
    if dropped:
        logger.info(f"{provider}: dropped {dropped} malformed result(s)")
    return hits


def require_list(data: Any, *path: str) -> list[Any]:
    """
    Walk a JSON response along path and return the list found there.

    Raises:
        SearchResponseError: If any step is missing or the leaf is not a list
    """
    node = data
    for key in path:
        if not isinstance(node, dict) or key not in node:
            raise SearchResponseError(f"Response missing '{'.'.join(path)}'")
        node = node[key]
    if not isinstance(node, list):
        raise SearchResponseError(f"Response field '{'.'.join(path)}' is not a list")
    return node


class SearchProvider(Protocol):
    """Protocol for search providers."""

    @property
    def name(self) -> str:
        """Provider name (brave, serper, tavily)."""
        ...

    async def search(self, query: str, result_count: int = 5) -> list[RawHit]:
        """
        Execute search and return validated hits.

        Raises:
            SearchResponseError: If the top-level response shape is wrong
            httpx.HTTPError: On transport failure
        """
        ...


class SearchManager:
    """Manages multiple search providers with fallback."""

    def __init__(
        self,
        providers: list[SearchProvider],
        fallback_enabled: bool = True,
    ):
        """
        Initialize search manager.

        Args:
            providers: List of search providers (in priority order)
            fallback_enabled: Enable automatic fallback on failure
        """
        if not providers:
            raise ValueError("At least one search provider required")
        self.providers = providers
        self.fallback_enabled = fallback_enabled

    async def search(self, query: str, result_count: int = 5) -> list[RawHit]:
        """
        Search using providers with automatic fallback.

        An empty result is returned as-is; only errors move on to the next
        provider.

        Raises:
            SearchProviderError: If every provider tried failed
        """
        last_error: Exception | None = None

        for provider in self.providers:
            try:
                logger.debug(f"Trying search provider: {provider.name}")
                hits = await provider.search(query, result_count)
                logger.info(f"Search via {provider.name}: {len(hits)} hits for '{query[:50]}'")
                return hits

            except Exception as e:
                logger.warning(f"Search failed for {provider.name}: {e}")
                last_error = e

                if not self.fallback_enabled:
                    break

        raise SearchProviderError(query, f"all providers failed, last error: {last_error}") from last_error
