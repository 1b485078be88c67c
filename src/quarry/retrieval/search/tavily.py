"""Tavily search provider."""

import asyncio
import logging
from typing import Any

from tavily import TavilyClient

from .base import RawHit, parse_hits, require_list

logger = logging.getLogger(__name__)


class TavilySearchProvider:
    """Tavily search provider."""

    def __init__(self, api_key: str, search_depth: str = "basic"):
        """
        Initialize Tavily provider.

        Args:
            api_key: Tavily API key
            search_depth: "basic" or "advanced"
        """
        self.client = TavilyClient(api_key=api_key)
        self.search_depth = search_depth
        self._name = "tavily"

    @property
    def name(self) -> str:
        return self._name

    @staticmethod
    def _to_hit(entry: dict[str, Any]) -> dict[str, Any]:
        content = entry.get("content")
        return {
            "url": entry["url"],
            "title": entry["title"],
            "snippets": [content] if content else [],
        }

    async def search(self, query: str, result_count: int = 5) -> list[RawHit]:
        """Execute Tavily search."""
        # TavilyClient is synchronous; keep it off the event loop
        response = await asyncio.to_thread(
            self.client.search,
            query=query,
            max_results=result_count,
            search_depth=self.search_depth,
        )

        entries = require_list(response, "results")
        return parse_hits(entries, self._to_hit, self.name)[:result_count]
