"""Brave search provider."""

import logging
from typing import Any

import httpx

from .base import RawHit, parse_hits, require_list

logger = logging.getLogger(__name__)


class BraveSearchProvider:
    """Brave web search (primary provider)."""

    def __init__(self, api_key: str, transport: httpx.AsyncBaseTransport | None = None):
        """
        Initialize Brave provider.

        Args:
            api_key: Brave API key
            transport: Optional httpx transport (tests)
        """
        self.api_key = api_key
        self.base_url = "https://api.search.brave.com/res/v1/web/search"
        self._transport = transport
        self._name = "brave"

    @property
    def name(self) -> str:
        return self._name

    @staticmethod
    def _to_hit(entry: dict[str, Any]) -> dict[str, Any]:
        # Entries without a site favicon are not usable as sources
        favicon = entry["meta_url"]["favicon"]
        if not isinstance(favicon, str) or not favicon:
            raise KeyError("meta_url.favicon")
        thumbnail = entry.get("thumbnail") or {}
        return {
            "url": entry["url"],
            "title": entry["title"],
            "favicon": favicon,
            "snippets": entry.get("extra_snippets") or [],
            "thumbnail": thumbnail.get("original"),
        }

    async def search(self, query: str, result_count: int = 5) -> list[RawHit]:
        """Execute Brave search."""
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.get(
                self.base_url,
                headers={
                    "Accept": "application/json",
                    "X-Subscription-Token": self.api_key,
                },
                params={"q": query, "count": result_count, "result_filter": "web"},
                timeout=30.0,
            )

            response.raise_for_status()
            data = response.json()

        entries = require_list(data, "web", "results")
        return parse_hits(entries, self._to_hit, self.name)[:result_count]
