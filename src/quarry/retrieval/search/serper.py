"""Serper search provider (Google results)."""

import logging
from typing import Any

import httpx

from .base import RawHit, parse_hits, require_list

logger = logging.getLogger(__name__)


class SerperSearchProvider:
    """Serper.dev search provider (Google results)."""

    def __init__(self, api_key: str, transport: httpx.AsyncBaseTransport | None = None):
        """
        Initialize Serper provider.

        Args:
            api_key: Serper API key
            transport: Optional httpx transport (tests)
        """
        self.api_key = api_key
        self.url = "https://google.serper.dev/search"
        self._transport = transport
        self._name = "serper"

    @property
    def name(self) -> str:
        return self._name

    @staticmethod
    def _to_hit(entry: dict[str, Any]) -> dict[str, Any]:
        snippet = entry.get("snippet")
        return {
            "url": entry["link"],
            "title": entry["title"],
            "snippets": [snippet] if snippet else [],
            "thumbnail": entry.get("imageUrl"),
        }

    async def search(self, query: str, result_count: int = 5) -> list[RawHit]:
        """Execute Serper search."""
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(
                self.url,
                headers={"X-API-KEY": self.api_key},
                json={"q": query, "num": result_count},
                timeout=30.0,
            )

            response.raise_for_status()
            data = response.json()

        entries = require_list(data, "organic")
        return parse_hits(entries, self._to_hit, self.name)[:result_count]
