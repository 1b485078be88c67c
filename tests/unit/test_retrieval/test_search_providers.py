"""
Tests for search providers and the search manager.

Provider HTTP is served by httpx.MockTransport.
"""

import json
from unittest.mock import MagicMock

import httpx
import pytest

from quarry.exceptions import SearchProviderError, SearchResponseError
from quarry.retrieval.search import (
    BraveSearchProvider,
    RawHit,
    SearchManager,
    SerperSearchProvider,
    TavilySearchProvider,
)


def _brave_payload(results):
    return {"type": "search", "web": {"results": results}}


def _brave_result(n: int) -> dict:
    return {
        "url": f"https://site{n}.example.com/page",
        "title": f"Result {n}",
        "meta_url": {"favicon": f"https://site{n}.example.com/favicon.ico"},
        "extra_snippets": [f"snippet {n}"],
        "thumbnail": {"original": f"https://img.example.com/{n}.jpg"},
    }


@pytest.mark.asyncio
async def test_brave_maps_results_and_sends_headers():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["token"] = request.headers["X-Subscription-Token"]
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=_brave_payload([_brave_result(1), _brave_result(2)]))

    provider = BraveSearchProvider(api_key="brave-key", transport=httpx.MockTransport(handler))
    hits = await provider.search("solid state batteries", result_count=5)

    assert seen["token"] == "brave-key"
    assert seen["params"]["q"] == "solid state batteries"
    assert seen["params"]["count"] == "5"
    assert [h.url for h in hits] == [
        "https://site1.example.com/page",
        "https://site2.example.com/page",
    ]
    assert hits[0].favicon == "https://site1.example.com/favicon.ico"
    assert hits[0].snippets == ["snippet 1"]
    assert hits[0].thumbnail == "https://img.example.com/1.jpg"


@pytest.mark.asyncio
async def test_brave_drops_malformed_entries():
    results = [
        _brave_result(1),
        {"title": "no url", "meta_url": {"favicon": "https://x.example.com/favicon.ico"}},
        {
            "url": "ftp://files.example.com",
            "title": "wrong scheme",
            "meta_url": {"favicon": "https://files.example.com/favicon.ico"},
        },
        "not an object",
        {"url": "https://nofavicon.example.com", "title": "no favicon"},
        {"url": "https://nullmeta.example.com", "title": "null meta", "meta_url": None},
        _brave_result(2),
    ]
    transport = httpx.MockTransport(lambda r: httpx.Response(200, json=_brave_payload(results)))
    provider = BraveSearchProvider(api_key="k", transport=transport)

    hits = await provider.search("q")

    assert [h.url for h in hits] == [
        "https://site1.example.com/page",
        "https://site2.example.com/page",
    ]


@pytest.mark.asyncio
async def test_brave_top_level_shape_mismatch_raises():
    transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"query": {"original": "q"}}))
    provider = BraveSearchProvider(api_key="k", transport=transport)

    with pytest.raises(SearchResponseError):
        await provider.search("q")


@pytest.mark.asyncio
async def test_brave_http_error_raises():
    transport = httpx.MockTransport(lambda r: httpx.Response(429, json={"error": "rate limited"}))
    provider = BraveSearchProvider(api_key="k", transport=transport)

    with pytest.raises(httpx.HTTPStatusError):
        await provider.search("q")


@pytest.mark.asyncio
async def test_serper_maps_organic_results():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body == {"q": "query", "num": 3}
        assert request.headers["X-API-KEY"] == "serper-key"
        return httpx.Response(
            200,
            json={
                "organic": [
                    {"link": "https://a.example.com", "title": "A", "snippet": "about a"},
                    {"link": "https://b.example.com", "title": "B"},
                ]
            },
        )

    provider = SerperSearchProvider(api_key="serper-key", transport=httpx.MockTransport(handler))
    hits = await provider.search("query", result_count=3)

    assert [h.title for h in hits] == ["A", "B"]
    assert hits[0].snippets == ["about a"]
    assert hits[1].snippets == []


@pytest.mark.asyncio
async def test_tavily_maps_results_and_passes_options():
    provider = TavilySearchProvider(api_key="tvly-test", search_depth="advanced")
    provider.client = MagicMock()
    provider.client.search.return_value = {
        "query": "fusion",
        "results": [
            {"url": "https://a.example.com", "title": "A", "content": "about a", "score": 0.9},
            {"title": "no url", "content": "dropped"},
            {"url": "https://b.example.com", "title": "B", "content": ""},
        ],
    }

    hits = await provider.search("fusion", result_count=4)

    provider.client.search.assert_called_once_with(query="fusion", max_results=4, search_depth="advanced")
    assert [h.url for h in hits] == ["https://a.example.com", "https://b.example.com"]
    assert hits[0].snippets == ["about a"]
    assert hits[1].snippets == []
    assert hits[0].favicon is None


@pytest.mark.asyncio
async def test_tavily_truncates_to_result_count():
    provider = TavilySearchProvider(api_key="tvly-test")
    provider.client = MagicMock()
    provider.client.search.return_value = {
        "results": [{"url": f"https://s{n}.example.com", "title": f"S{n}"} for n in range(5)]
    }

    hits = await provider.search("q", result_count=2)

    assert [h.title for h in hits] == ["S0", "S1"]


@pytest.mark.asyncio
async def test_tavily_shape_mismatch_raises():
    provider = TavilySearchProvider(api_key="tvly-test")
    provider.client = MagicMock()
    provider.client.search.return_value = {"answer": "no results key"}

    with pytest.raises(SearchResponseError):
        await provider.search("q")


class _StubProvider:
    def __init__(self, name, hits=None, error=None):
        self._name = name
        self.hits = hits or []
        self.error = error
        self.calls = 0

    @property
    def name(self):
        return self._name

    async def search(self, query, result_count=5):
        self.calls += 1
        if self.error:
            raise self.error
        return self.hits


@pytest.mark.asyncio
async def test_manager_falls_back_on_error():
    hit = RawHit(url="https://ok.example.com", title="ok")
    primary = _StubProvider("brave", error=httpx.ConnectError("down"))
    fallback = _StubProvider("serper", hits=[hit])

    hits = await SearchManager([primary, fallback]).search("q")

    assert hits == [hit]
    assert primary.calls == 1
    assert fallback.calls == 1


@pytest.mark.asyncio
async def test_manager_empty_result_is_not_a_failure():
    primary = _StubProvider("brave", hits=[])
    fallback = _StubProvider("serper", hits=[RawHit(url="https://x.example.com", title="x")])

    hits = await SearchManager([primary, fallback]).search("q")

    assert hits == []
    assert fallback.calls == 0


@pytest.mark.asyncio
async def test_manager_raises_when_all_fail():
    providers = [
        _StubProvider("brave", error=SearchResponseError("bad shape")),
        _StubProvider("serper", error=httpx.ReadTimeout("slow")),
    ]

    with pytest.raises(SearchProviderError) as exc_info:
        await SearchManager(providers).search("topic query")

    assert exc_info.value.query == "topic query"


@pytest.mark.asyncio
async def test_manager_without_fallback_stops_after_first_failure():
    primary = _StubProvider("brave", error=httpx.ConnectError("down"))
    fallback = _StubProvider("serper", hits=[])

    with pytest.raises(SearchProviderError):
        await SearchManager([primary, fallback], fallback_enabled=False).search("q")

    assert fallback.calls == 0


def test_manager_requires_providers():
    with pytest.raises(ValueError):
        SearchManager([])
