"""
Runtime wiring: build a ResearchOrchestrator from a ResearchConfig.

Shared by the CLI and the web JobRunner. Missing API keys fail here, before
any job starts.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from .config import ModelStageConfig, ResearchConfig
from .jobs.store import JobStore
from .llm import ModelAdapter, StructuredExtractor
from .orchestrator import (
    FanOutEngine,
    FindingSummarizer,
    GapEvaluator,
    ReportSynthesizer,
    ResearchOrchestrator,
    ResearchPlanner,
    SourceSelector,
    configure_scrape_concurrency,
    get_scrape_limiter,
)
from .retrieval.gateway import FetcherGateway
from .retrieval.scrape import (
    ChainedScraper,
    DirectFetchScraper,
    FirecrawlScraper,
    JinaReaderScraper,
    ScrapeProvider,
)
from .retrieval.search import (
    BraveSearchProvider,
    SearchManager,
    SearchProvider,
    SerperSearchProvider,
    TavilySearchProvider,
)

logger = logging.getLogger(__name__)


def create_adapter(stage: ModelStageConfig, config: ResearchConfig) -> ModelAdapter:
    """
    Create the model adapter for one stage.

    Raises:
        ValueError: If the stage's API key is missing or the provider is unknown
    """
    from .llm.adapters.anthropic import AnthropicAdapter
    from .llm.adapters.openrouter import OPENROUTER_BASE_URL, TOGETHER_BASE_URL, OpenRouterAdapter

    api_key = config.get_model_api_key(stage)

    if stage.provider == "anthropic":
        return AnthropicAdapter(
            model=stage.model,
            api_key=api_key,
            timeout=stage.timeout_seconds,
            max_retries=stage.max_retries,
            api_key_env=stage.api_key_env,
        )
    if stage.provider == "openrouter":
        return OpenRouterAdapter(
            model=stage.model,
            api_key=api_key,
            timeout=stage.timeout_seconds,
            max_retries=stage.max_retries,
            base_url=OPENROUTER_BASE_URL,
            provider="OpenRouter",
            api_key_env=stage.api_key_env,
        )
    if stage.provider == "together":
        return OpenRouterAdapter(
            model=stage.model,
            api_key=api_key,
            timeout=stage.timeout_seconds,
            max_retries=stage.max_retries,
            base_url=TOGETHER_BASE_URL,
            provider="Together",
            api_key_env=stage.api_key_env,
        )
    raise ValueError(f"Unsupported provider: {stage.provider}")


def create_search_manager(config: ResearchConfig) -> SearchManager:
    """
    Build the search manager from enabled providers that have API keys.

    Raises:
        ValueError: If no provider is usable
    """
    search_api_keys = config.get_search_api_keys()
    provider_classes: dict[str, Any] = {
        "brave": BraveSearchProvider,
        "serper": SerperSearchProvider,
        "tavily": TavilySearchProvider,
    }

    providers: list[SearchProvider] = []
    for provider in sorted(config.search.providers, key=lambda p: p.priority):
        if not provider.enabled:
            continue
        api_key = search_api_keys.get(provider.name)
        if not api_key:
            logger.warning(f"Skipping search provider {provider.name}: {provider.api_key_env} not set")
            continue
        providers.append(provider_classes[provider.name](api_key=api_key))

    if not providers:
        raise ValueError("No search providers configured with valid API keys")

    return SearchManager(providers, fallback_enabled=config.search.fallback_enabled)


def create_scraper(config: ResearchConfig) -> ScrapeProvider:
    """
    Build the scrape chain in configured order.

    Firecrawl is skipped without an API key; Jina works without one.

    Raises:
        ValueError: If no backend is usable
    """
    keys = config.get_scrape_api_keys()
    backends: list[ScrapeProvider] = []

    for name in config.scrape.providers:
        if name == "firecrawl":
            if not keys["firecrawl"]:
                logger.warning(
                    f"Skipping Firecrawl: {config.scrape.firecrawl_api_key_env} not set"
                )
                continue
            backends.append(FirecrawlScraper(api_key=keys["firecrawl"]))
        elif name == "jina":
            backends.append(JinaReaderScraper(api_key=keys["jina"]))
        elif name == "direct":
            backends.append(DirectFetchScraper())

    if not backends:
        raise ValueError("No scrape providers available")

    return backends[0] if len(backends) == 1 else ChainedScraper(backends)


def create_gateway(config: ResearchConfig) -> FetcherGateway:
    return FetcherGateway(
        search_manager=create_search_manager(config),
        scraper=create_scraper(config),
        result_count=config.search.result_count,
        scrape_timeout=config.scrape.timeout_seconds,
        max_cache_age=config.scrape.max_cache_age_hours * 3600,
    )


def create_orchestrator(
    config: ResearchConfig,
    store: JobStore | None = None,
    event_callback: Callable[[dict[str, Any]], Awaitable[None]] | None = None,
) -> ResearchOrchestrator:
    """
    Wire every stage of a research run.

    Args:
        config: Loaded configuration
        store: Optional job store the scheduler writes through
        event_callback: Optional lifecycle event sink

    Returns:
        Ready-to-use ResearchOrchestrator

    Raises:
        ValueError: If a required API key or provider is missing
    """
    if get_scrape_limiter().limit != config.scrape.max_concurrency:
        configure_scrape_concurrency(config.scrape.max_concurrency)

    models = config.models
    planning = create_adapter(models.planning, config)
    extractor = StructuredExtractor(create_adapter(models.json_model, config))

    summarizer = None
    if config.orchestrator.summarize_findings:
        summary = create_adapter(models.summary, config)
        summary_long = create_adapter(models.summary_long, config) if models.summary_long else None
        summarizer = FindingSummarizer(
            adapter=summary,
            long_adapter=summary_long,
            concurrency=config.orchestrator.summary_concurrency,
            long_page_threshold=config.orchestrator.long_page_threshold,
        )

    return ResearchOrchestrator(
        engine=FanOutEngine(create_gateway(config)),
        planner=ResearchPlanner(planning, extractor),
        evaluator=GapEvaluator(planning, extractor),
        selector=SourceSelector(planning, extractor),
        synthesizer=ReportSynthesizer(create_adapter(models.answer, config)),
        summarizer=summarizer,
        store=store,
        event_callback=event_callback,
    )
