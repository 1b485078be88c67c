"""
Configuration loading and validation for quarry.

Loads quarry.toml files and validates settings using Pydantic.
"""

import os
import tomllib
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator


class BudgetConfig(BaseModel):
    """Resource budget for a single research job."""

    cycle_budget: int = Field(default=2, ge=0)  # Follow-up cycles after the initial search
    max_queries_per_cycle: int = Field(default=2, ge=1)
    max_sources: int = Field(default=5, ge=1)
    max_report_tokens: int = Field(default=8192, ge=1)


class ModelStageConfig(BaseModel):
    """Model backing one inference stage."""

    provider: Literal["anthropic", "openrouter", "together"]
    model: str
    api_key_env: str
    timeout_seconds: int = 300
    max_retries: int = 3


def _together(model: str) -> ModelStageConfig:
    return ModelStageConfig(provider="together", model=model, api_key_env="TOGETHER_API_KEY")


class ModelsConfig(BaseModel):
    """Per-stage model selection."""

    planning: ModelStageConfig = Field(
        default_factory=lambda: _together("Qwen/Qwen2.5-72B-Instruct-Turbo")
    )
    json_model: ModelStageConfig = Field(
        default_factory=lambda: _together("meta-llama/Meta-Llama-3.1-70B-Instruct-Turbo"),
        alias="json",
    )
    summary: ModelStageConfig = Field(
        default_factory=lambda: _together("meta-llama/Llama-3.3-70B-Instruct-Turbo")
    )
    summary_long: ModelStageConfig | None = Field(
        default_factory=lambda: _together("meta-llama/Llama-4-Scout-17B-16E-Instruct")
    )  # None: long pages use the summary model
    answer: ModelStageConfig = Field(
        default_factory=lambda: _together("deepseek-ai/DeepSeek-V3")
    )

    model_config = {"populate_by_name": True}


class SearchProviderConfig(BaseModel):
    """Configuration for a search provider."""

    name: Literal["brave", "serper", "tavily"]
    api_key_env: str
    priority: int = 1  # Lower number = tried first
    enabled: bool = True


class SearchConfig(BaseModel):
    """Multi-provider search configuration."""

    providers: list[SearchProviderConfig] = Field(
        default_factory=lambda: [
            SearchProviderConfig(name="brave", api_key_env="BRAVE_API_KEY")
        ]
    )
    result_count: int = Field(default=5, ge=1, le=20)
    fallback_enabled: bool = True

    @field_validator("providers")
    @classmethod
    def validate_at_least_one_provider(cls, v: list[SearchProviderConfig]) -> list[SearchProviderConfig]:
        """Ensure at least one provider is enabled."""
        if not v or all(not p.enabled for p in v):
            raise ValueError("At least one search provider must be enabled")
        return v


class ScrapeConfig(BaseModel):
    """Page scraping configuration."""

    providers: list[Literal["firecrawl", "jina", "direct"]] = Field(
        default_factory=lambda: ["firecrawl", "jina", "direct"]
    )
    timeout_seconds: float = Field(default=15.0, gt=0)
    max_cache_age_hours: float = Field(default=12.0, ge=0)
    max_concurrency: int = Field(default=8, ge=1)  # Process-wide scrape ceiling
    firecrawl_api_key_env: str = "FIRECRAWL_API_KEY"
    jina_api_key_env: str = "JINA_API_KEY"

    @field_validator("providers")
    @classmethod
    def validate_providers(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("At least one scrape provider must be configured")
        if len(set(v)) != len(v):
            raise ValueError("Scrape providers must not repeat")
        return v


class OrchestratorConfig(BaseModel):
    """Scheduler tuning beyond the per-job budget."""

    summarize_findings: bool = True
    summary_concurrency: int = Field(default=4, ge=1)
    long_page_threshold: int = Field(default=40_000, ge=1)


class StorageConfig(BaseModel):
    """Storage configuration."""

    db_path: Path = Path(".quarry/jobs.db")


class ResearchConfig(BaseModel):
    """Complete quarry configuration."""

    budget: BudgetConfig = Field(default_factory=BudgetConfig)
    models: ModelsConfig = Field(default_factory=ModelsConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    scrape: ScrapeConfig = Field(default_factory=ScrapeConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    def get_model_api_key(self, stage: ModelStageConfig) -> str:
        """
        Get the API key for a model stage from the environment.

        Raises:
            ValueError: If the key is missing
        """
        api_key = os.environ.get(stage.api_key_env)
        if not api_key:
            raise ValueError(
                f"API key not found in environment: {stage.api_key_env} "
                f"(required for {stage.provider}:{stage.model})"
            )
        return api_key

    def get_search_api_keys(self) -> dict[str, str | None]:
        """
        Get search provider API keys from environment.

        Returns:
            Dict mapping provider name to API key (None when unset)
        """
        return {
            provider.name: os.environ.get(provider.api_key_env)
            for provider in self.search.providers
            if provider.enabled
        }

    def get_scrape_api_keys(self) -> dict[str, str | None]:
        """Get scrape provider API keys from environment (None when unset)."""
        return {
            "firecrawl": os.environ.get(self.scrape.firecrawl_api_key_env),
            "jina": os.environ.get(self.scrape.jina_api_key_env),
        }


def load_config(config_path: Path) -> ResearchConfig:
    """
    Load research configuration from TOML file.

    Args:
        config_path: Path to quarry.toml

    Returns:
        Validated ResearchConfig

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "rb") as f:
        config_data = tomllib.load(f)

    try:
        config = ResearchConfig(**config_data)
    except Exception as e:
        raise ValueError(f"Invalid configuration: {e}") from e

    return config


def create_default_config(output_path: Path) -> None:
    """
    Write a quarry.toml configuration file with default settings.

    Args:
        output_path: Where to write quarry.toml
    """
    template = '''[budget]
cycle_budget = 2  # Follow-up cycles after the initial search
max_queries_per_cycle = 2
max_sources = 5
max_report_tokens = 8192

# Each stage can use a different provider: anthropic, openrouter or together
[models.planning]  # Planning, gap evaluation and source ranking
provider = "together"
model = "Qwen/Qwen2.5-72B-Instruct-Turbo"
api_key_env = "TOGETHER_API_KEY"

[models.json]  # Structured extraction
provider = "together"
model = "meta-llama/Meta-Llama-3.1-70B-Instruct-Turbo"
api_key_env = "TOGETHER_API_KEY"

[models.summary]
provider = "together"
model = "meta-llama/Llama-3.3-70B-Instruct-Turbo"
api_key_env = "TOGETHER_API_KEY"

[models.summary_long]
provider = "together"
model = "meta-llama/Llama-4-Scout-17B-16E-Instruct"
api_key_env = "TOGETHER_API_KEY"

[models.answer]
provider = "together"
model = "deepseek-ai/DeepSeek-V3"
api_key_env = "TOGETHER_API_KEY"

[search]
result_count = 5
fallback_enabled = true  # Automatic fallback to next provider on failure

[[search.providers]]
name = "brave"
api_key_env = "BRAVE_API_KEY"
priority = 1

[[search.providers]]
name = "serper"
api_key_env = "SERPER_API_KEY"
priority = 2
enabled = false

[scrape]
providers = ["firecrawl", "jina", "direct"]
timeout_seconds = 15
max_cache_age_hours = 12
max_concurrency = 8  # Shared by every job in the process

[orchestrator]
summarize_findings = true
summary_concurrency = 4
long_page_threshold = 40000

[storage]
db_path = ".quarry/jobs.db"
'''

    output_path.write_text(template, encoding="utf-8")
