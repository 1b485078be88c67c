"""Model adapters for multiple LLM providers."""

from .anthropic import AnthropicAdapter
from .openrouter import OPENROUTER_BASE_URL, TOGETHER_BASE_URL, OpenRouterAdapter

__all__ = ["AnthropicAdapter", "OpenRouterAdapter", "OPENROUTER_BASE_URL", "TOGETHER_BASE_URL"]
