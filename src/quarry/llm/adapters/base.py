"""
Base adapter utilities shared across all LLM adapters.

Provides:
- Retry logic with exponential backoff
- Cost calculation
- JSON extraction from model text
"""

import json
import logging
import re
from typing import Any, Awaitable, Callable, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Only transport-level failures are retried; everything else surfaces at once
RETRYABLE_ERRORS = (ConnectionError, TimeoutError, httpx.ConnectError, httpx.TimeoutException)


class BaseAdapter:
    """Base class with shared adapter utilities."""

    # Subclasses add their SDK's transport errors
    retryable_errors: tuple[type[BaseException], ...] = RETRYABLE_ERRORS

    # Model pricing (per 1M tokens)
    PRICING = {
        # Anthropic
        "claude-sonnet-4-20250514": {"input": 3.0, "output": 15.0},
        "claude-3-5-haiku-20241022": {"input": 0.8, "output": 4.0},
        # Together
        "Qwen/Qwen2.5-72B-Instruct-Turbo": {"input": 1.2, "output": 1.2},
        "meta-llama/Meta-Llama-3.1-70B-Instruct-Turbo": {"input": 0.88, "output": 0.88},
        "meta-llama/Llama-3.3-70B-Instruct-Turbo": {"input": 0.88, "output": 0.88},
        "meta-llama/Llama-4-Scout-17B-16E-Instruct": {"input": 0.18, "output": 0.59},
        "deepseek-ai/DeepSeek-V3": {"input": 1.25, "output": 1.25},
        # Default fallback
        "default": {"input": 1.0, "output": 3.0},
    }

    def __init__(self, model: str, api_key: str | None = None, max_retries: int = 3):
        """
        Initialize base adapter.

        Args:
            model: Model identifier
            api_key: API key for authentication
            max_retries: Attempts for transport-level failures
        """
        self.model = model
        self.api_key = api_key
        self.max_retries = max_retries

    async def _with_retry(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """
        Execute function with exponential backoff retry.

        Returns:
            Result from func

        Raises:
            Last exception if all retries fail
        """
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(self.retryable_errors),
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=1, min=2, max=10),
            reraise=True,
        ):
            with attempt:
                logger.debug(f"Attempt {attempt.retry_state.attempt_number}/{self.max_retries}")
                return await func(*args, **kwargs)

        # Unreachable with reraise=True
        raise RuntimeError("Retry logic failed unexpectedly")

    def _calculate_cost(self, input_tokens: int, output_tokens: int) -> float:
        """
        Calculate API cost based on token usage.

        Returns:
            Cost in USD
        """
        pricing = self.PRICING.get(self.model, self.PRICING["default"])

        input_cost = (input_tokens / 1_000_000) * pricing["input"]
        output_cost = (output_tokens / 1_000_000) * pricing["output"]

        return input_cost + output_cost


def extract_json_from_text(text: str) -> dict[str, Any] | None:
    """
    Extract JSON object from text (handles markdown code blocks).

    Args:
        text: Text potentially containing JSON

    Returns:
        Parsed JSON dict or None if not found
    """
    json_match = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", text, re.DOTALL)
    if json_match:
        try:
            return json.loads(json_match.group(1))
        except json.JSONDecodeError:
            pass

    json_match = re.search(r"\{.*\}", text, re.DOTALL)
    if json_match:
        try:
            parsed = json.loads(json_match.group(0))
            return parsed if isinstance(parsed, dict) else None
        except json.JSONDecodeError:
            pass

    return None
