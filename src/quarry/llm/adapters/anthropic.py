"""Anthropic Claude adapter."""

import logging
import time

import anthropic

from ...exceptions import ModelAuthenticationError
from ..protocol import Completion
from .base import RETRYABLE_ERRORS, BaseAdapter

logger = logging.getLogger(__name__)


class AnthropicAdapter(BaseAdapter):
    """Adapter for Anthropic Claude models."""

    # APITimeoutError subclasses APIConnectionError
    retryable_errors = RETRYABLE_ERRORS + (anthropic.APIConnectionError,)

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
        timeout: int = 300,
        max_retries: int = 3,
        api_key_env: str = "ANTHROPIC_API_KEY",
    ):
        """
        Initialize Anthropic adapter.

        Args:
            model: Model identifier
            api_key: API key
            timeout: Request timeout in seconds
            max_retries: Attempts for connection failures
            api_key_env: Env var name reported on authentication failure
        """
        super().__init__(model, api_key, max_retries)

        if not api_key:
            raise ValueError("api_key required for Anthropic adapter")

        # Retries are handled by _with_retry
        self.client = anthropic.AsyncAnthropic(api_key=api_key, max_retries=0)
        self.timeout = timeout
        self.api_key_env = api_key_env

    @property
    def name(self) -> str:
        return f"anthropic:{self.model}"

    async def infer(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 4096,
    ) -> Completion:
        start_time = time.monotonic()

        try:
            response = await self._with_retry(
                self.client.messages.create,
                model=self.model,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                max_tokens=max_tokens,
                timeout=self.timeout,
            )
        except anthropic.AuthenticationError as e:
            raise ModelAuthenticationError("Anthropic", self.api_key_env) from e
        except anthropic.APIConnectionError as e:
            raise ConnectionError(str(e)) from e

        text = "".join(block.text for block in response.content if getattr(block, "type", "") == "text")

        if response.stop_reason == "max_tokens":
            logger.warning(f"[{self.name}] Hit max tokens limit ({max_tokens})")

        input_tokens = response.usage.input_tokens
        output_tokens = response.usage.output_tokens

        return Completion(
            text=text,
            model=self.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=self._calculate_cost(input_tokens, output_tokens),
            duration_seconds=time.monotonic() - start_time,
        )
