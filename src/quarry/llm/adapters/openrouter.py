"""
OpenAI-compatible chat completions adapter.

Serves both OpenRouter and Together, which expose the same
/chat/completions API under different base URLs.
"""

import logging
import time
from typing import Any

import httpx

from ...exceptions import ModelAuthenticationError
from ..protocol import Completion
from .base import BaseAdapter

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
TOGETHER_BASE_URL = "https://api.together.xyz/v1"


class OpenRouterAdapter(BaseAdapter):
    """
    Adapter for OpenAI-compatible chat APIs.

    Pass base_url=TOGETHER_BASE_URL (and provider="Together") to talk to
    Together instead of OpenRouter.
    """

    def __init__(
        self,
        model: str,
        api_key: str,
        timeout: int = 300,
        max_retries: int = 3,
        base_url: str = OPENROUTER_BASE_URL,
        provider: str = "OpenRouter",
        api_key_env: str = "OPENROUTER_API_KEY",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(model, api_key, max_retries)
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self.provider = provider
        self.api_key_env = api_key_env
        self._transport = transport

    async def _post(self, messages: list[dict[str, Any]], max_tokens: int) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            return await client.post(
                f"{self.base_url}/chat/completions",
                headers=self._headers(),
                json={
                    "model": self.model,
                    "messages": messages,
                    "max_tokens": max_tokens,
                    "temperature": 0.7,
                },
            )

    @property
    def name(self) -> str:
        return f"{self.provider.lower()}:{self.model}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "HTTP-Referer": "https://github.com/quarry-research/quarry",
            "X-Title": "Quarry Research",
        }

    async def infer(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 4096,
    ) -> Completion:
        start_time = time.monotonic()

        messages: list[dict[str, Any]] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]

        response = await self._with_retry(self._post, messages, max_tokens)

        if response.status_code in (401, 403):
            raise ModelAuthenticationError(self.provider, self.api_key_env)
        if response.status_code != 200:
            raise RuntimeError(
                f"{self.provider} API error ({response.status_code}): {response.text[:500]}"
            )

        result = response.json()

        usage = result.get("usage") or {}
        input_tokens = usage.get("prompt_tokens", 0)
        output_tokens = usage.get("completion_tokens", 0)

        choice = result["choices"][0]
        text = choice["message"].get("content") or ""

        if choice.get("finish_reason") == "length":
            logger.warning(f"[{self.name}] Hit max tokens limit ({max_tokens})")

        return Completion(
            text=text,
            model=self.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=self._calculate_cost(input_tokens, output_tokens),
            duration_seconds=time.monotonic() - start_time,
        )
