"""
Protocol definitions for model adapters.

Every model-inference use site (planning, evaluation, summarization,
ranking, synthesis) talks to a ModelAdapter, so each stage can be backed
by a different provider or by a deterministic stub in tests.
"""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass
class Completion:
    """Free text produced by one model call, with usage metadata."""

    text: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0
    duration_seconds: float = 0.0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@runtime_checkable
class ModelAdapter(Protocol):
    """
    Protocol for LLM adapters.

    Any chat model can back a research stage by implementing this protocol.
    """

    @property
    def name(self) -> str:
        """Human-readable adapter name (e.g., 'together:deepseek-ai/DeepSeek-V3')."""
        ...

    async def infer(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 4096,
    ) -> Completion:
        """
        Run one completion.

        Args:
            system_prompt: System-level instructions
            user_prompt: Stage input
            max_tokens: Output token cap

        Returns:
            Completion with the model's text

        Raises:
            ModelAuthenticationError: If the provider rejects the credentials
            Exception: Any other provider or transport failure
        """
        ...
