"""
Structured extraction from free model text.

A second, cheaper model call turns free-form output into JSON that is
validated against a Pydantic schema. Anything that does not validate
raises ExtractionError.
"""

import json
import logging
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from ..exceptions import ExtractionError
from .adapters.base import extract_json_from_text
from .protocol import ModelAdapter

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class StructuredExtractor:
    """Parses free text into a Pydantic model using a JSON-capable model."""

    def __init__(self, adapter: ModelAdapter, max_tokens: int = 2048):
        self.adapter = adapter
        self.max_tokens = max_tokens

    async def extract(self, text: str, schema: type[T], instructions: str) -> T:
        """
        Extract a value of the given shape from free text.

        Args:
            text: Free-form model output to parse
            schema: Expected shape
            instructions: What to extract

        Returns:
            Validated instance of schema

        Raises:
            ExtractionError: If the call fails or no valid value can be recovered
        """
        system_prompt = (
            f"{instructions}\n\n"
            "Respond with a single JSON object matching this JSON schema, and nothing else:\n"
            f"{json.dumps(schema.model_json_schema())}"
        )

        try:
            completion = await self.adapter.infer(system_prompt, text, max_tokens=self.max_tokens)
        except Exception as e:
            raise ExtractionError(f"Extraction call failed ({self.adapter.name}): {e}") from e

        return parse_structured(completion.text, schema)


def parse_structured(raw_text: str, schema: type[T]) -> T:
    """
    Validate the JSON object embedded in raw_text against schema.

    Raises:
        ExtractionError: If no JSON object is found or it does not validate
    """
    payload = extract_json_from_text(raw_text)
    if payload is None:
        logger.debug(f"No JSON object in extraction output: {raw_text[:200]}")
        raise ExtractionError(f"No JSON object found for {schema.__name__}")

    try:
        return schema.model_validate(payload)
    except ValidationError as e:
        raise ExtractionError(f"Output does not match {schema.__name__}: {e}") from e
