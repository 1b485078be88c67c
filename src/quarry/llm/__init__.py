"""Model-inference layer: adapter protocol, backends and structured extraction."""

from .extract import StructuredExtractor, parse_structured
from .protocol import Completion, ModelAdapter

__all__ = [
    "Completion",
    "ModelAdapter",
    "StructuredExtractor",
    "parse_structured",
]
