"""Model provider adapters."""

from .base import ProviderAdapter, ProviderOptions, StreamDelta, ToolCallFragment
from .openai_compatible import OpenAICompatibleProvider, ProviderError, parse_sse_line

__all__ = [
    "ProviderAdapter",
    "ProviderOptions",
    "StreamDelta",
    "ToolCallFragment",
    "OpenAICompatibleProvider",
    "ProviderError",
    "parse_sse_line",
]
