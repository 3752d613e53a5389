from __future__ import annotations

"""Model provider adapter contract.

A provider adapter streams one chat-completion round-trip as a sequence of
``StreamDelta`` objects. Tool calls arrive as raw fragments: a fragment may
carry only an ``index``, only an ``id``, a partial name or a slice of the
arguments text. Reassembling fragments is the engine's job, not the adapter's.
"""

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, List, Optional, Protocol, Sequence

from ..schemas.domain import Message


@dataclass(frozen=True)
class ProviderOptions:
    temperature: float = 0.7
    max_tokens: int = 4096


@dataclass(frozen=True)
class ToolCallFragment:
    index: Optional[int] = None
    id: Optional[str] = None
    name: Optional[str] = None
    arguments: Optional[str] = None


@dataclass(frozen=True)
class StreamDelta:
    content: Optional[str] = None
    reasoning_content: Optional[str] = None
    tool_calls: List[ToolCallFragment] = field(default_factory=list)


class ProviderAdapter(Protocol):
    def stream_chat(
        self,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
        options: ProviderOptions,
    ) -> AsyncIterator[StreamDelta]:
        """
        Stream one model round-trip.

        Args:
            messages: The full ordered history, system messages first.
            tools: Function schemas of the available tools.
            options: Sampling options.

        Returns:
            An async iterator of deltas, ending when the model finishes.
        """
        ...
