from __future__ import annotations

"""Stream accumulation for one provider round-trip.

``DeltaThrottle`` turns a high-frequency stream of text deltas into a lower
frequency stream of ``content_delta`` / ``reasoning_delta`` events. It keeps
the full accumulated text and remembers how much of it has been sent, so each
flush emits exactly the unsent suffix. Text is never re-sent or reordered and
``drain`` always emits whatever is left when the stream ends.

``ToolCallAccumulator`` reassembles tool-call fragments into complete calls.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union
from uuid import uuid4

from ..schemas.domain import ToolCall
from ..schemas.events import ContentDeltaEvent, ReasoningDeltaEvent
from ..providers.base import StreamDelta, ToolCallFragment

logger = logging.getLogger(__name__)

TextDeltaEvent = Union[ContentDeltaEvent, ReasoningDeltaEvent]


class DeltaThrottle:
    """Accumulate streamed text and emit unsent suffixes at most every ``interval_ms``.

    Content and reasoning share one clock. The first delta of a stream is
    flushed immediately.

    Args:
        interval_ms: Minimum time between two flushes, in milliseconds.
        clock: Monotonic clock in seconds; injectable for tests.
    """

    def __init__(self, interval_ms: int = 50, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._interval = interval_ms / 1000.0
        self._clock = clock
        self._last_flush: Optional[float] = None
        self._content: List[str] = []
        self._reasoning: List[str] = []
        self._content_len = 0
        self._reasoning_len = 0
        self._content_sent = 0
        self._reasoning_sent = 0

    @property
    def content(self) -> str:
        return "".join(self._content)

    @property
    def reasoning(self) -> str:
        return "".join(self._reasoning)

    def feed(self, delta: StreamDelta) -> list[TextDeltaEvent]:
        """Add one delta's text and return the events due now (possibly none)."""
        if delta.content:
            self._content.append(delta.content)
            self._content_len += len(delta.content)
        if delta.reasoning_content:
            self._reasoning.append(delta.reasoning_content)
            self._reasoning_len += len(delta.reasoning_content)
        if not delta.content and not delta.reasoning_content:
            return []

        now = self._clock()
        if self._last_flush is not None and now - self._last_flush < self._interval:
            return []
        self._last_flush = now
        return self._unsent()

    def drain(self) -> list[TextDeltaEvent]:
        """Emit any text not yet sent. Called once when the stream ends."""
        return self._unsent()

    def _unsent(self) -> list[TextDeltaEvent]:
        events: list[TextDeltaEvent] = []
        if self._content_len > self._content_sent:
            events.append(ContentDeltaEvent(delta=self.content[self._content_sent :]))
            self._content_sent = self._content_len
        if self._reasoning_len > self._reasoning_sent:
            events.append(ReasoningDeltaEvent(delta=self.reasoning[self._reasoning_sent :]))
            self._reasoning_sent = self._reasoning_len
        return events


@dataclass
class _Slot:
    index: Optional[int]
    id: Optional[str] = None
    name: str = ""
    arguments: List[str] = field(default_factory=list)


class ToolCallAccumulator:
    """Merge streamed tool-call fragments into complete tool calls.

    Fragments are matched to a slot by ``id`` when they carry one, otherwise by
    ``index``. A fragment bringing a new ``id`` to an index already owned by a
    different id opens a new slot instead of corrupting the existing call.
    Fragments with neither extend the most recent slot.
    """

    def __init__(self) -> None:
        self._slots: List[_Slot] = []
        self._by_id: Dict[str, _Slot] = {}
        self._by_index: Dict[int, _Slot] = {}

    def add(self, fragment: ToolCallFragment) -> None:
        slot = self._resolve(fragment)
        if fragment.name:
            slot.name = fragment.name
        if fragment.arguments:
            slot.arguments.append(fragment.arguments)

    def _resolve(self, fragment: ToolCallFragment) -> _Slot:
        if fragment.id:
            slot = self._by_id.get(fragment.id)
            if slot is not None:
                return slot
            at_index = self._by_index.get(fragment.index) if fragment.index is not None else None
            if at_index is not None and at_index.id is None:
                slot = at_index
            else:
                slot = self._open(fragment.index)
            slot.id = fragment.id
            self._by_id[fragment.id] = slot
            return slot

        if fragment.index is not None:
            slot = self._by_index.get(fragment.index)
            return slot if slot is not None else self._open(fragment.index)
        return self._slots[-1] if self._slots else self._open(None)

    def _open(self, index: Optional[int]) -> _Slot:
        slot = _Slot(index=index)
        self._slots.append(slot)
        if index is not None:
            self._by_index[index] = slot
        return slot

    def build(self) -> list[ToolCall]:
        """Finalize the accumulated calls in the order they were first seen.

        Nameless slots are dropped, missing ids are generated, and argument
        text that is not a JSON object is replaced by ``{}``.
        """
        calls: list[ToolCall] = []
        for slot in self._slots:
            if not slot.name:
                continue
            raw = "".join(slot.arguments).strip()
            arguments = "{}"
            if raw:
                try:
                    parsed = json.loads(raw)
                except json.JSONDecodeError as exc:
                    logger.warning("Could not parse arguments of tool call %s (%s): %s", slot.name, slot.id, exc)
                else:
                    if isinstance(parsed, dict):
                        arguments = json.dumps(parsed, ensure_ascii=False)
                    else:
                        logger.warning("Arguments of tool call %s are not a JSON object", slot.name)
            calls.append(ToolCall(id=slot.id or f"call_{uuid4().hex[:24]}", name=slot.name, arguments=arguments))
        return calls
