"""Folds protocol events into a single growing response text.

The accumulator owns the text normalization policy and the interpretation
of ``data`` payloads for both stream dialects:

- TEXT: payloads are plain text fragments. ``{}`` noise markers are
  stripped, bare model-name echoes are dropped, and fragments are joined
  with a single space when neither side brings its own whitespace.
- DELTA: payloads are ``{"choices": [{"delta": {"content": ...}}]}``
  chunks. Content is appended verbatim since tokens carry their own spacing.
- AUTO: the dialect is pinned by the first metadata event that names it,
  otherwise each chunk is sniffed.
"""

import json
import logging
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

from pydantic import BaseModel, ConfigDict

from docchat.models.schemas import StreamDialect
from docchat.streaming.events import DataChunk, Done, Metadata, ProtocolEvent

logger = logging.getLogger(__name__)

NOISE_MARKER = "{}"
DELTA_DONE_SENTINEL = "[DONE]"


class AccumulationState(BaseModel):
    """Snapshot of the response text.

    Attributes:
        text: Text accumulated so far; only ever grows.
        terminal: True once the stream signalled Done. No appends follow.
    """

    model_config = ConfigDict(frozen=True)

    text: str = ""
    terminal: bool = False


class IncompleteStreamError(Exception):
    """Raised when the event sequence ends without a Done event.

    Attributes:
        partial_text: Text accumulated before the stream ended.
    """

    def __init__(self, partial_text: str) -> None:
        super().__init__("Stream ended before the response was complete")
        self.partial_text = partial_text


class AccumulatorClosedError(Exception):
    """Raised when an event is applied after the terminal snapshot."""


def join_text(existing: str, fragment: str) -> str:
    """Append a fragment, inserting one space only between two words."""
    if not fragment:
        return existing
    if existing and not existing[-1].isspace() and not fragment[0].isspace():
        return f"{existing} {fragment}"
    return existing + fragment


def _load_json_object(text: str) -> dict[str, Any] | None:
    if not text.startswith("{"):
        return None
    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def extract_text_fragment(payload: str) -> str | None:
    """Interpret a flat-text payload.

    Returns:
        Text to append (noise markers removed), or None when the payload
        is a model-name echo without content.
    """
    obj = _load_json_object(payload)
    if obj is not None and "model" in obj and "content" not in obj:
        return None
    return payload.replace(NOISE_MARKER, "")


def extract_delta_content(payload: str) -> str | None:
    """Interpret a delta-dialect payload.

    Returns:
        Concatenated ``delta.content`` of all choices, or None when the chunk
        carries no content (role-only deltas, finish chunks, bad JSON).
    """
    obj = _load_json_object(payload)
    if obj is None:
        logger.debug(f"Dropping non-JSON delta chunk: {payload[:80]!r}")
        return None

    choices = obj.get("choices")
    if not isinstance(choices, list):
        return None

    parts: list[str] = []
    for choice in choices:
        delta = choice.get("delta") if isinstance(choice, dict) else None
        content = delta.get("content") if isinstance(delta, dict) else None
        if isinstance(content, str):
            parts.append(content)
    return "".join(parts) or None


def _dialect_from_metadata(payload: Any) -> StreamDialect | None:
    if not isinstance(payload, dict):
        return None
    declared = payload.get("dialect")
    if declared in (StreamDialect.TEXT.value, StreamDialect.DELTA.value):
        return StreamDialect(declared)
    obj = payload.get("object")
    if isinstance(obj, str) and obj.startswith("chat.completion"):
        return StreamDialect.DELTA
    return None


def _looks_like_delta(payload: str) -> bool:
    if payload == DELTA_DONE_SENTINEL:
        return True
    obj = _load_json_object(payload)
    return obj is not None and "choices" in obj


class StreamAccumulator:
    """Accumulates one streaming response.

    ``state`` is readable at any time, so the text received so far is
    available even when the stream fails.
    """

    def __init__(self, dialect: StreamDialect = StreamDialect.TEXT) -> None:
        self._dialect = dialect
        self._state = AccumulationState()
        self.metadata: list[Any] = []

    @property
    def state(self) -> AccumulationState:
        return self._state

    @property
    def dialect(self) -> StreamDialect:
        return self._dialect

    def apply(self, event: ProtocolEvent) -> AccumulationState | None:
        """Fold one event into the state.

        Returns:
            The new snapshot if the event changed the state, else None.

        Raises:
            AccumulatorClosedError: If the state is already terminal.
        """
        if self._state.terminal:
            raise AccumulatorClosedError("Accumulator already received Done")

        if isinstance(event, Metadata):
            self._record_metadata(event.payload)
            return None
        if isinstance(event, Done):
            return self._finish()
        if isinstance(event, DataChunk):
            return self._append(event.text)
        raise TypeError(f"Unsupported stream event: {event!r}")

    async def snapshots(self, events: AsyncIterable[ProtocolEvent]) -> AsyncIterator[AccumulationState]:
        """Yield a snapshot for every state change until Done.

        Stops pulling events once the terminal snapshot is yielded.

        Raises:
            IncompleteStreamError: If the events end before Done.
        """
        async for event in events:
            snapshot = self.apply(event)
            if snapshot is not None:
                yield snapshot
            if self._state.terminal:
                return
        raise IncompleteStreamError(self._state.text)

    def _record_metadata(self, payload: Any) -> None:
        self.metadata.append(payload)
        logger.debug(f"Stream metadata: {payload!r}")
        if self._dialect is StreamDialect.AUTO:
            detected = _dialect_from_metadata(payload)
            if detected is not None:
                logger.info(f"Stream dialect detected from metadata: {detected.value}")
                self._dialect = detected

    def _finish(self) -> AccumulationState:
        self._state = AccumulationState(text=self._state.text, terminal=True)
        return self._state

    def _append(self, payload: str) -> AccumulationState | None:
        dialect = self._dialect
        if dialect is StreamDialect.AUTO:
            dialect = StreamDialect.DELTA if _looks_like_delta(payload) else StreamDialect.TEXT

        if dialect is StreamDialect.DELTA:
            if payload == DELTA_DONE_SENTINEL:
                return self._finish()
            fragment = extract_delta_content(payload)
            if not fragment:
                return None
            text = self._state.text + fragment
        else:
            fragment = extract_text_fragment(payload)
            if not fragment:
                if fragment is None:
                    logger.debug(f"Dropping model echo chunk: {payload[:80]!r}")
                return None
            text = join_text(self._state.text, fragment)

        self._state = AccumulationState(text=text)
        return self._state
