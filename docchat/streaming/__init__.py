"""Streaming chat-completion pipeline.

Turns a live, chunked HTTP response into an incrementally updated
assistant message.

Pipeline (leaf first):
    - decoder: byte chunks -> Metadata / DataChunk / Done events
    - accumulator: events -> growing text snapshots (dialect aware)
    - session: request lifecycle, cancellation, and the update channel
"""

from docchat.streaming.accumulator import (
    AccumulationState,
    AccumulatorClosedError,
    IncompleteStreamError,
    StreamAccumulator,
    join_text,
)
from docchat.streaming.decoder import DecoderError, EventDecoder, StreamDecodeError, parse_line
from docchat.streaming.events import DataChunk, Done, Metadata, ProtocolEvent
from docchat.streaming.session import ChatSessionController, SessionActiveError, StreamingSession

__all__ = [
    "AccumulationState",
    "AccumulatorClosedError",
    "ChatSessionController",
    "DataChunk",
    "DecoderError",
    "Done",
    "EventDecoder",
    "IncompleteStreamError",
    "Metadata",
    "ProtocolEvent",
    "SessionActiveError",
    "StreamAccumulator",
    "StreamDecodeError",
    "StreamingSession",
    "join_text",
    "parse_line",
]
