"""Line-oriented event decoder for chunked completion streams.

Turns raw byte buffers, fragmented arbitrarily by the transport, into a lazy
sequence of protocol events. The decoder only frames lines and extracts
payload strings; interpreting ``data`` payloads is left to the accumulator,
which is what lets one decoder serve both the flat-text and the
delta-object stream dialects.
"""

import codecs
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator

import httpx

from docchat.streaming.events import DataChunk, Done, Metadata, ProtocolEvent

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = ":"
DATA_PREFIX = "data:"


class DecoderError(Exception):
    """Raised when a decoder is misused (e.g. iterated twice)."""


class StreamDecodeError(DecoderError):
    """Raised when reading the underlying byte stream fails.

    Ends the event sequence; no further events are emitted.
    """


def parse_line(line: str) -> ProtocolEvent | None:
    """Classify one complete line.

    Args:
        line: A line without its terminating newline.

    Returns:
        The event the line encodes, or None for blank, unknown, empty, and
        malformed lines.
    """
    line = line.rstrip("\r")
    if not line.strip():
        return None

    field, separator, value = line.partition(FIELD_SEPARATOR)
    field = field.strip()
    if field == "done":
        return Done()
    if not separator:
        logger.debug(f"Skipping line without field separator: {line[:80]!r}")
        return None

    payload = value.strip()
    # Some backends repeat the prefix: "data: data: ..."
    if payload.startswith(DATA_PREFIX):
        payload = payload[len(DATA_PREFIX):].strip()
    if not payload:
        return None

    if field == "data":
        return DataChunk(text=payload)

    if field == "metadata":
        try:
            return Metadata(payload=json.loads(payload))
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse stream metadata: {e}")
            return None

    logger.debug(f"Skipping unknown stream field: {field!r}")
    return None


class EventDecoder:
    """Decodes a byte stream into protocol events.

    A decoder keeps the undecoded tail of the stream between reads, so one
    instance belongs to exactly one stream and can be iterated only once.

    Usage::

        async for event in EventDecoder(response.aiter_raw()):
            ...
    """

    def __init__(self, chunks: AsyncIterable[bytes] | None = None, encoding: str = "utf-8") -> None:
        self._chunks = chunks
        self._text_decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._carry = ""
        self._started = False

    @property
    def pending(self) -> str:
        """Text received after the last line break."""
        return self._carry

    def feed(self, data: bytes) -> list[ProtocolEvent]:
        """Decode newly arrived bytes.

        Args:
            data: Next raw buffer from the transport.

        Returns:
            Events for every line completed by this buffer, in order.
        """
        self._carry += self._text_decoder.decode(data)
        *lines, self._carry = self._carry.split("\n")

        events: list[ProtocolEvent] = []
        for line in lines:
            event = parse_line(line)
            if event is not None:
                events.append(event)
        return events

    def __aiter__(self) -> AsyncIterator[ProtocolEvent]:
        if self._started:
            raise DecoderError("EventDecoder is single-use; create a new one per stream")
        if self._chunks is None:
            raise DecoderError("EventDecoder was created without a byte stream")
        self._started = True
        return self._iterate(self._chunks)

    async def _iterate(self, chunks: AsyncIterable[bytes]) -> AsyncIterator[ProtocolEvent]:
        reader = aiter(chunks)
        while True:
            try:
                data = await anext(reader)
            except StopAsyncIteration:
                break
            except (httpx.HTTPError, OSError) as e:
                raise StreamDecodeError(f"Stream read failed: {e}") from e

            for event in self.feed(data):
                yield event

        tail = self._carry + self._text_decoder.decode(b"", final=True)
        self._carry = ""
        if tail.strip():
            logger.debug(f"Discarding unterminated trailing line: {tail[:80]!r}")
