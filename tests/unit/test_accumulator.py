"""Unit tests for the stream accumulator and its normalization policy."""

import json
import random
from collections.abc import AsyncIterator

import pytest
import pytest_check as check

from docchat.models.schemas import StreamDialect
from docchat.streaming.accumulator import (
    AccumulationState,
    AccumulatorClosedError,
    IncompleteStreamError,
    StreamAccumulator,
    join_text,
)
from docchat.streaming.events import DataChunk, Done, Metadata, ProtocolEvent


def delta(content: str | None) -> DataChunk:
    body = {} if content is None else {"content": content}
    return DataChunk(text=json.dumps({"choices": [{"index": 0, "delta": body}]}))


async def events_of(*events: ProtocolEvent) -> AsyncIterator[ProtocolEvent]:
    for event in events:
        yield event


async def collect(accumulator: StreamAccumulator, *events: ProtocolEvent) -> list[AccumulationState]:
    return [snapshot async for snapshot in accumulator.snapshots(events_of(*events))]


class TestJoinText:
    """Tests for the chunk-boundary spacing rule."""

    def test_inserts_space_between_words(self) -> None:
        """Two bare words are joined with one space."""
        assert join_text("hello", "world") == "hello world"

    def test_existing_trailing_space_kept_single(self) -> None:
        """No double space when the text already ends with one."""
        assert join_text("hello ", "world") == "hello world"

    def test_fragment_leading_space_kept_single(self) -> None:
        """No double space when the fragment starts with one."""
        assert join_text("hello", " world") == "hello world"

    def test_newline_counts_as_whitespace(self) -> None:
        """Any whitespace at the boundary suppresses the extra space."""
        assert join_text("line one\n", "line two") == "line one\nline two"

    def test_first_fragment_not_padded(self) -> None:
        """The first fragment is taken as-is."""
        assert join_text("", "hello") == "hello"

    def test_empty_fragment_is_noop(self) -> None:
        """Empty text never adds a space."""
        assert join_text("hello", "") == "hello"


class TestTextDialect:
    """Tests for flat-text chunk normalization."""

    async def test_chunks_joined_and_done_terminal(self) -> None:
        """Plain chunks accumulate into one sentence and Done is final."""
        snapshots = await collect(
            StreamAccumulator(),
            DataChunk(text="Here"),
            DataChunk(text="is"),
            DataChunk(text="X"),
            Done(),
        )

        assert [s.text for s in snapshots] == ["Here", "Here is", "Here is X", "Here is X"]
        check.is_false(any(s.terminal for s in snapshots[:-1]))
        check.is_true(snapshots[-1].terminal)

    async def test_noise_marker_only_chunk_adds_nothing(self) -> None:
        """Accumulating only a noise marker leaves the text empty."""
        accumulator = StreamAccumulator()

        assert accumulator.apply(DataChunk(text="{}")) is None
        assert accumulator.state.text == ""

    def test_noise_marker_stripped_inside_text(self) -> None:
        """Noise markers are removed from mixed chunks."""
        accumulator = StreamAccumulator()

        accumulator.apply(DataChunk(text="Hello{}"))
        accumulator.apply(DataChunk(text="{}there{}"))

        assert accumulator.state.text == "Hello there"

    def test_model_echo_discarded(self) -> None:
        """A bare model-name echo contributes no text and no snapshot."""
        accumulator = StreamAccumulator()
        accumulator.apply(DataChunk(text="Hi"))

        assert accumulator.apply(DataChunk(text='{"model": "claude-3-7-sonnet"}')) is None
        assert accumulator.state.text == "Hi"

    def test_word_model_in_text_is_kept(self) -> None:
        """Ordinary text mentioning a model is not mistaken for an echo."""
        accumulator = StreamAccumulator()

        accumulator.apply(DataChunk(text="The model says hi"))

        assert accumulator.state.text == "The model says hi"

    def test_metadata_does_not_change_text(self) -> None:
        """Metadata is recorded but emits no snapshot."""
        accumulator = StreamAccumulator()

        check.is_none(accumulator.apply(Metadata(payload={"sources": ["a.pdf"]})))
        check.equal(accumulator.state, AccumulationState())
        check.equal(accumulator.metadata, [{"sources": ["a.pdf"]}])

    def test_apply_after_done_rejected(self) -> None:
        """The state never changes after the terminal snapshot."""
        accumulator = StreamAccumulator()
        accumulator.apply(DataChunk(text="final"))
        final = accumulator.apply(Done())

        with pytest.raises(AccumulatorClosedError):
            accumulator.apply(DataChunk(text="late"))
        assert accumulator.state == final

    @pytest.mark.parametrize("seed", range(10))
    def test_text_only_grows(self, seed: int) -> None:
        """Every snapshot extends the previous one."""
        rng = random.Random(seed)
        words = ["alpha", " beta", "gamma ", "{}", "", "delta\n", '{"model": "m"}', "ε"]
        accumulator = StreamAccumulator()
        previous = ""

        for _ in range(40):
            snapshot = accumulator.apply(DataChunk(text=rng.choice(words) or "x"))
            if snapshot is not None:
                assert snapshot.text.startswith(previous)
                assert len(snapshot.text) >= len(previous)
                previous = snapshot.text


class TestSnapshots:
    """Tests for the async snapshot sequence."""

    async def test_stops_pulling_after_done(self) -> None:
        """No event is consumed after Done."""
        pulled: list[ProtocolEvent] = []

        async def source() -> AsyncIterator[ProtocolEvent]:
            for event in (DataChunk(text="a"), Done(), DataChunk(text="b")):
                pulled.append(event)
                yield event

        accumulator = StreamAccumulator()
        snapshots = [s async for s in accumulator.snapshots(source())]

        assert pulled == [DataChunk(text="a"), Done()]
        assert snapshots[-1] == AccumulationState(text="a", terminal=True)

    async def test_missing_done_raises_with_partial_text(self) -> None:
        """A stream ending without Done is distinguishable from completion."""
        accumulator = StreamAccumulator()
        received: list[AccumulationState] = []

        with pytest.raises(IncompleteStreamError) as exc_info:
            async for snapshot in accumulator.snapshots(events_of(DataChunk(text="partial"))):
                received.append(snapshot)

        assert exc_info.value.partial_text == "partial"
        assert received == [AccumulationState(text="partial")]
        assert accumulator.state.terminal is False

    async def test_filtered_events_emit_no_snapshot(self) -> None:
        """Noise and metadata are skipped but Done always emits."""
        snapshots = await collect(
            StreamAccumulator(),
            Metadata(payload={}),
            DataChunk(text="{}"),
            Done(),
        )

        assert snapshots == [AccumulationState(text="", terminal=True)]


class TestDeltaDialect:
    """Tests for choices/delta chunk extraction."""

    def test_content_appended_verbatim(self) -> None:
        """Token deltas are concatenated without extra spacing."""
        accumulator = StreamAccumulator(StreamDialect.DELTA)

        accumulator.apply(delta("Hel"))
        accumulator.apply(delta("lo"))
        accumulator.apply(delta(" there"))

        assert accumulator.state.text == "Hello there"

    def test_contentless_chunks_discarded(self) -> None:
        """Role-only and finish chunks produce no snapshot."""
        accumulator = StreamAccumulator(StreamDialect.DELTA)

        check.is_none(accumulator.apply(delta(None)))
        check.is_none(accumulator.apply(DataChunk(text='{"choices": []}')))
        check.is_none(accumulator.apply(DataChunk(text="not json")))
        check.equal(accumulator.state.text, "")

    def test_multiple_choices_concatenated(self) -> None:
        """Content from every choice in a chunk is kept."""
        accumulator = StreamAccumulator(StreamDialect.DELTA)
        chunk = {"choices": [{"delta": {"content": "a"}}, {"delta": {"content": "b"}}]}

        accumulator.apply(DataChunk(text=json.dumps(chunk)))

        assert accumulator.state.text == "ab"

    def test_done_sentinel_is_terminal(self) -> None:
        """The ``[DONE]`` payload ends the stream like a Done event."""
        accumulator = StreamAccumulator(StreamDialect.DELTA)
        accumulator.apply(delta("Hi"))

        snapshot = accumulator.apply(DataChunk(text="[DONE]"))

        assert snapshot == AccumulationState(text="Hi", terminal=True)


class TestAutoDialect:
    """Tests for dialect sniffing."""

    def test_metadata_pins_delta_dialect(self) -> None:
        """An OpenAI-style metadata object selects the delta dialect."""
        accumulator = StreamAccumulator(StreamDialect.AUTO)

        accumulator.apply(Metadata(payload={"object": "chat.completion.chunk"}))

        assert accumulator.dialect is StreamDialect.DELTA

    def test_metadata_declared_dialect(self) -> None:
        """An explicit dialect key in metadata is honoured."""
        accumulator = StreamAccumulator(StreamDialect.AUTO)

        accumulator.apply(Metadata(payload={"dialect": "text"}))

        assert accumulator.dialect is StreamDialect.TEXT

    def test_chunks_sniffed_without_metadata(self) -> None:
        """Each chunk is interpreted by its own shape until pinned."""
        accumulator = StreamAccumulator(StreamDialect.AUTO)

        accumulator.apply(DataChunk(text="Hello"))
        accumulator.apply(delta("!"))
        accumulator.apply(DataChunk(text="world"))

        assert accumulator.state.text == "Hello! world"
        assert accumulator.dialect is StreamDialect.AUTO
