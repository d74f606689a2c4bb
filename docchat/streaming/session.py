"""Streaming session controller.

Drives one prompt-to-answer lifecycle::

    idle -> sending -> streaming -> completed | cancelled | failed

The controller issues the request, runs the decoder and accumulator over
the response body inside a task, and publishes every change of the
assistant message on an ordered update channel. Cancellation cancels that
task, so the pending transport read is interrupted at its next suspension
point and the response is closed on the way out.

Outcome policy:
    - completed: the final answer is appended to the conversation.
    - cancelled: the partial answer (possibly empty) is appended.
    - failed: nothing is appended; the error is published for a retry.
"""

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Iterable

from docchat.client.auth import TokenAuth
from docchat.client.chat import ChatAPIError, ChatClient
from docchat.models.conversation import Conversation
from docchat.models.schemas import (
    Message,
    Role,
    SessionError,
    SessionErrorKind,
    SessionResult,
    SessionState,
    SessionUpdate,
    StreamDialect,
)
from docchat.streaming.accumulator import AccumulationState, IncompleteStreamError, StreamAccumulator
from docchat.streaming.decoder import EventDecoder, StreamDecodeError

logger = logging.getLogger(__name__)


class SessionActiveError(RuntimeError):
    """Raised when a prompt is submitted while another session is running."""


class StreamingSession:
    """Handle for one streaming request.

    Obtained from ChatSessionController.start(); the presentation layer keeps
    it to consume updates() and to call cancel().
    """

    def __init__(
        self,
        controller: "ChatSessionController",
        prompt: str,
        document_refs: frozenset[str],
    ) -> None:
        self.id: str = str(uuid.uuid4())
        self.prompt = prompt
        self.document_refs = document_refs
        self.user_message: Message | None = None
        self.message: Message | None = None

        self._controller = controller
        self._accumulator = StreamAccumulator(controller.dialect)
        self._state = SessionState.IDLE
        self._updates: asyncio.Queue[SessionUpdate | None] = asyncio.Queue()
        self._finished = asyncio.Event()
        self._result: SessionResult | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def snapshot(self) -> AccumulationState:
        """Latest accumulated text, including after a failure."""
        return self._accumulator.state

    @property
    def result(self) -> SessionResult | None:
        """Terminal outcome, or None while the session is running."""
        return self._result

    def cancel(self) -> None:
        """Stop the session, keeping whatever text has arrived.

        A no-op unless the session is sending or streaming.
        """
        if not self._state.is_active:
            return
        logger.info(f"Session {self.id[:8]} cancelled by user")
        self._finish_cancelled()
        if self._task is not None:
            self._task.cancel()

    async def updates(self) -> AsyncIterator[SessionUpdate]:
        """Yield session updates in order until the terminal one.

        The channel has a single consumer.
        """
        while True:
            update = await self._updates.get()
            if update is None:
                return
            yield update

    async def wait(self) -> SessionResult:
        """Wait for the terminal state and for the transport to be released.

        Never raises transport or decode errors; they are reported in the
        returned result.
        """
        await self._finished.wait()
        if self._task is not None and not self._task.done():
            await asyncio.wait({self._task})
        if self._result is None:
            raise RuntimeError(f"Session {self.id[:8]} finished without a result")
        return self._result

    def _begin(self) -> None:
        self.user_message = Message(
            role=Role.USER,
            content=self.prompt,
            document_refs=self.document_refs,
        )
        self._controller.conversation.append_message(self.user_message)
        self._state = SessionState.SENDING
        self._publish(self.user_message)
        self._task = asyncio.create_task(self._run(), name=f"chat-session-{self.id[:8]}")

    async def _run(self) -> None:
        token = self._controller.auth.get_bearer_token()
        if not token:
            self._fail(SessionErrorKind.AUTHENTICATION, "Authentication required", retryable=False)
            return

        try:
            async with self._controller.chat_client.stream_completion(
                self.prompt, self.document_refs, token
            ) as response:
                events = EventDecoder(self._track_first_byte(response.aiter_bytes()))
                async for snapshot in self._accumulator.snapshots(events):
                    self._apply(snapshot)
        except asyncio.CancelledError:
            if self._state.is_active:
                self._finish_cancelled()
            raise
        except ChatAPIError as e:
            self._fail(SessionErrorKind.TRANSPORT, str(e))
        except StreamDecodeError as e:
            self._fail(SessionErrorKind.DECODE, f"The response stream was interrupted: {e}")
        except IncompleteStreamError as e:
            self._fail(SessionErrorKind.INCOMPLETE_STREAM, str(e))
        except Exception as e:
            logger.exception(f"Session {self.id[:8]} crashed")
            self._fail(SessionErrorKind.DECODE, f"Unexpected stream error: {e}")

    async def _track_first_byte(self, chunks: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
        async for chunk in chunks:
            if chunk and self._state is SessionState.SENDING:
                self._begin_streaming()
            yield chunk

    def _begin_streaming(self) -> None:
        self._state = SessionState.STREAMING
        self.message = Message(role=Role.ASSISTANT, content="", is_streaming=True)
        self._publish(self.message)

    def _apply(self, snapshot: AccumulationState) -> None:
        if self._state is not SessionState.STREAMING or self.message is None:
            return
        if snapshot.text != self.message.content:
            self.message = self.message.model_copy(update={"content": snapshot.text})
            self._publish(self.message)
        if snapshot.terminal:
            self._complete(self.message)

    def _complete(self, message: Message) -> None:
        final = message.model_copy(update={"is_streaming": False})
        self._controller.conversation.append_message(final)
        logger.info(f"Session {self.id[:8]} completed ({len(final.content)} chars)")
        self._finish(SessionState.COMPLETED, final)

    def _finish_cancelled(self) -> None:
        if self.message is not None:
            final = self.message.model_copy(update={"is_streaming": False})
        else:
            final = Message(role=Role.ASSISTANT, content="", is_streaming=False)
        self._controller.conversation.append_message(final)
        self._finish(SessionState.CANCELLED, final)

    def _fail(self, kind: SessionErrorKind, detail: str, retryable: bool = True) -> None:
        if self._state.is_terminal:
            logger.debug(f"Session {self.id[:8]} already {self._state.value}, ignoring: {detail}")
            return
        logger.warning(f"Session {self.id[:8]} failed ({kind.value}): {detail}")
        error = SessionError(
            kind=kind,
            message=detail,
            retryable=retryable,
            partial_text=self._accumulator.state.text,
        )
        self._finish(SessionState.FAILED, None, error)

    def _finish(
        self,
        state: SessionState,
        message: Message | None,
        error: SessionError | None = None,
    ) -> None:
        self._state = state
        self.message = message
        self._result = SessionResult(state=state, message=message, error=error)
        self._publish(message, error)
        self._updates.put_nowait(None)
        self._controller._release(self)
        self._finished.set()

    def _publish(self, message: Message | None, error: SessionError | None = None) -> None:
        self._updates.put_nowait(SessionUpdate(state=self._state, message=message, error=error))


class ChatSessionController:
    """Runs streaming sessions for one conversation, one at a time.

    A prompt submitted while a session is sending or streaming is rejected
    with SessionActiveError; callers cancel the running session first.
    """

    def __init__(
        self,
        chat_client: ChatClient,
        conversation: Conversation,
        auth: TokenAuth,
        dialect: StreamDialect | None = None,
    ) -> None:
        self.chat_client = chat_client
        self.conversation = conversation
        self.auth = auth
        self.dialect = dialect or chat_client.config.stream_dialect
        self._active: StreamingSession | None = None

    @property
    def active(self) -> StreamingSession | None:
        """The session currently sending or streaming, if any."""
        return self._active

    def start(self, prompt: str, document_refs: Iterable[str] = ()) -> StreamingSession | None:
        """Submit a prompt and start streaming the answer.

        Must be called from a running event loop.

        Args:
            prompt: The user's message; blank prompts are ignored.
            document_refs: Identifiers of the documents to attach.

        Returns:
            The session handle, or None for a blank prompt.

        Raises:
            SessionActiveError: If another session is still running.
        """
        text = prompt.strip()
        if not text:
            return None
        if self._active is not None:
            raise SessionActiveError(f"Session {self._active.id[:8]} is still {self._active.state.value}")

        session = StreamingSession(self, text, frozenset(document_refs))
        self._active = session
        session._begin()
        return session

    def _release(self, session: StreamingSession) -> None:
        if self._active is session:
            self._active = None
