import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    """Speaker of a chat message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Message(BaseModel):
    """A single chat message in the conversation.

    Messages are immutable; the streaming session replaces the provisional
    assistant message with an updated copy for every snapshot.

    Attributes:
        id: Unique message identifier.
        role: The speaker (user, assistant, or system).
        content: The message text.
        created_at: Creation timestamp (UTC).
        is_streaming: True while an active session is still writing content.
        document_refs: Identifiers of the documents attached to the prompt.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: Role
    content: str = ""
    created_at: datetime = Field(default_factory=_utcnow)
    is_streaming: bool = False
    document_refs: frozenset[str] = Field(default_factory=frozenset)


class Document(BaseModel):
    """Document metadata as returned by the documents API.

    Attributes:
        id: Document identifier used in chat requests.
        title: Human-readable title.
        filename: Original file name.
        security_classification: Access classification label.
        tags: Free-form tags.
        created_at: Upload timestamp as reported by the backend.
    """

    id: str
    title: str | None = None
    filename: str | None = None
    security_classification: str | None = None
    tags: list[str] = Field(default_factory=list)
    created_at: str | None = None

    @property
    def display_name(self) -> str:
        return self.title or self.filename or self.id


class StreamDialect(str, Enum):
    """Wire dialect of the completion stream.

    TEXT carries flat text in ``data:`` lines, DELTA carries
    ``{choices: [{delta: {content}}]}`` chunks, AUTO sniffs the stream.
    """

    TEXT = "text"
    DELTA = "delta"
    AUTO = "auto"


class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"
    GUEST = "guest"


class User(BaseModel):
    """Authenticated user profile from /auth/me."""

    id: str
    email: str
    name: str
    role: UserRole = UserRole.USER
    preferences: dict[str, Any] = Field(default_factory=dict)


class SessionState(str, Enum):
    """Lifecycle states of one streaming session.

    COMPLETED, CANCELLED and FAILED are terminal.
    """

    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.COMPLETED, SessionState.CANCELLED, SessionState.FAILED)

    @property
    def is_active(self) -> bool:
        return self in (SessionState.SENDING, SessionState.STREAMING)


class SessionErrorKind(str, Enum):
    """Error taxonomy surfaced to the presentation layer."""

    TRANSPORT = "transport"
    DECODE = "decode"
    INCOMPLETE_STREAM = "incomplete_stream"
    AUTHENTICATION = "authentication"


class SessionError(BaseModel):
    """A failure reported on the session update channel.

    Attributes:
        kind: Error category.
        message: User-facing description.
        retryable: Whether the user may resubmit the prompt.
        partial_text: Text received before the failure (not kept in the
            conversation).
    """

    model_config = ConfigDict(frozen=True)

    kind: SessionErrorKind
    message: str
    retryable: bool = True
    partial_text: str = ""


class SessionUpdate(BaseModel):
    """One item of the session's observable update channel."""

    model_config = ConfigDict(frozen=True)

    state: SessionState
    message: Message | None = None
    error: SessionError | None = None


class SessionResult(BaseModel):
    """Typed outcome of a finished session.

    Attributes:
        state: Terminal session state.
        message: The assistant message kept in the conversation, if any.
        error: Failure details when state is FAILED.
    """

    model_config = ConfigDict(frozen=True)

    state: SessionState
    message: Message | None = None
    error: SessionError | None = None

    @field_validator("state")
    @classmethod
    def require_terminal(cls, v: SessionState) -> SessionState:
        """Only terminal states describe a finished session."""
        if not v.is_terminal:
            raise ValueError(f"Session result requires a terminal state, got {v.value}")
        return v
