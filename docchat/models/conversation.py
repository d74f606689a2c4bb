"""In-memory conversation state for one chat context."""

import logging
import uuid
from typing import Protocol

from docchat.models.schemas import Message

logger = logging.getLogger(__name__)


class Conversation(Protocol):
    """Ordered message list the session controller appends to."""

    def append_message(self, message: Message) -> None: ...

    def get_messages(self) -> list[Message]: ...


class InMemoryConversation:
    """Manages chat messages for a single browser session."""

    def __init__(self, conversation_id: str | None = None) -> None:
        self.conversation_id: str = conversation_id or str(uuid.uuid4())
        self._messages: list[Message] = []

    def append_message(self, message: Message) -> None:
        if message.is_streaming:
            raise ValueError("Provisional messages cannot be added to the conversation")
        self._messages.append(message)
        logger.debug(f"Conversation {self.conversation_id[:8]}: appended {message.role.value} message")

    def get_messages(self) -> list[Message]:
        return list(self._messages)

    def clear(self) -> None:
        """Start a new chat with a fresh identifier."""
        self._messages.clear()
        self.conversation_id = str(uuid.uuid4())

    def __len__(self) -> int:
        return len(self._messages)
