"""Pydantic models for chat messages, documents, and session state.

Provides type safety and validation for everything the streaming pipeline
hands to the presentation layer.

Models:
    - Message: Individual message in the conversation
    - Document: Attached document metadata
    - User: Authenticated user profile
    - SessionState / SessionUpdate / SessionResult: Streaming session lifecycle
"""

from docchat.models.conversation import Conversation, InMemoryConversation
from docchat.models.schemas import (
    Document,
    Message,
    Role,
    SessionError,
    SessionErrorKind,
    SessionResult,
    SessionState,
    SessionUpdate,
    StreamDialect,
    User,
    UserRole,
)

__all__ = [
    "Conversation",
    "Document",
    "InMemoryConversation",
    "Message",
    "Role",
    "SessionError",
    "SessionErrorKind",
    "SessionResult",
    "SessionState",
    "SessionUpdate",
    "StreamDialect",
    "User",
    "UserRole",
]
