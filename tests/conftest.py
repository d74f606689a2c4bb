"""Pytest fixtures and shared test configuration.

Provides reusable fixtures for unit and integration tests.

Fixtures:
    - client_config: ClientConfig pointing at a fake backend
    - make_controller: Factory for session controllers over a mock transport
    - async_client: HTTPX client for the FastAPI host app

Implements async fixtures with proper cleanup. The backend is always an
httpx.MockTransport; no network access is needed.
"""

import asyncio
import json
from collections.abc import AsyncGenerator, AsyncIterator, Callable, Iterable

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from docchat.api import app
from docchat.client.auth import StaticTokenAuth
from docchat.client.chat import ChatClient
from docchat.client.config import ClientConfig
from docchat.models.conversation import InMemoryConversation
from docchat.models.schemas import StreamDialect
from docchat.streaming.session import ChatSessionController

API_BASE_URL = "http://backend.test/api/v1"


class ScriptedStream(httpx.AsyncByteStream):
    """Response body that replays chunks and records when it is closed.

    Args:
        chunks: Raw buffers to deliver, in order.
        hang: Block forever after the last chunk (a stalled connection).
        error: Exception to raise after the last chunk (a broken connection).
    """

    def __init__(
        self,
        chunks: Iterable[bytes],
        *,
        hang: bool = False,
        error: Exception | None = None,
    ) -> None:
        self.chunks = list(chunks)
        self.hang = hang
        self.error = error
        self.delivered = 0
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            self.delivered += 1
            yield chunk
        if self.error is not None:
            raise self.error
        if self.hang:
            await asyncio.Event().wait()

    async def aclose(self) -> None:
        self.closed = True


def delta_line(content: str | None) -> bytes:
    """Encode one delta-dialect ``data:`` line."""
    delta = {} if content is None else {"content": content}
    chunk = {"object": "chat.completion.chunk", "choices": [{"index": 0, "delta": delta}]}
    return f"data: {json.dumps(chunk)}\n".encode()


def stream_handler(
    stream: ScriptedStream,
    requests: list[httpx.Request] | None = None,
) -> Callable[[httpx.Request], httpx.Response]:
    """Mock transport handler answering every request with ``stream``."""

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return httpx.Response(200, headers={"Content-Type": "text/event-stream"}, stream=stream)

    return handler


@pytest.fixture
def client_config() -> ClientConfig:
    """Return configuration aimed at the mock backend.

    Returns:
        ClientConfig with the text dialect and no static token.
    """
    return ClientConfig(
        api_base_url=API_BASE_URL,
        model_name="test-model",
        stream_dialect=StreamDialect.TEXT,
        access_token=None,
    )


@pytest.fixture
async def make_controller(
    client_config: ClientConfig,
) -> AsyncGenerator[Callable[..., ChatSessionController]]:
    """Factory for controllers whose chat client talks to a mock transport.

    Yields:
        Callable taking the transport handler plus optional token, dialect
        and conversation.
    """
    http_clients: list[httpx.AsyncClient] = []

    def factory(
        handler: Callable[[httpx.Request], object],
        *,
        token: str | None = "test-token",
        dialect: StreamDialect | None = None,
        conversation: InMemoryConversation | None = None,
    ) -> ChatSessionController:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        http_clients.append(http_client)
        return ChatSessionController(
            ChatClient(client_config, http_client),
            conversation if conversation is not None else InMemoryConversation(),
            StaticTokenAuth(token),
            dialect,
        )

    yield factory

    for http_client in http_clients:
        await http_client.aclose()


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client for the host app.

    Yields:
        Configured AsyncClient for making test requests.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
