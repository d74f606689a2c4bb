"""Chat API client for the completion endpoints.

Wraps httpx for both the streaming endpoint (returns the open response so
the caller can decode its body incrementally) and the plain completion
endpoint.
"""

import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from typing import Any

import httpx

from docchat.client.config import ClientConfig, get_client_config

logger = logging.getLogger(__name__)

CHAT_ENDPOINTS = {
    "completions": "/chat/completions",
    "stream": "/chat/stream",
}


class ChatAPIError(Exception):
    """Raised when a chat request fails before any body is streamed.

    Attributes:
        status_code: HTTP status, or None for network failures.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def error_detail(response: httpx.Response) -> str:
    """Extract a readable error message from an error response body."""
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("detail"):
        return str(data["detail"])
    text = response.text.strip()
    return text or f"API Error: {response.status_code} {response.reason_phrase}"


class ChatClient:
    """Client for the backend chat completion endpoints."""

    def __init__(
        self,
        config: ClientConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the chat client.

        Args:
            config: Optional client configuration.
                    Loads from environment if not provided.
            http_client: Optional shared httpx client. A private client is
                    created (and closed by aclose) when omitted.
        """
        self._config = config or get_client_config()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=self._config.request_timeout)

    @property
    def config(self) -> ClientConfig:
        return self._config

    def _url(self, endpoint: str) -> str:
        return f"{self._config.api_base_url}{CHAT_ENDPOINTS[endpoint]}"

    def _headers(self, token: str, *, stream: bool) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
        }
        if stream:
            headers["Accept"] = "text/event-stream"
        return headers

    def _payload(self, text: str, document_refs: Iterable[str], *, stream: bool) -> dict[str, Any]:
        return {
            "model": self._config.model_name,
            "messages": [{"role": "user", "content": text}],
            "stream": stream,
            "max_tokens": self._config.max_tokens,
            "temperature": self._config.temperature,
            "document_ids": sorted(document_refs),
        }

    @asynccontextmanager
    async def stream_completion(
        self,
        text: str,
        document_refs: Iterable[str],
        token: str,
    ) -> AsyncIterator[httpx.Response]:
        """Open a streaming completion request.

        The response is closed when the context exits, whichever way it exits.

        Args:
            text: The user's prompt.
            document_refs: Identifiers of the documents to ground the answer on.
            token: Bearer token authorizing the request.

        Yields:
            The open response with an unread, streamable body.

        Raises:
            ChatAPIError: On a network failure or a non-2xx status.
        """
        request = self._client.build_request(
            "POST",
            self._url("stream"),
            json=self._payload(text, document_refs, stream=True),
            headers=self._headers(token, stream=True),
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.RequestError as e:
            raise ChatAPIError(f"Connection failed: {e}") from e

        try:
            if response.is_error:
                await response.aread()
                detail = error_detail(response)
                logger.warning(f"Streaming chat completion rejected ({response.status_code}): {detail}")
                raise ChatAPIError(detail, status_code=response.status_code)
            yield response
        finally:
            await response.aclose()

    async def create_completion(
        self,
        text: str,
        document_refs: Iterable[str],
        token: str,
    ) -> str:
        """Send a non-streaming chat completion request.

        Returns:
            The assistant's answer (first choice).

        Raises:
            ChatAPIError: On a network failure, a non-2xx status, or a body
                without choices.
        """
        try:
            response = await self._client.post(
                self._url("completions"),
                json=self._payload(text, document_refs, stream=False),
                headers=self._headers(token, stream=False),
            )
        except httpx.RequestError as e:
            raise ChatAPIError(f"Connection failed: {e}") from e

        if response.is_error:
            raise ChatAPIError(error_detail(response), status_code=response.status_code)

        try:
            return response.json()["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ChatAPIError(f"Malformed completion response: {e}") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ChatClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
