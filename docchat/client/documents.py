"""Documents API client.

Read-only access used to show which documents a prompt was grounded on.
"""

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from docchat.client.chat import error_detail
from docchat.client.config import ClientConfig, get_client_config
from docchat.models.schemas import Document

logger = logging.getLogger(__name__)

DOCUMENTS_ENDPOINT = "/documents"


class DocumentsAPIError(Exception):
    """Raised when a documents request fails."""


class DocumentsClient:
    """Client for the backend documents endpoints."""

    def __init__(
        self,
        config: ClientConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
        token: str | None = None,
    ) -> None:
        self._config = config or get_client_config()
        self._client = http_client or httpx.AsyncClient(timeout=self._config.request_timeout)
        self._token = token

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"} if self._token else {}

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        try:
            response = await self._client.get(
                f"{self._config.api_base_url}{path}",
                params=params,
                headers=self._headers(),
            )
        except httpx.RequestError as e:
            raise DocumentsAPIError(f"Connection failed: {e}") from e
        if response.is_error:
            raise DocumentsAPIError(error_detail(response))
        return response.json()

    async def resolve(self, ref: str) -> Document:
        """Fetch a single document by identifier.

        Raises:
            DocumentsAPIError: If the request fails or the body is not a document.
        """
        data = await self._get(f"{DOCUMENTS_ENDPOINT}/{ref}")
        try:
            return Document.model_validate(data)
        except ValidationError as e:
            raise DocumentsAPIError(f"Invalid document payload for {ref}: {e}") from e

    async def list_documents(self, **params: Any) -> list[Document]:
        """List documents; ``None`` valued filters are not sent.

        Accepts either a bare list or a ``{"documents": [...]}`` envelope.
        """
        query = {k: v for k, v in params.items() if v is not None}
        data = await self._get(DOCUMENTS_ENDPOINT, params=query or None)
        items = data.get("documents", []) if isinstance(data, dict) else data
        documents: list[Document] = []
        for item in items:
            try:
                documents.append(Document.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping invalid document entry: {e}")
        return documents
