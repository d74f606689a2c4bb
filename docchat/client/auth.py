"""Bearer token sources and the current-user endpoint."""

import logging
from typing import Protocol

import httpx
from pydantic import ValidationError

from docchat.client.chat import error_detail
from docchat.client.config import ClientConfig, get_client_config
from docchat.models.schemas import User

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "access_token"
AUTH_ME_ENDPOINT = "/auth/me"


class AuthError(Exception):
    """Raised when the backend rejects or cannot verify a token.

    Attributes:
        status_code: HTTP status, or None for network failures.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TokenAuth(Protocol):
    """Source of the bearer token for API requests."""

    def get_bearer_token(self) -> str | None: ...


class StaticTokenAuth:
    """Token fixed at construction, e.g. from ACCESS_TOKEN."""

    def __init__(self, token: str | None) -> None:
        self._token = token.strip() if token else None

    def get_bearer_token(self) -> str | None:
        return self._token or None


class CookieTokenAuth:
    """Reads the access token from a cookie jar on every call."""

    def __init__(self, cookies: httpx.Cookies, name: str = ACCESS_TOKEN_COOKIE) -> None:
        self._cookies = cookies
        self._name = name

    def get_bearer_token(self) -> str | None:
        return self._cookies.get(self._name) or None


class AuthClient:
    """Client for the backend authentication endpoints."""

    def __init__(
        self,
        config: ClientConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or get_client_config()
        self._client = http_client or httpx.AsyncClient(timeout=self._config.request_timeout)

    async def get_current_user(self, token: str) -> User:
        """Fetch the profile of the user the token belongs to.

        Raises:
            AuthError: With status_code 401 when the token is rejected.
        """
        try:
            response = await self._client.get(
                f"{self._config.api_base_url}{AUTH_ME_ENDPOINT}",
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.RequestError as e:
            raise AuthError(f"Connection failed: {e}") from e

        if response.status_code == 401:
            raise AuthError("Authentication required", status_code=401)
        if response.is_error:
            raise AuthError(error_detail(response), status_code=response.status_code)

        try:
            return User.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise AuthError(f"Invalid user profile: {e}") from e
