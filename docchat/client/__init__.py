"""HTTP clients for the document chat backend.

Thin httpx wrappers around the REST and streaming endpoints.

Responsibilities:
    - Streaming and plain chat completion requests
    - Document lookup for attached-document context
    - Bearer token sources and current-user lookup
    - Environment-driven client configuration
"""

from docchat.client.auth import AuthClient, AuthError, CookieTokenAuth, StaticTokenAuth, TokenAuth
from docchat.client.chat import ChatAPIError, ChatClient
from docchat.client.config import ClientConfig, get_client_config
from docchat.client.documents import DocumentsAPIError, DocumentsClient

__all__ = [
    "AuthClient",
    "AuthError",
    "ChatAPIError",
    "ChatClient",
    "ClientConfig",
    "CookieTokenAuth",
    "DocumentsAPIError",
    "DocumentsClient",
    "StaticTokenAuth",
    "TokenAuth",
    "get_client_config",
]
