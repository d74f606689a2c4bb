"""Client configuration with environment variable loading.

Pydantic-based configuration for the backend API clients and the
streaming chat pipeline.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from docchat.models.schemas import StreamDialect

# Load environment variables from .env file
load_dotenv()

DEFAULT_API_BASE_URL = "http://localhost:8000/api/v1"
DEFAULT_CHAT_MODEL = "claude-3-7-sonnet-20250219"


class ClientConfig(BaseModel):
    """Configuration for the backend API clients.

    Attributes:
        api_base_url: Backend API base URL, without trailing slash.
        model_name: Model identifier sent with completion requests.
        temperature: Sampling temperature (0.0 = deterministic, 2.0 = creative).
        max_tokens: Maximum tokens in the generated response.
        request_timeout: Seconds to wait on connect and between stream reads.
        stream_dialect: Wire dialect of the completion stream.
        access_token: Optional static bearer token.
    """

    api_base_url: str = Field(
        default_factory=lambda: os.getenv("API_BASE_URL", DEFAULT_API_BASE_URL),
        description="Backend API base URL",
    )
    model_name: str = Field(
        default_factory=lambda: os.getenv("CHAT_MODEL", DEFAULT_CHAT_MODEL),
        description="Model to request completions from",
    )
    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for response generation",
    )
    max_tokens: int = Field(
        default=1000,
        ge=1,
        le=128000,
        description="Maximum tokens in generated response",
    )
    request_timeout: float = Field(
        default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT", "120")),
        gt=0.0,
        description="Request timeout in seconds",
    )
    stream_dialect: StreamDialect = Field(
        default_factory=lambda: StreamDialect(os.getenv("STREAM_DIALECT", "auto").lower()),
        description="Completion stream dialect (text, delta, or auto)",
    )
    access_token: str | None = Field(
        default_factory=lambda: os.getenv("ACCESS_TOKEN") or None,
        description="Static bearer token (None to use the session cookie)",
    )

    @field_validator("api_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) URL and drop the trailing slash."""
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("API_BASE_URL must start with http:// or https://")
        return v.rstrip("/")


def get_client_config() -> ClientConfig:
    """Create client configuration from environment.

    Returns:
        Configured ClientConfig instance.

    Raises:
        ValueError: If an environment value is invalid.
    """
    return ClientConfig()
