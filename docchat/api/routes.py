"""Authentication proxy endpoint.

Resolves the session cookie into the current user's profile by asking
the backend, so the UI never handles the raw token.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from docchat.client.auth import ACCESS_TOKEN_COOKIE, AuthClient, AuthError
from docchat.models.schemas import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

# Module-level singleton instance
_auth_client: AuthClient | None = None


def get_auth_client() -> AuthClient:
    """Get or create the shared auth client.

    Returns:
        The AuthClient instance.
    """
    global _auth_client
    if _auth_client is None:
        _auth_client = AuthClient()
    return _auth_client


@router.get("/me", response_model=User)
async def read_current_user(
    request: Request,
    auth_client: AuthClient = Depends(get_auth_client),
) -> User:
    """Return the profile of the user owning the access token cookie.

    Raises:
        401: No access token cookie, or the backend rejected it.
        500: The backend could not be reached or returned an error.
    """
    token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    try:
        return await auth_client.get_current_user(token)
    except AuthError as e:
        if e.status_code == status.HTTP_401_UNAUTHORIZED:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required",
            ) from e
        logger.error(f"Error fetching current user: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch user profile",
        ) from e
