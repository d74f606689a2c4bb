"""FastAPI host application.

Serves the NiceGUI chat page and a small set of JSON endpoints.

Endpoints:
    - GET /health: Service health status
    - GET /api/auth/me: Current user resolved from the session cookie
"""

from docchat.api.app import app, create_app

__all__ = ["app", "create_app"]
