"""
Authentication middleware that flags requests to protected routes without credentials.
This middleware provides an early check, but actual validation is done by FastAPI dependencies.
"""
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from typing import List

from core.logger import logger

# Public routes that don't require authentication
PUBLIC_ROUTES: List[str] = [
    "/",
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/api/auth/register",
    "/api/auth/login",
    "/api/auth/refresh",
]


def is_public_path(path: str, public_routes: List[str] = None) -> bool:
    """Exact match for "/", prefix match on a path segment boundary otherwise."""
    for route in public_routes or PUBLIC_ROUTES:
        if route == "/":
            if path == "/":
                return True
        elif path == route or path.startswith(route + "/"):
            return True
    return False


class AuthRequiredMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log unauthenticated calls to protected routes.

    Token validation is handled by FastAPI dependencies so error envelopes stay uniform.
    """

    def __init__(self, app, public_routes: List[str] = None):
        """
        Initialize authentication middleware.

        Args:
            app: FastAPI application
            public_routes: List of public routes (paths) that don't require auth
        """
        super().__init__(app)
        self.public_routes = public_routes or PUBLIC_ROUTES

    async def dispatch(self, request: Request, call_next):
        """Process request with authentication check."""
        path = request.url.path

        if request.method == "OPTIONS" or is_public_path(path, self.public_routes):
            return await call_next(request)

        if not request.headers.get("authorization"):
            logger.warning(
                f"Request without authentication headers: {request.method} {path} "
                f"from {request.client.host if request.client else 'unknown'}"
            )

        return await call_next(request)
