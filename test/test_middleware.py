"""
Public-route matching, rate limiting and security headers.
"""
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from middleware.auth_middleware import is_public_path
from middleware.security import RateLimitMiddleware


@pytest.mark.parametrize("path, expected", [
    ("/", True),
    ("/health", True),
    ("/api/auth/login", True),
    ("/docs/oauth2-redirect", True),
    ("/api/complaints", False),
    ("/api/auth/me", False),
    ("/api/auth/login-history", False),
])
def test_is_public_path(path, expected):
    assert is_public_path(path) is expected


def test_rate_limit_returns_envelope():
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, requests_per_minute=2, requests_per_hour=100)

    @app.get("/ping")
    async def ping():
        return {"ok": True}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    client = TestClient(app)
    assert client.get("/ping").status_code == 200
    assert client.get("/ping").status_code == 200

    limited = client.get("/ping")
    assert limited.status_code == 429
    assert limited.json()["status"] is False
    assert limited.headers["retry-after"] == "60"
    assert client.get("/health").status_code == 200


def test_security_headers(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["x-frame-options"] == "DENY"
    assert response.json()["checks"]["database"] == {"status": "ok"}
    assert response.json()["checks"]["storage"]["backend"] == "local"
