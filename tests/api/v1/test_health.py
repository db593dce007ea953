from fastapi import status
from fastapi.testclient import TestClient

from app.core.config import settings


class TestHealthCheckAPI:
    """Test cases for the /health endpoint"""

    def test_get_health_success(self, client: TestClient):
        """Health check answers without authentication"""
        response = client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"status": "oke"}
        assert "application/json" in response.headers.get("content-type", "")

    def test_get_health_not_rate_limited(self, client: TestClient, monkeypatch):
        """Only /auth endpoints count against the rate limit"""
        monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True)
        for _ in range(settings.AUTH_RATE_LIMIT_REQUESTS + 5):
            assert client.get("/health").status_code == status.HTTP_200_OK


class TestDocsAPI:
    """Test cases for the password-protected API docs"""

    def test_docs_require_password(self, client: TestClient, monkeypatch):
        monkeypatch.setattr(settings, "DOC_PASSWORD", "s3cret")
        assert client.get("/openapi.json").status_code == status.HTTP_401_UNAUTHORIZED
        assert client.get("/openapi.json", auth=("dev", "wrong")).status_code == status.HTTP_401_UNAUTHORIZED

        response = client.get("/openapi.json", auth=("dev", "s3cret"))
        assert response.status_code == status.HTTP_200_OK
        paths = response.json()["paths"]
        assert "/auth/challenge" in paths
        assert "/auth/verify" in paths

    def test_docs_closed_without_password(self, client: TestClient, monkeypatch):
        monkeypatch.setattr(settings, "DOC_PASSWORD", None)
        assert client.get("/docs", auth=("dev", "")).status_code == status.HTTP_401_UNAUTHORIZED
