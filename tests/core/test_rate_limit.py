from fastapi import Depends, FastAPI, status
from fastapi.testclient import TestClient

from app.core.cache import get_cache
from app.core.rate_limit import RateLimiter


def _app(cache, limiter: RateLimiter) -> FastAPI:
    app = FastAPI()

    @app.get("/limited", dependencies=[Depends(limiter)])
    def limited():
        return {"ok": True}

    app.dependency_overrides[get_cache] = lambda: cache
    return app


class TestRateLimiter:
    """Test cases for the fixed-window auth rate limiter"""

    def test_hit_counts(self, cache):
        limiter = RateLimiter("t", requests=2, window_seconds=60)
        assert limiter.hit(cache, "1.2.3.4") is None
        assert limiter.hit(cache, "1.2.3.4") is None
        retry_after = limiter.hit(cache, "1.2.3.4")
        assert 0 < retry_after <= 60
        # other clients are counted separately
        assert limiter.hit(cache, "5.6.7.8") is None

    def test_returns_429_after_limit(self, cache):
        client = TestClient(_app(cache, RateLimiter("t", requests=3, window_seconds=60, enabled=True)))
        for _ in range(3):
            assert client.get("/limited").status_code == status.HTTP_200_OK

        response = client.get("/limited")
        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert "Retry-After" in response.headers
        assert "Rate limit exceeded" in response.json()["detail"]

    def test_forwarded_for_is_the_identity(self, cache):
        client = TestClient(_app(cache, RateLimiter("t", requests=1, window_seconds=60, enabled=True)))
        assert client.get("/limited", headers={"X-Forwarded-For": "10.0.0.1, 10.0.0.2"}).status_code == 200
        assert client.get("/limited", headers={"X-Forwarded-For": "10.0.0.1"}).status_code == 429
        assert client.get("/limited", headers={"X-Forwarded-For": "10.0.0.3"}).status_code == 200

    def test_disabled(self, cache):
        client = TestClient(_app(cache, RateLimiter("t", requests=1, window_seconds=60, enabled=False)))
        for _ in range(5):
            assert client.get("/limited").status_code == status.HTTP_200_OK
