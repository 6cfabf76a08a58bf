"""Tests for the health check endpoint."""

from django.urls import reverse


class TestHealthCheck:
    def test_healthy_with_locmem_cache(self, client, db):
        """Database and cache up; the queue needs Redis and reports unavailable."""
        response = client.get(reverse("health_check"))

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["cache"] == "connected"
        assert body["queue"] == "unavailable"
