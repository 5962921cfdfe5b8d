"""Tests for health check and statistics endpoints."""

from __future__ import annotations

from core.config import Settings, get_settings
from main import app


class TestHealthCheck:
    """Tests for basic health check endpoint."""

    def test_health_check_returns_success(self, client) -> None:
        """Test basic health check returns healthy status."""
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Health check successful"
        assert data["data"]["status"] == "healthy"
        assert data["data"]["provider"] == "gemini"
        assert data["data"]["rankingSupported"] is True
        assert data["data"]["environment"] == "test"

    def test_health_check_reports_sessions_and_uptime(self, client) -> None:
        response = client.get("/api/v1/health")

        data = response.json()["data"]
        assert data["activeSessions"] == 0
        assert data["uptimeSeconds"] >= 0

    def test_unknown_provider_is_degraded(self, client) -> None:
        """A misconfigured provider degrades health without failing it."""
        app.dependency_overrides[get_settings] = lambda: Settings(
            _env_file=None, ANALYSIS_PROVIDER="claude"  # type: ignore[call-arg]
        )
        try:
            response = client.get("/api/v1/health")
        finally:
            app.dependency_overrides.pop(get_settings, None)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "degraded"
        assert data["rankingSupported"] is False

    def test_non_ranking_provider(self, client) -> None:
        app.dependency_overrides[get_settings] = lambda: Settings(
            _env_file=None, ANALYSIS_PROVIDER="openai"  # type: ignore[call-arg]
        )
        try:
            data = client.get("/api/v1/health").json()["data"]
        finally:
            app.dependency_overrides.pop(get_settings, None)

        assert data["status"] == "healthy"
        assert data["rankingSupported"] is False


class TestStatistics:
    def test_counters_start_at_zero(self, client) -> None:
        response = client.get("/api/v1/statistics")

        assert response.status_code == 200
        assert response.json()["data"] == {
            "image_analyses": 0,
            "rankings": 0,
            "sessions_registered": 0,
        }
