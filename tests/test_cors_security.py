"""Tests for CORS configuration, correlation ids and security headers."""

import pytest

from core.config import Settings
from main import validate_cors_origins


class TestCORSConfiguration:
    """Test CORS configuration adheres to security requirements."""

    def test_cors_preflight_request(self, client):
        """Test CORS preflight for the streaming endpoint is handled correctly."""
        response = client.options(
            "/api/v1/analyze/stream",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )

        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
        assert response.headers["Access-Control-Allow-Credentials"] == "true"

    def test_cors_simple_request_allowed_origin(self, client):
        response = client.get(
            "/api/v1/health",
            headers={"Origin": "http://127.0.0.1:5173"},
        )

        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Origin"] == "http://127.0.0.1:5173"
        # Browsers may read the correlation id for error reports
        assert "X-Correlation-ID" in response.headers["Access-Control-Expose-Headers"]

    def test_cors_request_from_disallowed_origin(self, client):
        """Test CORS blocks requests from disallowed origins."""
        response = client.get(
            "/api/v1/health",
            headers={"Origin": "http://malicious-site.com"},
        )

        assert response.status_code == 200
        assert (
            response.headers.get("Access-Control-Allow-Origin")
            != "http://malicious-site.com"
        )


class TestCorrelationId:
    def test_generated_when_absent(self, client):
        response = client.get("/api/v1/health")
        assert len(response.headers["X-Correlation-ID"]) >= 8

    def test_client_value_is_echoed(self, client):
        response = client.get(
            "/api/v1/health", headers={"X-Correlation-ID": "req-123"}
        )
        assert response.headers["X-Correlation-ID"] == "req-123"

    def test_error_body_carries_the_same_id(self, client):
        response = client.get(
            "/api/v1/sessions/unknown/image", headers={"X-Correlation-ID": "req-404"}
        )
        assert response.status_code == 404
        assert response.json()["error"]["correlation_id"] == "req-404"
        assert response.headers["X-Correlation-ID"] == "req-404"


class TestSecurityHeaders:
    def test_security_headers_not_set_by_backend(self, client):
        """Test that security headers are not set by backend (the proxy handles them)."""
        response = client.get("/api/v1/health")

        for header in (
            "X-Frame-Options",
            "Strict-Transport-Security",
            "Content-Security-Policy",
        ):
            assert header not in response.headers, f"Backend should not set {header}"


class TestCORSConfigValidation:
    """Test CORS configuration validation logic."""

    def test_cors_credentials_with_wildcard_prevented(self):
        with pytest.raises(ValueError, match="CORS configuration error"):
            Settings(CORS_ORIGINS=["*"], ALLOW_CREDENTIALS=True)

    def test_wildcard_allowed_without_credentials(self):
        settings = Settings(CORS_ORIGINS=["*"], ALLOW_CREDENTIALS=False)
        assert settings.CORS_ORIGINS == ["*"]

    def test_cors_origins_csv_parsing(self):
        settings = Settings(
            CORS_ORIGINS="http://localhost:5173,https://app.example.com, http://127.0.0.1:5173",
        )

        assert settings.CORS_ORIGINS == [
            "http://localhost:5173",
            "https://app.example.com",
            "http://127.0.0.1:5173",
        ]

    def test_cors_origins_json_parsing(self):
        settings = Settings(
            CORS_ORIGINS='["http://localhost:5173", "https://app.example.com"]',
        )
        assert settings.CORS_ORIGINS == ["http://localhost:5173", "https://app.example.com"]

    def test_invalid_origins_are_dropped(self):
        assert validate_cors_origins(
            ["localhost:5173", "https://app.example.com", "ftp://files.example.com"]
        ) == ["https://app.example.com"]
