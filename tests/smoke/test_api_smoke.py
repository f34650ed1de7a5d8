"""
Smoke tests for the gateway HTTP surface.

These run the FastAPI app in-process with the GitHub client mocked out and
check the cross-cutting behavior every route shares.
"""

import uuid
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from github_gateway.api import create_app
from github_gateway.github import GitHubClient


@pytest.fixture
def github():
    client = AsyncMock(spec=GitHubClient)
    client.get_authenticated_user.return_value = {"login": "octocat"}
    client.get_rate_limit.return_value = {"resources": {"core": {"limit": 1, "remaining": 1, "reset": 0}}}
    return client


class TestSmokeAPI:
    @pytest.mark.smoke
    def test_request_id_is_echoed(self, settings, github, auth_headers):
        request_id = str(uuid.uuid4())
        with TestClient(create_app(settings, client=github)) as client:
            response = client.get("/api/rate-limit", headers={**auth_headers, "X-Request-ID": request_id})

        assert response.status_code == 200
        assert response.headers["X-Request-ID"] == request_id

    @pytest.mark.smoke
    def test_request_id_generated_when_absent(self, settings, github):
        with TestClient(create_app(settings, client=github)) as client:
            response = client.get("/health")

        assert uuid.UUID(response.headers["X-Request-ID"])

    @pytest.mark.smoke
    def test_security_headers_on_errors_too(self, settings, github):
        with TestClient(create_app(settings, client=github)) as client:
            response = client.get("/api/rate-limit")

        assert response.status_code == 401
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "SAMEORIGIN"

    @pytest.mark.smoke
    def test_rate_limit_returns_429(self, settings, github, auth_headers):
        limited = settings.model_copy(update={"rate_limit_max_requests": 2})
        with TestClient(create_app(limited, client=github)) as client:
            statuses = [
                client.get("/api/rate-limit", headers=auth_headers).status_code for _ in range(3)
            ]
            health = client.get("/health")

        assert statuses == [200, 200, 429]
        assert health.status_code == 200

    @pytest.mark.smoke
    def test_rate_limit_body(self, settings, github, auth_headers):
        limited = settings.model_copy(update={"rate_limit_max_requests": 1})
        with TestClient(create_app(limited, client=github)) as client:
            client.get("/api/rate-limit", headers=auth_headers)
            response = client.get("/api/rate-limit", headers=auth_headers)

        assert response.status_code == 429
        assert response.json() == {
            "error": "Too many requests from this IP, please try again later."
        }
        assert "Retry-After" in response.headers

    @pytest.mark.smoke
    def test_cors_preflight(self, settings, github):
        with TestClient(create_app(settings, client=github)) as client:
            response = client.options(
                "/api/rate-limit",
                headers={
                    "Origin": "https://example.com",
                    "Access-Control-Request-Method": "GET",
                },
            )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

    @pytest.mark.smoke
    def test_openapi_lists_routes(self, settings, github):
        with TestClient(create_app(settings, client=github)) as client:
            paths = client.get("/openapi.json").json()["paths"]

        assert "/api/repos/{owner}/{repo}/commit" in paths
        assert "/health" in paths

    @pytest.mark.smoke
    def test_unexpected_error_keeps_request_id_and_security_headers(
        self, settings, github, auth_headers
    ):
        github.get_rate_limit.side_effect = RuntimeError("boom")
        app = create_app(settings, client=github)

        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get(
                "/api/rate-limit", headers={**auth_headers, "X-Request-ID": "abc"}
            )

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}
        assert response.headers["X-Request-ID"] == "abc"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
