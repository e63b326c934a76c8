"""Tests for the health endpoint and cross-cutting response headers."""

import pytest


@pytest.mark.integration
class TestHealth:
    """Health endpoint tests."""

    async def test_health(self, client):
        """GET /api/health returns 200 with the success envelope."""
        resp = await client.get("/api/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["data"]["status"] == "healthy"
        assert body["data"]["checks"] == {"database": "ok"}
        assert body["data"]["app"] == "Factory Inventory RBAC API"

    async def test_response_has_request_id(self, client):
        """Every response should have X-Request-ID header."""
        resp = await client.get("/api/health")
        assert "x-request-id" in resp.headers
        assert resp.headers["x-process-time"].endswith("ms")

    async def test_custom_request_id_propagated(self, client):
        """If client sends X-Request-ID, it should be echoed back."""
        resp = await client.get("/api/health", headers={"X-Request-ID": "test-request-12345"})
        assert resp.headers["x-request-id"] == "test-request-12345"

    async def test_security_headers(self, client):
        resp = await client.get("/api/health")
        assert resp.headers["x-content-type-options"] == "nosniff"
        assert resp.headers["x-frame-options"] == "DENY"

    async def test_unknown_route_uses_error_envelope(self, client):
        resp = await client.get("/api/nowhere", headers={"X-Request-ID": "req-404"})
        assert resp.status_code == 404
        body = resp.json()
        assert body["success"] is False
        assert body["message"] == "Not Found"
        assert body["request_id"] == "req-404"
