"""
Proxy API integration tests

These tests exercise POST/OPTIONS /api/generate through FastAPI's TestClient
with the upstream model replaced by a stub transport.
"""
import json
from unittest.mock import patch

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import ALLOWED_ORIGIN, UpstreamStub, image_envelope
from config.settings import Settings

VALID_BODY = {"imageBase64": "aW1hZ2U=", "prompt": "Replace the floor with blue tile"}


@pytest.fixture
def client(app):
    """Provide FastAPI test client"""
    return TestClient(app)


@pytest.fixture
def upstream_ok(use_upstream):
    return use_upstream(UpstreamStub(httpx.Response(200, json=image_envelope("b3V0"))))


def post_generate(client, body=None, origin=ALLOWED_ORIGIN, **headers):
    if origin is not None:
        headers["Origin"] = origin
    return client.post("/api/generate", json=VALID_BODY if body is None else body, headers=headers)


@pytest.mark.integration
class TestOriginAndAuth:
    """Tests for origin allow-list and the internal API key"""

    def test_disallowed_origin_is_forbidden(self, client, upstream_ok):
        """Scenario E: 403 before any credential lookup"""
        with patch.object(Settings, "resolve_upstream_api_key") as mock_resolve:
            response = post_generate(client, origin="https://evil.example")

        assert response.status_code == 403
        assert response.json() == {"error": "Forbidden: Invalid origin"}
        mock_resolve.assert_not_called()
        assert upstream_ok.call_count == 0
        # scoped to the safe default, never the caller's origin
        assert response.headers["Access-Control-Allow-Origin"] == ALLOWED_ORIGIN

    def test_missing_origin_is_forbidden(self, client, upstream_ok):
        response = post_generate(client, origin=None)

        assert response.status_code == 403

    def test_origin_check_can_be_disabled(self, client, settings, upstream_ok):
        settings.ENFORCE_ORIGIN = False

        response = post_generate(client, origin="https://partner.example")

        assert response.status_code == 200

    def test_wrong_api_key_is_unauthorized(self, client, settings, upstream_ok):
        settings.INTERNAL_API_KEY = "secret"

        response = post_generate(client, **{"X-API-Key": "guess"})

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        assert upstream_ok.call_count == 0

    def test_missing_api_key_is_unauthorized(self, client, settings, upstream_ok):
        settings.INTERNAL_API_KEY = "secret"

        response = post_generate(client)

        assert response.status_code == 401

    def test_matching_api_key_passes(self, client, settings, upstream_ok):
        settings.INTERNAL_API_KEY = "secret"

        response = post_generate(client, **{"X-API-Key": "secret"})

        assert response.status_code == 200

    def test_unprotected_endpoint_logs_warning(self, client, upstream_ok, caplog):
        with caplog.at_level("WARNING", logger="api.generate"):
            response = post_generate(client)

        assert response.status_code == 200
        assert "INTERNAL_API_KEY is not set" in caplog.text


@pytest.mark.integration
class TestBodyValidation:
    def test_invalid_json(self, client, upstream_ok):
        response = client.post(
            "/api/generate",
            content=b"{not json",
            headers={"Origin": ALLOWED_ORIGIN, "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON body"}

    def test_non_object_json(self, client, upstream_ok):
        response = post_generate(client, body=["imageBase64", "prompt"])

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON body"}

    def test_missing_prompt(self, client, upstream_ok):
        """Scenario D"""
        response = post_generate(client, body={"imageBase64": "aW1hZ2U="})

        assert response.status_code == 400
        assert response.json() == {"error": "Missing required fields: imageBase64, prompt"}

    def test_missing_image(self, client, upstream_ok):
        response = post_generate(client, body={"prompt": "blue tile", "imageBase64": ""})

        assert response.status_code == 400
        assert response.json()["error"] == "Missing required fields: imageBase64, prompt"

    def test_wrong_field_type(self, client, upstream_ok):
        response = post_generate(client, body={"imageBase64": ["a"], "prompt": "blue tile"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request body"

    def test_payload_at_ceiling_is_accepted(self, client, settings, upstream_ok):
        settings.MAX_IMAGE_BASE64_LENGTH = 1000

        response = post_generate(client, body={"imageBase64": "A" * 1000, "prompt": "blue tile"})

        assert response.status_code == 200

    def test_payload_over_ceiling_is_rejected(self, client, settings, upstream_ok):
        settings.MAX_IMAGE_BASE64_LENGTH = 1000

        response = post_generate(client, body={"imageBase64": "A" * 1001, "prompt": "blue tile"})

        assert response.status_code == 413
        assert response.json() == {"error": "Image payload too large (max 5MB)"}
        assert upstream_ok.call_count == 0

    def test_default_ceiling_boundary(self, client, upstream_ok):
        at_limit = post_generate(client, body={"imageBase64": "A" * 7_000_000, "prompt": "blue tile"})
        over_limit = post_generate(client, body={"imageBase64": "A" * 7_000_001, "prompt": "blue tile"})

        assert at_limit.status_code == 200
        assert over_limit.status_code == 413


@pytest.mark.integration
class TestUpstreamForwarding:
    """Tests for configuration lookup and the upstream relay"""

    def test_missing_credential_is_configuration_error(self, client, settings, upstream_ok, caplog):
        settings.GEMINI_API_KEY = None
        settings.API_KEY = None

        with caplog.at_level("ERROR", logger="api.generate"):
            response = post_generate(client)

        assert response.status_code == 500
        assert response.json() == {"error": "Server configuration error"}
        assert upstream_ok.call_count == 0
        assert "GEMINI_MODEL" in caplog.text

    def test_legacy_api_key_is_used(self, client, settings, upstream_ok):
        settings.GEMINI_API_KEY = None
        settings.API_KEY = "legacy-key"

        response = post_generate(client)

        assert response.status_code == 200
        assert upstream_ok.requests[0].headers["x-goog-api-key"] == "legacy-key"

    def test_success_is_relayed_verbatim(self, client, upstream_ok):
        response = post_generate(client)

        assert response.status_code == 200
        assert response.json() == image_envelope("b3V0")
        assert response.headers["Access-Control-Allow-Origin"] == ALLOWED_ORIGIN

    def test_upstream_request_shape(self, client, settings, upstream_ok):
        post_generate(client, body={**VALID_BODY, "mimeType": "image/png"})

        request = upstream_ok.requests[0]
        assert request.url.path == f"/v1beta/models/{settings.GEMINI_MODEL}:generateContent"
        assert request.headers["x-goog-api-key"] == "test-gemini-key"
        # credential never travels in the query string
        assert "key=" not in str(request.url)

        parts = json.loads(request.content)["contents"][0]["parts"]
        assert parts[0] == {"inlineData": {"mimeType": "image/png", "data": "aW1hZ2U="}}
        assert parts[1] == {"text": VALID_BODY["prompt"]}

    def test_request_model_overrides_default(self, client, upstream_ok):
        post_generate(client, body={**VALID_BODY, "model": "gemini-custom"})

        assert upstream_ok.requests[0].url.path.endswith("/models/gemini-custom:generateContent")

    def test_upstream_error_is_sanitized(self, client, use_upstream):
        use_upstream(UpstreamStub(httpx.Response(429, json={
            "error": {"code": 429, "message": "Resource has been exhausted", "status": "RESOURCE_EXHAUSTED"}
        })))

        response = post_generate(client)

        assert response.status_code == 429
        assert response.json() == {
            "error": "Failed to generate content: 429 Resource has been exhausted",
            "details": "RESOURCE_EXHAUSTED",
        }

    def test_upstream_error_without_json(self, client, use_upstream):
        use_upstream(UpstreamStub(httpx.Response(503, text="unavailable")))

        response = post_generate(client)

        assert response.status_code == 503
        assert response.json() == {"error": "Failed to generate content: 503 Unknown upstream error"}

    def test_upstream_transport_failure(self, client, use_upstream):
        request = httpx.Request("POST", "https://generativelanguage.googleapis.com")
        use_upstream(UpstreamStub(httpx.ConnectError("dns failure", request=request)))

        response = post_generate(client)

        assert response.status_code == 500
        assert response.json() == {"error": "Internal Server Error", "details": "dns failure"}


@pytest.mark.integration
class TestPreflightAndHealth:
    def test_preflight_returns_cors_headers(self, client):
        response = client.options("/api/generate", headers={"Origin": "https://epoxycam.com"})

        assert response.status_code == 204
        assert response.content == b""
        assert response.headers["Access-Control-Allow-Origin"] == "https://epoxycam.com"
        assert response.headers["Access-Control-Allow-Methods"] == "POST, OPTIONS"
        assert response.headers["Access-Control-Allow-Headers"] == "Content-Type, X-API-Key"

    def test_preflight_from_unknown_origin_uses_default(self, client):
        response = client.options("/api/generate", headers={"Origin": "https://evil.example"})

        assert response.headers["Access-Control-Allow-Origin"] == ALLOWED_ORIGIN

    def test_generation_health_does_not_leak_key(self, client):
        response = client.get("/api/generate/health")

        assert response.status_code == 200
        data = response.json()
        assert data["configured"] is True
        assert data["protected"] is False
        assert "test-gemini-key" not in response.text
