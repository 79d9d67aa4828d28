"""
Integration tests for the proxy endpoint through the full application.

Tests cover:
- CORS preflight and CORS headers on every response
- Method gate and validation errors
- ajax and REST transports against a mocked upstream
- Response classification as seen by the browser
- Transport failures, timeouts and correlation IDs
- Health and metrics endpoints
"""

import json

import httpx
import pytest
from fastapi.testclient import TestClient
from respx import MockRouter

from amelia_proxy.src.config import Settings
from amelia_proxy.src.main import create_app

PROXY_PATH = "/api/amelia-proxy"
AJAX_URL = "https://example.com/wp-admin/admin-ajax.php"
REST_URL = "https://example.com/wp-json/amelia/v1"
API_KEY = "amelia-test-key-0123456789"

EXPECTED_CORS = {
    "access-control-allow-origin": "*",
    "access-control-allow-credentials": "true",
    "access-control-allow-methods": "GET,OPTIONS,PATCH,DELETE,POST,PUT",
}


def assert_cors(response):
    for name, value in EXPECTED_CORS.items():
        assert response.headers[name] == value
    allow_headers = response.headers["access-control-allow-headers"]
    for header in ("X-CSRF-Token", "X-Requested-With", "Accept", "Content-Type"):
        assert header in allow_headers


# ============================================================================
# CORS
# ============================================================================


class TestCors:
    """CORS behaviour on every response."""

    @pytest.mark.parametrize("path", [PROXY_PATH, "/health", "/anything"])
    def test_preflight(self, client, path):
        """Test OPTIONS answers 200 with CORS headers and no body."""
        response = client.request("OPTIONS", path, json={"baseUrl": "ignored"})

        assert response.status_code == 200
        assert response.content == b""
        assert_cors(response)

    def test_preflight_with_browser_headers(self, client):
        response = client.options(
            PROXY_PATH,
            headers={
                "Origin": "https://app.example.org",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )

        assert response.status_code == 200
        assert_cors(response)

    def test_headers_on_errors(self, client):
        """Test 400, 405 and 404 responses carry CORS headers too."""
        assert_cors(client.post(PROXY_PATH, json={}))
        assert_cors(client.get(PROXY_PATH))
        assert_cors(client.get("/does-not-exist"))

    def test_configured_origin(self):
        settings = Settings(
            _env_file=None,
            cors_allowed_origin="https://booking.example.org",
            cors_allow_credentials=False,
        )
        with TestClient(create_app(settings)) as client:
            response = client.options(PROXY_PATH)

        assert response.headers["access-control-allow-origin"] == "https://booking.example.org"
        assert "access-control-allow-credentials" not in response.headers


# ============================================================================
# METHOD GATE AND VALIDATION
# ============================================================================


class TestValidation:
    """Requests rejected before any upstream call."""

    @pytest.mark.parametrize("method", ["GET", "PUT", "PATCH", "DELETE"])
    def test_method_not_allowed(self, client, method, respx_mock: MockRouter):
        response = client.request(method, PROXY_PATH)

        assert response.status_code == 405
        assert response.json() == {"success": False, "error": "Method not allowed"}
        assert len(respx_mock.calls) == 0

    @pytest.mark.parametrize("method", ["TRACE", "PURGE"])
    def test_unrouted_method_uses_envelope(self, client, method, respx_mock: MockRouter):
        """Methods rejected by routing get the same body as the method gate."""
        response = client.request(method, PROXY_PATH)

        assert response.status_code == 405
        assert response.json() == {"success": False, "error": "Method not allowed"}
        assert_cors(response)
        assert len(respx_mock.calls) == 0

    @pytest.mark.parametrize("payload", [
        {},
        {"baseUrl": "example.com"},
        {"apiKey": API_KEY},
        {"baseUrl": "", "apiKey": ""},
    ])
    def test_missing_fields(self, client, payload, respx_mock: MockRouter):
        response = client.post(PROXY_PATH, json=payload)

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert "baseUrl" in body["error"] and "apiKey" in body["error"]
        assert len(respx_mock.calls) == 0

    def test_invalid_base_url(self, client):
        response = client.post(PROXY_PATH, json={"baseUrl": "exa mple.com", "apiKey": API_KEY})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Invalid baseUrl format"
        assert body["hint"]

    def test_malformed_body(self, client):
        response = client.post(
            PROXY_PATH, content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid JSON body"


# ============================================================================
# AJAX TRANSPORT
# ============================================================================


class TestAjaxTransport:
    """Default admin-ajax transport."""

    def test_success(self, client, proxy_payload, respx_mock: MockRouter):
        route = respx_mock.get(AJAX_URL).mock(
            return_value=httpx.Response(200, json={"message": "ok", "data": {"services": []}})
        )

        response = client.post(PROXY_PATH, json=proxy_payload)

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "data": {"message": "ok", "data": {"services": []}},
        }
        assert_cors(response)

        upstream = route.calls.last.request
        assert upstream.headers["Amelia"] == API_KEY
        assert upstream.url.params["action"] == "wpamelia_api"
        assert upstream.url.params["call"] == "/api/v1/entities"
        assert API_KEY not in str(upstream.url)

    def test_call_and_query_params(self, client, respx_mock: MockRouter):
        route = respx_mock.get(AJAX_URL).mock(return_value=httpx.Response(200, json=[]))

        client.post(PROXY_PATH, json={
            "baseUrl": "https://example.com/",
            "apiKey": API_KEY,
            "endpoint": "appointments",
            "params": {"dates": "2024-05-01,2024-05-31", "page": 2},
        })

        params = route.calls.last.request.url.params
        assert params["call"] == "/api/v1/appointments"
        assert params["dates"] == "2024-05-01,2024-05-31"
        assert params["page"] == "2"

    def test_post_with_body(self, client, respx_mock: MockRouter):
        route = respx_mock.post(AJAX_URL).mock(
            return_value=httpx.Response(200, json={"message": "Successfully added booking"})
        )

        response = client.post(PROXY_PATH, json={
            "baseUrl": "example.com",
            "apiKey": API_KEY,
            "call": "/api/v1/bookings",
            "method": "POST",
            "body": {"type": "appointment", "serviceId": 1},
        })

        assert response.json()["success"] is True
        upstream = route.calls.last.request
        assert upstream.headers["Content-Type"] == "application/json"
        assert json.loads(upstream.content) == {"type": "appointment", "serviceId": 1}

    def test_pasted_plugin_url(self, client, respx_mock: MockRouter):
        """Test a full admin-ajax URL as baseUrl is reduced to the site."""
        route = respx_mock.get(AJAX_URL).mock(return_value=httpx.Response(200, json={}))

        client.post(PROXY_PATH, json={
            "baseUrl": "https://example.com/wp-admin/admin-ajax.php?action=wpamelia_api",
            "apiKey": API_KEY,
        })

        assert route.called
        assert route.calls.last.request.url.path == "/wp-admin/admin-ajax.php"


# ============================================================================
# REST TRANSPORT
# ============================================================================


class TestRestTransport:
    """REST transport selected by configuration or per request."""

    def test_configured_rest(self, rest_client, proxy_payload, respx_mock: MockRouter):
        route = respx_mock.get(f"{REST_URL}/entities").mock(
            return_value=httpx.Response(200, json={"id": 1})
        )

        response = rest_client.post(PROXY_PATH, json=proxy_payload)

        assert response.json() == {"success": True, "data": {"id": 1}}
        upstream = route.calls.last.request
        assert upstream.url.params["ameliaApiKey"] == API_KEY
        assert "Amelia" not in upstream.headers

    def test_per_request_rest(self, client, respx_mock: MockRouter):
        route = respx_mock.delete(f"{REST_URL}/appointments/7").mock(
            return_value=httpx.Response(200, json={"message": "deleted"})
        )

        response = client.post(PROXY_PATH, json={
            "baseUrl": "example.com",
            "apiKey": API_KEY,
            "call": "/api/v1/appointments/7",
            "method": "DELETE",
            "transport": "rest",
        })

        assert response.status_code == 200
        assert route.called


# ============================================================================
# RESPONSE CLASSIFICATION
# ============================================================================


class TestClassification:
    """Upstream replies as seen by the browser."""

    def test_zero_response(self, client, proxy_payload, respx_mock: MockRouter):
        respx_mock.get(AJAX_URL).mock(return_value=httpx.Response(200, text="0"))

        response = client.post(PROXY_PATH, json=proxy_payload)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Empty response from WordPress"
        assert body["rawResponse"] == "0"
        assert body["hint"]

    def test_html_response(self, client, proxy_payload, respx_mock: MockRouter):
        page = "<!DOCTYPE html><html>" + "<p>There has been a critical error.</p>" * 40
        respx_mock.get(AJAX_URL).mock(
            return_value=httpx.Response(500, text=page, headers={"Content-Type": "text/html"})
        )

        response = client.post(PROXY_PATH, json=proxy_payload)

        assert response.status_code == 200
        body = response.json()
        assert body["error"] == "WordPress returned HTML instead of JSON"
        assert len(body["rawResponse"]) <= 300
        assert body["rawResponse"] == page[:300]

    def test_invalid_json(self, client, proxy_payload, respx_mock: MockRouter):
        respx_mock.get(AJAX_URL).mock(return_value=httpx.Response(200, text="not json"))

        response = client.post(PROXY_PATH, json=proxy_payload)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Invalid JSON response"
        assert body["rawResponse"] == "not json"

    def test_upstream_404(self, client, proxy_payload, respx_mock: MockRouter):
        respx_mock.get(AJAX_URL).mock(
            return_value=httpx.Response(404, json={"message": "Not found"})
        )

        response = client.post(PROXY_PATH, json=proxy_payload)

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Request failed"
        assert body["status"] == 404
        assert body["data"] == {"message": "Not found"}
        assert_cors(response)

    def test_upstream_404_null_body(self, client, proxy_payload, respx_mock: MockRouter):
        respx_mock.get(AJAX_URL).mock(return_value=httpx.Response(404, text="null"))

        response = client.post(PROXY_PATH, json=proxy_payload)

        assert response.status_code == 404
        body = response.json()
        assert body["status"] == 404
        assert "data" in body
        assert body["data"] is None

    def test_non_finite_number(self, client, proxy_payload, respx_mock: MockRouter):
        respx_mock.get(AJAX_URL).mock(
            return_value=httpx.Response(200, text='{"price": NaN}')
        )

        response = client.post(PROXY_PATH, json=proxy_payload)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Invalid JSON response"
        assert body["rawResponse"] == '{"price": NaN}'


# ============================================================================
# TRANSPORT FAILURES
# ============================================================================


class TestTransportFailures:
    """Outbound failures."""

    def test_dns_failure(self, client, proxy_payload, respx_mock: MockRouter):
        respx_mock.get(AJAX_URL).mock(
            side_effect=httpx.ConnectError("[Errno -2] Name or service not known")
        )

        response = client.post(PROXY_PATH, json=proxy_payload)

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Cannot reach site"
        assert "Name or service not known" in body["message"]
        assert_cors(response)

    def test_timeout(self, client, proxy_payload, respx_mock: MockRouter):
        respx_mock.get(AJAX_URL).mock(side_effect=httpx.ConnectTimeout("timed out"))

        response = client.post(PROXY_PATH, json=proxy_payload)

        assert response.status_code == 504
        assert response.json()["error"] == "Upstream request timed out"

    def test_unexpected_failure(self, client, proxy_payload, respx_mock: MockRouter):
        respx_mock.get(AJAX_URL).mock(side_effect=ValueError("bad state"))

        response = client.post(PROXY_PATH, json=proxy_payload)

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "error": "Proxy request failed",
            "message": "bad state",
        }


# ============================================================================
# AMBIENT ENDPOINTS
# ============================================================================


class TestServiceEndpoints:
    """Health, metrics and correlation IDs."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["service"] == "Amelia API Proxy"
        assert body["transport"] == "ajax"

    def test_correlation_id_echoed(self, client):
        response = client.get("/health", headers={"X-Correlation-ID": "abc-123"})
        assert response.headers["X-Correlation-ID"] == "abc-123"

    def test_correlation_id_generated(self, client):
        response = client.get("/health")
        assert len(response.headers["X-Correlation-ID"]) == 36

    def test_metrics(self, client, proxy_payload, respx_mock: MockRouter):
        respx_mock.get(AJAX_URL).mock(return_value=httpx.Response(200, json={}))
        client.post(PROXY_PATH, json=proxy_payload)

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "proxy_http_requests_total" in response.text
        assert 'outcome="success"' in response.text

    def test_metrics_disabled(self):
        settings = Settings(_env_file=None, metrics_enabled=False)
        with TestClient(create_app(settings)) as client:
            assert client.get("/metrics").status_code == 404

    def test_custom_proxy_path(self, respx_mock: MockRouter):
        respx_mock.get(AJAX_URL).mock(return_value=httpx.Response(200, json={"id": 1}))
        settings = Settings(_env_file=None, proxy_path="/proxy/")

        with TestClient(create_app(settings)) as client:
            response = client.post("/proxy", json={"baseUrl": "example.com", "apiKey": API_KEY})

        assert response.json()["data"] == {"id": 1}
