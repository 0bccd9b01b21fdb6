"""Tests for the HTTP endpoints."""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from relay.app import create_app
from relay.config import Settings


def _settings(**overrides) -> Settings:
    values = {
        "line_channel_access_token": "line-token",
        "line_to_ids": "U1",
        "fb_page_access_token": "page-token",
        "fb_recipient_psids": "P1",
        "line_push_api": "https://line.test/push",
        "fb_graph_api": "https://graph.test/v22.0",
        "allowed_origins": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class RecordingTransport(httpx.MockTransport):
    """MockTransport that answers 200 and remembers every outbound request."""

    def __init__(self, status_code=200):
        self.requests: list[httpx.Request] = []
        self._status_code = status_code
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self._status_code, json={})


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def client(transport):
    return TestClient(create_app(_settings(), transport=transport))


# ── Health / config check ───────────────────────────────────────────


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"ok": True}


class TestConfigCheck:
    def test_all_present(self, client):
        resp = client.get("/api/config-check")
        assert resp.status_code == 200
        assert resp.json() == {
            "ok": True,
            "config": {
                "lineToken": True,
                "lineTargets": 1,
                "fbToken": True,
                "fbRecipients": 1,
            },
        }

    def test_nothing_configured(self):
        settings = _settings(
            line_channel_access_token="",
            line_to_ids="",
            fb_page_access_token="",
            fb_recipient_psids="",
        )
        resp = TestClient(create_app(settings)).get("/api/config-check")
        assert resp.status_code == 200
        assert resp.json()["config"] == {
            "lineToken": False,
            "lineTargets": 0,
            "fbToken": False,
            "fbRecipients": 0,
        }


# ── Booking notify ──────────────────────────────────────────────────


class TestBookingNotify:
    def test_success(self, client, transport):
        resp = client.post("/api/booking-notify", json={"name": "Somchai", "phone": "0812345678"})
        assert resp.status_code == 200
        assert resp.json() == {
            "ok": True,
            "lineDelivered": True,
            "facebookDelivered": True,
            "sent": 2,
            "total": 2,
            "failed": [],
        }
        assert len(transport.requests) == 2

    def test_charset_parameter_accepted(self, client):
        resp = client.post(
            "/api/booking-notify",
            content=json.dumps({"name": "A"}),
            headers={"Content-Type": "application/json; charset=utf-8"},
        )
        assert resp.status_code == 200

    def test_wrong_content_type_is_415(self, transport):
        # Missing config would be a 500; the content type check comes first.
        settings = _settings(line_channel_access_token="")
        client = TestClient(create_app(settings, transport=transport))
        resp = client.post("/api/booking-notify", data={"name": "A"})

        assert resp.status_code == 415
        assert resp.json() == {
            "ok": False,
            "error": "unsupported-content-type",
            "expected": "application/json",
        }
        assert transport.requests == []

    def test_malformed_json_is_400(self, client, transport):
        resp = client.post(
            "/api/booking-notify",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json() == {"ok": False, "error": "invalid-json"}
        assert transport.requests == []

    def test_empty_body_uses_template(self, client, transport):
        resp = client.post(
            "/api/booking-notify",
            content="",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 200
        text = json.loads(transport.requests[0].content)["messages"][0]["text"]
        assert "ผู้ติดต่อ: -" in text

    def test_missing_config_is_500(self, transport):
        settings = _settings(fb_page_access_token="", fb_recipient_psids="")
        client = TestClient(create_app(settings, transport=transport))
        resp = client.post("/api/booking-notify", json={"name": "A"})

        assert resp.status_code == 500
        assert resp.json() == {
            "ok": False,
            "error": "missing-config",
            "missing": ["FB_PAGE_ACCESS_TOKEN", "FB_RECIPIENT_PSIDS"],
        }
        assert transport.requests == []

    def test_line_failure_is_502(self):
        transport = RecordingTransport(status_code=401)
        client = TestClient(create_app(_settings(), transport=transport))
        resp = client.post("/api/booking-notify", json={"name": "A"})

        assert resp.status_code == 502
        body = resp.json()
        assert body["ok"] is False
        assert body["error"] == "line-delivery-required"
        assert body["sent"] == 0
        assert body["total"] == 2
        assert len(body["failed"]) == 2


# ── LINE webhook ────────────────────────────────────────────────────


class TestLineWebhook:
    def test_acknowledges_events(self, client):
        payload = {"events": [{"source": {"userId": "U1"}}, {"source": {"userId": "U1"}}]}
        resp = client.post("/api/line-webhook", json=payload)
        assert resp.status_code == 200
        assert resp.content == b""

    def test_malformed_payload_still_200(self, client):
        resp = client.post(
            "/api/line-webhook",
            content="{broken",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 200

    def test_empty_payload_still_200(self, client):
        resp = client.post("/api/line-webhook")
        assert resp.status_code == 200


# ── CORS ────────────────────────────────────────────────────────────


class TestCors:
    def test_allow_all_when_unset(self, client):
        resp = client.get("/health", headers={"Origin": "https://anywhere.test"})
        assert resp.headers["access-control-allow-origin"] == "*"

    def test_allow_list(self, transport):
        settings = _settings(allowed_origins="https://shop.test")
        client = TestClient(create_app(settings, transport=transport))

        allowed = client.get("/health", headers={"Origin": "https://shop.test"})
        assert allowed.headers["access-control-allow-origin"] == "https://shop.test"

        blocked = client.get("/health", headers={"Origin": "https://evil.test"})
        assert "access-control-allow-origin" not in blocked.headers

    def test_preflight(self, client):
        resp = client.options(
            "/api/booking-notify",
            headers={
                "Origin": "https://shop.test",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )
        assert resp.status_code == 200
        assert "POST" in resp.headers["access-control-allow-methods"]

    def test_preflight_from_unlisted_origin_rejected(self, transport):
        """An unlisted origin gets a 400 preflight and no allow-origin header."""
        settings = _settings(allowed_origins="https://shop.test")
        client = TestClient(create_app(settings, transport=transport))
        resp = client.options(
            "/api/booking-notify",
            headers={
                "Origin": "https://evil.test",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert resp.status_code == 400
        assert "access-control-allow-origin" not in resp.headers


# ── Request body limits ─────────────────────────────────────────────


class TestRequestBody:
    @pytest.mark.parametrize("body", ["5", "null", '"hi"', "true"])
    def test_top_level_primitive_is_400(self, client, transport, body):
        resp = client.post(
            "/api/booking-notify",
            content=body,
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json() == {"ok": False, "error": "invalid-json"}
        assert transport.requests == []

    def test_top_level_array_accepted(self, client, transport):
        resp = client.post("/api/booking-notify", json=[{"name": "A"}])
        assert resp.status_code == 200
        text = json.loads(transport.requests[0].content)["messages"][0]["text"]
        assert "ผู้ติดต่อ: -" in text

    def test_oversized_body_is_413(self, client, transport):
        resp = client.post("/api/booking-notify", json={"note": "x" * (2 * 1024 * 1024)})
        assert resp.status_code == 413
        assert resp.json() == {"ok": False, "error": "payload-too-large"}
        assert transport.requests == []

    def test_oversized_chunked_body_is_413(self, client, transport):
        """Without a Content-Length the limit is enforced while reading."""
        from relay.app import MAX_BODY_BYTES

        def chunks():
            yield b'{"note": "'
            yield b"x" * (MAX_BODY_BYTES + 1)
            yield b'"}'

        resp = client.post(
            "/api/booking-notify",
            content=chunks(),
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 413
        assert transport.requests == []

    def test_body_under_limit_accepted(self, client):
        resp = client.post("/api/booking-notify", json={"note": "x" * 100_000})
        assert resp.status_code == 200

    def test_webhook_primitive_and_oversized_still_200(self, client):
        resp = client.post(
            "/api/line-webhook",
            content="5",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 200

        resp = client.post("/api/line-webhook", json={"blob": "x" * (2 * 1024 * 1024)})
        assert resp.status_code == 200
