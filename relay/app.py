"""FastAPI application: HTTP endpoints for the booking relay.

Endpoints:

  POST /api/booking-notify   Format a booking and send it to LINE + Facebook
  POST /api/line-webhook     Log LINE webhook events (to discover target ids)
  GET  /api/config-check     Which channel settings are present
  GET  /health               Health check

The notify flow:
  1. Website form POSTs JSON to /api/booking-notify
  2. BookingDispatcher formats the message
  3. LINE pushes and Facebook sends run concurrently, one call per recipient
  4. 200 if LINE got through, 502 if not; per-recipient failures in the body
"""

from __future__ import annotations

# Load .env into os.environ early so Settings and anything reading
# os.environ see the same values.
from dotenv import load_dotenv
load_dotenv()

import json
import logging
from pathlib import Path
from typing import Any, Optional

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-20s %(levelname)-7s %(message)s",
)

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles

from relay.config import Settings, load_settings
from relay.dispatch import BookingDispatcher
from relay.webhook import log_webhook

log = logging.getLogger("relay.app")

JSON_MEDIA_TYPE = "application/json"

# Larger bodies are refused with 413 before parsing.
MAX_BODY_BYTES = 256 * 1024

web_dir = Path(__file__).resolve().parent.parent / "web"


class InvalidJSON(ValueError):
    """Request body declared as JSON but could not be decoded."""


class PayloadTooLarge(ValueError):
    """Request body exceeds MAX_BODY_BYTES."""


def _is_json(request: Request) -> bool:
    content_type = request.headers.get("content-type", "")
    return content_type.split(";", 1)[0].strip().lower() == JSON_MEDIA_TYPE


async def _read_body(request: Request) -> bytes:
    """Read the body, giving up as soon as it passes MAX_BODY_BYTES."""
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > MAX_BODY_BYTES:
        raise PayloadTooLarge(f"declared {declared} bytes")

    raw = bytearray()
    async for chunk in request.stream():
        raw.extend(chunk)
        if len(raw) > MAX_BODY_BYTES:
            raise PayloadTooLarge(f"more than {MAX_BODY_BYTES} bytes")
    return bytes(raw)


async def _read_json(request: Request) -> Any:
    """Decode the request body; an empty body is an empty object.

    Only objects and arrays are accepted at the top level.
    """
    raw = await _read_body(request)
    if not raw.strip():
        return {}
    try:
        payload = json.loads(raw)
    except ValueError as e:
        raise InvalidJSON(str(e)) from e
    if not isinstance(payload, (dict, list)):
        raise InvalidJSON(f"top-level {type(payload).__name__} is not an object or array")
    return payload


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Configuration to run with. Loaded from the environment
                  when omitted.
        transport: Optional httpx transport for outbound channel calls.
    """
    settings = settings or load_settings()
    for warning in settings.validate_startup():
        log.warning(warning)

    app = FastAPI(
        title="Booking Relay",
        description="Relays website booking notifications to LINE and Facebook Messenger",
        version="0.1.0",
    )
    app.state.settings = settings
    app.state.dispatcher = BookingDispatcher(settings, transport=transport)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origin_list or ["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(InvalidJSON)
    async def invalid_json(request: Request, exc: InvalidJSON) -> JSONResponse:
        log.warning("Rejected malformed JSON on %s: %s", request.url.path, exc)
        return JSONResponse({"ok": False, "error": "invalid-json"}, status_code=400)

    @app.exception_handler(PayloadTooLarge)
    async def payload_too_large(request: Request, exc: PayloadTooLarge) -> JSONResponse:
        log.warning("Rejected oversized body on %s: %s", request.url.path, exc)
        return JSONResponse({"ok": False, "error": "payload-too-large"}, status_code=413)

    # ── Health check ───────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        return JSONResponse({"ok": True})

    # ── Booking notification ───────────────────────────────────

    @app.post("/api/booking-notify")
    async def booking_notify(request: Request) -> JSONResponse:
        """Send one booking notification to every configured recipient."""
        if not _is_json(request):
            return JSONResponse(
                {
                    "ok": False,
                    "error": "unsupported-content-type",
                    "expected": JSON_MEDIA_TYPE,
                },
                status_code=415,
            )

        payload = await _read_json(request)
        outcome = await app.state.dispatcher.dispatch(payload)
        return JSONResponse(outcome.body, status_code=outcome.status_code)

    # ── LINE webhook ───────────────────────────────────────────

    @app.post("/api/line-webhook")
    async def line_webhook(request: Request) -> Response:
        """Log webhook events. Always acknowledges so LINE doesn't retry."""
        try:
            payload = await _read_json(request)
        except (InvalidJSON, PayloadTooLarge) as e:
            log.warning("Unreadable webhook payload: %s", e)
            payload = {}
        log_webhook(payload)
        return Response(status_code=200)

    # ── Config check ───────────────────────────────────────────

    @app.get("/api/config-check")
    async def config_check() -> JSONResponse:
        return JSONResponse({
            "ok": True,
            "config": {
                "lineToken": bool(settings.line_channel_access_token),
                "lineTargets": len(settings.line_targets),
                "fbToken": bool(settings.fb_page_access_token),
                "fbRecipients": len(settings.fb_recipients),
            },
        })

    # ── Static file serving (booking site) ─────────────────────

    if web_dir.is_dir():
        app.mount("/", StaticFiles(directory=str(web_dir), html=True), name="static")

    return app


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = app.state.settings

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = (
        "%(asctime)s %(name)-12s %(levelname)-8s %(message)s"
    )

    uvicorn.run(
        "relay.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=log_config,
    )
