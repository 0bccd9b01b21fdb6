"""Booking notification dispatch: format, fan out, aggregate.

One call to ``BookingDispatcher.dispatch`` handles one notify request:

  1. refuse if any channel credential or recipient list is missing
  2. build the message text
  3. send on LINE and Facebook at the same time, each fanning out to
     all of its recipients
  4. merge the results (LINE first) and apply the success policy

Success policy: the request succeeds when at least one LINE push was
delivered, whatever happened on Facebook.  Facebook is reported as
delivered when nothing failed at all, or when at least one Facebook
send got through.  With no LINE delivery the request fails with 502.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from relay.channels import FacebookInboxSender, LinePushSender, summarize_error
from relay.config import Settings
from relay.message import build_booking_message
from relay.models import BookingRequest, DeliveryResult

log = logging.getLogger("relay.dispatch")


@dataclass
class DispatchOutcome:
    """HTTP status and JSON body for a notify request."""

    status_code: int
    body: dict[str, Any] = field(default_factory=dict)


def apply_success_policy(
    line_results: list[DeliveryResult],
    fb_results: list[DeliveryResult],
) -> DispatchOutcome:
    """Decide the response from the per-recipient results of both channels."""
    all_results = [*line_results, *fb_results]
    failed = [r.to_dict() for r in all_results if not r.ok]
    sent = len(all_results) - len(failed)
    line_success = sum(1 for r in line_results if r.ok)
    fb_success = sum(1 for r in fb_results if r.ok)

    if line_success > 0:
        return DispatchOutcome(200, {
            "ok": True,
            "lineDelivered": True,
            "facebookDelivered": fb_success > 0 if failed else True,
            "sent": sent,
            "total": len(all_results),
            "failed": failed,
        })

    return DispatchOutcome(502, {
        "ok": False,
        "error": "line-delivery-required",
        "failed": failed,
        "sent": sent,
        "total": len(all_results),
    })


class BookingDispatcher:
    """Sends booking notifications to every configured LINE and Facebook recipient.

    Args:
        settings: Process-wide configuration, loaded once at startup.
        transport: Optional httpx transport for the outbound client.
                   Tests pass an ``httpx.MockTransport`` here.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._line = LinePushSender(
            settings.line_channel_access_token,
            api_url=settings.line_push_api,
            timeout=settings.send_timeout_seconds,
        )
        self._facebook = FacebookInboxSender(
            settings.fb_page_access_token,
            graph_api=settings.fb_graph_api,
            timeout=settings.send_timeout_seconds,
        )

    async def dispatch(self, payload: Any) -> DispatchOutcome:
        missing = self._settings.missing_keys()
        if missing:
            log.warning("Booking notify refused, missing config: %s", ", ".join(missing))
            return DispatchOutcome(500, {
                "ok": False,
                "error": "missing-config",
                "missing": missing,
            })

        try:
            request = BookingRequest.from_payload(payload)
            message = build_booking_message(request, tz_name=self._settings.message_timezone)
            line_results, fb_results = await self._send_all(message)
        except Exception as e:
            log.exception("Booking notify failed")
            return DispatchOutcome(500, {
                "ok": False,
                "error": "internal-error",
                "detail": summarize_error(e),
            })

        outcome = apply_success_policy(line_results, fb_results)
        log.info(
            "Booking notify: status=%d sent=%d/%d",
            outcome.status_code,
            outcome.body["sent"],
            outcome.body["total"],
        )
        return outcome

    async def _send_all(self, message: str) -> tuple[list[DeliveryResult], list[DeliveryResult]]:
        async with httpx.AsyncClient(
            timeout=self._settings.send_timeout_seconds,
            # No pool cap, so every send in the fan-out starts at once.
            limits=httpx.Limits(max_connections=None, max_keepalive_connections=None),
            transport=self._transport,
        ) as client:
            line_results, fb_results = await asyncio.gather(
                self._line.send(client, self._settings.line_targets, message),
                self._facebook.send(client, self._settings.fb_recipients, message),
            )
        return line_results, fb_results
