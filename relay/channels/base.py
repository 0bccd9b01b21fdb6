"""ChannelSender ABC: one message, many recipients, one result each.

Each concrete channel knows how to POST a single message to a single
recipient on its provider's API.  The base class handles the fan-out:

  1. truncate the text to the channel's limit (once, for all targets)
  2. start one send per target without waiting for the others
  3. wait for every send to settle, success or failure
  4. return one DeliveryResult per target, in target order

A failure on one target never affects another target's send.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import httpx

from relay.message import truncate_text
from relay.models import DeliveryResult

log = logging.getLogger("relay.channels")


def summarize_error(error: Optional[BaseException]) -> str:
    """Short failure text for a per-target result or an error response.

    Prefers the provider's response body (the APIs explain what went
    wrong there), then the exception message, then its type name.
    """
    if error is None:
        return "unknown-error"

    response = getattr(error, "response", None)
    if isinstance(response, httpx.Response):
        try:
            body = response.text
        except httpx.ResponseNotRead:
            body = ""
        if body:
            try:
                data = json.loads(body)
            except ValueError:
                return body
            if isinstance(data, (dict, list)):
                return json.dumps(data, separators=(",", ":"), ensure_ascii=False)
            return body

    return str(error) or type(error).__name__


class ChannelSender(ABC):
    """Abstract outbound messaging channel.

    ``timeout`` bounds each send as a whole (connect, upload, response),
    not each phase separately. ``None`` leaves it to the client.
    """

    channel: str = ""
    max_length: int = 0

    def __init__(self, token: str, timeout: Optional[float] = None) -> None:
        self._token = token
        self._timeout = timeout

    @abstractmethod
    async def _post(self, client: httpx.AsyncClient, target: str, text: str) -> httpx.Response:
        """Send ``text`` to one recipient and return the provider's response.

        Implementations should not swallow errors; ``send`` turns them
        into failed results.
        """

    async def send(
        self,
        client: httpx.AsyncClient,
        targets: Sequence[str],
        text: str,
    ) -> list[DeliveryResult]:
        """Send ``text`` to every target concurrently and collect all results."""
        safe_text = truncate_text(text, self.max_length)
        jobs = [self._deliver(client, target, safe_text) for target in targets]
        return list(await asyncio.gather(*jobs))

    async def _deliver(self, client: httpx.AsyncClient, target: str, text: str) -> DeliveryResult:
        try:
            response = await asyncio.wait_for(self._post(client, target, text), self._timeout)
            response.raise_for_status()
        except asyncio.TimeoutError as e:
            if self._timeout is None:
                error = summarize_error(e)
            else:
                error = f"timeout of {round(self._timeout * 1000)}ms exceeded"
        except Exception as e:
            error = summarize_error(e)
        else:
            ok = 200 <= response.status_code < 300
            return DeliveryResult(channel=self.channel, target=target, ok=ok)

        log.warning("%s send to %s failed: %s", self.channel, target, error)
        return DeliveryResult(channel=self.channel, target=target, ok=False, error=error)
