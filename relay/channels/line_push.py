"""LINE Messaging API push sender.

Pushes a text message to LINE user, group or room ids.  The channel
access token goes in the Authorization header as a bearer token.

API reference: POST https://api.line.me/v2/bot/message/push
  {"to": "<id>", "messages": [{"type": "text", "text": "..."}]}
"""

from __future__ import annotations

from typing import Optional

import httpx

from .base import ChannelSender

DEFAULT_PUSH_API = "https://api.line.me/v2/bot/message/push"


class LinePushSender(ChannelSender):
    """Push channel: one push call per LINE target id."""

    channel = "line"
    # LINE allows 5000 characters per text message; keep headroom.
    max_length = 4500

    def __init__(
        self,
        token: str,
        api_url: str = DEFAULT_PUSH_API,
        timeout: Optional[float] = None,
    ) -> None:
        super().__init__(token, timeout=timeout)
        self._api_url = api_url

    async def _post(self, client: httpx.AsyncClient, target: str, text: str) -> httpx.Response:
        return await client.post(
            self._api_url,
            json={
                "to": target,
                "messages": [{"type": "text", "text": text}],
            },
            headers={"Authorization": f"Bearer {self._token}"},
        )
