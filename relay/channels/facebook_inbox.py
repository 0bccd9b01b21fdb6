"""Facebook Messenger Send API sender.

Delivers a text message to a page-scoped user id (PSID).  The page
access token is passed as the ``access_token`` query parameter.

API reference: POST {graph}/me/messages?access_token=...
  {"recipient": {"id": "<psid>"}, "messaging_type": "UPDATE",
   "message": {"text": "..."}}
"""

from __future__ import annotations

from typing import Optional

import httpx

from .base import ChannelSender

DEFAULT_GRAPH_API = "https://graph.facebook.com/v22.0"


class FacebookInboxSender(ChannelSender):
    """Inbox channel: one Send API call per PSID."""

    channel = "facebook"
    # Messenger rejects text over 2000 characters.
    max_length = 1800

    def __init__(
        self,
        token: str,
        graph_api: str = DEFAULT_GRAPH_API,
        timeout: Optional[float] = None,
    ) -> None:
        super().__init__(token, timeout=timeout)
        self._endpoint = f"{graph_api.rstrip('/')}/me/messages"

    async def _post(self, client: httpx.AsyncClient, target: str, text: str) -> httpx.Response:
        return await client.post(
            self._endpoint,
            json={
                "recipient": {"id": target},
                "messaging_type": "UPDATE",
                "message": {"text": text},
            },
            params={"access_token": self._token},
        )
