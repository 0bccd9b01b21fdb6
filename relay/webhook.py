"""LINE webhook logging.

LINE only reveals user, group and room ids through webhook events, so
operators point the bot's webhook here, message the bot (or add it to a
group), and copy the ``LINE_TO_IDS=...`` line from the server log.
"""

from __future__ import annotations

import json
import logging
from typing import Any

log = logging.getLogger("relay.webhook")

_SOURCE_ID_KEYS = ("userId", "groupId", "roomId")


def extract_source_ids(payload: Any) -> list[str]:
    """Return the distinct source ids in a webhook payload, first-seen order.

    Anything that isn't shaped like ``{"events": [{"source": {...}}]}``
    contributes nothing.
    """
    if not isinstance(payload, dict):
        return []
    events = payload.get("events")
    if not isinstance(events, list):
        return []

    ids: dict[str, None] = {}
    for event in events:
        source = event.get("source") if isinstance(event, dict) else None
        if not isinstance(source, dict):
            continue
        for key in _SOURCE_ID_KEYS:
            value = source.get(key)
            if value:
                ids[str(value)] = None
    return list(ids)


def log_webhook(payload: Any) -> list[str]:
    """Log the payload and any ids found in it. Returns the ids."""
    log.info("payload: %s", json.dumps(payload, indent=2, ensure_ascii=False, default=str))

    ids = extract_source_ids(payload)
    if ids:
        log.info("LINE_TO_IDS=%s", ",".join(ids))
    return ids
