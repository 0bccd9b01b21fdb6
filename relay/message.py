"""Booking message formatting.

Builds the Thai-language notification text sent to staff on both
channels, and trims it to each channel's length limit.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from relay.models import BookingRequest

log = logging.getLogger("relay.message")

DEFAULT_TIMEZONE = "Asia/Bangkok"
TRUNCATION_MARKER = "..."
PLACEHOLDER = "-"

# Buddhist Era = Gregorian + 543, as printed by the th-TH locale.
_BUDDHIST_ERA_OFFSET = 543


def format_local_time(now: Optional[datetime] = None, tz_name: str = DEFAULT_TIMEZONE) -> str:
    """Short Thai date plus medium time, e.g. ``19/10/69 14:03:22``."""
    now = now or datetime.now(timezone.utc)
    try:
        local = now.astimezone(ZoneInfo(tz_name))
    except (ZoneInfoNotFoundError, ValueError):
        log.warning("Unknown time zone %r, falling back to UTC ISO timestamp", tz_name)
        return now.astimezone(timezone.utc).isoformat()

    year = (local.year + _BUDDHIST_ERA_OFFSET) % 100
    return f"{local.day}/{local.month}/{year:02d} {local:%H:%M:%S}"


def truncate_text(value: str, max_length: int) -> str:
    """Cut ``value`` so it fits in ``max_length``, ending with ``...``."""
    if not value or len(value) <= max_length:
        return value
    keep = max(0, max_length - len(TRUNCATION_MARKER))
    return value[:keep] + TRUNCATION_MARKER


def _field(value: Optional[str]) -> str:
    return value if value else PLACEHOLDER


def build_booking_message(
    request: BookingRequest,
    now: Optional[datetime] = None,
    tz_name: str = DEFAULT_TIMEZONE,
) -> str:
    """Return the outbound text for a booking request.

    A non-empty ``raw_message`` is sent as-is (trimmed). Otherwise the
    fixed template is filled in, one line per field, with the send time
    on the last line.
    """
    if request.raw_message:
        return request.raw_message.strip()

    lines = [
        "แจ้งเตือนนัดหมายใหม่ (เว็บไซต์)",
        f"ผู้ติดต่อ: {_field(request.name)}",
        f"เบอร์โทร: {_field(request.phone)}",
        f"บริการ: {_field(request.service)}",
        f"วันเวลา: {_field(request.date)} {_field(request.time)}",
        f"พื้นที่: {_field(request.area)}",
        f"รายละเอียด: {_field(request.note)}",
        f"เวลาที่ส่ง: {format_local_time(now, tz_name)}",
    ]
    return "\n".join(lines)
