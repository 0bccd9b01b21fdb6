"""Pydantic model for inbound booking notifications."""

from typing import Any, Optional

from pydantic import BaseModel, field_validator


class BookingRequest(BaseModel):
    """Fields submitted by the booking form on the website.

    Every field is optional; the formatter prints a dash for anything
    missing. ``raw_message`` replaces the whole template when present.
    """

    name: Optional[str] = None
    phone: Optional[str] = None
    service: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    area: Optional[str] = None
    note: Optional[str] = None
    raw_message: Optional[str] = None

    model_config = {"extra": "ignore"}

    @field_validator("*", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        # Form builders sometimes send phone numbers or dates as numbers.
        # Falsy values (0, false, [], {}) count as absent.
        if value is None or isinstance(value, str):
            return value
        if not value:
            return None
        return str(value)

    @classmethod
    def from_payload(cls, payload: Any) -> "BookingRequest":
        """Build from a decoded JSON body; anything but an object is empty."""
        if not isinstance(payload, dict):
            return cls()
        return cls.model_validate(payload)
