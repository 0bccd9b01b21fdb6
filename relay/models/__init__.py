"""Data models for the relay."""

from .booking import BookingRequest
from .delivery import DeliveryResult

__all__ = ["BookingRequest", "DeliveryResult"]
