"""Outbound messaging channels."""

from .base import ChannelSender, summarize_error
from .facebook_inbox import FacebookInboxSender
from .line_push import LinePushSender

__all__ = ["ChannelSender", "FacebookInboxSender", "LinePushSender", "summarize_error"]
