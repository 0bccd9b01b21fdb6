"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

log = logging.getLogger("relay.config")


def parse_csv(value: str | None) -> list[str]:
    """Split a comma-separated value, trimming items and dropping empties."""
    return [item.strip() for item in str(value or "").split(",") if item.strip()]


class Settings(BaseSettings):
    # LINE Messaging API (push channel)
    line_channel_access_token: str = ""
    line_to_ids: str = ""
    line_push_api: str = "https://api.line.me/v2/bot/message/push"

    # Facebook Messenger (inbox channel)
    fb_page_access_token: str = ""
    fb_recipient_psids: str = ""
    fb_graph_api: str = "https://graph.facebook.com/v22.0"

    # Outbound sends
    send_timeout_seconds: float = 8.0
    message_timezone: str = "Asia/Bangkok"

    # Server
    host: str = "127.0.0.1"
    port: int = 3000
    debug: bool = False
    allowed_origins: str = ""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def line_targets(self) -> list[str]:
        return parse_csv(self.line_to_ids)

    @property
    def fb_recipients(self) -> list[str]:
        return parse_csv(self.fb_recipient_psids)

    @property
    def allowed_origin_list(self) -> list[str]:
        return parse_csv(self.allowed_origins)

    def missing_keys(self) -> list[str]:
        """Names of the required channel settings that are absent."""
        missing: list[str] = []
        if not self.line_channel_access_token:
            missing.append("LINE_CHANNEL_ACCESS_TOKEN")
        if not self.line_targets:
            missing.append("LINE_TO_IDS")
        if not self.fb_page_access_token:
            missing.append("FB_PAGE_ACCESS_TOKEN")
        if not self.fb_recipients:
            missing.append("FB_RECIPIENT_PSIDS")
        return missing

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, never raises.

        A missing channel value does not stop the server: the notify
        endpoint reports it per request and /api/config-check exposes it.
        """
        warnings = [
            f"{key} not set. Booking notifications will fail with missing-config."
            for key in self.missing_keys()
        ]
        if not self.allowed_origin_list:
            warnings.append("ALLOWED_ORIGINS not set. CORS allows every origin.")
        return warnings


def load_settings(**overrides) -> Settings:
    """Build the process-wide settings once, at startup."""
    return Settings(**overrides)
