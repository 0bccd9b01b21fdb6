"""Per-recipient delivery outcome."""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one outbound send to one recipient.

    ``ok`` is True only when the channel API answered with a 2xx status.
    """

    channel: str  # "line" | "facebook"
    target: str
    ok: bool
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "channel": self.channel,
            "target": self.target,
            "ok": self.ok,
        }
        if self.error is not None:
            data["error"] = self.error
        return data
