"""One entry of the in-character chat log."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

_UNKNOWN = "UNKNOWN"
_DAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def _maybe_unknown(text: str) -> str:
    return text or _UNKNOWN


def _format_timestamp(ts: datetime | None) -> str:
    if ts is None:
        return ""
    return (
        f"{_DAYS[ts.weekday()]} {_MONTHS[ts.month - 1]} {ts.day} "
        f"{ts:%H:%M:%S} {ts.year}"
    )


@dataclass
class ChatLogPiece:
    """A logged chat message with who said it and when."""

    character: str = ""
    character_name: str = ""
    message: str = ""
    action: str = ""
    timestamp: datetime | None = None
    local_player: bool = False
    color: int = 0

    def to_string(self) -> str:
        """Render the entry as a single human-readable line."""
        details = f"[{_format_timestamp(self.timestamp)}] {_maybe_unknown(self.character_name)}"
        if self.character_name != self.character:
            details += f" ({_maybe_unknown(self.character)})"
        if self.action:
            details += f" {self.action}"
        details += f": {_maybe_unknown(self.message)}"
        return details