"""Countdown timer that renders its remaining time as hh:mm:ss.zzz."""

from __future__ import annotations

import time
from collections.abc import Callable

ZERO_TEXT = "00:00:00.000"
_DAY_MS = 1000 * 3600 * 24


def _monotonic_ms() -> int:
    return time.monotonic_ns() // 1_000_000


def format_remaining(msecs: int) -> str:
    """Format milliseconds as hh:mm:ss.zzz, wrapping at one day."""
    if msecs <= 0:
        return ZERO_TEXT
    msecs %= _DAY_MS
    hours, rest = divmod(msecs, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    seconds, millis = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}.{millis:03d}"


class Countdown:
    """A countdown towards a target time; ``clock`` returns milliseconds."""

    def __init__(self, clock: Callable[[], int] = _monotonic_ms) -> None:
        self._clock = clock
        self._target = clock()
        self.text = ""
        self.active = False

    def start(self, msecs: int | None = None) -> None:
        """Begin ticking, optionally setting the remaining time first."""
        if msecs is not None:
            self.set(msecs)
        self.active = True

    def set(self, msecs: int, update_text: bool = False) -> None:
        """Set the remaining time, refreshing the text if asked."""
        now = self._clock()
        self._target = now + msecs
        if update_text:
            self.text = format_remaining(self._target - now)

    def pause(self) -> None:
        self.active = False

    def stop(self) -> None:
        self.text = ZERO_TEXT
        self.active = False

    def skip(self, msecs: int) -> None:
        """Move the target time ``msecs`` closer and refresh the text."""
        left = self._target - self._clock()
        self.set(left - msecs, True)

    def tick(self) -> str:
        """Refresh the text while active; stop once the target is reached."""
        if self.active:
            left = self._target - self._clock()
            if left <= 0:
                self.stop()
            else:
                self.text = format_remaining(left)
        return self.text