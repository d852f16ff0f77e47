"""Loop metadata and display names for music streams."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import unquote, urlsplit

STREAM_COUNT = 2  # 0 = music, 1 = ambience

_SAMPLE_SIZE = 16 // 8
_CHANNELS = 2
_FRAME_BYTES = _SAMPLE_SIZE * _CHANNELS
_UINT32 = 0xFFFFFFFF
_UINT_RE = re.compile(r"\+?\d+")


@dataclass
class LoopPoints:
    """Loop start and end in bytes; the range loops only if start < end."""

    start: int = 0
    end: int = 0


def _to_uint(text: str) -> int:
    if not _UINT_RE.fullmatch(text):
        return 0
    value = int(text)
    return value if value <= _UINT32 else 0


def _to_float(text: str) -> float:
    try:
        return float(text)
    except ValueError:
        return 0.0


def parse_loop_data(text: str, sample_rate: float) -> LoopPoints:
    """Read a song's ``.txt`` companion into byte positions (16-bit stereo)."""
    points = LoopPoints()
    seconds_mode = False
    for line in text.split("\n"):
        args = line.split("=")
        if len(args) < 2:
            continue
        key = args[0].strip()
        value = args[1].strip()
        if key == "seconds":
            if value == "true":
                seconds_mode = True
            continue

        if seconds_mode:
            size = int(_to_float(value) * sample_rate) * _FRAME_BYTES
        else:
            size = _to_uint(value) * _FRAME_BYTES
        size &= _UINT32

        if key == "loop_start":
            points.start = size
        elif key == "loop_length":
            points.end = (points.start + size) & _UINT32
        elif key == "loop_end":
            points.end = size
    return points


def song_display_name(song: str) -> str:
    """The file name of ``song`` without its extension."""
    name = unquote(urlsplit(song).path).rsplit("/", 1)[-1]
    dot = name.rfind(".")
    return name if dot == -1 else name[:dot]


def stream_label(song: str, stream_id: int, missing: bool = False) -> str:
    """The now-playing text shown after starting ``song`` on a stream."""
    if not 0 <= stream_id < STREAM_COUNT:
        return "[ERROR] Invalid Channel"
    name = song_display_name(song)
    if song == "~stop.mp3" and stream_id == 0:
        return "None"
    if missing:
        return f"[MISSING] {name}"
    if song.startswith("http") and stream_id == 0:
        return f"[STREAM] {name}"
    if stream_id == 0:
        return name
    return ""