"""Per-frame effects (screen shake, flash, sound) attached to character emotes."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

_INT_RE = re.compile(r"[+-]?\d+")


class EffectType(Enum):
    SFX = 0
    SHAKE = 1
    FLASH = 2


# The position of each field in the effect data decides its effect type.
EFFECT_ORDER = (EffectType.SHAKE, EffectType.FLASH, EffectType.SFX)


@dataclass(frozen=True)
class FrameEffect:
    """An effect to trigger when ``emote_name`` reaches a given frame."""

    emote_name: str = ""
    type: EffectType = EffectType.SFX
    file_name: str = ""


def _to_int(text: str) -> int:
    text = text.strip()
    if not _INT_RE.fullmatch(text):
        return 0
    return int(text)


def parse_frame_effects(data: Sequence[str]) -> dict[int, list[FrameEffect]]:
    """Parse shake, flash and sound fields into effects keyed by frame number.

    Each field holds ``^``-separated emotes of the form
    ``name|frame|frame=value|...``; sound effects take their file name from
    the value after ``=``.
    """
    if len(data) > len(EFFECT_ORDER):
        raise ValueError(
            f"expected at most {len(EFFECT_ORDER)} effect fields, got {len(data)}"
        )

    effects: dict[int, list[FrameEffect]] = {}
    for effect_type, field in zip(EFFECT_ORDER, data):
        for emote in field.split("^"):
            emote_name, *raw_effects = emote.split("|")
            for raw_effect in raw_effects:
                frame_data = raw_effect.split("=")
                frame_number = _to_int(frame_data[0])
                file_name = ""
                if effect_type is EffectType.SFX:
                    if len(frame_data) < 2:
                        raise ValueError(
                            f"sound effect {raw_effect!r} of {emote_name!r} has no file name"
                        )
                    file_name = frame_data[1]
                effects.setdefault(frame_number, []).append(
                    FrameEffect(emote_name, effect_type, file_name)
                )
    return effects


class FrameEffectDispatcher:
    """Holds the current frame effects and picks those due for a shown frame."""

    def __init__(self) -> None:
        self.effects: dict[int, list[FrameEffect]] = {}

    def set_frame_effects(self, data: Sequence[str]) -> None:
        """Replace all effects with those parsed from ``data``."""
        self.effects = parse_frame_effects(data)

    def effects_for(self, frame_number: int, resolved_emote: str) -> list[FrameEffect]:
        """The effects to trigger for ``resolved_emote`` at ``frame_number``, in order."""
        return [
            effect
            for effect in self.effects.get(frame_number, ())
            if effect.emote_name == resolved_emote
        ]