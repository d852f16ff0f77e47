"""Frame-by-frame playback of an animated image scaled into a target area."""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from PIL import Image

from courtplay.loader import AnimationFrame, AnimationLoader

INVALID_FILE = "Invalid File"


class ResizeMode(Enum):
    AUTO = "auto"
    PIXEL = "pixel"
    SMOOTH = "smooth"


class TransformationMode(Enum):
    FAST = "fast"
    SMOOTH = "smooth"


@dataclass(frozen=True)
class Rect:
    """An axis-aligned rectangle; valid when it has a positive area."""

    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0

    @property
    def is_valid(self) -> bool:
        return self.width > 0 and self.height > 0

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    def contains(self, other: Rect) -> bool:
        """Whether ``other`` lies entirely inside this rectangle."""
        if not (self.is_valid and other.is_valid):
            return False
        return (
            other.x >= self.x
            and other.y >= self.y
            and other.x + other.width <= self.x + self.width
            and other.y + other.height <= self.y + self.height
        )


class _Signal:
    def __init__(self) -> None:
        self._slots: list[Callable[..., object]] = []

    def connect(self, slot: Callable[..., object]) -> None:
        self._slots.append(slot)

    def emit(self, *args: object) -> None:
        for slot in list(self._slots):
            slot(*args)


def _qround(value: float) -> int:
    return math.floor(value + 0.5)


def _valid_size(size: tuple[int, int] | None) -> bool:
    return size is not None and size[0] > 0 and size[1] > 0


class AnimationLayer:
    """Plays an animation; a driver calls ``advance`` once ``pending_delay`` ms pass."""

    def __init__(self, loader: AnimationLoader | None = None) -> None:
        self._loader = loader if loader is not None else AnimationLoader()
        self._file_name = ""
        self.play_once = False
        self.stretch_to_fit = False
        self.reset_cache_when_stopped = False
        self.flipped = False
        self.minimum_duration = 0
        self.maximum_duration = 0
        self.resize_mode = ResizeMode.AUTO
        self.transformation_mode = TransformationMode.FAST
        self.size: tuple[int, int] | None = None
        self.visible = False
        self.pixmap: Image.Image | None = None
        self.pending_delay: int | None = None

        self._frame_size: tuple[int, int] | None = None
        self._frame_rect = Rect()
        self._mask_rect_hint = Rect()
        self._mask_rect = Rect()
        self._scaled_frame_size: tuple[int, int] | None = None
        self._processing = False
        self._pause = False
        self._first_frame = False
        self._frame_number = 0
        self._target_frame_number = -1
        self._frame_count = 0
        self._current_frame = AnimationFrame()

        self.started_playback = _Signal()
        self.stopped_playback = _Signal()
        self.finished_playback = _Signal()
        self.frame_number_changed = _Signal()

    @property
    def loader(self) -> AnimationLoader:
        return self._loader

    @property
    def file_name(self) -> str:
        return self._file_name

    @property
    def frame_size(self) -> tuple[int, int] | None:
        return self._frame_size

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def current_frame_number(self) -> int:
        return self._frame_number

    @property
    def processing(self) -> bool:
        return self._processing

    @property
    def paused(self) -> bool:
        return self._pause

    def set_file_name(self, file_name: str) -> None:
        """Stop playback and switch to another file."""
        self.stop_playback()
        self._file_name = file_name if file_name.strip() else INVALID_FILE
        self._reset_data()

    def start_playback(self) -> None:
        if self._processing:
            return
        self._reset_data()
        self._processing = True
        self.visible = True
        self.started_playback.emit()
        self._frame_ticker()

    def stop_playback(self) -> None:
        self.pending_delay = None
        self._processing = False
        if self.reset_cache_when_stopped:
            self._create_loader()
        self.stopped_playback.emit()

    def restart_playback(self) -> None:
        self.stop_playback()
        self.start_playback()

    def pause_playback(self, enabled: bool) -> None:
        self._pause = enabled

    def jump_to_frame(self, number: int) -> None:
        """Show frame ``number`` next; out-of-range numbers are ignored."""
        if not 0 <= number < self._frame_count:
            return
        is_processing = self._processing
        self.pending_delay = None
        self._target_frame_number = number
        if is_processing:
            self._frame_ticker()

    def set_masking_rect(self, rect: Rect) -> None:
        self._mask_rect_hint = rect
        self._calculate_frame_geometry()

    def resize(self, width: int, height: int) -> None:
        self.size = (width, height)
        self._calculate_frame_geometry()

    def advance(self) -> bool:
        """Fire the pending tick; returns False if none was pending."""
        if self.pending_delay is None:
            return False
        self.pending_delay = None
        self._frame_ticker()
        return True

    def _create_loader(self) -> None:
        executor = self._loader.executor
        self._loader.close()
        self._loader = AnimationLoader(executor)

    def _reset_data(self) -> None:
        self._first_frame = True
        self._frame_number = 0
        if self._file_name != self._loader.loaded_file_name:
            self._loader.load(self._file_name)
        self._frame_count = self._loader.frame_count
        self._frame_size = self._loader.size
        self._frame_rect = Rect(0, 0, *self._frame_size) if self._frame_size else Rect()
        self.pending_delay = None
        self._calculate_frame_geometry()

    def _calculate_frame_geometry(self) -> None:
        self._mask_rect = Rect()
        self._scaled_frame_size = None
        self.transformation_mode = TransformationMode.SMOOTH

        widget_size = self.size
        if not _valid_size(widget_size) or not _valid_size(self._frame_size):
            return
        assert widget_size is not None and self._frame_size is not None

        if self.stretch_to_fit:
            self._scaled_frame_size = widget_size
        else:
            scaled = self._frame_size
            if self._frame_rect.contains(self._mask_rect_hint):
                self._mask_rect = self._mask_rect_hint
                scaled = self._mask_rect_hint.size
            scale = widget_size[1] / scaled[1]
            self._scaled_frame_size = (_qround(scaled[0] * scale), _qround(scaled[1] * scale))
            if self._frame_size[1] < widget_size[1]:
                self.transformation_mode = TransformationMode.FAST

        if self.resize_mode is ResizeMode.PIXEL:
            self.transformation_mode = TransformationMode.FAST
        elif self.resize_mode is ResizeMode.SMOOTH:
            self.transformation_mode = TransformationMode.SMOOTH

        self._display_current_frame()

    def _finish_playback(self) -> None:
        self.stop_playback()
        self.finished_playback.emit()

    def _prepare_next_tick(self) -> None:
        duration = max(self.minimum_duration, self._current_frame.duration)
        if self.maximum_duration > 0:
            duration = min(self.maximum_duration, duration)
        self.pending_delay = duration

    def _display_current_frame(self) -> None:
        image = self._current_frame.texture
        if self._frame_size is not None:
            if image is not None and self._mask_rect.is_valid:
                mask = self._mask_rect
                image = image.crop((mask.x, mask.y, mask.x + mask.width, mask.y + mask.height))
            if image is not None:
                scaled = self._scaled_frame_size
                if not _valid_size(scaled):
                    image = None
                else:
                    resample = (
                        Image.Resampling.NEAREST
                        if self.transformation_mode is TransformationMode.FAST
                        else Image.Resampling.BILINEAR
                    )
                    image = image.resize(scaled, resample)
                    if self.flipped:
                        image = image.transpose(Image.Transpose.FLIP_LEFT_RIGHT)
        else:
            image = Image.new("RGBA", (1, 1), (0, 0, 0, 0))
        self.pixmap = image

    def _frame_ticker(self) -> None:
        if not self._processing:
            return

        if self._frame_count < 1:
            if self.play_once:
                self._finish_playback()
            else:
                self.stop_playback()
            return

        if self._pause and not self._first_frame:
            return

        if self._frame_number == self._frame_count:
            if self.play_once:
                self._finish_playback()
                return
            if self._frame_count > 1:
                self._frame_number = 0
            else:
                return

        self._first_frame = False
        if self._target_frame_number != -1:
            if self._target_frame_number < self._frame_count:
                self._frame_number = self._target_frame_number
            self._target_frame_number = -1
        self._current_frame = self._loader.frame(self._frame_number)
        self._display_current_frame()
        self.frame_number_changed.emit(self._frame_number)
        self._frame_number += 1

        if not self._pause:
            self._prepare_next_tick()