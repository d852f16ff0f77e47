"""Background decoding of animated images into frames with durations."""

from __future__ import annotations

import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from functools import lru_cache

from PIL import Image

_POOL_SIZE = 8


@lru_cache(maxsize=None)
def _shared_executor() -> ThreadPoolExecutor:
    return ThreadPoolExecutor(max_workers=_POOL_SIZE, thread_name_prefix="animation-loader")


@dataclass
class AnimationFrame:
    """One decoded frame and how long it stays on screen, in milliseconds."""

    texture: Image.Image | None = None
    duration: int = 0


class AnimationLoader:
    """Decodes an image file's frames on an executor; ``frame`` waits for them."""

    def __init__(self, executor: Executor | None = None) -> None:
        self.executor = executor if executor is not None else _shared_executor()
        self._file_name = ""
        self._size: tuple[int, int] | None = None
        self._frame_count = 0
        self._loop_count = -1
        self._frames: list[AnimationFrame] = []
        self._task: Future | None = None
        self._exit = threading.Event()
        self._condition = threading.Condition()
        self._done = True

    @property
    def loaded_file_name(self) -> str:
        return self._file_name

    @property
    def size(self) -> tuple[int, int] | None:
        """Width and height of the image, or None if it could not be read."""
        return self._size

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def loop_count(self) -> int:
        """How often the animation repeats; -1 means forever."""
        return self._loop_count

    def load(self, file_name: str) -> None:
        """Start decoding ``file_name`` unless it is already the loaded file."""
        if self._file_name == file_name:
            return
        self.stop_loading()
        self._file_name = file_name
        self._frames = []
        self._exit.clear()

        try:
            image = Image.open(file_name)
        except (OSError, ValueError):
            self._size = None
            self._frame_count = 0
            self._loop_count = -1
            return

        self._size = image.size
        self._frame_count = getattr(image, "n_frames", 1)
        loop = image.info.get("loop")
        if loop is None:
            self._loop_count = 0
        elif loop == 0:
            self._loop_count = -1
        else:
            self._loop_count = int(loop)

        with self._condition:
            self._done = False
        self._task = self.executor.submit(self._populate, image)

    def stop_loading(self) -> None:
        """Ask the decoding task to end and wait until it has."""
        self._exit.set()
        if self._task is not None:
            self._task.result()
            self._task = None

    def frame(self, frame_number: int) -> AnimationFrame:
        """Return a frame, waiting until the background task has decoded it."""
        if self._frame_count <= 0:
            return AnimationFrame()
        if not 0 <= frame_number < self._frame_count:
            raise IndexError(
                f"frame {frame_number} out of range for {self._file_name!r} "
                f"({self._frame_count} frames)"
            )
        with self._condition:
            self._condition.wait_for(lambda: len(self._frames) > frame_number or self._done)
            if len(self._frames) <= frame_number:
                raise IndexError(f"frame {frame_number} of {self._file_name!r} was not loaded")
            return self._frames[frame_number]

    def close(self) -> None:
        self.stop_loading()

    def __enter__(self) -> AnimationLoader:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @staticmethod
    def _read_frame(image: Image.Image, index: int) -> AnimationFrame:
        try:
            image.seek(index)
            texture = image.convert("RGBA")
            duration = int(image.info.get("duration", 0) or 0)
        except (EOFError, OSError, ValueError):
            return AnimationFrame()
        return AnimationFrame(texture, duration)

    def _populate(self, image: Image.Image) -> None:
        try:
            with image:
                for index in range(self._frame_count):
                    if self._exit.is_set():
                        break
                    frame = self._read_frame(image, index)
                    with self._condition:
                        self._frames.append(frame)
                        self._condition.notify_all()
        finally:
            with self._condition:
                self._done = True
                self._condition.notify_all()