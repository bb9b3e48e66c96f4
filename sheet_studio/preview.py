"""Timed playback of transformed frames."""
from __future__ import annotations

import threading
import time
from typing import Callable, Iterator, Optional, Sequence, Tuple

from PIL import Image

from .transform import new_surface


class AnimationPreviewer:
    """Loop over ``frames`` at ``fps`` onto a private presentation surface.

    The shared frames are only ever read, so any number of previewers can
    play the same result at once.
    """

    def __init__(self, frames: Sequence[Image.Image], fps: int) -> None:
        if not frames:
            raise ValueError("at least one frame is required")
        self.frames = frames
        self.surface = new_surface(frames[0].size)
        self.restart(fps)

    @property
    def interval_ms(self) -> float:
        return 1000.0 / self.fps

    def restart(self, fps: Optional[int] = None) -> None:
        """Rewind to the first frame, optionally at a new rate."""

        if fps is not None:
            if fps < 1:
                raise ValueError("fps must be positive")
            self.fps = fps
        self.index = 0
        self._last_ms: Optional[float] = None

    def _draw(self, index: int) -> Image.Image:
        self.surface.paste((0, 0, 0, 0), (0, 0, *self.surface.size))
        self.surface.alpha_composite(self.frames[index].convert("RGBA"))
        return self.surface

    def tick(self, now_ms: float) -> Optional[int]:
        """Advance playback to ``now_ms``.

        Returns the index drawn on this tick, or ``None`` if the current frame
        is still being held.
        """

        if self._last_ms is None:
            self._last_ms = now_ms
            self._draw(0)
            return 0

        elapsed = now_ms - self._last_ms
        if elapsed < self.interval_ms:
            return None
        # Keep the remainder so playback does not drift behind the clock.
        self._last_ms = now_ms - (elapsed % self.interval_ms)
        self.index = (self.index + 1) % len(self.frames)
        self._draw(self.index)
        return self.index

    def play(
        self,
        *,
        duration_s: Optional[float] = None,
        stop_event: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> Iterator[Tuple[int, Image.Image]]:
        """Yield ``(index, surface)`` each time a frame is drawn.

        Runs until ``duration_s`` of clock time has passed or ``stop_event``
        is set; with neither, it loops forever.
        """

        started = clock()
        while stop_event is None or not stop_event.is_set():
            now = clock()
            if duration_s is not None and now - started >= duration_s:
                return
            drawn = self.tick(now * 1000.0)
            if drawn is not None:
                yield drawn, self.surface
            sleep(self.interval_ms / 4000.0)


__all__ = ["AnimationPreviewer"]
