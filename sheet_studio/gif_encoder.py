"""Animated GIF export of the transformed frames.

:class:`GifEncoder` is a small state machine::

    IDLE -> ACCUMULATING -> FINALIZING -> COMPLETE
                 \\               \\
                  +----------------+--> FAILED

Frames are copied in during ``ACCUMULATING``.  ``render`` quantizes them to
palettes on a thread pool, reports progress in ``[0, 1]`` and assembles a
looping GIF in memory.  A failure here never touches the sheet or the
shared frames.
"""
from __future__ import annotations

import enum
import io
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
from PIL import Image

from .errors import ContextUnavailableError, EncoderFailure
from .settings import Settings
from .transform import new_surface

logger = logging.getLogger(__name__)

FractionCallback = Callable[[float], None]

PALETTE_COLORS = 254
# Holds a copy of the first opaque pixel's colour, see GifEncoder._keep_repeats.
TWIN_INDEX = 254
TRANSPARENT_INDEX = 255
ALPHA_THRESHOLD = 128
# Share of the progress bar spent on quantization; the rest is assembly.
QUANTIZE_SHARE = 0.9


class GifState(enum.Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    FINALIZING = "finalizing"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(frozen=True)
class GifExport:
    data: bytes
    frame_count: int
    delay_ms: int
    mime_type: str = "image/gif"
    extension: str = "gif"


def quantize_frame(frame: Image.Image) -> Image.Image:
    """Reduce ``frame`` to a palette image with a reserved transparent index."""

    rgba = frame.convert("RGBA")
    paletted = rgba.convert("RGB").quantize(colors=PALETTE_COLORS, method=Image.Quantize.MEDIANCUT)
    # Pad to a full table so the reserved indices are always valid entries.
    palette = (paletted.getpalette() or [])[: PALETTE_COLORS * 3]
    palette += [0] * (768 - len(palette))
    clear = rgba.getchannel("A").point(lambda a: 255 if a < ALPHA_THRESHOLD else 0)
    paletted.paste(TRANSPARENT_INDEX, mask=clear)
    pixel = first_opaque_pixel(paletted)
    if pixel is not None:
        index = paletted.getpixel(pixel)
        palette[TWIN_INDEX * 3 : TWIN_INDEX * 3 + 3] = palette[index * 3 : index * 3 + 3]
    paletted.putpalette(palette)
    paletted.info["transparency"] = TRANSPARENT_INDEX
    return paletted


def first_opaque_pixel(paletted: Image.Image) -> Optional[Tuple[int, int]]:
    """``(x, y)`` of the first pixel in raster order that is not transparent."""

    opaque = np.flatnonzero(np.asarray(paletted) != TRANSPARENT_INDEX)
    if not opaque.size:
        return None
    y, x = divmod(int(opaque[0]), paletted.width)
    return x, y


def _same_frame(a: Image.Image, b: Image.Image) -> bool:
    return a.tobytes() == b.tobytes() and a.getpalette() == b.getpalette()


def _retint_clear_slot(frame: Image.Image, avoid: Sequence[Image.Image]) -> Image.Image:
    """Copy of ``frame`` whose transparent slot carries an unused red value.

    The slot is never visible, but the GIF writer compares it.
    """

    taken = {other.getpalette()[TRANSPARENT_INDEX * 3] for other in avoid}
    red = next(value for value in range(len(taken) + 1) if value not in taken)
    palette = frame.getpalette()
    palette[TRANSPARENT_INDEX * 3] = red
    retinted = frame.copy()
    retinted.putpalette(palette)
    return retinted


class GifEncoder:
    def __init__(
        self,
        frame_size: Tuple[int, int],
        fps: int,
        *,
        workers: int = 4,
        on_progress: Optional[FractionCallback] = None,
    ) -> None:
        self.frame_size = frame_size
        self.fps = fps
        self.delay_ms = int(round(1000 / fps))
        self.workers = max(1, int(workers))
        self.state = GifState.IDLE
        self.error: Optional[Exception] = None
        self._on_progress = on_progress
        self._last_progress = -1.0
        self._canvas: Optional[Image.Image] = None
        self._frames: List[Image.Image] = []

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    def _require(self, *states: GifState) -> None:
        if self.state not in states:
            allowed = ", ".join(state.value for state in states)
            raise EncoderFailure(f"GIF encoder is {self.state.value}; expected {allowed}")

    def _fail(self, exc: Exception) -> None:
        self.state = GifState.FAILED
        self.error = exc
        self._frames = []
        self._canvas = None

    def _progress(self, fraction: float) -> None:
        fraction = min(1.0, max(0.0, fraction))
        if fraction <= self._last_progress:
            return
        self._last_progress = fraction
        if self._on_progress is not None:
            self._on_progress(fraction)

    def begin(self) -> "GifEncoder":
        self._require(GifState.IDLE)
        try:
            self._canvas = new_surface(self.frame_size)
        except ContextUnavailableError as exc:
            self._fail(exc)
            raise
        self.state = GifState.ACCUMULATING
        return self

    def add_frame(self, frame: Image.Image) -> None:
        self._require(GifState.ACCUMULATING)
        canvas = self._canvas
        if frame.size != canvas.size:
            # alpha_composite would silently clip or under-fill the canvas.
            failure = EncoderFailure(
                "Frame does not match the GIF canvas",
                f"frame {frame.size[0]}x{frame.size[1]}, canvas {canvas.size[0]}x{canvas.size[1]}",
            )
            self._fail(failure)
            raise failure
        canvas.paste((0, 0, 0, 0), (0, 0, *canvas.size))
        canvas.alpha_composite(frame.convert("RGBA"))
        self._frames.append(canvas.copy())

    def render(self) -> GifExport:
        self._require(GifState.ACCUMULATING)
        if not self._frames:
            exc = EncoderFailure("No frames to encode")
            self._fail(exc)
            raise exc

        self.state = GifState.FINALIZING
        self._progress(0.0)
        try:
            paletted = self._keep_repeats(self._quantize_all())
            data = self._assemble(paletted)
        except Exception as exc:
            logger.exception("GIF encoding failed")
            failure = EncoderFailure("GIF encoding failed", str(exc) or exc.__class__.__name__)
            self._fail(failure)
            raise failure from exc

        count = len(paletted)
        self._frames = []
        self._canvas = None
        self.state = GifState.COMPLETE
        self._progress(1.0)
        logger.info("Encoded GIF: %d frame(s) at %d ms, %d bytes", count, self.delay_ms, len(data))
        return GifExport(data=data, frame_count=count, delay_ms=self.delay_ms)

    def _quantize_all(self) -> List[Image.Image]:
        total = len(self._frames)
        paletted: List[Optional[Image.Image]] = [None] * total
        done = 0
        with ThreadPoolExecutor(max_workers=min(self.workers, total), thread_name_prefix="gif-quantize") as pool:
            futures = {pool.submit(quantize_frame, frame): index for index, frame in enumerate(self._frames)}
            for future in as_completed(futures):
                paletted[futures[future]] = future.result()
                done += 1
                self._progress(QUANTIZE_SHARE * done / total)
        return [frame for frame in paletted if frame is not None]

    @staticmethod
    def _keep_repeats(paletted: Sequence[Image.Image]) -> List[Image.Image]:
        """Make every frame differ from its predecessor without changing its look.

        Pillow's GIF writer folds a frame identical to the previous one into
        it and sums the delays.  A repeat has its first opaque pixel moved to
        :data:`TWIN_INDEX`, which holds the same colour.  A fully transparent
        frame has no such pixel and must also differ from the cleared
        background, so it gets a fresh tint in the invisible transparent slot.
        """

        kept: List[Image.Image] = []
        for frame in paletted:
            pixel = first_opaque_pixel(frame)
            if kept and pixel is None:
                frame = _retint_clear_slot(frame, (kept[0], kept[-1]))
            elif kept and _same_frame(frame, kept[-1]):
                frame = frame.copy()
                frame.putpixel(pixel, TWIN_INDEX)
            kept.append(frame)
        return kept

    def _assemble(self, paletted: Sequence[Image.Image]) -> bytes:
        buffer = io.BytesIO()
        first, *rest = paletted
        first.save(
            buffer,
            format="GIF",
            save_all=True,
            append_images=rest,
            duration=self.delay_ms,
            loop=0,
            disposal=2,
            transparency=TRANSPARENT_INDEX,
            optimize=False,
        )
        return buffer.getvalue()


def encode_gif(
    frames: Sequence[Image.Image],
    settings: Settings,
    on_progress: Optional[FractionCallback] = None,
    *,
    workers: int = 4,
) -> GifExport:
    """Run a :class:`GifEncoder` over ``frames`` from start to finish."""

    encoder = GifEncoder(settings.frame_size, settings.fps, workers=workers, on_progress=on_progress)
    encoder.begin()
    for frame in frames:
        encoder.add_frame(frame)
    return encoder.render()


__all__ = ["GifEncoder", "GifExport", "GifState", "encode_gif", "quantize_frame"]
