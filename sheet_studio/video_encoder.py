"""Real-time video recording of the transformed frames through ffmpeg.

:class:`VideoRecorder` moves through::

    IDLE -> RECORDING -> STOPPED -> MUXED
      \\          \\           \\
       +----------+-----------+--> FAILED

The codec is chosen before anything is recorded: H.264 in MP4 first, VP9
in WebM as the fallback.  When the bundled ffmpeg offers neither,
:class:`UnsupportedFormatError` is raised and no capture starts.

Each frame is painted at the top-left of an opaque black capture surface
whose sides are rounded up to even numbers (odd sizes gain a one pixel
black border).  The surface goes to the ffmpeg writer and is then held for
``1000 / fps`` ms of wall-clock time, so a recording lasts about
``frames / fps`` seconds.  ``realtime=False`` skips the wall-clock hold;
the container timing is identical either way since the writer stamps
frames from ``fps``.
"""
from __future__ import annotations

import enum
import functools
import logging
import os
import re
import subprocess
import tempfile
import time
from dataclasses import dataclass
from typing import Callable, FrozenSet, Optional, Sequence, Tuple

import imageio.v2 as imageio
import imageio_ffmpeg
import numpy as np
from PIL import Image

from .errors import ContextUnavailableError, EncoderFailure, UnsupportedFormatError
from .settings import Settings
from .transform import new_surface

logger = logging.getLogger(__name__)

_ENCODER_LINE = re.compile(r"^\s*V[\w.]{5}\s+(\S+)")


@dataclass(frozen=True)
class VideoFormat:
    codec: str
    extension: str
    mime_type: str
    pixelformat: str = "yuv420p"


H264_MP4 = VideoFormat("libx264", "mp4", "video/mp4; codecs=avc1.42E01E")
VP9_WEBM = VideoFormat("libvpx-vp9", "webm", "video/webm; codecs=vp9")
DEFAULT_FORMATS: Tuple[VideoFormat, ...] = (H264_MP4, VP9_WEBM)


@dataclass(frozen=True)
class VideoExport:
    data: bytes
    mime_type: str
    extension: str
    codec: str
    frame_count: int
    fps: int

    @property
    def duration_s(self) -> float:
        return self.frame_count / self.fps


class VideoState(enum.Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPED = "stopped"
    MUXED = "muxed"
    FAILED = "failed"


@functools.lru_cache(maxsize=1)
def available_encoders() -> FrozenSet[str]:
    """Names of the video encoders the bundled ffmpeg binary provides."""

    try:
        exe = imageio_ffmpeg.get_ffmpeg_exe()
    except RuntimeError as exc:
        logger.warning("ffmpeg is not available: %s", exc)
        return frozenset()
    try:
        proc = subprocess.run(
            [exe, "-hide_banner", "-encoders"],
            capture_output=True,
            text=True,
            timeout=30,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.warning("Could not list ffmpeg encoders: %s", exc)
        return frozenset()
    names = set()
    for line in proc.stdout.splitlines():
        match = _ENCODER_LINE.match(line)
        if match:
            names.add(match.group(1))
    return frozenset(names)


def codec_supported(codec: str) -> bool:
    return codec in available_encoders()


def even_size(frame_size: Tuple[int, int]) -> Tuple[int, int]:
    """Round each side up to an even number; yuv420p needs 2x2 chroma blocks."""

    width, height = frame_size
    return width + width % 2, height + height % 2


def select_format(
    formats: Sequence[VideoFormat] = DEFAULT_FORMATS,
    is_supported: Callable[[str], bool] = codec_supported,
) -> VideoFormat:
    """Return the first format whose codec the runtime supports."""

    for fmt in formats:
        if is_supported(fmt.codec):
            return fmt
        logger.info("Video codec %s unavailable, trying next", fmt.codec)
    names = ", ".join(fmt.codec for fmt in formats) or "<none>"
    raise UnsupportedFormatError(f"No supported video format is available (tried {names}).")


class VideoRecorder:
    def __init__(
        self,
        frame_size: Tuple[int, int],
        fps: int,
        *,
        formats: Sequence[VideoFormat] = DEFAULT_FORMATS,
        is_supported: Callable[[str], bool] = codec_supported,
        realtime: bool = True,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> None:
        self.frame_size = frame_size
        self.capture_size = even_size(frame_size)
        self.fps = fps
        self.interval_s = 1.0 / fps
        self.formats = tuple(formats)
        self.realtime = realtime
        self.state = VideoState.IDLE
        self.format: Optional[VideoFormat] = None
        self.error: Optional[Exception] = None
        self.frames_recorded = 0
        self._is_supported = is_supported
        self._clock = clock
        self._sleep = sleep
        self._on_progress = on_progress
        self._surface: Optional[Image.Image] = None
        self._writer = None
        self._path: Optional[str] = None

    def _require(self, *states: VideoState) -> None:
        if self.state not in states:
            allowed = ", ".join(state.value for state in states)
            raise EncoderFailure(f"Video recorder is {self.state.value}; expected {allowed}")

    def _discard(self) -> None:
        writer, self._writer = self._writer, None
        if writer is not None:
            try:
                writer.close()
            except Exception as exc:  # already failing
                logger.debug("Ignoring writer close error during cleanup: %s", exc)
        if self._path and os.path.exists(self._path):
            os.remove(self._path)
        self._path = None
        self._surface = None

    def _fail(self, exc: Exception) -> None:
        self.state = VideoState.FAILED
        self.error = exc
        self._discard()

    def _backend_failure(self, stage: str, exc: Exception) -> EncoderFailure:
        logger.exception("Video %s failed", stage)
        failure = EncoderFailure(f"Video {stage} failed", str(exc) or exc.__class__.__name__)
        self._fail(failure)
        return failure

    def start(self) -> VideoFormat:
        """Pick a codec, allocate the capture surface and open the writer."""

        self._require(VideoState.IDLE)
        try:
            fmt = select_format(self.formats, self._is_supported)
            self._surface = new_surface(self.capture_size, "RGB", (0, 0, 0))
        except (UnsupportedFormatError, ContextUnavailableError) as exc:
            self._fail(exc)
            raise

        try:
            handle, self._path = tempfile.mkstemp(prefix="sheet_studio_", suffix=f".{fmt.extension}")
            os.close(handle)
            self._writer = imageio.get_writer(
                self._path,
                format="FFMPEG",
                mode="I",
                fps=self.fps,
                codec=fmt.codec,
                pixelformat=fmt.pixelformat,
                macro_block_size=2,
            )
        except Exception as exc:
            raise self._backend_failure("setup", exc) from exc

        self.format = fmt
        self.state = VideoState.RECORDING
        logger.info("Recording %dx%d video with %s at %d fps", *self.capture_size, fmt.codec, self.fps)
        return fmt

    def _paint(self, frame: Image.Image) -> np.ndarray:
        surface = self._surface
        surface.paste((0, 0, 0), (0, 0, *surface.size))
        rgba = frame.convert("RGBA")
        surface.paste(rgba, (0, 0), rgba)
        return np.asarray(surface)

    def record(self, frames: Sequence[Image.Image]) -> int:
        """Capture ``frames`` in order, holding each for one frame interval."""

        self._require(VideoState.RECORDING)
        total = len(frames)
        started = self._clock()
        try:
            for index, frame in enumerate(frames):
                self._writer.append_data(self._paint(frame))
                self.frames_recorded += 1
                if self._on_progress is not None:
                    self._on_progress(index + 1, total)
                if self.realtime:
                    remaining = started + (index + 1) * self.interval_s - self._clock()
                    if remaining > 0:
                        self._sleep(remaining)
        except Exception as exc:
            raise self._backend_failure("recording", exc) from exc
        return self.frames_recorded

    def stop(self) -> None:
        self._require(VideoState.RECORDING)
        writer, self._writer = self._writer, None
        try:
            writer.close()
        except Exception as exc:
            raise self._backend_failure("finalization", exc) from exc
        self.state = VideoState.STOPPED

    def mux(self) -> VideoExport:
        """Collect the finished container and release the scratch file."""

        self._require(VideoState.STOPPED)
        try:
            with open(self._path, "rb") as handle:
                data = handle.read()
        except OSError as exc:
            raise self._backend_failure("muxing", exc) from exc
        self._discard()
        self.state = VideoState.MUXED
        fmt = self.format
        logger.info("Video ready: %d frame(s), %s, %d bytes", self.frames_recorded, fmt.mime_type, len(data))
        return VideoExport(
            data=data,
            mime_type=fmt.mime_type,
            extension=fmt.extension,
            codec=fmt.codec,
            frame_count=self.frames_recorded,
            fps=self.fps,
        )


def record_video(
    frames: Sequence[Image.Image],
    settings: Settings,
    *,
    realtime: bool = True,
    on_progress: Optional[Callable[[int, int], None]] = None,
    **kwargs,
) -> VideoExport:
    """Run a :class:`VideoRecorder` over ``frames`` from start to finish."""

    recorder = VideoRecorder(
        settings.frame_size,
        settings.fps,
        realtime=realtime,
        on_progress=on_progress,
        **kwargs,
    )
    recorder.start()
    recorder.record(frames)
    recorder.stop()
    return recorder.mux()


__all__ = [
    "DEFAULT_FORMATS",
    "H264_MP4",
    "VP9_WEBM",
    "VideoExport",
    "VideoFormat",
    "VideoRecorder",
    "VideoState",
    "available_encoders",
    "codec_supported",
    "even_size",
    "record_video",
    "select_format",
]
