"""Frame loading: deterministic ordering and decoding of raw image buffers."""
from __future__ import annotations

import io
import logging
import os
import re
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple, Union

from PIL import Image, UnidentifiedImageError

from .errors import FrameDecodeError

logger = logging.getLogger(__name__)

_DIGITS = re.compile(r"(\d+)")


@dataclass(frozen=True)
class RawFrame:
    """A named, undecoded image buffer."""

    name: str
    data: bytes


def natural_key(name: str) -> Tuple[Tuple[int, Union[int, str]], ...]:
    """Sort key comparing embedded digit runs by numeric value.

    ``"f2"``, ``"f10"``, ``"f1"`` order as ``"f1"``, ``"f2"``, ``"f10"``.
    Text runs compare case-insensitively.
    """

    parts = []
    for chunk in _DIGITS.split(name):
        if not chunk:
            continue
        if chunk.isdigit():
            parts.append((0, int(chunk)))
        else:
            parts.append((1, chunk.casefold()))
    return tuple(parts)


def natural_sort(frames: Iterable[RawFrame]) -> List[RawFrame]:
    """Return ``frames`` ordered by the natural order of their names.

    Ties on the natural key fall back to the raw name so the order never
    depends on selection order.
    """

    return sorted(frames, key=lambda frame: (natural_key(frame.name), frame.name))


def read_files(paths: Sequence[Union[str, "os.PathLike[str]"]]) -> List[RawFrame]:
    """Read image files into :class:`RawFrame` buffers named by basename."""

    frames: List[RawFrame] = []
    for path in paths:
        with open(path, "rb") as handle:
            frames.append(RawFrame(os.path.basename(os.fspath(path)), handle.read()))
    return frames


def decode_frame(frame: RawFrame) -> Image.Image:
    """Decode ``frame`` into a fully loaded RGBA bitmap."""

    try:
        with Image.open(io.BytesIO(frame.data)) as payload:
            payload.load()
            return payload.convert("RGBA")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise FrameDecodeError(frame.name, str(exc)) from exc


def decode_frames(frames: Sequence[RawFrame]) -> List[Image.Image]:
    images = [decode_frame(frame) for frame in frames]
    logger.debug("Decoded %d frame(s)", len(images))
    return images


__all__ = ["RawFrame", "decode_frame", "decode_frames", "natural_key", "natural_sort", "read_files"]
