"""Crop-to-fill normalisation of source bitmaps to the sheet frame size."""
from __future__ import annotations

from typing import Tuple

from PIL import Image

from .errors import ContextUnavailableError

Box = Tuple[float, float, float, float]


def new_surface(size: Tuple[int, int], mode: str = "RGBA", color=(0, 0, 0, 0)) -> Image.Image:
    """Allocate a drawing surface, cleared to ``color``."""

    try:
        return Image.new(mode, size, color)
    except (ValueError, MemoryError) as exc:
        raise ContextUnavailableError(f"Could not allocate a {size[0]}x{size[1]} {mode} surface: {exc}") from exc


def source_box(source_size: Tuple[int, int], target_size: Tuple[int, int]) -> Box:
    """Return the centred region of the source that matches the target aspect.

    The overflowing dimension is cropped symmetrically; the other one is
    kept whole.  Matching aspects yield the full source rectangle.
    """

    src_w, src_h = source_size
    dst_w, dst_h = target_size
    source_aspect = src_w / src_h
    target_aspect = dst_w / dst_h

    if source_aspect > target_aspect:
        crop_w = src_h * target_aspect
        left = (src_w - crop_w) / 2
        return (left, 0.0, left + crop_w, float(src_h))
    if source_aspect < target_aspect:
        crop_h = src_w / target_aspect
        top = (src_h - crop_h) / 2
        return (0.0, top, float(src_w), top + crop_h)
    return (0.0, 0.0, float(src_w), float(src_h))


def crop_to_fill(
    image: Image.Image,
    target_size: Tuple[int, int],
    resample: Image.Resampling = Image.Resampling.BILINEAR,
) -> Image.Image:
    """Return an RGBA frame of exactly ``target_size``, cropped rather than letterboxed."""

    frame = new_surface(target_size)
    box = source_box(image.size, target_size)
    scaled = image.convert("RGBA").resize(target_size, resample, box=box)
    frame.alpha_composite(scaled)
    return frame


__all__ = ["crop_to_fill", "new_surface", "source_box"]
