"""Paste transformed frames into a single sheet raster."""
from __future__ import annotations

import io
import logging
from typing import Sequence, Tuple

from PIL import Image

from .layout import Layout
from .transform import new_surface

logger = logging.getLogger(__name__)


def cell_origin(index: int, columns: int, frame_size: Tuple[int, int]) -> Tuple[int, int]:
    """Top-left corner of frame ``index`` on the sheet."""

    width, height = frame_size
    return ((index % columns) * width, (index // columns) * height)


def composite_sheet(frames: Sequence[Image.Image], layout: Layout) -> Image.Image:
    """Draw ``frames`` in index order into a transparent sheet.

    Only the first ``layout.effective_frame_count`` frames are used.
    """

    sheet = new_surface(layout.sheet_size)
    frame_size = (layout.frame_width, layout.frame_height)
    for index, frame in enumerate(frames[: layout.effective_frame_count]):
        if frame.size != frame_size:
            raise ValueError(f"frame {index} is {frame.size}, expected {frame_size}")
        sheet.paste(frame, cell_origin(index, layout.columns, frame_size))
    logger.debug("Composited %d frame(s) into a %dx%d sheet", layout.effective_frame_count, *layout.sheet_size)
    return sheet


def encode_png(sheet: Image.Image) -> bytes:
    """Encode ``sheet`` as a lossless PNG with alpha."""

    buffer = io.BytesIO()
    sheet.save(buffer, format="PNG")
    return buffer.getvalue()


__all__ = ["cell_origin", "composite_sheet", "encode_png"]
