"""Shared builders for synthetic frames."""
from __future__ import annotations

import io
from typing import List, Tuple

from PIL import Image

from sheet_studio.loader import RawFrame


def color_for(index: int) -> Tuple[int, int, int, int]:
    return ((index * 53) % 256, (index * 97 + 40) % 256, (index * 151 + 80) % 256, 255)


def png_bytes(size: Tuple[int, int], color) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def raw_frames(count: int, size: Tuple[int, int] = (12, 8), prefix: str = "frame") -> List[RawFrame]:
    """Frames named ``frame1``..``frameN`` filled with :func:`color_for` of their number."""

    return [RawFrame(f"{prefix}{i}.png", png_bytes(size, color_for(i))) for i in range(1, count + 1)]


def solid_frames(count: int, size: Tuple[int, int] = (8, 8)) -> List[Image.Image]:
    return [Image.new("RGBA", size, color_for(i)) for i in range(count)]
