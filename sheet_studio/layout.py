"""Grid geometry for sprite sheets."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from .errors import InsufficientFramesError, ValidationError
from .settings import Settings

logger = logging.getLogger(__name__)

SOFT_TEXTURE_LIMIT = 4096
HARD_TEXTURE_LIMIT = 8192

SOFT_WARNING = "Large textures can hurt performance or compatibility in some engines."
HARD_WARNING = "The texture is very large; most game engines do not recommend this size."


@dataclass(frozen=True)
class Layout:
    columns: int
    rows: int
    total_frames: int
    frame_width: int
    frame_height: int

    @property
    def effective_frame_count(self) -> int:
        return self.columns * self.rows

    @property
    def trimmed(self) -> int:
        return self.total_frames - self.effective_frame_count

    @property
    def sheet_width(self) -> int:
        return self.columns * self.frame_width

    @property
    def sheet_height(self) -> int:
        return self.rows * self.frame_height

    @property
    def sheet_size(self) -> tuple[int, int]:
        return (self.sheet_width, self.sheet_height)

    @property
    def is_empty(self) -> bool:
        return self.columns == 0


@dataclass(frozen=True)
class OutputInfo:
    """What a job with the current frames and settings would produce."""

    sheet_width: int
    sheet_height: int
    columns: int
    rows: int
    effective_frames: int
    total_frames: int
    warning: Optional[str] = None


def plan_layout(total_frames: int, max_columns: int, frame_width: int, frame_height: int) -> Layout:
    """Derive the grid for ``total_frames`` frames.

    ``columns`` is capped at the frame count.  Frames that do not fill a
    complete row are dropped from the tail.  Raises
    :class:`InsufficientFramesError` when not even one full row fits.
    """

    if total_frames < 0:
        raise ValidationError("total_frames cannot be negative")
    if max_columns < 1:
        raise ValidationError("max_columns must be a positive integer")

    columns = min(total_frames, max_columns)
    if columns == 0:
        return Layout(0, 0, 0, frame_width, frame_height)

    rows = total_frames // columns
    if rows == 0:
        raise InsufficientFramesError(
            f"{total_frames} frame(s) cannot fill a row of {columns} columns; reduce the column count."
        )

    layout = Layout(columns, rows, total_frames, frame_width, frame_height)
    if layout.trimmed:
        logger.info(
            "Dropping %d trailing frame(s) to fill a %dx%d grid",
            layout.trimmed,
            columns,
            rows,
        )
    return layout


def plan_for(total_frames: int, settings: Settings) -> Layout:
    return plan_layout(total_frames, settings.max_columns, settings.frame_width, settings.frame_height)


def texture_warning(
    width: int,
    height: int,
    *,
    soft_limit: int = SOFT_TEXTURE_LIMIT,
    hard_limit: int = HARD_TEXTURE_LIMIT,
) -> Optional[str]:
    """Advisory message for oversized sheets; never blocks generation."""

    if width > hard_limit or height > hard_limit:
        return HARD_WARNING
    if width > soft_limit or height > soft_limit:
        return SOFT_WARNING
    return None


def describe_output(total_frames: int, settings: Settings) -> OutputInfo:
    """Summarise the sheet a job would produce, without raising."""

    columns = min(total_frames, settings.max_columns)
    rows = total_frames // columns if columns > 0 else 0
    effective = rows * columns
    width = columns * settings.frame_width
    height = rows * settings.frame_height
    return OutputInfo(
        sheet_width=width,
        sheet_height=height,
        columns=columns if rows > 0 else 0,
        rows=rows,
        effective_frames=effective,
        total_frames=total_frames,
        warning=texture_warning(width, height),
    )


def suggest_columns(total_frames: int) -> int:
    """Column count giving a roughly square sheet."""

    if total_frames <= 0:
        return 1
    return math.ceil(math.sqrt(total_frames))


__all__ = [
    "HARD_TEXTURE_LIMIT",
    "HARD_WARNING",
    "Layout",
    "OutputInfo",
    "SOFT_TEXTURE_LIMIT",
    "SOFT_WARNING",
    "describe_output",
    "plan_for",
    "plan_layout",
    "suggest_columns",
    "texture_warning",
]
