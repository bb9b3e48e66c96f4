"""The sheet generation job: sort, plan, decode, transform, composite.

``run_job`` is the batch body executed off the interactive thread by
:class:`sheet_studio.worker.SheetWorker`.  It reports human readable
progress through ``on_progress`` and either returns one
:class:`ProcessResult` or raises one of the :mod:`sheet_studio.errors`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

from PIL import Image

from .compositor import composite_sheet, encode_png
from .errors import ValidationError
from .layout import plan_for, texture_warning
from .loader import RawFrame, decode_frames, natural_sort
from .settings import Settings
from .transform import crop_to_fill

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]

PROGRESS_EVERY = 10


@dataclass(frozen=True)
class ProcessResult:
    """Immutable outcome of one successful sheet job.

    ``frames`` is shared read-only with the previewer and both exporters.
    """

    sheet_image: Image.Image
    sheet_png: bytes
    frames: Tuple[Image.Image, ...]
    columns: int
    rows: int
    total_frames: int

    @property
    def sheet_size(self) -> Tuple[int, int]:
        return self.sheet_image.size

    @property
    def frame_size(self) -> Tuple[int, int]:
        return self.frames[0].size if self.frames else (0, 0)


def _noop(_message: str) -> None:
    return None


def run_job(
    sources: Sequence[RawFrame],
    settings: Settings,
    on_progress: Optional[ProgressCallback] = None,
) -> ProcessResult:
    """Build a sprite sheet from raw ``sources``."""

    emit = on_progress or _noop
    settings.validate()

    ordered = natural_sort(sources)
    layout = plan_for(len(ordered), settings)
    if layout.is_empty:
        raise ValidationError("No frames were produced, so no sheet can be built.")

    kept = ordered[: layout.effective_frame_count]
    total = len(kept)
    warning = texture_warning(layout.sheet_width, layout.sheet_height)
    if warning:
        logger.warning("%dx%d sheet: %s", layout.sheet_width, layout.sheet_height, warning)

    emit(f"Loading {total} images...")
    images = decode_frames(kept)

    emit("Processing frames...")
    frames = []
    for index, image in enumerate(images):
        if index % PROGRESS_EVERY == 0:
            emit(f"Processing frame {index + 1} of {total}...")
        frames.append(crop_to_fill(image, settings.frame_size))

    emit("Finalizing sprite sheet...")
    sheet = composite_sheet(frames, layout)
    png = encode_png(sheet)

    logger.info(
        "Built %dx%d sheet from %d frame(s) (%d columns x %d rows, %d dropped)",
        layout.sheet_width,
        layout.sheet_height,
        total,
        layout.columns,
        layout.rows,
        layout.trimmed,
    )
    return ProcessResult(
        sheet_image=sheet,
        sheet_png=png,
        frames=tuple(frames),
        columns=layout.columns,
        rows=layout.rows,
        total_frames=total,
    )


__all__ = ["PROGRESS_EVERY", "ProcessResult", "ProgressCallback", "run_job"]
