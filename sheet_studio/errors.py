"""Exception hierarchy shared by the sheet pipeline and the exporters."""
from __future__ import annotations

from typing import Optional


class SheetStudioError(Exception):
    """Base class for every error raised by :mod:`sheet_studio`."""


class ValidationError(SheetStudioError):
    """Settings or inputs were rejected before any work started."""


class FrameDecodeError(ValidationError):
    """A raw buffer could not be decoded into an image."""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"Could not decode frame '{name}': {reason}")
        self.name = name


class InsufficientFramesError(SheetStudioError):
    """Fewer frames are available than a single full row needs."""


class ContextUnavailableError(SheetStudioError):
    """A drawing surface could not be allocated."""


class UnsupportedFormatError(SheetStudioError):
    """No video codec supported by the runtime could be selected."""


class EncoderFailure(SheetStudioError):
    """The GIF or video backend failed while encoding."""

    def __init__(self, message: str, diagnostic: Optional[str] = None) -> None:
        text = message if not diagnostic else f"{message}: {diagnostic}"
        super().__init__(text)
        self.diagnostic = diagnostic


class JobInProgressError(SheetStudioError):
    """A sheet job was submitted while another one is still running."""


__all__ = [
    "ContextUnavailableError",
    "EncoderFailure",
    "FrameDecodeError",
    "InsufficientFramesError",
    "JobInProgressError",
    "SheetStudioError",
    "UnsupportedFormatError",
    "ValidationError",
]
