"""Sprite Sheet Studio: turn numbered frames into sheets, GIFs and videos."""

from .errors import (
    ContextUnavailableError,
    EncoderFailure,
    FrameDecodeError,
    InsufficientFramesError,
    JobInProgressError,
    SheetStudioError,
    UnsupportedFormatError,
    ValidationError,
)
from .layout import Layout, OutputInfo, describe_output, plan_layout, suggest_columns
from .loader import RawFrame, natural_sort
from .pipeline import ProcessResult, run_job
from .settings import Settings, default_settings
from .worker import SheetWorker, StudioSession

__version__ = "0.1.0"

__all__ = [
    "ContextUnavailableError",
    "EncoderFailure",
    "FrameDecodeError",
    "InsufficientFramesError",
    "JobInProgressError",
    "Layout",
    "OutputInfo",
    "ProcessResult",
    "RawFrame",
    "Settings",
    "SheetStudioError",
    "SheetWorker",
    "StudioSession",
    "UnsupportedFormatError",
    "ValidationError",
    "default_settings",
    "describe_output",
    "natural_sort",
    "plan_layout",
    "run_job",
    "suggest_columns",
]
