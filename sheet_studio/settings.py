"""Immutable per-job settings for sheet generation and export."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional, Tuple

from .config import load_config
from .errors import ValidationError

MIN_FPS = 1
MAX_FPS = 60


@dataclass(frozen=True)
class Settings:
    frame_width: int
    frame_height: int
    fps: int
    max_columns: int

    @property
    def frame_size(self) -> Tuple[int, int]:
        return (self.frame_width, self.frame_height)

    @property
    def frame_interval_ms(self) -> float:
        """Display time of one frame in milliseconds."""

        return 1000.0 / self.fps

    def validate(self) -> "Settings":
        """Raise :class:`ValidationError` unless every field is in range."""

        for field_name in ("frame_width", "frame_height", "max_columns"):
            value = getattr(self, field_name)
            if not _is_int(value) or value < 1:
                raise ValidationError(f"{field_name} must be a positive integer (got {value!r})")
        if not _is_int(self.fps) or not MIN_FPS <= self.fps <= MAX_FPS:
            raise ValidationError(f"fps must be an integer between {MIN_FPS} and {MAX_FPS} (got {self.fps!r})")
        return self

    def with_changes(self, **changes: Any) -> "Settings":
        return replace(self, **changes).validate()

    @classmethod
    def from_values(
        cls,
        frame_width: Any,
        frame_height: Any,
        fps: Any,
        max_columns: Any,
    ) -> "Settings":
        """Build validated settings from loosely typed form values.

        ``gradio`` sliders and number boxes deliver floats, so whole-valued
        floats are accepted and coerced.
        """

        return cls(
            frame_width=_coerce(frame_width, "frame_width"),
            frame_height=_coerce(frame_height, "frame_height"),
            fps=_coerce(fps, "fps"),
            max_columns=_coerce(max_columns, "max_columns"),
        ).validate()


def default_settings(config: Optional[Mapping[str, Dict[str, Any]]] = None) -> Settings:
    """Return the configured default settings."""

    cfg = config if config is not None else load_config()
    defaults = cfg["defaults"]
    return Settings.from_values(
        defaults["frame_width"],
        defaults["frame_height"],
        defaults["fps"],
        defaults["max_columns"],
    )


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _coerce(value: Any, name: str) -> int:
    if _is_int(value):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number (got {value!r})") from None
    if not number.is_integer():
        raise ValidationError(f"{name} must be a whole number (got {value!r})")
    return int(number)


__all__ = ["MAX_FPS", "MIN_FPS", "Settings", "default_settings"]
