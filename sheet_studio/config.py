"""Centralised loader for Sprite Sheet Studio runtime configuration.

Configuration lives in an optional ``.sheet_studio/config.json`` file next
to the package (``SHEET_STUDIO_CONFIG`` points elsewhere).  Missing keys are
filled from the built-in defaults so downstream modules can rely on the
structure always being present.  The file is only ever read.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

_REPO_ROOT = Path(__file__).resolve().parent.parent
STUDIO_DIR = _REPO_ROOT / ".sheet_studio"

_DEFAULT_CONFIG: Dict[str, Any] = {
    "defaults": {
        "frame_width": 260,
        "frame_height": 145,
        "fps": 24,
        "max_columns": 8,
    },
    "limits": {
        "max_frame_size": 2048,
        "max_columns": 128,
    },
    "export": {
        "gif_workers": 4,
        "video_realtime": True,
    },
    "server": {
        "host": "127.0.0.1",
        "port": 7866,
    },
}


def config_path() -> Path:
    """Return the configuration file location, honouring ``SHEET_STUDIO_CONFIG``."""

    override = os.environ.get("SHEET_STUDIO_CONFIG")
    if override:
        return Path(override)
    return STUDIO_DIR / "config.json"


def default_config() -> Dict[str, Any]:
    return json.loads(json.dumps(_DEFAULT_CONFIG))


def load_config() -> Dict[str, Any]:
    """Return the runtime configuration merged over the defaults."""

    path = config_path()
    if not path.exists():
        return default_config()

    with path.open("r", encoding="utf-8") as handle:
        try:
            data = json.load(handle)
        except json.JSONDecodeError as exc:
            logger.warning("Ignoring corrupt config %s: %s", path, exc)
            return default_config()

    if not isinstance(data, dict):
        logger.warning("Ignoring config %s: expected a JSON object", path)
        return default_config()

    # Merge missing keys from the defaults without overwriting user values.
    merged = default_config()
    for key, value in data.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key].update(value)
        else:
            merged[key] = value
    return merged


__all__ = ["STUDIO_DIR", "config_path", "default_config", "load_config"]
