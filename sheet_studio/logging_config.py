"""Root logger setup for the studio launcher."""
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import List, Optional

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
LOG_DIR = os.getenv(
    "SHEET_STUDIO_LOG_DIR",
    os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "logs"),
)

# Pillow plugin discovery and gradio's HTTP client are chatty below WARNING.
_QUIET = ("PIL", "httpx", "urllib3")


def configure_logging(level: Optional[str] = None, log_dir: Optional[str] = LOG_DIR) -> Optional[str]:
    """Send studio logs to stderr and, when ``log_dir`` is set, to a rotating file.

    A second call replaces the handlers installed by the first.  Returns the
    log file path, or ``None`` when no directory is given.
    """
    name = (level or os.getenv("SHEET_STUDIO_LOG_LEVEL", "INFO")).upper()
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    log_file = None
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(log_dir, "sheet_studio.log")
        handlers.append(RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, name, logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    for noisy in _QUIET:
        logging.getLogger(noisy).setLevel(logging.WARNING)
    return log_file
