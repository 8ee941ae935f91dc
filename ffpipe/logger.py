from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path


def _default_log_dir() -> Path:
    """Return an OS-appropriate log directory."""
    if os.name == "nt":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
        return base / "ffpipe" / "logs"
    return Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state")) / "ffpipe" / "logs"


LOG_DIR = _default_log_dir()

_logger = logging.getLogger("ffpipe")


def setup() -> logging.Logger:
    """Configure and return the shared ffpipe logger."""
    if not _logger.handlers:
        _logger.setLevel(logging.DEBUG)
        fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
        try:
            LOG_DIR.mkdir(parents=True, exist_ok=True)
            fh = RotatingFileHandler(
                LOG_DIR / "ffpipe.log", maxBytes=1_000_000, backupCount=3, encoding="utf-8"
            )
        except OSError:
            pass  # read-only home; console only
        else:
            fh.setFormatter(fmt)
            _logger.addHandler(fh)
        sh = logging.StreamHandler()
        sh.setFormatter(fmt)
        sh.setLevel(logging.INFO)
        _logger.addHandler(sh)
    return _logger


def get_logger() -> logging.Logger:
    """Get the shared ffpipe logger."""
    return setup()
