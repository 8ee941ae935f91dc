"""Persistent encoding defaults."""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from .config import EncodingConfig
from .env import default_ffmpeg_cmd
from .logger import get_logger

logger = get_logger()

def _default_options_dir() -> Path:
    """Return an OS-appropriate directory for persistent settings."""
    if os.name == "nt":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
        return base / "ffpipe"
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")) / "ffpipe"


OPTIONS_DIR = _default_options_dir()
OPTIONS_FILE = OPTIONS_DIR / "settings.json"

DEFAULTS: Dict[str, Any] = {
    "ffmpeg_cmd": default_ffmpeg_cmd(),
    "output": str(Path("outputs") / "output.mp4"),
    "framerate": 30.0,
    "pix_fmt": "yuv420p",
    "vcodec": "libx264",
    "crf": 17,
    "log_file": "",
    "log_to_console": False,
    "drain_mode": "inline",
}

# Keys where zero or negative values are meaningful.
_SIGNED = {"crf"}
_CHOICES = {"drain_mode": ("inline", "thread")}


def _validate(data: Dict[str, Any]) -> Dict[str, Any]:
    """Validate option values, dropping invalid ones."""
    clean: Dict[str, Any] = {}
    for key, default in DEFAULTS.items():
        if key not in data:
            continue
        val = data[key]
        if isinstance(default, bool):
            if isinstance(val, bool):
                clean[key] = val
        elif isinstance(default, int):
            if isinstance(val, int) and not isinstance(val, bool) and (key in _SIGNED or val > 0):
                clean[key] = val
        elif isinstance(default, float):
            if isinstance(val, (int, float)) and not isinstance(val, bool) and val >= 0:
                clean[key] = float(val)
        elif key in _CHOICES:
            if val in _CHOICES[key]:
                clean[key] = val
        else:
            if isinstance(val, str) and (val or key == "log_file"):
                clean[key] = val
    return clean


def load_options(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load saved options, falling back to defaults."""
    path = path or OPTIONS_FILE
    if path.exists():
        try:
            data = json.loads(path.read_text())
            opts = DEFAULTS.copy()
            if isinstance(data, dict):
                opts.update(_validate(data))
            logger.debug("Loaded options from %s", path)
            return opts
        except (OSError, ValueError):
            logger.exception("Failed to load options; using defaults")
    return DEFAULTS.copy()


def save_options(opts: Dict[str, Any], path: Optional[Path] = None) -> None:
    """Persist options to disk."""
    path = path or OPTIONS_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(_validate(opts), indent=2))
    logger.debug("Saved options to %s", path)


def config_from_options(opts: Dict[str, Any], **overrides) -> EncodingConfig:
    """Build an :class:`EncodingConfig` from an options dictionary."""
    fields = {
        "output_filename": opts.get("output", DEFAULTS["output"]),
        "ffmpeg_cmd": opts.get("ffmpeg_cmd", DEFAULTS["ffmpeg_cmd"]),
        "framerate": opts.get("framerate", DEFAULTS["framerate"]),
        "pix_fmt": opts.get("pix_fmt", DEFAULTS["pix_fmt"]),
        "vcodec": opts.get("vcodec", DEFAULTS["vcodec"]),
        "crf": opts.get("crf", DEFAULTS["crf"]),
        "log_file": opts.get("log_file") or None,
        "log_to_console": opts.get("log_to_console", False),
        "drain_mode": opts.get("drain_mode", "inline"),
    }
    fields.update(overrides)
    return EncodingConfig(**fields)
