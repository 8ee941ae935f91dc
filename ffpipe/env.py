from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path
from typing import Optional

WINDOWS_FFMPEG = r"C:\FFmpeg\bin\ffmpeg.exe"


def default_ffmpeg_cmd() -> str:
    """Return the FFmpeg executable to use when none is configured."""
    if os.name == "nt":
        if Path(WINDOWS_FFMPEG).is_file():
            return WINDOWS_FFMPEG
        return "ffmpeg.exe"
    return "ffmpeg"


def find_encoder(binary: str) -> Optional[str]:
    """Resolve ``binary`` on PATH or as a filesystem path.

    Surrounding double quotes (common in Windows settings) are ignored.
    """
    if not binary:
        return None
    binary = binary.strip()
    if len(binary) > 1 and binary[0] == binary[-1] == '"':
        binary = binary[1:-1]
    found = shutil.which(binary)
    if found:
        return found
    path = Path(binary).expanduser()
    if path.is_absolute() and path.is_file():
        return str(path)
    return None


def encoder_version(binary: str) -> Optional[str]:
    """Return the first line of ``<binary> -version`` or None."""
    exe = find_encoder(binary)
    if not exe:
        return None
    try:
        out = subprocess.check_output([exe, "-version"], stderr=subprocess.STDOUT, text=True, timeout=10)
    except (OSError, subprocess.SubprocessError):
        return None
    line = out.strip().splitlines()[0] if out.strip() else ""
    return line or None
