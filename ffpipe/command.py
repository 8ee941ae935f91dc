"""FFmpeg command line construction."""
from __future__ import annotations

import os
import shlex
from typing import List, Optional, Sequence

from .config import EncodingConfig
from .errors import ConfigurationError

BT709 = ["-color_primaries", "bt709", "-color_trc", "bt709", "-colorspace", "bt709"]

# Checked in order; the first substring found in the codec name wins.
METADATA_FILTERS = (
    (
        "265",
        "hevc_metadata=video_format=5:video_full_range_flag=0"
        ":colour_primaries=1:transfer_characteristics=1:matrix_coefficients=1",
    ),
    (
        "264",
        "h264_metadata=video_format=5:video_full_range_flag=0"
        ":colour_primaries=1:transfer_characteristics=1:matrix_coefficients=1",
    ),
    ("vp9", "vp9_metadata=color_space=bt709:color_range=tv"),
)


def metadata_filter(vcodec: str) -> Optional[str]:
    """Return the ``-bsf:v`` filter tagging limited-range BT.709, if known.

    Matching is by substring, so a codec name that merely contains "264" gets
    the H.264 filter too.
    """
    for needle, bsf in METADATA_FILTERS:
        if needle in vcodec:
            return bsf
    return None


def format_rate(framerate: float) -> str:
    if float(framerate).is_integer():
        return str(int(framerate))
    return f"{framerate:.6g}"


def split_command(cmd) -> List[str]:
    """Turn a custom command (string or sequence) into an argument vector."""
    if isinstance(cmd, str):
        return shlex.split(cmd, posix=os.name != "nt")
    return [str(a) for a in cmd]


def build_command(config: EncodingConfig, width: int, height: int) -> List[str]:
    """Return the encoder argument vector for ``width`` x ``height`` frames."""
    if config.has_custom_command:
        argv = split_command(config.cmd)
        if not argv:
            raise ConfigurationError("Custom command is empty.")
        return argv

    if width <= 0 or height <= 0:
        raise ConfigurationError(f"Invalid frame size {width}x{height}.")
    if not config.output_filename:
        raise ConfigurationError("output_filename is empty.")

    argv = [
        config.ffmpeg_cmd,
        "-y",
        "-video_size", f"{width}x{height}",
        "-pixel_format", "rgb24",
        "-f", "rawvideo",
        "-framerate", format_rate(config.framerate),
        *BT709,
        "-i", "pipe:",
        "-vcodec", config.vcodec,
        "-pix_fmt", config.pix_fmt,
    ]
    if config.crf >= 0:
        argv += ["-crf", str(config.crf)]
    argv += ["-dst_range", "0", *BT709]
    bsf = metadata_filter(config.vcodec)
    if bsf:
        argv += ["-bsf:v", bsf]
    argv.append(config.output_filename)
    return argv


def command_signature(config: EncodingConfig, argv: Sequence[str]) -> str:
    """Registry key for a command: the custom string verbatim or the joined argv."""
    if isinstance(config.cmd, str):
        return config.cmd
    return shlex.join(list(argv))
