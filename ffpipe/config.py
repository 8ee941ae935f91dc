"""Encoding parameters for a single encoder session."""
from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, field
from typing import Optional, Sequence, Union

from .env import default_ffmpeg_cmd
from .errors import ConfigurationError

DRAIN_MODES = ("inline", "thread")
CLOSE_TIMEOUT = 10.0


@dataclass(frozen=True)
class EncodingConfig:
    """Immutable FFmpeg encoding parameters.

    Frame width and height are not part of the configuration: they are taken
    from the first frame written to a session.
    """

    output_filename: str = ""
    ffmpeg_cmd: str = field(default_factory=default_ffmpeg_cmd)
    framerate: float = 30
    pix_fmt: str = "yuv420p"
    vcodec: str = "libx264"
    crf: int = 17
    cmd: Optional[Union[str, Sequence[str]]] = None
    log_file: Optional[str] = None
    log_to_console: bool = False
    drain_mode: str = "inline"
    close_timeout: float = CLOSE_TIMEOUT

    def __post_init__(self) -> None:
        fr = self.framerate
        if isinstance(fr, bool) or not isinstance(fr, numbers.Real) or math.isnan(fr) or fr < 0:
            raise ConfigurationError(f"framerate must be a non-negative real number, got {fr!r}")

        crf = self.crf
        if isinstance(crf, float) and crf.is_integer():
            object.__setattr__(self, "crf", int(crf))
        elif isinstance(crf, bool) or not isinstance(crf, numbers.Integral):
            raise ConfigurationError(f"crf must be an integer, got {crf!r}")

        if self.output_filename is None:
            object.__setattr__(self, "output_filename", "")
        else:
            object.__setattr__(self, "output_filename", str(self.output_filename))
        if self.log_file is not None:
            object.__setattr__(self, "log_file", str(self.log_file))

        if self.cmd is not None and not isinstance(self.cmd, str):
            object.__setattr__(self, "cmd", tuple(str(a) for a in self.cmd))
        if self.cmd is not None and not self.cmd:
            object.__setattr__(self, "cmd", None)

        if self.drain_mode not in DRAIN_MODES:
            raise ConfigurationError(
                f"drain_mode must be one of {', '.join(DRAIN_MODES)}, got {self.drain_mode!r}"
            )
        ct = self.close_timeout
        if isinstance(ct, bool) or not isinstance(ct, numbers.Real) or math.isnan(ct) or ct <= 0:
            raise ConfigurationError(f"close_timeout must be a positive number, got {ct!r}")
        if self.log_file and self.log_to_console:
            raise ConfigurationError("log_file and log_to_console are mutually exclusive")

    @property
    def has_custom_command(self) -> bool:
        return self.cmd is not None
