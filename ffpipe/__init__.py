"""Stream raw frames into an FFmpeg subprocess."""

from .logger import get_logger
from .config import EncodingConfig
from .encode import EncoderSession, SessionState, encode_frames
from .errors import (
    ConfigurationError,
    EmptyFrameError,
    EncoderError,
    FrameDimensionError,
    FrameShapeError,
    FrameValidationError,
    LogSinkError,
    NotOpenError,
    PipeWriteError,
    ProcessSpawnError,
)
from .registry import ProcessRegistry, default_registry

# Initialize shared logger early
logger = get_logger()

__version__ = "0.1.0"

__all__ = [
    "EncodingConfig",
    "EncoderSession",
    "SessionState",
    "encode_frames",
    "ProcessRegistry",
    "default_registry",
    "EncoderError",
    "ConfigurationError",
    "NotOpenError",
    "FrameValidationError",
    "EmptyFrameError",
    "FrameDimensionError",
    "FrameShapeError",
    "ProcessSpawnError",
    "PipeWriteError",
    "LogSinkError",
]
