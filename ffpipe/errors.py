"""Exceptions raised by encoder sessions."""
from __future__ import annotations

from typing import Optional


class EncoderError(RuntimeError):
    """Base class for every fatal encoder-session error.

    ``command`` holds the fully resolved command line when one was built, so
    encoder argument problems can be diagnosed from the message alone.
    """

    def __init__(self, message: str, command: Optional[str] = None) -> None:
        self.message = message
        self.command = command
        if command:
            message = f"{message} (command: {command})"
        super().__init__(message)


class ConfigurationError(EncoderError):
    """Bad or missing encoding parameters."""


class NotOpenError(EncoderError):
    """Operation attempted before ``open()``."""


class FrameValidationError(EncoderError):
    """A frame was rejected before reaching the encoder."""


class EmptyFrameError(FrameValidationError):
    pass


class FrameDimensionError(FrameValidationError):
    pass


class FrameShapeError(FrameValidationError):
    """Frame size differs from the first frame of the stream."""


class ProcessSpawnError(EncoderError):
    """Encoder binary is missing or could not be launched."""


class PipeWriteError(EncoderError):
    """Broken pipe, usually because the encoder exited mid-stream."""


class LogSinkError(EncoderError):
    """Log file cannot be opened for writing."""
