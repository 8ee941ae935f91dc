"""Frame-by-frame video encoding through an FFmpeg subprocess."""
from __future__ import annotations

import dataclasses
import enum
import os
import subprocess
import threading
import weakref
from pathlib import Path
from typing import Callable, Iterable, List, Optional, TextIO

import numpy as np

from .command import build_command, command_signature
from .config import EncodingConfig
from .drain import DiagnosticDrain
from .env import find_encoder
from .errors import (
    ConfigurationError,
    EncoderError,
    FrameShapeError,
    FrameValidationError,
    LogSinkError,
    NotOpenError,
    PipeWriteError,
    ProcessSpawnError,
)
from .frames import check_frame, normalize_frame
from .logger import get_logger
from .registry import ProcessRegistry, default_registry

logger = get_logger()


class SessionState(enum.Enum):
    CLOSED = "closed"
    OPENED = "opened"
    STREAMING = "streaming"


class EncoderSession:
    """Write raw frames to an FFmpeg process one at a time.

    The session is closed on construction. ``open()`` freezes the
    configuration; the first ``write_frame()`` fixes the frame size, builds
    the command line and starts the encoder; ``close()`` ends the stream and
    waits for the encoder to finish. Any error raised by ``open()`` or
    ``write_frame()`` closes the session first, so a failed session never
    leaves an encoder running.

    Sessions are not thread-safe.
    """

    def __init__(
        self,
        output_filename: Optional[str] = None,
        config: Optional[EncodingConfig] = None,
        registry: Optional[ProcessRegistry] = None,
        **fields,
    ) -> None:
        if output_filename is not None:
            fields["output_filename"] = output_filename
        if config is None:
            config = EncodingConfig(**fields)
        elif fields:
            config = dataclasses.replace(config, **fields)
        self._config = config
        self.registry = registry if registry is not None else default_registry()
        self.command: Optional[List[str]] = None
        self.command_line: Optional[str] = None
        self.returncode: Optional[int] = None
        self._reset()

    def _reset(self) -> None:
        self.state = SessionState.CLOSED
        self.width = 0
        self.height = 0
        self.frames_written = 0
        self._proc: Optional[subprocess.Popen] = None
        self._drain: Optional[DiagnosticDrain] = None
        self._log_fh: Optional[TextIO] = None
        self._signature: Optional[str] = None
        self._finalizer: Optional[weakref.finalize] = None

    def __enter__(self) -> "EncoderSession":
        self.open()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<EncoderSession {self.state.value} {self._config.output_filename!r}>"

    # Configuration
    @property
    def config(self) -> EncodingConfig:
        return self._config

    @config.setter
    def config(self, value: EncodingConfig) -> None:
        if self.state is not SessionState.CLOSED:
            raise ConfigurationError(
                "Configuration cannot change while the session is open.", self.command_line
            )
        self._config = value

    def configure(self, **changes) -> EncodingConfig:
        """Replace configuration fields; only allowed while closed."""
        self.config = dataclasses.replace(self._config, **changes)
        return self._config

    @property
    def is_open(self) -> bool:
        return self.state is not SessionState.CLOSED

    @property
    def pid(self) -> Optional[int]:
        return self._proc.pid if self._proc is not None else None

    # Lifecycle
    def open(self) -> None:
        """Freeze the configuration. Calling it again while open does nothing."""
        if self.state is not SessionState.CLOSED:
            return
        cfg = self._config
        if not cfg.has_custom_command and find_encoder(cfg.ffmpeg_cmd) is None:
            logger.warning(
                "%s can't be found. Set ffmpeg_cmd to the full path of the FFmpeg executable.",
                cfg.ffmpeg_cmd,
            )
        self.returncode = None
        self.command = None
        self.command_line = None
        self.state = SessionState.OPENED
        logger.debug("Encoder session opened for %s", cfg.output_filename or cfg.cmd)

    def write_frame(self, frame) -> None:
        """Send one frame to the encoder, starting it on the first call.

        Blocks until the OS pipe accepts the whole frame, so a slow encoder
        throttles the caller.
        """
        if self.state is SessionState.CLOSED:
            self.close()
            raise NotOpenError("Session must be open before writing frames. Call open() first.")
        try:
            data = self._prepare(frame)
            if self.state is SessionState.OPENED:
                self._start()
            self._write(data)
        except Exception:
            self.close()
            raise
        self.frames_written += 1
        self._drain.pump()

    def write_frames(self, frames: Iterable) -> int:
        """Write every frame of ``frames``; returns the number written."""
        count = 0
        for frame in frames:
            self.write_frame(frame)
            count += 1
        return count

    def close(self) -> None:
        """End the stream and release the encoder. Safe to call at any time."""
        if self._finalizer is not None:
            self._finalizer.detach()
        proc = self._proc
        drain = self._drain
        threaded = drain is not None and drain.threaded
        timeout = self._config.close_timeout

        if drain is not None and not threaded:
            drain.pump()
        if not threaded:
            self._close_drain()
        if proc is not None:
            _close_quietly(proc.stdin, "stdin")
        if self._signature is not None:
            self.registry.unregister(self._signature, proc)
        if proc is not None:
            try:
                proc.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                logger.warning(
                    "Encoder (pid %s) still running after %.0fs; killing it", proc.pid, timeout
                )
                proc.kill()
                proc.wait()
            self.returncode = proc.returncode
            logger.info(
                "Encoder exited with code %s after %d frame(s)", proc.returncode, self.frames_written
            )
        if threaded:
            self._close_drain()
        self._reset()

    def abort(self) -> None:
        """Kill the encoder immediately, then close."""
        if self._proc is not None and self._proc.poll() is None:
            logger.info("Terminating encoder (pid %s)", self._proc.pid)
            self._proc.kill()
        self.close()

    # Internal helpers
    def _prepare(self, frame) -> bytes:
        try:
            arr = check_frame(frame)
            if self._config.has_custom_command:
                if self.state is SessionState.OPENED:
                    self.height, self.width = arr.shape[:2]
                return np.ascontiguousarray(arr).tobytes()
            arr = normalize_frame(arr)
        except FrameValidationError as exc:
            raise type(exc)(exc.message, self.command_line) from None

        height, width = arr.shape[:2]
        if self.state is SessionState.OPENED:
            self.width, self.height = width, height
        elif (width, height) != (self.width, self.height):
            raise FrameShapeError(
                f"Frame must be {self.width} by {self.height}, got {width} by {height}.",
                self.command_line,
            )
        return arr.tobytes()

    def _start(self) -> None:
        cfg = self._config
        argv = build_command(cfg, self.width, self.height)
        self.command = argv
        self.command_line = command_signature(cfg, argv)
        self._log_fh = self._open_log()

        spawn_args = cfg.cmd if os.name == "nt" and isinstance(cfg.cmd, str) else argv
        try:
            proc = subprocess.Popen(
                spawn_args,
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except (OSError, ValueError) as exc:
            raise ProcessSpawnError(
                f"Failed to launch encoder {argv[0]!r}: {exc}",
                self.command_line,
            ) from exc
        self._proc = proc
        self._signature = self.command_line
        self.registry.register(self._signature, proc)
        threaded = cfg.drain_mode == "thread"
        self._drain = DiagnosticDrain(
            proc.stderr,
            log_fh=self._log_fh,
            console=cfg.log_to_console,
            threaded=threaded,
        )
        # the reader thread owns stderr and the log file until EOF
        self._finalizer = weakref.finalize(
            self,
            _release_abandoned,
            proc,
            self.registry,
            self._signature,
            None if threaded else proc.stderr,
            None if threaded else self._log_fh,
        )
        self.state = SessionState.STREAMING
        logger.info("Started encoder (pid %s): %s", proc.pid, self.command_line)

    def _open_log(self) -> Optional[TextIO]:
        path = self._config.log_file
        if not path:
            return None
        try:
            fh = open(path, "w", encoding="utf-8", newline="")
        except OSError as exc:
            raise LogSinkError(f"Can't open log file {path} for writing: {exc}", self.command_line) from exc
        fh.write(f"FFmpeg full command line with arguments:\n{self.command_line}\n\n")
        fh.flush()
        return fh

    def _write(self, data: bytes) -> None:
        stdin = self._proc.stdin
        try:
            stdin.write(data)
            stdin.flush()
        except (OSError, ValueError) as exc:
            raise PipeWriteError(
                f"Writing frame {self.frames_written + 1} to the encoder failed ({exc}). "
                "Please check the FFmpeg command line arguments",
                self.command_line,
            ) from exc

    def _close_drain(self) -> None:
        drain = self._drain
        self._drain = None
        if drain is not None:
            try:
                drain.close(timeout=self._config.close_timeout)
            except (OSError, ValueError) as exc:
                logger.warning("Flushing encoder log failed: %s", exc)
        if self._proc is not None:
            _close_quietly(self._proc.stderr, "stderr")
        _close_quietly(self._log_fh, "log file")
        self._log_fh = None


def _close_quietly(stream, what: str) -> None:
    if stream is None:
        return
    try:
        stream.close()
    except (OSError, ValueError) as exc:
        # stdin.close() flushes; a dead encoder makes that fail
        logger.debug("Closing encoder %s failed: %s", what, exc)


def _release_abandoned(proc, registry, signature, stderr, log_fh) -> None:
    """End the input of an encoder whose session was dropped without close()."""
    logger.warning("Encoder session dropped without close(); ending input of pid %s", proc.pid)
    _close_quietly(proc.stdin, "stdin")
    _close_quietly(stderr, "stderr")
    _close_quietly(log_fh, "log file")
    registry.unregister(signature, proc)


def encode_frames(
    frames: Iterable,
    config: EncodingConfig,
    cancel_event: Optional[threading.Event] = None,
    log_cb: Optional[Callable[[str], None]] = None,
    registry: Optional[ProcessRegistry] = None,
) -> int:
    """Encode ``frames`` to ``config.output_filename`` in one call.

    Returns the number of frames written. Cancelling via ``cancel_event``
    kills the encoder and removes the partial output.
    """
    session = EncoderSession(config=config, registry=registry)
    if log_cb:
        log_cb("Starting FFmpeg encode…")
    session.open()
    cancelled = False
    count = 0
    try:
        for frame in frames:
            if cancel_event is not None and cancel_event.is_set():
                if log_cb:
                    log_cb("Cancel requested. Terminating FFmpeg…")
                cancelled = True
                break
            session.write_frame(frame)
            count += 1
    finally:
        if cancelled:
            session.abort()
        else:
            session.close()

    if cancelled:
        out_path = Path(config.output_filename) if config.output_filename else None
        if out_path is not None and out_path.exists():
            try:
                out_path.unlink()
            except OSError as exc:
                logger.warning("Could not remove partial output %s: %s", out_path, exc)
        raise RuntimeError("Operation cancelled.")
    if session.returncode:
        raise EncoderError(
            f"FFmpeg encode failed with exit code {session.returncode}", session.command_line
        )
    if log_cb:
        log_cb(f"Encoded {count} frame(s) to {config.output_filename or session.command_line}")
    return count
