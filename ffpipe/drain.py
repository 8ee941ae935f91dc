"""Non-blocking reader for the encoder's stderr.

In the default ``inline`` mode nothing runs in the background: ``pump()`` is
called after every frame write and only picks up what the OS has already
buffered at that instant. Lines written by the encoder between two pumps stay
in the pipe until the next one. ``thread`` mode trades that for a daemon
reader thread that captures everything.
"""
from __future__ import annotations

import array
import codecs
import io
import os
import re
import sys
import threading
from typing import Optional, TextIO

from .logger import get_logger

logger = get_logger()

MIN_BUFFER = 1024
CHUNK = 4096

if os.name == "nt":  # pragma: no cover - platform specific
    import ctypes
    import msvcrt
    from ctypes import wintypes

    def bytes_available(fd: int) -> int:
        """Number of bytes that can be read from pipe ``fd`` without blocking."""
        handle = msvcrt.get_osfhandle(fd)
        avail = wintypes.DWORD(0)
        ok = ctypes.windll.kernel32.PeekNamedPipe(
            wintypes.HANDLE(handle), None, 0, None, ctypes.byref(avail), None
        )
        if not ok:
            raise OSError(ctypes.GetLastError(), "PeekNamedPipe failed")
        return int(avail.value)

else:
    import fcntl
    import termios

    def bytes_available(fd: int) -> int:
        """Number of bytes that can be read from pipe ``fd`` without blocking."""
        buf = array.array("i", [0])
        fcntl.ioctl(fd, termios.FIONREAD, buf, True)
        return buf[0]


class DiagnosticDrain:
    """Route encoder diagnostics to the console, a log file, or nowhere."""

    def __init__(
        self,
        stream,
        log_fh: Optional[TextIO] = None,
        console: bool = False,
        threaded: bool = False,
    ) -> None:
        self.stream = stream
        self.log_fh = log_fh
        self.console = console and log_fh is None
        self.threaded = threaded
        self.active = stream is not None
        self.bytes_read = 0
        self._buffer = bytearray(MIN_BUFFER)
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        if self.active and threaded:
            self._thread = threading.Thread(target=self._run, name="ffpipe-stderr", daemon=True)
            self._thread.start()

    def _emit(self, data: bytes) -> None:
        with self._lock:
            self.bytes_read += len(data)
            text = self._decoder.decode(data)
            if not text:
                return
            if self.log_fh is not None:
                self.log_fh.write(text)
                self.log_fh.flush()
            elif self.console:
                if os.name == "nt":
                    text = re.sub(r"[\r\n]+", "\n", text)
                sys.stdout.write(text)
                sys.stdout.flush()

    def _disable(self, exc: Exception) -> None:
        self.active = False
        logger.warning("Encoder log draining stopped: %s", exc)

    def pump(self) -> int:
        """Read whatever is buffered right now; never blocks."""
        if not self.active or self.threaded:
            return 0
        try:
            available = bytes_available(self.stream.fileno())
            if available <= 0:
                return 0
            if available > len(self._buffer):
                self._buffer = bytearray(available)
            view = memoryview(self._buffer)[:available]
            raw = getattr(self.stream, "raw", self.stream)
            n = raw.readinto(view) or 0
            self._emit(bytes(view[:n]))
            return n
        except (OSError, ValueError, io.UnsupportedOperation) as exc:
            self._disable(exc)
            return 0

    def _run(self) -> None:
        raw = getattr(self.stream, "raw", self.stream)
        try:
            for chunk in iter(lambda: raw.read(CHUNK), b""):
                self._emit(chunk)
        except (OSError, ValueError) as exc:
            self._disable(exc)

    def close(self, timeout: float = 5.0) -> None:
        """Stop draining. In thread mode, wait for the reader to hit EOF."""
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Encoder log reader still running after %.1fs", timeout)
            self._thread = None
        self.active = False
        with self._lock:
            tail = self._decoder.decode(b"", final=True)
            if tail and self.log_fh is not None:
                self.log_fh.write(tail)
            elif tail and self.console:
                sys.stdout.write(tail)
