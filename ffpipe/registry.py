"""Registry of running encoder processes keyed by command line.

A session that is abandoned without ``close()`` leaves its encoder running.
When another session later spawns the same command, the registry kills the
leftover process before recording the new one, so at most one process per
command line is ever alive.
"""
from __future__ import annotations

import atexit
import subprocess
import threading
from typing import Dict, List, Optional

from .logger import get_logger

logger = get_logger()

REAP_TIMEOUT = 5.0


def _kill(proc: subprocess.Popen) -> bool:
    """Send SIGKILL to ``proc`` if it is still running."""
    if proc.poll() is not None:
        return False
    try:
        proc.kill()
    except OSError:  # already gone
        return False
    return True


def _reap(procs: List[subprocess.Popen]) -> None:
    for proc in procs:
        try:
            proc.wait(timeout=REAP_TIMEOUT)
        except subprocess.TimeoutExpired:
            logger.warning("Encoder process %s did not exit after kill", proc.pid)


class ProcessRegistry:
    """Thread-safe signature -> process table."""

    def __init__(self, entries: Optional[Dict[str, subprocess.Popen]] = None) -> None:
        self._lock = threading.Lock()
        self._procs: Dict[str, subprocess.Popen] = dict(entries or {})
        self._swept = False

    def __len__(self) -> int:
        with self._lock:
            return len(self._procs)

    def __contains__(self, signature: str) -> bool:
        with self._lock:
            return signature in self._procs

    def get(self, signature: str) -> Optional[subprocess.Popen]:
        with self._lock:
            return self._procs.get(signature)

    def _sweep_locked(self) -> List[subprocess.Popen]:
        if self._swept:
            return []
        self._swept = True
        killed = []
        for signature, proc in self._procs.items():
            if _kill(proc):
                killed.append(proc)
                logger.warning("Zombie encoder process destroyed: %s", signature)
        self._procs.clear()
        return killed

    def sweep_once(self) -> None:
        """Kill every process held before this registry was first used."""
        with self._lock:
            killed = self._sweep_locked()
        _reap(killed)

    def register(self, signature: str, proc: subprocess.Popen) -> None:
        """Record ``proc`` under ``signature``, killing any stale holder."""
        with self._lock:
            killed = self._sweep_locked()
            stale = self._procs.get(signature)
            if stale is not None and stale is not proc:
                if _kill(stale):
                    killed.append(stale)
                logger.warning("Stale encoder process terminated (pid %s): %s", stale.pid, signature)
            self._procs[signature] = proc
        _reap(killed)

    def unregister(self, signature: str, proc: Optional[subprocess.Popen] = None) -> None:
        """Forget ``signature``; with ``proc`` given, only if it is the holder."""
        with self._lock:
            current = self._procs.get(signature)
            if current is None or (proc is not None and current is not proc):
                return
            del self._procs[signature]

    def shutdown(self) -> None:
        """Kill and forget every registered process."""
        with self._lock:
            procs = list(self._procs.values())
            self._procs.clear()
        killed = [p for p in procs if _kill(p)]
        if killed:
            logger.warning("Killed %d encoder process(es) left running", len(killed))
        _reap(killed)


_default: Optional[ProcessRegistry] = None
_default_lock = threading.Lock()


def default_registry() -> ProcessRegistry:
    """Return the process-wide registry shared by sessions by default."""
    global _default
    with _default_lock:
        if _default is None:
            _default = ProcessRegistry()
            atexit.register(_default.shutdown)
        return _default
