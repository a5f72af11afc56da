"""Peak resident memory sampler."""
from __future__ import annotations

import threading
import time

import psutil


class RamMonitor:
    """Polls this process's RSS on a background thread while active."""

    def __init__(self, interval_ms: int) -> None:
        self._interval = max(interval_ms, 1) / 1000.0
        self._process = psutil.Process()
        self._peak = 0
        self._running = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def peak_mb(self) -> float:
        return self._peak / (1024 * 1024)

    def start(self) -> None:
        self._peak = self._process.memory_info().rss
        self._running.set()
        self._thread = threading.Thread(target=self._run, name="logtrains-ram", daemon=True)
        self._thread.start()

    def stop(self) -> float:
        self._running.clear()
        if self._thread:
            self._thread.join(timeout=1.0)
            self._thread = None
        return self.peak_mb

    def _run(self) -> None:
        while self._running.is_set():
            self._peak = max(self._peak, self._process.memory_info().rss)
            time.sleep(self._interval)
