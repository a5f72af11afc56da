"""Peak GPU memory sampler using NVML."""
from __future__ import annotations

import logging
import threading
import time

try:
    import pynvml  # provided by nvidia-ml-py
except ImportError:  # pragma: no cover
    pynvml = None

logger = logging.getLogger(__name__)


class VramMonitor:
    """Polls used memory of one NVIDIA GPU; reports ``None`` when NVML is absent."""

    def __init__(self, interval_ms: int, gpu_index: int | None) -> None:
        self._interval = max(interval_ms, 1) / 1000.0
        self._gpu_index = gpu_index if gpu_index is not None else 0
        self._peak = 0
        self._handle = None
        self._running = threading.Event()
        self._thread: threading.Thread | None = None
        self._enabled = pynvml is not None

    @property
    def peak_mb(self) -> float | None:
        if not self._enabled:
            return None
        return self._peak / (1024 * 1024)

    def start(self) -> None:
        if not self._enabled:
            return
        try:
            pynvml.nvmlInit()
            self._handle = pynvml.nvmlDeviceGetHandleByIndex(self._gpu_index)
        except pynvml.NVMLError as exc:
            logger.debug("NVML unavailable: %s", exc)
            self._enabled = False
            return
        self._running.set()
        self._thread = threading.Thread(target=self._run, name="logtrains-vram", daemon=True)
        self._thread.start()

    def stop(self) -> float | None:
        if not self._enabled:
            return None
        self._running.clear()
        if self._thread:
            self._thread.join(timeout=1.0)
            self._thread = None
        try:
            pynvml.nvmlShutdown()
        except pynvml.NVMLError as exc:
            logger.debug("NVML shutdown failed: %s", exc)
        return self.peak_mb

    def _run(self) -> None:
        while self._running.is_set():
            try:
                info = pynvml.nvmlDeviceGetMemoryInfo(self._handle)
            except pynvml.NVMLError:
                break
            self._peak = max(self._peak, int(info.used))
            time.sleep(self._interval)
