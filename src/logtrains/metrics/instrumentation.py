"""Run statistics around a generation call."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from .ram_monitor import RamMonitor
from .vram_monitor import VramMonitor
from ..engines.base import Device, GenerationOutput


@dataclass
class MeasuredOutput:
    output: GenerationOutput
    tokens_per_s: float
    ram_peak_mb: float
    vram_peak_mb: float | None

    def summary(self) -> str:
        vram = f"{self.vram_peak_mb:.1f} MB" if self.vram_peak_mb is not None else "n/a"
        out = self.output
        return (
            f"prompt_tokens={out.prompt_tokens} input_tokens={out.input_tokens} "
            f"generated_tokens={out.generated_tokens} stop={out.stop_signal} "
            f"decode_time_s={out.decode_time_s:.2f} tokens_per_s={self.tokens_per_s:.2f} "
            f"ram_peak={self.ram_peak_mb:.1f} MB vram_peak={vram}"
        )


class Instrumentation:
    def __init__(self, sampling_interval_ms: int, device: Device, gpu_index: int | None = 0) -> None:
        self._interval = sampling_interval_ms
        self._device = device
        self._gpu_index = gpu_index

    def measure_generate(self, fn: Callable[[], GenerationOutput]) -> MeasuredOutput:
        ram = RamMonitor(self._interval)
        vram = VramMonitor(self._interval, self._gpu_index) if self._device is Device.CUDA else None
        ram.start()
        if vram is not None:
            vram.start()
        try:
            output = fn()
        finally:
            ram_peak = ram.stop()
            vram_peak = vram.stop() if vram is not None else None
        tokens_per_s = 0.0
        if output.decode_time_s > 0:
            tokens_per_s = output.generated_tokens / output.decode_time_s
        return MeasuredOutput(
            output=output,
            tokens_per_s=tokens_per_s,
            ram_peak_mb=ram_peak,
            vram_peak_mb=vram_peak,
        )
