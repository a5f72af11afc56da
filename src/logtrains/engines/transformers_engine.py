"""Transformers causal-LM inference provider."""
from __future__ import annotations

import logging
import os
from typing import Any, Sequence

import torch

from .base import Device
from ..errors import InferenceError

logger = logging.getLogger(__name__)


def _dtype_for(device: Device) -> torch.dtype:
    if device is Device.CPU:
        return torch.float32
    return torch.float16


class TransformersProvider:
    """Runs forward passes and keeps the KV cache between decode steps.

    ``start_pos`` must equal the number of positions already in the cache;
    a call with ``start_pos == 0`` starts a fresh sequence.
    """

    def __init__(self, model: Any, device: Device) -> None:
        self._model = model
        self._device = device
        self._torch_device = device.to_torch()
        self._cache: Any | None = None

    @classmethod
    def from_gguf(cls, weight_path: str, device: Device, log: logging.Logger | None = None) -> "TransformersProvider":
        from transformers import AutoModelForCausalLM

        log = log or logger
        if not os.path.isfile(weight_path):
            raise InferenceError(f"weight file not found: {weight_path}")
        log.info("Loading weights from %s", weight_path)
        try:
            model = AutoModelForCausalLM.from_pretrained(
                os.path.dirname(weight_path),
                gguf_file=os.path.basename(weight_path),
                torch_dtype=_dtype_for(device),
            )
            model.to(device.to_torch())
        except Exception as exc:
            raise InferenceError(f"failed to load model from {weight_path}: {exc}") from exc
        model.eval()
        return cls(model, device)

    @property
    def device(self) -> Device:
        return self._device

    @property
    def cached_positions(self) -> int:
        if self._cache is None:
            return 0
        return int(self._cache.get_seq_length())

    def forward(self, window: Sequence[int], start_pos: int) -> torch.Tensor:
        from transformers import DynamicCache

        if self._model is None:
            raise InferenceError("Engine not loaded")
        if not window:
            raise InferenceError("empty token window")
        if start_pos == 0:
            self._cache = DynamicCache()
        elif start_pos != self.cached_positions:
            raise InferenceError(
                f"position cursor {start_pos} does not match {self.cached_positions} cached positions"
            )

        input_ids = torch.tensor([list(window)], dtype=torch.long, device=self._torch_device)
        position_ids = torch.arange(
            start_pos, start_pos + len(window), dtype=torch.long, device=self._torch_device
        ).unsqueeze(0)
        try:
            with torch.inference_mode():
                out = self._model(
                    input_ids=input_ids,
                    position_ids=position_ids,
                    past_key_values=self._cache,
                    use_cache=True,
                )
        except Exception as exc:
            raise InferenceError(f"forward pass failed: {exc}") from exc
        self._cache = out.past_key_values
        return out.logits[0]

    def unload(self) -> None:
        self._model = None
        self._cache = None
        if self._device is Device.CUDA and torch.cuda.is_available():
            torch.cuda.empty_cache()
