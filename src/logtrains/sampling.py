"""Seeded temperature + nucleus sampler."""
from __future__ import annotations

import torch


class Sampler:
    """Draws token ids from logits with one RNG stream for the whole run.

    The generator is seeded once at construction, so a fixed seed and a fixed
    sequence of logits always yield the same tokens. A non-positive
    temperature means greedy decoding.
    """

    def __init__(self, temperature: float, top_p: float, seed: int) -> None:
        self._temperature = temperature
        self._top_p = top_p
        self._generator = torch.Generator(device="cpu")
        self._generator.manual_seed(seed)

    def sample(self, logits: torch.Tensor) -> int:
        logits = logits.detach()
        if logits.dim() > 1:
            # Earlier positions are already in the provider's cache.
            logits = logits.reshape(-1, logits.shape[-1])[-1]
        logits = logits.to(device="cpu", dtype=torch.float32)

        if self._temperature <= 0:
            return int(torch.argmax(logits).item())

        probs = torch.softmax(logits / self._temperature, dim=-1)
        if self._top_p < 1.0:
            probs = self._nucleus(probs)
        return int(torch.multinomial(probs, num_samples=1, generator=self._generator).item())

    def _nucleus(self, probs: torch.Tensor) -> torch.Tensor:
        sorted_probs, sorted_idx = torch.sort(probs, descending=True)
        cumulative = torch.cumsum(sorted_probs, dim=-1)
        # Keep a token while the mass before it is still short of top_p,
        # so the token that crosses the threshold stays in.
        keep = (cumulative - sorted_probs) < self._top_p
        keep[0] = True
        filtered = torch.zeros_like(probs)
        filtered[sorted_idx[keep]] = sorted_probs[keep]
        return filtered / filtered.sum()
