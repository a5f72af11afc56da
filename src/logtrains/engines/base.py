"""Engine protocols and dataclasses."""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, Sequence

from ..errors import ConfigError

if TYPE_CHECKING:
    import torch


class Device(enum.Enum):
    CPU = "cpu"
    CUDA = "cuda"
    MPS = "mps"

    def to_torch(self) -> "torch.device":
        import torch

        if self is Device.CUDA:
            return torch.device("cuda:0")
        return torch.device(self.value)


@dataclass(frozen=True)
class GenerationSpec:
    max_context: int = 4096
    generation_reserve: int = 512
    system_preserve: int = 150
    temperature: float = 0.7
    top_p: float = 0.9
    seed: int = 299792458

    @property
    def input_budget(self) -> int:
        return self.max_context - self.generation_reserve

    def validate(self) -> "GenerationSpec":
        if self.generation_reserve <= 0:
            raise ConfigError(f"generation_reserve must be positive, got {self.generation_reserve}")
        if self.generation_reserve >= self.max_context:
            raise ConfigError(
                f"generation_reserve ({self.generation_reserve}) must be smaller than "
                f"max_context ({self.max_context})"
            )
        if self.system_preserve < 0:
            raise ConfigError(f"system_preserve must not be negative, got {self.system_preserve}")
        if self.system_preserve >= self.input_budget:
            raise ConfigError(
                f"system_preserve ({self.system_preserve}) leaves no room for the log tail "
                f"within an input budget of {self.input_budget} tokens"
            )
        if not 0.0 < self.top_p <= 1.0:
            raise ConfigError(f"top_p must be in (0, 1], got {self.top_p}")
        return self


@dataclass
class GenerationOutput:
    text: str
    prompt_tokens: int
    input_tokens: int
    generated_tokens: int
    decode_time_s: float
    stop_signal: str
    truncated: bool


class Tokenizer(Protocol):
    def encode(self, text: str) -> list[int]:
        ...

    def decode(self, ids: Sequence[int]) -> str:
        ...

    def id_to_token(self, token_id: int) -> str | None:
        ...

    def token_to_id(self, token: str) -> int | None:
        ...

    def token_text(self, token_id: int) -> str | None:
        ...


class InferenceProvider(Protocol):
    def forward(self, window: Sequence[int], start_pos: int) -> "torch.Tensor":
        ...

    def unload(self) -> None:
        ...


class TokenSink(Protocol):
    def __call__(self, text: str) -> None:
        ...
