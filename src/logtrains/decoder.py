"""Autoregressive decode loop with streaming and stop detection."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Protocol, Sequence

from .engines.base import GenerationSpec, InferenceProvider, Tokenizer, TokenSink
from .errors import InferenceError, SinkError
from .prompts import END_OF_TURN, STOP_SENTINELS
from .sampling import Sampler

logger = logging.getLogger(__name__)

FALLBACK_EOS_ID = 2


class StopSignal(enum.Enum):
    EOS_TOKEN = "eos"
    SENTINEL = "sentinel"
    RESERVE_EXHAUSTED = "length"
    CANCELLED = "cancelled"


class CancelFlag(Protocol):
    def is_set(self) -> bool:
        ...


@dataclass
class GenerationState:
    all_tokens: list[int]
    step_index: int = 0


@dataclass
class DecodeResult:
    stop_signal: StopSignal
    generated: list[int] = field(default_factory=list)
    steps: int = 0


def resolve_eos_id(tokenizer: Tokenizer) -> int:
    eos = tokenizer.token_to_id(END_OF_TURN)
    return FALLBACK_EOS_ID if eos is None else eos


class Decoder:
    """Drives the inference provider one token at a time.

    Step 0 prefills the whole prompt; every later step feeds only the token
    appended last, with ``start_pos`` telling the provider where it sits.
    The loop never runs more than ``gen.generation_reserve`` steps.
    """

    def __init__(
        self,
        provider: InferenceProvider,
        tokenizer: Tokenizer,
        gen: GenerationSpec,
        sentinels: Sequence[str] = STOP_SENTINELS,
        log: logging.Logger | None = None,
    ) -> None:
        self._provider = provider
        self._tokenizer = tokenizer
        self._gen = gen
        self._sentinels = tuple(sentinels)
        self._log = log or logger
        self._eos_id = resolve_eos_id(tokenizer)

    @property
    def eos_id(self) -> int:
        return self._eos_id

    def run(self, tokens: Sequence[int], sink: TokenSink, cancel: CancelFlag | None = None) -> DecodeResult:
        state = GenerationState(all_tokens=list(tokens))
        sampler = Sampler(self._gen.temperature, self._gen.top_p, self._gen.seed)
        prompt_len = len(state.all_tokens)
        steps = 0

        def _result(signal: StopSignal) -> DecodeResult:
            self._log.debug("decode stopped: %s after %d steps", signal.value, steps)
            return DecodeResult(stop_signal=signal, generated=state.all_tokens[prompt_len:], steps=steps)

        while state.step_index < self._gen.generation_reserve:
            if cancel is not None and cancel.is_set():
                return _result(StopSignal.CANCELLED)

            window_len = len(state.all_tokens) if state.step_index == 0 else 1
            start_pos = len(state.all_tokens) - window_len
            window = state.all_tokens[start_pos:]
            try:
                logits = self._provider.forward(window, start_pos)
            except InferenceError:
                raise
            except Exception as exc:
                raise InferenceError(f"forward failed at position {start_pos}: {exc}") from exc

            try:
                next_token = sampler.sample(logits)
            except RuntimeError as exc:
                raise InferenceError(f"cannot sample from logits at position {start_pos}: {exc}") from exc
            steps += 1

            if next_token == self._eos_id:
                return _result(StopSignal.EOS_TOKEN)

            piece = self._tokenizer.id_to_token(next_token)
            if piece is not None and any(s in piece for s in self._sentinels):
                return _result(StopSignal.SENTINEL)

            state.all_tokens.append(next_token)
            state.step_index += 1

            if piece is None:
                continue
            text = self._tokenizer.token_text(next_token)
            try:
                sink(piece if text is None else text)
            except SinkError:
                raise
            except Exception as exc:
                raise SinkError(f"sink rejected token {next_token}: {exc}") from exc

        return _result(StopSignal.RESERVE_EXHAUSTED)
