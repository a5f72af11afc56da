"""Engine: owns tokenizer, inference provider and device for one model."""
from __future__ import annotations

import logging
import threading
import time

from .assets import ModelAssetSpec, resolve_assets
from .context import bound_tokens
from .decoder import CancelFlag, Decoder
from .devices import DEFAULT_PREFERENCE, select_device
from .engines.base import Device, GenerationOutput, GenerationSpec, InferenceProvider, Tokenizer, TokenSink
from .errors import TokenizationError
from .prompts import build_prompt

logger = logging.getLogger(__name__)


class Engine:
    """One loaded model, bound to a single device for its lifetime.

    Only one generation may run per Engine at a time; concurrent callers
    need their own instance since the provider's cache is per sequence.
    """

    def __init__(
        self,
        tokenizer: Tokenizer,
        provider: InferenceProvider,
        device: Device,
        gen: GenerationSpec,
        log: logging.Logger | None = None,
    ) -> None:
        self._tokenizer = tokenizer
        self._provider = provider
        self._device = device
        self._gen = gen.validate()
        self._log = log or logger
        self._busy = threading.Lock()

    @classmethod
    def load(
        cls,
        asset_spec: ModelAssetSpec,
        gen: GenerationSpec,
        preference: tuple[Device, ...] = DEFAULT_PREFERENCE,
        force_download: bool = False,
        log: logging.Logger | None = None,
    ) -> "Engine":
        from .engines.tokenizer import HFTokenizer
        from .engines.transformers_engine import TransformersProvider

        gen.validate()
        assets = resolve_assets(asset_spec, force_download=force_download, log=log)
        device = select_device(preference, log=log)
        tokenizer = HFTokenizer.from_file(assets.tokenizer_path)
        provider = TransformersProvider.from_gguf(assets.weight_path, device, log=log)
        return cls(tokenizer, provider, device, gen, log=log)

    @property
    def device(self) -> Device:
        return self._device

    @property
    def generation(self) -> GenerationSpec:
        return self._gen

    def explain(
        self,
        log_text: str,
        sink: TokenSink,
        template: str | None = None,
        cancel: CancelFlag | None = None,
    ) -> GenerationOutput:
        if not self._busy.acquire(blocking=False):
            raise RuntimeError("Engine is already generating")
        try:
            return self._explain(log_text, sink, template, cancel)
        finally:
            self._busy.release()

    def _explain(
        self,
        log_text: str,
        sink: TokenSink,
        template: str | None,
        cancel: CancelFlag | None,
    ) -> GenerationOutput:
        prompt = build_prompt(log_text, template)
        try:
            tokens = self._tokenizer.encode(prompt)
        except TokenizationError:
            raise
        except Exception as exc:
            raise TokenizationError(f"failed to encode prompt: {exc}") from exc
        if not tokens:
            raise TokenizationError("prompt encoded to zero tokens")

        bounded = bound_tokens(tokens, self._gen, log=self._log)
        decoder = Decoder(self._provider, self._tokenizer, self._gen, log=self._log)

        start = time.perf_counter()
        result = decoder.run(bounded, sink, cancel=cancel)
        end = time.perf_counter()

        return GenerationOutput(
            text=self._tokenizer.decode(result.generated),
            prompt_tokens=len(tokens),
            input_tokens=len(bounded),
            generated_tokens=len(result.generated),
            decode_time_s=end - start,
            stop_signal=result.stop_signal.value,
            truncated=len(bounded) < len(tokens),
        )

    def unload(self) -> None:
        self._provider.unload()
