"""Configuration loading and dataclasses."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

import yaml

from .assets import ModelAssetSpec, default_tokenizer_fallbacks
from .engines.base import GenerationSpec
from .errors import ConfigError

DEFAULT_CONFIG_PATH = "configs/logtrains.yaml"
CONFIG_ENV_VAR = "LOGTRAINS_CONFIG"

DEFAULT_MODEL_REPO = "TheBloke/TinyLlama-1.1B-Chat-v1.0-GGUF"
DEFAULT_MODEL_FILE = "tinyllama-1.1b-chat-v1.0.Q4_K_M.gguf"


@dataclass
class AppConfig:
    model: str | None = None
    model_repo: str = DEFAULT_MODEL_REPO
    model_file: str = DEFAULT_MODEL_FILE
    tokenizer_fallbacks: list[str] | None = None
    prompt_template: str | None = None
    device: str = "auto"
    offline_mode: bool = False
    sampling_interval_ms: int = 50
    gpu_index: int | None = 0


@dataclass
class GenerationDefaults:
    max_context: int = 4096
    generation_reserve: int = 512
    system_preserve: int = 150
    temperature: float = 0.7
    top_p: float = 0.9
    seed: int = 299792458

    def to_spec(self) -> GenerationSpec:
        return GenerationSpec(
            max_context=self.max_context,
            generation_reserve=self.generation_reserve,
            system_preserve=self.system_preserve,
            temperature=self.temperature,
            top_p=self.top_p,
            seed=self.seed,
        ).validate()


@dataclass
class ModelSpec:
    key: str
    repo_id: str
    weight_file: str
    tokenizer_fallbacks: list[str] | None = None

    def to_asset_spec(self) -> ModelAssetSpec:
        fallbacks = self.tokenizer_fallbacks
        if fallbacks is None:
            fallbacks = list(default_tokenizer_fallbacks(self.repo_id))
        return ModelAssetSpec(
            repo_id=self.repo_id,
            weight_file=self.weight_file,
            tokenizer_fallbacks=tuple(fallbacks),
        )


@dataclass
class RootConfig:
    app: AppConfig = field(default_factory=AppConfig)
    generation_defaults: GenerationDefaults = field(default_factory=GenerationDefaults)
    models: list[ModelSpec] = field(default_factory=list)


def _get(data: dict[str, Any], key: str, default: Any) -> Any:
    return data.get(key, default) if isinstance(data, dict) else default


def _str_list(value: Any, name: str) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ConfigError(f"{name} must be a list of repo ids")
    return [str(item) for item in value]


def load_config(path: str) -> RootConfig:
    with open(path, "r", encoding="utf-8") as handle:
        try:
            raw = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid config file {path}: {exc}") from exc

    app_raw = _get(raw, "app", {})
    gen_raw = _get(raw, "generation_defaults", {})
    models_raw = _get(raw, "models", [])

    try:
        app = AppConfig(
            model=_get(app_raw, "model", AppConfig.model),
            model_repo=_get(app_raw, "model_repo", AppConfig.model_repo),
            model_file=_get(app_raw, "model_file", AppConfig.model_file),
            tokenizer_fallbacks=_str_list(_get(app_raw, "tokenizer_fallbacks", None), "tokenizer_fallbacks"),
            prompt_template=_get(app_raw, "prompt_template", AppConfig.prompt_template),
            device=str(_get(app_raw, "device", AppConfig.device)),
            offline_mode=bool(_get(app_raw, "offline_mode", AppConfig.offline_mode)),
            sampling_interval_ms=int(_get(app_raw, "sampling_interval_ms", AppConfig.sampling_interval_ms)),
            gpu_index=_get(app_raw, "gpu_index", AppConfig.gpu_index),
        )

        gen = GenerationDefaults(
            max_context=int(_get(gen_raw, "max_context", GenerationDefaults.max_context)),
            generation_reserve=int(_get(gen_raw, "generation_reserve", GenerationDefaults.generation_reserve)),
            system_preserve=int(_get(gen_raw, "system_preserve", GenerationDefaults.system_preserve)),
            temperature=float(_get(gen_raw, "temperature", GenerationDefaults.temperature)),
            top_p=float(_get(gen_raw, "top_p", GenerationDefaults.top_p)),
            seed=int(_get(gen_raw, "seed", GenerationDefaults.seed)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid value in {path}: {exc}") from exc

    models: list[ModelSpec] = []
    if isinstance(models_raw, list):
        for item in models_raw:
            key = _get(item, "key", "")
            repo_id = _get(item, "repo_id", "")
            weight_file = _get(item, "weight_file", "")
            if not key or not repo_id or not weight_file:
                raise ConfigError(f"model entries need key, repo_id and weight_file: {item!r}")
            models.append(
                ModelSpec(
                    key=key,
                    repo_id=repo_id,
                    weight_file=weight_file,
                    tokenizer_fallbacks=_str_list(_get(item, "tokenizer_fallbacks", None), "tokenizer_fallbacks"),
                )
            )

    return RootConfig(app=app, generation_defaults=gen, models=models)


def default_config_path() -> str:
    return os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH)


def load_root_config(path: str | None = None) -> RootConfig:
    path = path or default_config_path()
    if not os.path.exists(path):
        return RootConfig()
    return load_config(path)
