"""Model preset registry."""
from __future__ import annotations

from .config import AppConfig, ModelSpec


class ModelRegistry:
    def __init__(self, models: list[ModelSpec]):
        self._models = models

    def list(self) -> list[ModelSpec]:
        return list(self._models)

    def get(self, key: str) -> ModelSpec:
        for model in self._models:
            if model.key == key:
                return model
        available = ", ".join(m.key for m in self._models) or "none"
        raise KeyError(f"Model not found: {key} (available: {available})")

    def resolve(self, app: AppConfig) -> ModelSpec:
        """Preset named by ``app.model``, else the raw repo/file pair."""
        if app.model:
            return self.get(app.model)
        return ModelSpec(
            key=app.model_repo,
            repo_id=app.model_repo,
            weight_file=app.model_file,
            tokenizer_fallbacks=app.tokenizer_fallbacks,
        )
