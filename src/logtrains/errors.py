"""Error taxonomy."""
from __future__ import annotations


class LogTrainsError(Exception):
    """Base class for every failure raised by the generation pipeline."""


class AssetResolutionError(LogTrainsError):
    """Weight file unobtainable, or every tokenizer source exhausted."""


class AssetNotFound(LogTrainsError):
    """The asset source does not carry the requested file."""


class AssetNetworkError(LogTrainsError):
    """The asset source could not be reached."""


class ConfigError(LogTrainsError):
    """Invalid generation or application configuration."""


class TokenizationError(LogTrainsError):
    """Input text could not be tokenized, or the tokenizer artifact is corrupt."""


class InferenceError(LogTrainsError):
    """The inference provider could not produce logits for a step."""


class SinkError(LogTrainsError):
    """The streaming consumer refused a token."""
