"""Model and tokenizer asset resolution."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, TypeVar

from .errors import AssetNetworkError, AssetNotFound, AssetResolutionError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Fetch = Callable[[str, str], str]

TOKENIZER_FILE = "tokenizer.json"
MISTRAL_TOKENIZER_REPO = "mistralai/Mistral-7B-Instruct-v0.2"
TINYLLAMA_TOKENIZER_REPO = "TinyLlama/TinyLlama-1.1B-Chat-v1.0"


@dataclass(frozen=True)
class ModelAssetSpec:
    repo_id: str
    weight_file: str
    tokenizer_fallbacks: tuple[str, ...] = ()
    tokenizer_file: str = TOKENIZER_FILE


@dataclass(frozen=True)
class ResolvedAssets:
    weight_path: str
    tokenizer_path: str
    tokenizer_repo: str


def default_tokenizer_fallbacks(repo_id: str) -> tuple[str, ...]:
    """Base repo to borrow a tokenizer from when a quantized repo ships none."""
    if "mistral" in repo_id.lower():
        return (MISTRAL_TOKENIZER_REPO,)
    return (TINYLLAMA_TOKENIZER_REPO,)


def first_success(attempts: Iterable[tuple[str, Callable[[], T]]]) -> tuple[str, T]:
    """Run labelled attempts in order and return the first that succeeds.

    Each attempt is tried exactly once. Raises AssetResolutionError naming
    every label with its failure when all of them fail.
    """
    failures: list[str] = []
    for label, attempt in attempts:
        try:
            return label, attempt()
        except (AssetNotFound, AssetNetworkError) as exc:
            failures.append(f"{label}: {exc}")
    if not failures:
        raise AssetResolutionError("no sources to try")
    raise AssetResolutionError("all sources failed (" + "; ".join(failures) + ")")


def hub_fetch(force_download: bool = False) -> Fetch:
    from huggingface_hub import hf_hub_download
    from huggingface_hub.errors import (
        EntryNotFoundError,
        HfHubHTTPError,
        LocalEntryNotFoundError,
        RepositoryNotFoundError,
    )

    def _fetch(repo_id: str, filename: str) -> str:
        try:
            return hf_hub_download(repo_id=repo_id, filename=filename, force_download=force_download)
        except (EntryNotFoundError, RepositoryNotFoundError, LocalEntryNotFoundError) as exc:
            raise AssetNotFound(f"{filename} not found in {repo_id}") from exc
        except (HfHubHTTPError, OSError) as exc:
            raise AssetNetworkError(f"failed to fetch {filename} from {repo_id}: {exc}") from exc

    return _fetch


def resolve_assets(
    spec: ModelAssetSpec,
    fetch: Fetch | None = None,
    force_download: bool = False,
    log: logging.Logger | None = None,
) -> ResolvedAssets:
    log = log or logger
    fetch = fetch or hub_fetch(force_download=force_download)

    log.info("Locating model: %s (%s)", spec.repo_id, spec.weight_file)
    try:
        weight_path = fetch(spec.repo_id, spec.weight_file)
    except (AssetNotFound, AssetNetworkError) as exc:
        raise AssetResolutionError(f"could not obtain weights {spec.weight_file} from {spec.repo_id}: {exc}") from exc

    def _attempt(repo_id: str) -> Callable[[], str]:
        def _run() -> str:
            if repo_id != spec.repo_id:
                log.info("Tokenizer not found in %s, trying %s", spec.repo_id, repo_id)
            return fetch(repo_id, spec.tokenizer_file)

        return _run

    sources = [spec.repo_id] + [repo for repo in spec.tokenizer_fallbacks if repo != spec.repo_id]
    try:
        tokenizer_repo, tokenizer_path = first_success((repo, _attempt(repo)) for repo in sources)
    except AssetResolutionError as exc:
        raise AssetResolutionError(f"no tokenizer available for {spec.repo_id}: {exc}") from exc

    return ResolvedAssets(
        weight_path=weight_path,
        tokenizer_path=tokenizer_path,
        tokenizer_repo=tokenizer_repo,
    )
