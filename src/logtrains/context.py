"""Input token budget enforcement."""
from __future__ import annotations

import logging
from typing import Sequence

from .engines.base import GenerationSpec
from .errors import ConfigError

logger = logging.getLogger(__name__)


def bound_tokens(
    tokens: Sequence[int],
    gen: GenerationSpec,
    log: logging.Logger | None = None,
) -> list[int]:
    """Fit a prompt into ``gen.input_budget`` tokens.

    Over-long prompts lose their middle: the first ``system_preserve`` tokens
    (the instruction block) and the most recent tail are kept, so the result
    is exactly ``input_budget`` long. Shorter prompts come back unchanged.
    """
    log = log or logger
    budget = gen.input_budget
    keep_tail = budget - gen.system_preserve
    if budget <= 0 or gen.system_preserve < 0 or keep_tail <= 0:
        raise ConfigError(
            f"cannot truncate: input budget {budget} with system_preserve "
            f"{gen.system_preserve} leaves {keep_tail} tokens for the tail"
        )

    if len(tokens) <= budget:
        return list(tokens)

    bounded = list(tokens[: gen.system_preserve]) + list(tokens[len(tokens) - keep_tail :])
    log.warning(
        "Input too long (%d tokens). Truncating to safe limit (%d tokens).",
        len(tokens),
        len(bounded),
    )
    return bounded
