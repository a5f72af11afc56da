"""Prompt builders."""
from __future__ import annotations

LOG_PLACEHOLDER = "{{LOG_TEXT}}"

SYSTEM_TAG = "<|system|>"
USER_TAG = "<|user|>"
ASSISTANT_TAG = "<|assistant|>"
END_OF_TURN = "</s>"

DEFAULT_SYSTEM = (
    "You are a CLI log analysis expert. Your job is to explain errors concisely. \n"
    "Analyze the following log output. Provide a summary of the error and a suggested fix.\n"
    "Do NOT repeat the full log. Be brief. Use Markdown."
)

# Substrings that mean the model started a new turn on its own.
STOP_SENTINELS: tuple[str, ...] = (END_OF_TURN, USER_TAG, SYSTEM_TAG)


def build_prompt(log_text: str, template: str | None = None) -> str:
    if template is not None:
        return template.replace(LOG_PLACEHOLDER, log_text)
    return (
        f"{SYSTEM_TAG}\n{DEFAULT_SYSTEM}{END_OF_TURN}\n"
        f"{USER_TAG}\n{log_text}\n{END_OF_TURN}\n"
        f"{ASSISTANT_TAG}\n"
    )


def load_template(path: str) -> str:
    with open(path, "r", encoding="utf-8") as handle:
        return handle.read()
