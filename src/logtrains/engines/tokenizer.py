"""Tokenizer backed by a tokenizer.json file."""
from __future__ import annotations

import re
from typing import Any, Sequence

from ..errors import TokenizationError

_BYTE_PIECE = re.compile(r"^<0x([0-9A-Fa-f]{2})>$")
_SPACE_MARKER = "▁"
_MAX_UTF8_LEN = 4


def _is_continuation(value: int) -> bool:
    return 0x80 <= value <= 0xBF


class HFTokenizer:
    """Wraps ``tokenizers.Tokenizer`` with the id/piece lookups decoding needs.

    ``token_text`` is stateful: SentencePiece byte-fallback pieces
    (``<0x..>``) are buffered until they form a complete UTF-8 character.
    """

    def __init__(self, tokenizer: Any) -> None:
        self._tokenizer = tokenizer
        self._pending = bytearray()

    @classmethod
    def from_file(cls, path: str) -> "HFTokenizer":
        from tokenizers import Tokenizer

        try:
            return cls(Tokenizer.from_file(path))
        except Exception as exc:
            raise TokenizationError(f"failed to load tokenizer from {path}: {exc}") from exc

    def encode(self, text: str) -> list[int]:
        self._pending.clear()
        try:
            return list(self._tokenizer.encode(text, add_special_tokens=True).ids)
        except Exception as exc:
            raise TokenizationError(f"failed to encode input: {exc}") from exc

    def decode(self, ids: Sequence[int]) -> str:
        return self._tokenizer.decode(list(ids), skip_special_tokens=True)

    def id_to_token(self, token_id: int) -> str | None:
        return self._tokenizer.id_to_token(token_id)

    def token_to_id(self, token: str) -> int | None:
        return self._tokenizer.token_to_id(token)

    def token_text(self, token_id: int) -> str | None:
        piece = self.id_to_token(token_id)
        if piece is None:
            return None
        match = _BYTE_PIECE.match(piece)
        if match:
            value = int(match.group(1), 16)
            prefix = ""
            if self._pending and not _is_continuation(value):
                # A new sequence starts, so the pending one can never complete.
                prefix = self._pending.decode("utf-8", errors="replace")
                self._pending.clear()
            self._pending.append(value)
            try:
                text = self._pending.decode("utf-8")
            except UnicodeDecodeError:
                if len(self._pending) < _MAX_UTF8_LEN:
                    return prefix
                text = self._pending.decode("utf-8", errors="replace")
            self._pending.clear()
            return prefix + text
        prefix = ""
        if self._pending:
            prefix = self._pending.decode("utf-8", errors="replace")
            self._pending.clear()
        return prefix + piece.replace(_SPACE_MARKER, " ")

    @property
    def vocab_size(self) -> int:
        return self._tokenizer.get_vocab_size()
