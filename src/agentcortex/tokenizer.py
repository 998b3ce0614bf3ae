"""Token counting, budget truncation and chunking backed by tiktoken.

Truncation keeps the *tail* of the text: when a context exceeds its token
budget, the oldest tokens are dropped first.  Chunking windows the token
stream and pads each chunk with raw neighbouring characters ("bleed") taken
from the original character stream.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from functools import lru_cache

import tiktoken

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "cl100k_base"


@lru_cache(maxsize=32)
def _encoding_for(model: str | None, default_encoding: str) -> tiktoken.Encoding:
    if model:
        try:
            return tiktoken.encoding_for_model(model)
        except KeyError:
            logger.debug(
                "no tiktoken mapping for model=%s, using encoding=%s",
                model,
                default_encoding,
            )
    return tiktoken.get_encoding(default_encoding)


@dataclass(frozen=True)
class Chunk:
    """One chunk window.

    ``core`` is the exact slice of the source covered by the token window;
    ``text`` is ``leading_bleed + core + trailing_bleed``.
    """

    index: int
    core: str
    leading_bleed: str
    trailing_bleed: str
    start: int
    end: int

    @property
    def text(self) -> str:
        return f"{self.leading_bleed}{self.core}{self.trailing_bleed}"


class ChunkSequence:
    """Lazy, finite, restartable sequence of chunks over one text."""

    def __init__(
        self,
        encoding: tiktoken.Encoding,
        text: str,
        chunk_size: int,
        bleed_size: int,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if bleed_size < 0:
            raise ValueError("bleed_size must not be negative")
        self._encoding = encoding
        self._text = text
        self._chunk_size = chunk_size
        self._bleed_size = bleed_size

    def __iter__(self) -> Iterator[Chunk]:
        return self._generate()

    def texts(self) -> list[str]:
        """Materialize the padded chunk texts."""
        return [chunk.text for chunk in self]

    def _generate(self) -> Iterator[Chunk]:
        text = self._text
        tokens = self._encoding.encode(text, disallowed_special=())
        raw = text.encode("utf-8")
        token_lengths = [
            len(self._encoding.decode_single_token_bytes(token)) for token in tokens
        ]

        byte_offset = 0
        char_start = 0
        for index, window_start in enumerate(range(0, len(tokens), self._chunk_size)):
            window = token_lengths[window_start : window_start + self._chunk_size]
            byte_offset += sum(window)
            is_last = window_start + self._chunk_size >= len(tokens)
            # Windows can end inside a multi-byte character; round down to the
            # previous character boundary so cores always tile the text.
            char_end = (
                len(text)
                if is_last
                else len(raw[:byte_offset].decode("utf-8", errors="ignore"))
            )
            leading = (
                text[max(char_start - self._bleed_size, 0) : char_start]
                if index > 0
                else ""
            )
            trailing = (
                text[char_end : char_end + self._bleed_size] if not is_last else ""
            )
            yield Chunk(
                index=index,
                core=text[char_start:char_end],
                leading_bleed=leading,
                trailing_bleed=trailing,
                start=char_start,
                end=char_end,
            )
            char_start = char_end


class TokenizerAdapter:
    """Counts, encodes, decodes and windows text against a model vocabulary."""

    def __init__(
        self,
        *,
        model: str | None = None,
        default_encoding: str = DEFAULT_ENCODING,
        encoding: tiktoken.Encoding | None = None,
    ) -> None:
        self._model = model
        self._default_encoding = default_encoding
        # A fixed encoding overrides per-model lookup.
        self._encoding = encoding

    def encoding(self, model: str | None = None) -> tiktoken.Encoding:
        if self._encoding is not None:
            return self._encoding
        return _encoding_for(model or self._model, self._default_encoding)

    def encode(self, text: str, model: str | None = None) -> list[int]:
        return self.encoding(model).encode(text, disallowed_special=())

    def decode(self, tokens: list[int], model: str | None = None) -> str:
        return self.encoding(model).decode(tokens)

    def count(self, text: str, model: str | None = None) -> int:
        """Return the number of tokens in *text*."""
        return len(self.encode(text, model))

    def truncate_to_budget(
        self,
        text: str,
        max_tokens: int,
        model: str | None = None,
    ) -> str:
        """Keep the trailing *max_tokens* tokens of *text*.

        Text already within budget is returned unchanged.
        """
        if max_tokens < 0:
            raise ValueError("max_tokens must not be negative")
        tokens = self.encode(text, model)
        if len(tokens) <= max_tokens:
            return text
        logger.debug(
            "truncating context tokens=%d budget=%d", len(tokens), max_tokens
        )
        if max_tokens == 0:
            return ""
        encoding = self.encoding(model)
        tail = tokens[-max_tokens:]
        # The window may open inside a multi-byte character: drop the partial
        # bytes, then shed leading tokens until the re-encoded text fits.
        trimmed = encoding.decode_bytes(tail).decode("utf-8", errors="ignore")
        while tail and self.count(trimmed, model) > max_tokens:
            tail = tail[1:]
            trimmed = encoding.decode_bytes(tail).decode("utf-8", errors="ignore")
        return trimmed

    def chunk(
        self,
        text: str,
        chunk_size: int,
        bleed_size: int = 100,
        model: str | None = None,
    ) -> ChunkSequence:
        """Split *text* into token windows padded with character bleed."""
        return ChunkSequence(self.encoding(model), text, chunk_size, bleed_size)
