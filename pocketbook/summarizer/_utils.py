"""Tokenizer helpers and token-bounded text splitting."""

from __future__ import annotations

import logging
from functools import lru_cache

import tiktoken

from pocketbook.summarizer.models import EncodingError

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "cl100k_base"


@lru_cache(maxsize=4)
def _get_encoding(encoding_name: str = DEFAULT_ENCODING) -> tiktoken.Encoding:
    """Get a tiktoken encoding by name, with caching.

    The encoding is chosen by name rather than by model so that the same text
    always splits the same way, whichever model ends up summarizing it.
    """
    return tiktoken.get_encoding(encoding_name)


def _encode(text: str, encoding_name: str) -> list[int]:
    try:
        enc = _get_encoding(encoding_name)
        # Special-token text such as <|endoftext|> in a book is encoded as ordinary text
        return enc.encode(text, disallowed_special=())
    except (ValueError, KeyError) as e:
        msg = f"Could not encode text with {encoding_name}: {e}"
        raise EncodingError(msg) from e


def count_tokens(text: str, encoding_name: str = DEFAULT_ENCODING) -> int:
    """Count tokens in ``text`` under the given encoding."""
    if not text:
        return 0
    return len(_encode(text, encoding_name))


def split_text_by_tokens(
    text: str,
    max_tokens: int,
    encoding_name: str = DEFAULT_ENCODING,
) -> list[str]:
    """Split text into consecutive sections of at most ``max_tokens`` tokens.

    Sections are cut on token boundaries, moved back where needed so that no
    multi-byte character is split between two sections. Joining the returned
    sections reproduces ``text`` exactly.

    Args:
        text: The text to split.
        max_tokens: Maximum token count per section.
        encoding_name: tiktoken encoding used for counting.

    Returns:
        List of sections in document order (empty for empty text).

    Raises:
        ValueError: If ``max_tokens`` is smaller than 1.
        EncodingError: If the text cannot be encoded.

    """
    if max_tokens < 1:
        msg = f"max_tokens must be at least 1, got {max_tokens}"
        raise ValueError(msg)
    if not text:
        return []

    tokens = _encode(text, encoding_name)
    if len(tokens) <= max_tokens:
        return [text]

    enc = _get_encoding(encoding_name)
    sections: list[str] = []
    start = 0
    while start < len(tokens):
        section, start = _decode_window(enc, tokens, start, max_tokens)
        sections.append(section)

    logger.debug("Split %d tokens into %d sections", len(tokens), len(sections))
    return sections


def _decode_window(
    enc: tiktoken.Encoding,
    tokens: list[int],
    start: int,
    max_tokens: int,
) -> tuple[str, int]:
    """Decode the longest character-aligned window starting at ``start``.

    Returns the decoded text and the index where the next window starts.
    """
    end = min(start + max_tokens, len(tokens))
    for stop in range(end, start, -1):
        text = _try_decode(enc, tokens[start:stop])
        if text is not None:
            return text, stop

    # A single character spans more tokens than the limit allows
    for stop in range(end + 1, len(tokens) + 1):
        text = _try_decode(enc, tokens[start:stop])
        if text is not None:
            logger.warning(
                "Section at token %d exceeds the %d token limit to keep a character intact",
                start,
                max_tokens,
            )
            return text, stop

    msg = f"Token stream does not decode to valid UTF-8 from token {start}"
    raise EncodingError(msg)


def _try_decode(enc: tiktoken.Encoding, window: list[int]) -> str | None:
    try:
        return enc.decode_bytes(window).decode("utf-8")
    except UnicodeDecodeError:
        return None
