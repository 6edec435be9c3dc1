"""Paragraph-aware message splitting for long chat replies.

Provides:
  - split_message(): reflows text into messages bounded by a line budget and
    a paragraph budget, never breaking a fenced code block (``` or ~~~).

Text is first cut into atomic chunks (fenced blocks verbatim, everything
else split into trimmed paragraphs on blank lines), then the chunks are
greedily grouped into messages joined by a blank line. A chunk is never
split, so one that exceeds a limit on its own is sent as its own message.
"""

import re
from collections.abc import Iterable, Mapping
from typing import Any

from .config import SplitOptions

FENCE_MARKERS = ("```", "~~~")

PARAGRAPH_SEPARATOR = "\n\n"

_RE_PARAGRAPH_BREAK = re.compile(r"(?:\r\n|\r|\n){2,}")
_RE_LINE_BREAK = re.compile(r"\r\n|\r|\n")


def _find_fence(text: str, start: int) -> tuple[int, int] | None:
    """Return the (start, end) span of the next complete fence at or after start.

    Each marker family closes only on its own marker. If the first opener of
    a family has no closer, no later opener of that family has one either,
    so checking the first opener per family is enough.
    """
    best: tuple[int, int] | None = None
    for marker in FENCE_MARKERS:
        open_at = text.find(marker, start)
        if open_at == -1:
            continue
        close_at = text.find(marker, open_at + len(marker))
        if close_at == -1:
            continue
        if best is None or open_at < best[0]:
            best = (open_at, close_at + len(marker))
    return best


def split_paragraphs(text: str) -> list[str]:
    """Split plain text on blank lines into trimmed, non-empty paragraphs."""
    pieces = (piece.strip() for piece in _RE_PARAGRAPH_BREAK.split(text))
    return [piece for piece in pieces if piece]


def extract_chunks(text: str) -> list[str]:
    """Cut text into atomic chunks: fenced blocks verbatim, paragraphs trimmed."""
    chunks: list[str] = []
    cursor = 0

    while True:
        span = _find_fence(text, cursor)
        if span is None:
            break
        fence_start, fence_end = span
        before = text[cursor:fence_start]
        if before.strip():
            chunks.extend(split_paragraphs(before))
        chunks.append(text[fence_start:fence_end])
        cursor = fence_end

    if cursor == 0:
        return split_paragraphs(text)

    remaining = text[cursor:]
    if remaining.strip():
        chunks.extend(split_paragraphs(remaining))
    return chunks


def count_lines(chunk: str) -> int:
    """Number of newline-delimited segments in chunk (at least 1)."""
    return len(_RE_LINE_BREAK.split(chunk))


def pack_messages(chunks: Iterable[str], options: SplitOptions) -> list[str]:
    """Greedily group consecutive chunks into messages within both limits.

    The first chunk of a message is always accepted; limits only decide
    whether a further chunk still fits.
    """
    messages: list[str] = []
    current: list[str] = []
    current_lines = 0

    for chunk in chunks:
        chunk_lines = count_lines(chunk)
        if current and (
            current_lines + chunk_lines > options.max_lines
            or len(current) + 1 > options.max_paragraphs
        ):
            messages.append(PARAGRAPH_SEPARATOR.join(current))
            current = []
            current_lines = 0

        current.append(chunk)
        current_lines += chunk_lines

    if current:
        messages.append(PARAGRAPH_SEPARATOR.join(current))

    return messages


def _resolve_options(
    options: SplitOptions | Mapping[str, Any] | None,
) -> SplitOptions:
    if options is None:
        return SplitOptions()
    if isinstance(options, SplitOptions):
        return options
    return SplitOptions.from_mapping(options)


def split_message(
    text: Any,
    options: SplitOptions | Mapping[str, Any] | None = None,
) -> list[str]:
    """Split text into messages bounded by options' line and paragraph limits.

    Returns an empty list when text is empty or not a string.
    """
    if not isinstance(text, str) or not text:
        return []
    return pack_messages(extract_chunks(text), _resolve_options(options))
