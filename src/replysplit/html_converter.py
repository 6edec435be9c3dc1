"""HTML-based markdown conversion for Telegram using chatgpt_md_converter.

Provides:
  - convert_markdown(): Markdown to Telegram HTML (parse_mode="HTML").
  - render_chunks(): the same, split into HTML chunks that fit Telegram's
    4096-character message limit.
  - to_plain_text(): plain-text fallback when Telegram rejects the HTML.
  - split_plain_text(): newline-preferring split of plain text to the limit.

Each message produced by split_message() is converted on its own, so every
sent message is self-contained HTML.
"""

import logging
import re
from html import unescape

from chatgpt_md_converter import split_html_for_telegram, telegram_format

logger = logging.getLogger(__name__)

TELEGRAM_MAX_MESSAGE_LENGTH = 4096

_RE_HTML_TAG = re.compile(r"<[^>]+>")
_HTML_OPENERS = ("<pre", "<code", "<b>", "<i>", "<a ", "<blockquote", "<u>", "<s>")

# Quoted triple backticks inside a code block, longer patterns first
_NESTED_BACKTICK_REPLACEMENTS = (
    ("'''```'''", "'''ˋˋˋ'''"),
    ('"""```"""', '"""ˋˋˋ"""'),
    ("'```'", "'ˋˋˋ'"),
    ('"```"', '"ˋˋˋ"'),
)


def _normalize_fences(text: str) -> str:
    """Rewrite ~~~ fences as ``` and hide ``` inside code blocks.

    chatgpt_md_converter only recognises backtick fences, and it reads any
    triple backtick inside a block as the closing fence. Quoted ones (and
    every one inside a former ~~~ block) are replaced with U+02CB
    (MODIFIER LETTER GRAVE ACCENT), which looks the same.

    A fence opened and closed on one line (e.g. "~~~b~~~") is expanded to a
    three-line block.
    """
    result: list[str] = []
    open_marker = ""

    for line in text.split("\n"):
        stripped = line.strip()
        if not open_marker:
            marker = stripped[:3]
            if marker not in ("```", "~~~"):
                result.append(line)
            elif len(stripped) >= 6 and stripped.endswith(marker):
                body = stripped[3:-3]
                if marker == "~~~":
                    body = body.replace("```", "ˋˋˋ")
                result.extend(("```", body, "```"))
            else:
                open_marker = marker
                result.append("```" + stripped[3:])
            continue

        if stripped == open_marker:
            open_marker = ""
            result.append("```")
            continue

        if open_marker == "~~~":
            line = line.replace("```", "ˋˋˋ")
        else:
            for quoted, lookalike in _NESTED_BACKTICK_REPLACEMENTS:
                line = line.replace(quoted, lookalike)
        result.append(line)

    return "\n".join(result)


def convert_markdown(text: str) -> str:
    """Convert Markdown to Telegram HTML format."""
    if not text:
        return text
    return telegram_format(_normalize_fences(text))


def render_chunks(
    text: str, max_length: int = TELEGRAM_MAX_MESSAGE_LENGTH
) -> list[str]:
    """Convert Markdown to HTML chunks of at most max_length characters.

    Length is checked after conversion: tags and escaping make the HTML
    longer than the markdown it came from.
    """
    html_text = convert_markdown(text)
    if len(html_text) <= max_length:
        return [html_text]
    return split_html_for_telegram(
        html_text, max_length=max_length, trim_empty_leading_lines=True
    )


def _looks_like_html(text: str) -> bool:
    lowered = text.lower()
    return any(opener in lowered for opener in _HTML_OPENERS)


def html_to_plain(html_text: str) -> str:
    """Strip tags from rendered HTML and unescape its entities."""
    plain = re.sub(r"<br\s*/?>", "\n", html_text, flags=re.IGNORECASE)
    plain = re.sub(r"</p\s*>", "\n\n", plain, flags=re.IGNORECASE)
    plain = re.sub(r"<li\s*>", "- ", plain, flags=re.IGNORECASE)
    plain = re.sub(r"</li\s*>", "\n", plain, flags=re.IGNORECASE)
    plain = _RE_HTML_TAG.sub("", plain)
    return unescape(plain).strip()


def to_plain_text(text: str) -> str:
    """Build a plain-text fallback from markdown or rendered HTML."""
    if not _looks_like_html(text):
        return text
    return html_to_plain(text)


def split_plain_text(
    text: str, max_length: int = TELEGRAM_MAX_MESSAGE_LENGTH
) -> list[str]:
    """Split plain text into chunks of at most max_length characters.

    Splits on newlines when possible; a single line longer than max_length
    is cut into fixed-size pieces.
    """
    if len(text) <= max_length:
        return [text]

    chunks: list[str] = []
    current = ""
    for line in text.split("\n"):
        if len(line) > max_length:
            if current:
                chunks.append(current)
                current = ""
            for i in range(0, len(line), max_length):
                chunks.append(line[i : i + max_length])
            continue

        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > max_length:
            chunks.append(current)
            current = line
        else:
            current = candidate

    if current:
        chunks.append(current)
    return chunks
