"""URL removal for already-flattened plain text, with whitespace repair.

A URL begins with ``https://``, ``http://`` or ``www.`` at a token boundary and
must be followed by an alphanumeric character. It runs until whitespace, a
closing bracket or quote, or the end of the text; trailing sentence
punctuation is left in the text. Bare domains such as ``example.com`` are not
treated as URLs.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

URL_PREFIXES = ("https://", "http://", "www.")

_TERMINATORS = frozenset(")]}>\"'”’»")
_TRAILING_PUNCTUATION = frozenset(".,;:!?")

_HSPACE_RUN_RE = re.compile(r"[^\S\n]{2,}")
_BLANK_LINES_RE = re.compile(r"\n(?:[^\S\n]*\n){2,}")
_TRAILING_HSPACE_RE = re.compile(r"[^\S\n]+$", re.MULTILINE)


def _at_token_boundary(text: str, index: int) -> bool:
    if index == 0:
        return True
    previous = text[index - 1]
    return not (previous.isalnum() or previous == "_")


def _match_prefix(text: str, index: int) -> int:
    """Return the prefix length of a URL starting at ``index``, or 0."""
    for prefix in URL_PREFIXES:
        end = index + len(prefix)
        if text[index:end].lower() == prefix:
            if end < len(text) and text[end].isalnum():
                return len(prefix)
            return 0
    return 0


def _url_end(text: str, start: int, prefix_len: int) -> int:
    """Scan forward from the prefix to the end of the URL span."""
    end = start + prefix_len
    while end < len(text) and not text[end].isspace() and text[end] not in _TERMINATORS:
        end += 1
    while end > start + prefix_len and text[end - 1] in _TRAILING_PUNCTUATION:
        end -= 1
    return end


def find_urls(text: str) -> list[tuple[int, int]]:
    """Locate URL spans as ``(start, end)`` offsets, left to right."""
    spans: list[tuple[int, int]] = []
    index = 0
    length = len(text)

    while index < length:
        char = text[index]
        if char in "hHwW" and _at_token_boundary(text, index):
            prefix_len = _match_prefix(text, index)
            if prefix_len:
                end = _url_end(text, index, prefix_len)
                spans.append((index, end))
                index = end
                continue
        index += 1

    return spans


def remove_urls(text: str) -> str:
    """Delete every URL span without touching the surrounding whitespace."""
    spans = find_urls(text)
    if not spans:
        return text

    pieces: list[str] = []
    cursor = 0
    for start, end in spans:
        pieces.append(text[cursor:start])
        cursor = end
    pieces.append(text[cursor:])
    return "".join(pieces)


def _strip_blank_edges(text: str) -> str:
    lines = text.split("\n")
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(lines)


def clean_whitespace(text: str) -> str:
    """Repair the spacing artifacts that URL deletion leaves behind.

    1. Runs of horizontal whitespace collapse to one space.
    2. Runs of blank lines collapse to a single blank line.
    3. Trailing whitespace is trimmed per line, blank edge lines are dropped.
    """
    text = _HSPACE_RUN_RE.sub(" ", text)
    text = _BLANK_LINES_RE.sub("\n\n", text)
    text = _TRAILING_HSPACE_RE.sub("", text)
    return _strip_blank_edges(text)


def strip_urls(text: str) -> str:
    """Remove URLs from plain text and tidy the result.

    Idempotent: feeding the output back in returns it unchanged.

    Args:
        text: Plain text, typically the output of TextNormalizer.

    Returns:
        Text with no URL spans and at most one consecutive blank line.
    """
    without_urls = remove_urls(text)
    cleaned = clean_whitespace(without_urls)
    logger.debug("Stripped URLs: %d -> %d characters", len(text), len(cleaned))
    return cleaned
