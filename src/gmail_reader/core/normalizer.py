"""Email body to plain text using trafilatura with a BeautifulSoup fallback."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

import trafilatura
from bs4 import BeautifulSoup, NavigableString

from gmail_reader.core.models import BodyPart

logger = logging.getLogger(__name__)

HTML_EXTRACTORS = ("trafilatura", "beautifulsoup")

_SKIPPED_TAGS = ["script", "style", "title", "noscript", "template"]
_BLOCK_TAGS = [
    "p", "div", "li", "tr", "table", "ul", "ol", "dl", "dt", "dd", "blockquote", "pre",
    "h1", "h2", "h3", "h4", "h5", "h6", "hr", "section", "article", "header", "footer",
    "center",
]

_WHITESPACE_RE = re.compile(r"\s+")
_HSPACE_RE = re.compile(r"[^\S\n]+")
_ZERO_WIDTH_RE = re.compile("[\u200b-\u200d\u2060\ufeff]")


def _base_type(mime_type: str | None) -> str:
    return (mime_type or "").split(";", 1)[0].strip().lower()


def _is_textual(mime_type: str | None) -> bool:
    base = _base_type(mime_type)
    return not base or base.startswith("text/")


def select_body_part(parts: Sequence[BodyPart]) -> BodyPart | None:
    """Pick the body representation to normalize.

    HTML wins over plain text because it usually carries the complete content.
    Parts with a missing or unrecognised text type are a last resort.
    """
    html: BodyPart | None = None
    plain: BodyPart | None = None
    fallback: BodyPart | None = None

    for part in parts:
        base = _base_type(part.mime_type)
        if base == "text/html":
            html = html or part
        elif base == "text/plain":
            plain = plain or part
        elif _is_textual(part.mime_type):
            fallback = fallback or part

    if html is not None:
        return html
    if plain is not None:
        return plain
    return fallback


def normalize_line_endings(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def looks_like_html(text: str) -> bool:
    return text.lstrip().startswith("<")


def _tidy_lines(text: str) -> str:
    """One space between words, one non-empty stripped line per block."""
    text = _ZERO_WIDTH_RE.sub("", text)
    lines = (_HSPACE_RE.sub(" ", line).strip() for line in text.split("\n"))
    return "\n".join(line for line in lines if line)


def html_to_text(html: str) -> str:
    """Flatten HTML with BeautifulSoup, turning block tags into line breaks."""
    soup = BeautifulSoup(html, "html.parser")

    for tag in soup(_SKIPPED_TAGS):
        if not tag.decomposed:
            tag.decompose()
    # html.parser never closes <head> implicitly, so it may hold the whole body
    for head in soup("head"):
        head.unwrap()

    for text in soup.find_all(string=True):
        if type(text) is NavigableString and text.find_parent("pre") is None:
            text.replace_with(_WHITESPACE_RE.sub(" ", text))

    for br in soup("br"):
        br.replace_with("\n")
    for item in soup("li"):
        item.insert(0, "- ")
    for cell in soup(["td", "th"]):
        cell.insert_before(" ")
    for block in soup(_BLOCK_TAGS):
        block.insert_before("\n")
        block.insert_after("\n")

    return _tidy_lines(soup.get_text())


class TextNormalizer:
    """Convert a single body part into readable plain text."""

    def __init__(self, html_extractor: str = "trafilatura") -> None:
        if html_extractor not in HTML_EXTRACTORS:
            raise ValueError(
                f"Unknown HTML extractor {html_extractor!r}, expected one of {HTML_EXTRACTORS}"
            )
        self._html_extractor = html_extractor

    def normalize(self, part: BodyPart) -> str:
        """Normalize one body part.

        HTML is flattened to text. Plain text only gets its line endings
        normalized. A part without a recognised type is sniffed: content that
        opens with ``<`` is treated as HTML.

        Args:
            part: The selected body part.

        Returns:
            Plain text with ``\\n`` line endings.
        """
        content = normalize_line_endings(part.content or "")
        base = _base_type(part.mime_type)

        if base == "text/html":
            return self._html_to_text(content)
        if base == "text/plain":
            return content
        if looks_like_html(content):
            logger.debug("Treating %r body as HTML", part.mime_type or "untyped")
            return self._html_to_text(content)
        return content

    def _html_to_text(self, html: str) -> str:
        """Convert HTML to plain text.

        Strategy:
        1. trafilatura (favor_recall=True for email layouts).
        2. If trafilatura fails or returns nothing, BeautifulSoup structural text.
        """
        result: str | None = None

        if self._html_extractor == "trafilatura" and html.strip():
            try:
                result = trafilatura.extract(
                    html,
                    output_format="txt",
                    favor_recall=True,
                    include_tables=True,
                )
            except Exception as e:
                logger.warning("Trafilatura extraction failed: %s", e)
                result = None

        if result:
            return _tidy_lines(normalize_line_endings(result))

        if self._html_extractor == "trafilatura":
            logger.debug("Trafilatura returned no text, falling back to BeautifulSoup")
        try:
            return html_to_text(html)
        except Exception as e:
            logger.warning("HTML conversion failed, dropping body: %s", e)
            return ""
