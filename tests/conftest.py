"""Shared fixtures for Gmail Reader tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from gmail_reader.core.models import BodyPart, RawMessage

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def _load_payload(name: str) -> dict[str, Any]:
    return json.loads((FIXTURES_DIR / f"{name}.json").read_text(encoding="utf-8"))


@pytest.fixture
def simple_text_raw() -> dict[str, Any]:
    """messages.get payload: single text/plain body with a link."""
    return _load_payload("simple_text")


@pytest.fixture
def simple_html_raw() -> dict[str, Any]:
    """messages.get payload: single text/html body with head, style and a link."""
    return _load_payload("simple_html")


@pytest.fixture
def multipart_alt_raw() -> dict[str, Any]:
    """messages.get payload: multipart/alternative with lower-case header names."""
    return _load_payload("multipart_alternative")


@pytest.fixture
def multipart_mixed_raw() -> dict[str, Any]:
    """messages.get payload: nested alternative plus two attachments, no Subject."""
    return _load_payload("multipart_mixed")


@pytest.fixture
def html_part() -> BodyPart:
    """An HTML body part with a link."""
    return BodyPart(
        mime_type="text/html",
        content="<p>Hello, this is <b>HTML</b>.</p><p>Read it at https://example.com/a</p>",
    )


@pytest.fixture
def plain_part() -> BodyPart:
    """A plain-text body part with CRLF line endings."""
    return BodyPart(mime_type="text/plain", content="Hello, plain text.\r\nSecond line.")


@pytest.fixture
def sample_raw_message(html_part: BodyPart, plain_part: BodyPart) -> RawMessage:
    """A complete raw message with both body alternatives."""
    return RawMessage(
        message_id="msg_001",
        headers={"From": "Sender <sender@example.com>", "Subject": "Test Subject"},
        snippet="Hello, this is HTML.",
        parts=(plain_part, html_part),
        thread_id="thread_001",
    )
