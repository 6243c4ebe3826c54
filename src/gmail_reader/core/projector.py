"""Projection of raw mailbox messages into public email records."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from gmail_reader.core.link_stripper import strip_urls
from gmail_reader.core.models import EmailRecord, RawMessage
from gmail_reader.core.normalizer import TextNormalizer, select_body_part

logger = logging.getLogger(__name__)


def _header(headers: Mapping[str, str], name: str) -> str:
    """Case-insensitive header lookup; a missing header yields an empty string."""
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value or ""
    return ""


class MessageProjector:
    """Turns one RawMessage into an EmailRecord with a cleaned body."""

    def __init__(self, normalizer: TextNormalizer | None = None) -> None:
        self._normalizer = normalizer or TextNormalizer()

    def project(self, raw: RawMessage) -> EmailRecord:
        """Project a raw message.

        A problem while building the body degrades it to an empty string so a
        single odd message never aborts a batch.

        Args:
            raw: Message as returned by the mailbox client.

        Returns:
            EmailRecord with the normalized, URL-free body.
        """
        headers = raw.headers or {}
        return EmailRecord(
            id=raw.message_id,
            sender=_header(headers, "From"),
            subject=_header(headers, "Subject"),
            snippet=raw.snippet or "",
            body_raw=self._build_body(raw),
        )

    def _build_body(self, raw: RawMessage) -> str:
        try:
            part = select_body_part(raw.parts or ())
            if part is None:
                logger.warning("Message %s has no usable body part", raw.message_id)
                return ""
            text = self._normalizer.normalize(part)
            body = strip_urls(text)
        except Exception as e:
            logger.warning("Failed to normalize body of message %s: %s", raw.message_id, e)
            return ""

        logger.debug(
            "Projected message %s (%s, %d chars)", raw.message_id, part.mime_type, len(body)
        )
        return body
