"""Turns Gmail ``messages.get`` payloads into RawMessage values."""

from __future__ import annotations

import base64
import logging
from typing import Any

from gmail_reader.core.exceptions import ParseError
from gmail_reader.core.models import BodyPart, RawMessage

logger = logging.getLogger(__name__)

BODY_MIME_TYPES = ("text/plain", "text/html")


class GmailParser:
    """Decodes the header list and the text bodies of a full Gmail message."""

    def parse(self, raw_message: dict[str, Any]) -> RawMessage:
        """Build a RawMessage from a ``format=full`` message resource.

        Args:
            raw_message: Message resource as returned by ``users.messages.get``.

        Returns:
            RawMessage whose parts are the decoded text bodies in MIME order.
            Attachments are never included.

        Raises:
            ParseError: If the resource has no id or an unexpected shape.
        """
        try:
            payload = raw_message.get("payload") or {}
            message = RawMessage(
                message_id=raw_message["id"],
                headers=self._header_map(payload),
                snippet=raw_message.get("snippet", ""),
                parts=tuple(self._body_parts(payload)),
                thread_id=raw_message.get("threadId", ""),
            )
        except Exception as e:
            raise ParseError(f"Failed to parse message {raw_message.get('id', '?')}: {e}") from e

        logger.debug("Parsed message %s with %d body part(s)", message.message_id, len(message.parts))
        return message

    @staticmethod
    def _header_map(payload: dict[str, Any]) -> dict[str, str]:
        """Top-level headers by name; when a name repeats, the first value wins."""
        headers: dict[str, str] = {}
        for header in payload.get("headers", []):
            name = header.get("name", "")
            if name:
                headers.setdefault(name, header.get("value", ""))
        return headers

    def _body_parts(self, payload: dict[str, Any]) -> list[BodyPart]:
        parts = self._collect_text(payload)
        if parts:
            return parts

        # Single-part message with a non-text type; selection decides whether it is usable
        data = payload.get("body", {}).get("data")
        if data and not payload.get("filename"):
            parts.append(BodyPart(mime_type=payload.get("mimeType", ""), content=_b64url_decode(data)))
        return parts

    def _collect_text(self, node: dict[str, Any]) -> list[BodyPart]:
        """Depth-first walk gathering text/plain and text/html leaves."""
        base_type = node.get("mimeType", "").split(";", 1)[0].strip().lower()

        if base_type in BODY_MIME_TYPES:
            data = node.get("body", {}).get("data")
            return [BodyPart(mime_type=base_type, content=_b64url_decode(data))] if data else []

        collected: list[BodyPart] = []
        if base_type.startswith("multipart/"):
            for child in node.get("parts", []):
                if child.get("filename"):
                    continue
                collected.extend(self._collect_text(child))
        return collected


def _b64url_decode(data: str) -> str:
    """Decode Gmail's unpadded base64url body data as UTF-8, replacing bad bytes."""
    padding = -len(data) % 4
    return base64.urlsafe_b64decode(data + "=" * padding).decode("utf-8", errors="replace")
