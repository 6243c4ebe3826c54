"""Frozen dataclasses for the Gmail Reader domain model."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class BodyPart:
    """One content-typed fragment of a message payload, already transport-decoded."""

    mime_type: str
    content: str


@dataclass(frozen=True)
class RawMessage:
    """Unprocessed message as returned by the mailbox, prior to normalization."""

    message_id: str
    headers: Mapping[str, str] = field(default_factory=dict)
    snippet: str = ""
    parts: tuple[BodyPart, ...] = field(default_factory=tuple)
    thread_id: str = ""


@dataclass(frozen=True)
class EmailRecord:
    """Public-facing projection of one message with a cleaned plain-text body."""

    id: str
    sender: str
    subject: str
    snippet: str
    body_raw: str

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "from": self.sender,
            "subject": self.subject,
            "snippet": self.snippet,
            "body_raw": self.body_raw,
        }


@dataclass(frozen=True)
class EmailResponse:
    """Ordered batch of email records returned for one fetch request."""

    emails: tuple[EmailRecord, ...] = field(default_factory=tuple)

    @property
    def count(self) -> int:
        return len(self.emails)

    def to_dict(self) -> dict[str, Any]:
        return {
            "emails": [email.to_dict() for email in self.emails],
            "count": self.count,
        }

    def to_json(self, indent: int | None = 2) -> str:
        """Serialize to the wire shape consumed by tool callers."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)
