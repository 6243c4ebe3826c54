"""Capability protocols for the collaborators the fetch pipeline depends on."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

from gmail_reader.core.models import RawMessage

# Opaque authorization value; the pipeline only passes it back to the mailbox.
Credential = Any


class Authenticator(Protocol):
    """Yields a usable credential or raises AuthenticationError."""

    def obtain_credential(self) -> Credential: ...


class MailboxClient(Protocol):
    """Lists message IDs and fetches full message detail.

    ``list_ids`` raises ListingError; ``fetch_detail`` raises MessageFetchError.
    """

    def list_ids(self, max_results: int, credential: Credential) -> Sequence[str]: ...

    def fetch_detail(self, message_id: str, credential: Credential) -> RawMessage: ...
