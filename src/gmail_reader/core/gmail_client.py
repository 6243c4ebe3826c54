"""Gmail API client for listing message IDs and fetching full messages."""

from __future__ import annotations

import logging
import random
import threading
import time
from collections.abc import Callable
from typing import Any

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import Resource
from googleapiclient.errors import HttpError

from gmail_reader.core.auth import build_gmail_service
from gmail_reader.core.exceptions import (
    GmailReaderError,
    ListingError,
    MessageFetchError,
    RateLimitError,
)
from gmail_reader.core.models import RawMessage
from gmail_reader.core.parser import GmailParser

logger = logging.getLogger(__name__)

# Upper bound the Gmail API accepts for messages.list maxResults.
MAX_PAGE_SIZE = 500


def _is_rate_limit_error(exc: Exception) -> bool:
    """True for HTTP 429 responses and quota errors reported as rateLimitExceeded."""
    if isinstance(exc, HttpError):
        return exc.status_code == 429 or "rateLimitExceeded" in str(exc)
    message = str(exc)
    return "429" in message or "rateLimitExceeded" in message


class GmailMailboxClient:
    """MailboxClient over the Gmail API.

    One service resource is built per thread and per credential: the
    underlying ``httplib2`` transport must not be shared between threads.
    """

    def __init__(
        self,
        user_id: str = "me",
        *,
        query: str | None = "in:inbox",
        service_factory: Callable[[Credentials], Resource] = build_gmail_service,
        parser: GmailParser | None = None,
        max_retries: int = 5,
        initial_backoff_seconds: float = 1.0,
        max_backoff_seconds: float = 60.0,
        inter_page_delay_seconds: float = 0.2,
        num_retries: int = 3,
    ) -> None:
        self._user_id = user_id
        self._query = query
        self._service_factory = service_factory
        self._parser = parser or GmailParser()
        self._max_retries = max_retries
        self._initial_backoff = initial_backoff_seconds
        self._max_backoff = max_backoff_seconds
        self._inter_page_delay = inter_page_delay_seconds
        self._num_retries = num_retries
        self._local = threading.local()

    def _service(self, credential: Credentials) -> Resource:
        if getattr(self._local, "credential", None) is not credential:
            self._local.service = self._service_factory(credential)
            self._local.credential = credential
        return self._local.service

    def _backoff_delay(self, attempt: int) -> float:
        """Jittered delay before retry ``attempt`` (0-based), capped at the max backoff."""
        ceiling = min(self._initial_backoff * 2**attempt, self._max_backoff)
        return random.uniform(0, ceiling)

    def _execute_with_retry(self, request: Any, context: str) -> Any:
        """Run one API request, retrying only while Gmail reports a rate limit.

        Args:
            request: A googleapiclient HttpRequest.
            context: Short description used in errors and logs, e.g. "list messages".

        Raises:
            RateLimitError: The rate limit persisted through every retry.
            GmailReaderError: Any other API failure; these are not retried.
        """
        attempt = 0
        while True:
            try:
                return request.execute(num_retries=self._num_retries)
            except Exception as e:
                if not _is_rate_limit_error(e):
                    raise GmailReaderError(f"Failed to {context}: {e}") from e
                if attempt >= self._max_retries:
                    raise RateLimitError(
                        f"Rate limited during {context}, "
                        f"giving up after {self._max_retries} retries: {e}"
                    ) from e

                delay = self._backoff_delay(attempt)
                attempt += 1
                logger.warning(
                    "Rate limited during %s, retry %d/%d in %.2fs",
                    context, attempt, self._max_retries, delay,
                )
                time.sleep(delay)

    def list_ids(self, max_results: int, credential: Credentials) -> list[str]:
        """List up to ``max_results`` message IDs in provider order.

        Pages are requested until enough IDs are collected or the mailbox is
        exhausted.

        Raises:
            ListingError: If any page cannot be retrieved.
        """
        service = self._service(credential)
        ids: list[str] = []
        page_token: str | None = None

        while len(ids) < max_results:
            if page_token and self._inter_page_delay > 0:
                time.sleep(self._inter_page_delay)

            params = self._list_params(max_results - len(ids), page_token)
            try:
                response = self._execute_with_retry(
                    service.users().messages().list(**params), "list messages"
                )
            except GmailReaderError as e:
                raise ListingError(str(e)) from e

            page = [message["id"] for message in response.get("messages", [])]
            ids.extend(page)
            logger.debug("Listed page of %d message IDs (%d so far)", len(page), len(ids))

            page_token = response.get("nextPageToken")
            if not page or not page_token:
                break

        return ids[:max_results]

    def _list_params(self, wanted: int, page_token: str | None) -> dict[str, Any]:
        params: dict[str, Any] = {
            "userId": self._user_id,
            "maxResults": min(wanted, MAX_PAGE_SIZE),
        }
        if page_token:
            params["pageToken"] = page_token
        if self._query:
            params["q"] = self._query
        return params

    def fetch_detail(self, message_id: str, credential: Credentials) -> RawMessage:
        """Fetch and decode one full message.

        Raises:
            MessageFetchError: If the request fails or the payload is unreadable.
        """
        request = self._service(credential).users().messages().get(
            userId=self._user_id, id=message_id, format="full"
        )
        try:
            raw = self._execute_with_retry(request, f"fetch message {message_id}")
            return self._parser.parse(raw)
        except GmailReaderError as e:
            raise MessageFetchError(str(e)) from e
