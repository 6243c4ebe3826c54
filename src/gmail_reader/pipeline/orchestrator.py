"""Fetch pipeline: authenticate → list → fetch detail → project → respond."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait

from gmail_reader.config.settings import GmailReaderSettings
from gmail_reader.core.auth import GoogleAuthenticator
from gmail_reader.core.exceptions import (
    AuthenticationError,
    FetchTimeoutError,
    InvalidRequestError,
    ListingError,
)
from gmail_reader.core.gmail_client import GmailMailboxClient
from gmail_reader.core.interfaces import Authenticator, Credential, MailboxClient
from gmail_reader.core.models import EmailRecord, EmailResponse
from gmail_reader.core.normalizer import TextNormalizer
from gmail_reader.core.projector import MessageProjector

logger = logging.getLogger(__name__)

MIN_RESULTS = 1
MAX_RESULTS = 500


def validate_max_results(max_results: object) -> int:
    """Reject counts outside [1, 500] instead of clamping them."""
    if isinstance(max_results, bool) or not isinstance(max_results, int):
        raise InvalidRequestError(
            f"max_results must be an integer, got {type(max_results).__name__}"
        )
    if not MIN_RESULTS <= max_results <= MAX_RESULTS:
        raise InvalidRequestError(
            f"max_results must be between {MIN_RESULTS} and {MAX_RESULTS}, got {max_results}"
        )
    return max_results


class FetchOrchestrator:
    """Runs one fetch request end to end.

    Detail fetches and projections run on a small thread pool; each message
    is independent and results are reassembled in listing order. A message
    whose detail cannot be fetched or projected is skipped. Failing to
    authenticate or to list the mailbox aborts the whole request.
    """

    def __init__(
        self,
        authenticator: Authenticator,
        mailbox: MailboxClient,
        projector: MessageProjector | None = None,
        *,
        max_concurrency: int = 5,
        default_timeout: float | None = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._authenticator = authenticator
        self._mailbox = mailbox
        self._projector = projector or MessageProjector()
        self._max_concurrency = max_concurrency
        self._default_timeout = default_timeout

    @classmethod
    def from_settings(cls, settings: GmailReaderSettings | None = None) -> FetchOrchestrator:
        """Wire the Google-backed authenticator and mailbox client from settings."""
        settings = settings or GmailReaderSettings()
        authenticator = GoogleAuthenticator(settings.credentials_path, settings.token_path)
        mailbox = GmailMailboxClient(
            settings.user_id,
            query=settings.query,
            max_retries=settings.max_retries,
            initial_backoff_seconds=settings.initial_backoff_seconds,
            max_backoff_seconds=settings.max_backoff_seconds,
            inter_page_delay_seconds=settings.inter_page_delay_seconds,
            num_retries=settings.num_retries,
        )
        projector = MessageProjector(TextNormalizer(settings.html_extractor))
        return cls(
            authenticator,
            mailbox,
            projector,
            max_concurrency=settings.max_concurrency,
            default_timeout=settings.fetch_timeout_seconds,
        )

    def fetch(self, max_results: int, *, timeout: float | None = None) -> EmailResponse:
        """Fetch, normalize and return up to ``max_results`` messages.

        Args:
            max_results: Number of messages to request, 1 to 500 inclusive.
            timeout: Seconds to wait for the detail fetches; defaults to the
                value given at construction. None waits indefinitely. On
                timeout, queued fetches are cancelled but fetches already
                talking to the API run to completion in the background and
                their results are discarded.

        Returns:
            EmailResponse in mailbox listing order.

        Raises:
            InvalidRequestError: If max_results is out of range.
            AuthenticationError: If no credential could be obtained.
            ListingError: If the mailbox could not be listed.
            FetchTimeoutError: If the request outlived its timeout.
        """
        max_results = validate_max_results(max_results)
        if timeout is None:
            timeout = self._default_timeout

        logger.info("Fetching up to %d messages", max_results)
        credential = self._obtain_credential()
        message_ids = self._list_ids(max_results, credential)
        logger.info("Listed %d message IDs", len(message_ids))

        records = self._fetch_all(message_ids, credential, timeout)
        response = EmailResponse(emails=tuple(records))

        skipped = len(message_ids) - response.count
        if skipped:
            logger.warning("Skipped %d of %d messages", skipped, len(message_ids))
        logger.info("Returning %d messages", response.count)
        return response

    def _obtain_credential(self) -> Credential:
        try:
            return self._authenticator.obtain_credential()
        except AuthenticationError:
            raise
        except Exception as e:
            raise AuthenticationError(f"Could not obtain credential: {e}") from e

    def _list_ids(self, max_results: int, credential: Credential) -> list[str]:
        try:
            message_ids = list(self._mailbox.list_ids(max_results, credential))
        except ListingError:
            raise
        except Exception as e:
            raise ListingError(f"Could not list messages: {e}") from e
        return message_ids[:max_results]

    def _fetch_all(
        self,
        message_ids: list[str],
        credential: Credential,
        timeout: float | None,
    ) -> list[EmailRecord]:
        if not message_ids:
            return []

        results: list[EmailRecord | None] = [None] * len(message_ids)
        workers = min(self._max_concurrency, len(message_ids))
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="gmail-fetch")

        try:
            futures: dict[Future[EmailRecord | None], int] = {
                executor.submit(self._fetch_one, message_id, credential): index
                for index, message_id in enumerate(message_ids)
            }
            done, not_done = wait(futures, timeout=timeout)
            if not_done:
                raise FetchTimeoutError(
                    f"Fetch did not finish within {timeout}s "
                    f"({len(not_done)} of {len(message_ids)} messages pending)"
                )
            for future in done:
                results[futures[future]] = future.result()
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return [record for record in results if record is not None]

    def _fetch_one(self, message_id: str, credential: Credential) -> EmailRecord | None:
        try:
            raw = self._mailbox.fetch_detail(message_id, credential)
        except Exception as e:
            logger.warning("Skipping message %s: %s", message_id, e)
            return None

        logger.debug("Fetched message %s", message_id)
        try:
            return self._projector.project(raw)
        except Exception as e:
            logger.warning("Skipping message %s, projection failed: %s", message_id, e)
            return None
