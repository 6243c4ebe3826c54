"""Tests for FetchOrchestrator with in-memory authenticator and mailbox fakes."""

from __future__ import annotations

import random
import threading
import time
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError

from gmail_reader.config.settings import GmailReaderSettings
from gmail_reader.core.exceptions import (
    AuthenticationError,
    FetchTimeoutError,
    InvalidRequestError,
    ListingError,
    MessageFetchError,
)
from gmail_reader.core.models import BodyPart, EmailRecord, RawMessage
from gmail_reader.core.projector import MessageProjector
from gmail_reader.pipeline.orchestrator import FetchOrchestrator, validate_max_results


class FakeAuthenticator:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls = 0

    def obtain_credential(self) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return "token-123"


class FakeMailbox:
    def __init__(
        self,
        ids: list[str],
        *,
        failing: frozenset[str] = frozenset(),
        malformed: frozenset[str] = frozenset(),
        list_error: Exception | None = None,
        jitter: float = 0.0,
        gate: threading.Event | None = None,
    ) -> None:
        self.ids = ids
        self.failing = failing
        self.malformed = malformed
        self.list_error = list_error
        self.jitter = jitter
        self.gate = gate
        self.list_calls: list[tuple[int, str]] = []
        self.fetched: list[str] = []
        self.in_flight = 0
        self.peak_in_flight = 0
        self._lock = threading.Lock()

    def list_ids(self, max_results: int, credential: str) -> list[str]:
        self.list_calls.append((max_results, credential))
        if self.list_error is not None:
            raise self.list_error
        return list(self.ids)

    def fetch_detail(self, message_id: str, credential: str) -> RawMessage:
        with self._lock:
            self.fetched.append(message_id)
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                self.gate.wait(timeout=5)
            if self.jitter:
                time.sleep(random.uniform(0, self.jitter))
            if message_id in self.failing:
                raise MessageFetchError(f"Failed to fetch message {message_id}")
            if message_id in self.malformed:
                return RawMessage(
                    message_id=message_id,
                    headers=None,  # type: ignore[arg-type]
                    parts=(BodyPart(mime_type=None, content="<p>odd</p>"),),  # type: ignore[arg-type]
                )
            return RawMessage(
                message_id=message_id,
                headers={"From": f"{message_id}@example.com", "Subject": f"About {message_id}"},
                snippet=f"snippet {message_id}",
                parts=(
                    BodyPart(
                        mime_type="text/plain",
                        content=f"Body of {message_id}\r\nLink: https://example.com/{message_id}",
                    ),
                ),
            )
        finally:
            with self._lock:
                self.in_flight -= 1


def _ids(n: int) -> list[str]:
    return [f"msg{i}" for i in range(1, n + 1)]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    """Out-of-range counts are rejected before any collaborator is touched."""

    @pytest.mark.parametrize("value", [0, 501, -5, True, False, "10", 2.5, None])
    def test_invalid_max_results(self, value: object) -> None:
        authenticator = FakeAuthenticator()
        mailbox = FakeMailbox(_ids(3))
        orchestrator = FetchOrchestrator(authenticator, mailbox)

        with pytest.raises(InvalidRequestError):
            orchestrator.fetch(value)  # type: ignore[arg-type]

        assert authenticator.calls == 0
        assert mailbox.list_calls == []

    @pytest.mark.parametrize("value", [1, 10, 500])
    def test_valid_max_results(self, value: int) -> None:
        assert validate_max_results(value) == value

    def test_error_message_names_range(self) -> None:
        with pytest.raises(InvalidRequestError, match="between 1 and 500"):
            validate_max_results(501)

    def test_rejects_zero_concurrency(self) -> None:
        with pytest.raises(ValueError, match="max_concurrency"):
            FetchOrchestrator(FakeAuthenticator(), FakeMailbox([]), max_concurrency=0)


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


class TestFetch:
    """End-to-end fetch over the fakes."""

    def test_returns_records_in_listing_order(self) -> None:
        mailbox = FakeMailbox(_ids(8), jitter=0.02)
        orchestrator = FetchOrchestrator(FakeAuthenticator(), mailbox, max_concurrency=4)

        response = orchestrator.fetch(8)

        assert [e.id for e in response.emails] == _ids(8)
        assert response.count == 8

    def test_records_are_projected(self) -> None:
        orchestrator = FetchOrchestrator(FakeAuthenticator(), FakeMailbox(["msg1"]))

        record = orchestrator.fetch(1).emails[0]

        assert record.sender == "msg1@example.com"
        assert record.subject == "About msg1"
        assert record.snippet == "snippet msg1"
        assert record.body_raw == "Body of msg1\nLink:"

    def test_credential_passed_to_mailbox(self) -> None:
        mailbox = FakeMailbox(_ids(2))
        FetchOrchestrator(FakeAuthenticator(), mailbox).fetch(5)

        assert mailbox.list_calls == [(5, "token-123")]

    def test_failed_message_is_skipped(self) -> None:
        mailbox = FakeMailbox(_ids(5), failing=frozenset({"msg3"}))
        orchestrator = FetchOrchestrator(FakeAuthenticator(), mailbox)

        response = orchestrator.fetch(5)

        assert response.count == 4
        assert [e.id for e in response.emails] == ["msg1", "msg2", "msg4", "msg5"]
        assert sorted(mailbox.fetched) == _ids(5)

    def test_all_messages_failing_yields_empty_response(self) -> None:
        mailbox = FakeMailbox(_ids(3), failing=frozenset(_ids(3)))
        response = FetchOrchestrator(FakeAuthenticator(), mailbox).fetch(3)

        assert response.count == 0
        assert response.emails == ()

    def test_empty_listing(self) -> None:
        mailbox = FakeMailbox([])
        response = FetchOrchestrator(FakeAuthenticator(), mailbox).fetch(10)

        assert response.count == 0
        assert mailbox.fetched == []

    def test_listing_longer_than_requested_is_truncated(self) -> None:
        mailbox = FakeMailbox(_ids(6))
        response = FetchOrchestrator(FakeAuthenticator(), mailbox).fetch(4)

        assert [e.id for e in response.emails] == _ids(4)
        assert sorted(mailbox.fetched) == _ids(4)

    def test_concurrency_is_bounded(self) -> None:
        mailbox = FakeMailbox(_ids(12), jitter=0.02)
        FetchOrchestrator(FakeAuthenticator(), mailbox, max_concurrency=3).fetch(12)

        assert 1 <= mailbox.peak_in_flight <= 3

    def test_count_matches_emails(self) -> None:
        mailbox = FakeMailbox(_ids(7), failing=frozenset({"msg2", "msg6"}))
        response = FetchOrchestrator(FakeAuthenticator(), mailbox).fetch(7)

        assert response.count == len(response.emails) == 5
        assert response.to_dict()["count"] == 5

    def test_projection_failure_skips_message(self) -> None:
        real = MessageProjector()

        def project(raw: RawMessage) -> EmailRecord:
            if raw.message_id == "msg2":
                raise RuntimeError("unexpected payload")
            return real.project(raw)

        projector = MagicMock(spec=MessageProjector)
        projector.project.side_effect = project
        orchestrator = FetchOrchestrator(FakeAuthenticator(), FakeMailbox(_ids(3)), projector)

        response = orchestrator.fetch(3)

        assert [e.id for e in response.emails] == ["msg1", "msg3"]

    def test_malformed_message_does_not_abort_batch(self) -> None:
        mailbox = FakeMailbox(_ids(3), malformed=frozenset({"msg2"}))
        response = FetchOrchestrator(FakeAuthenticator(), mailbox).fetch(3)

        assert [e.id for e in response.emails] == _ids(3)
        assert response.emails[1].sender == ""
        assert response.emails[1].subject == ""


# ---------------------------------------------------------------------------
# Whole-request failures
# ---------------------------------------------------------------------------


class TestFailures:
    """Authentication and listing failures abort the request."""

    def test_authentication_error_propagates(self) -> None:
        mailbox = FakeMailbox(_ids(2))
        orchestrator = FetchOrchestrator(
            FakeAuthenticator(AuthenticationError("consent required")), mailbox
        )

        with pytest.raises(AuthenticationError, match="consent required"):
            orchestrator.fetch(2)

        assert mailbox.list_calls == []

    def test_unexpected_authenticator_error_wrapped(self) -> None:
        orchestrator = FetchOrchestrator(
            FakeAuthenticator(RuntimeError("disk full")), FakeMailbox(_ids(2))
        )

        with pytest.raises(AuthenticationError, match="disk full") as exc_info:
            orchestrator.fetch(2)

        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_listing_error_propagates(self) -> None:
        mailbox = FakeMailbox(_ids(2), list_error=ListingError("Failed to list messages: 500"))
        orchestrator = FetchOrchestrator(FakeAuthenticator(), mailbox)

        with pytest.raises(ListingError, match="Failed to list messages"):
            orchestrator.fetch(2)

        assert mailbox.fetched == []

    def test_unexpected_listing_error_wrapped(self) -> None:
        mailbox = FakeMailbox(_ids(2), list_error=ConnectionError("reset"))
        orchestrator = FetchOrchestrator(FakeAuthenticator(), mailbox)

        with pytest.raises(ListingError, match="reset"):
            orchestrator.fetch(2)


# ---------------------------------------------------------------------------
# Timeout
# ---------------------------------------------------------------------------


class TestTimeout:
    """A request that outlives its timeout fails as a whole."""

    def test_slow_fetch_times_out(self) -> None:
        gate = threading.Event()
        mailbox = FakeMailbox(_ids(3), gate=gate)
        orchestrator = FetchOrchestrator(FakeAuthenticator(), mailbox, max_concurrency=1)

        try:
            with pytest.raises(FetchTimeoutError, match="pending"):
                orchestrator.fetch(3, timeout=0.05)
        finally:
            gate.set()

        # Queued fetches were cancelled; only the in-flight one ever started
        assert mailbox.fetched == ["msg1"]

    def test_timeout_does_not_wait_for_running_fetch(self) -> None:
        gate = threading.Event()
        mailbox = FakeMailbox(_ids(1), gate=gate)
        orchestrator = FetchOrchestrator(FakeAuthenticator(), mailbox)

        started = time.monotonic()
        try:
            with pytest.raises(FetchTimeoutError):
                orchestrator.fetch(1, timeout=0.05)
            elapsed = time.monotonic() - started
            # The fetch is still blocked on the gate when the request gives up
            assert mailbox.in_flight == 1
        finally:
            gate.set()

        assert elapsed < 2

    def test_default_timeout_applies(self) -> None:
        gate = threading.Event()
        mailbox = FakeMailbox(_ids(2), gate=gate)
        orchestrator = FetchOrchestrator(FakeAuthenticator(), mailbox, default_timeout=0.05)

        try:
            with pytest.raises(FetchTimeoutError):
                orchestrator.fetch(2)
        finally:
            gate.set()

    def test_fast_fetch_within_timeout(self) -> None:
        orchestrator = FetchOrchestrator(FakeAuthenticator(), FakeMailbox(_ids(3)))
        assert orchestrator.fetch(3, timeout=5.0).count == 3


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


class TestFromSettings:
    """from_settings() wires the Google implementations from configuration."""

    def test_wires_collaborators(self, tmp_path: Path) -> None:
        settings = GmailReaderSettings(
            _env_file=None,
            credentials_path=tmp_path / "secret.json",
            token_path=tmp_path / "token.json",
            query="in:inbox is:unread",
            max_concurrency=3,
            fetch_timeout_seconds=12.5,
            max_retries=2,
        )

        with (
            patch("gmail_reader.pipeline.orchestrator.GoogleAuthenticator") as mock_auth_cls,
            patch("gmail_reader.pipeline.orchestrator.GmailMailboxClient") as mock_client_cls,
        ):
            orchestrator = FetchOrchestrator.from_settings(settings)

        mock_auth_cls.assert_called_once_with(tmp_path / "secret.json", tmp_path / "token.json")
        mock_client_cls.assert_called_once_with(
            "me",
            query="in:inbox is:unread",
            max_retries=2,
            initial_backoff_seconds=1.0,
            max_backoff_seconds=60.0,
            inter_page_delay_seconds=0.2,
            num_retries=3,
        )
        assert orchestrator._max_concurrency == 3
        assert orchestrator._default_timeout == 12.5

    def test_unknown_extractor_rejected_by_settings(self) -> None:
        with pytest.raises(ValidationError):
            GmailReaderSettings(_env_file=None, html_extractor="lynx")
