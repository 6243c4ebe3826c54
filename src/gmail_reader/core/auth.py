"""Gmail OAuth: token cache, refresh and installed-app consent."""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import Resource, build

from gmail_reader.core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

# Read-only: the reader never modifies the mailbox.
SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]


def authenticate(credentials_path: Path, token_path: Path) -> Credentials:
    """Resolve Gmail credentials: cached token, then refresh, then browser consent.

    Args:
        credentials_path: OAuth client secret JSON downloaded from Google Cloud.
        token_path: Token cache file, created or overwritten on success.

    Returns:
        Valid Google OAuth2 credentials.

    Raises:
        AuthenticationError: If no usable credential could be obtained.
    """
    creds = _usable(_load_cached_token(token_path), token_path)
    if creds is not None:
        return creds
    return _run_consent_flow(credentials_path, token_path)


def build_gmail_service(creds: Credentials) -> Resource:
    """Build a Gmail v1 service resource bound to ``creds``."""
    return build("gmail", "v1", credentials=creds, cache_discovery=False)


class GoogleAuthenticator:
    """Authenticator backed by the installed-app OAuth flow and a token file.

    The first call may open a browser for consent. The resolved credential is
    kept for the lifetime of this object and refreshed when it expires.
    """

    def __init__(self, credentials_path: Path, token_path: Path) -> None:
        self._credentials_path = credentials_path
        self._token_path = token_path
        self._creds: Credentials | None = None
        self._lock = threading.Lock()

    def obtain_credential(self) -> Credentials:
        with self._lock:
            creds = _usable(self._creds, self._token_path)
            if creds is None:
                creds = authenticate(self._credentials_path, self._token_path)
            self._creds = creds
            return creds


def _load_cached_token(token_path: Path) -> Credentials | None:
    if not token_path.exists():
        return None
    try:
        return Credentials.from_authorized_user_file(str(token_path), SCOPES)
    except Exception as e:
        logger.warning("Ignoring unreadable token cache %s: %s", token_path, e)
        return None


def _usable(creds: Credentials | None, token_path: Path) -> Credentials | None:
    """Return ``creds`` if valid or refreshable, otherwise None."""
    if creds is None:
        return None
    if creds.valid:
        return creds
    if creds.expired and creds.refresh_token:
        return _refresh(creds, token_path)
    return None


def _refresh(creds: Credentials, token_path: Path) -> Credentials | None:
    """Refresh an expired token in place; None when the refresh is rejected."""
    try:
        creds.refresh(Request())
    except Exception as e:
        logger.warning("Token refresh rejected, consent is required again: %s", e)
        return None
    _save_token(creds, token_path)
    logger.debug("Refreshed access token")
    return creds


def _run_consent_flow(credentials_path: Path, token_path: Path) -> Credentials:
    if not credentials_path.exists():
        raise AuthenticationError(
            f"Credentials file not found: {credentials_path}. "
            "Create an OAuth client ID (Desktop app) in Google Cloud Console "
            "and save its JSON at this path."
        )

    try:
        flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), SCOPES)
        creds = flow.run_local_server(port=0)
    except Exception as e:
        raise AuthenticationError(f"OAuth flow failed: {e}") from e

    _save_token(creds, token_path)
    logger.info("Gmail access granted, token cached at %s", token_path)
    return creds


def _save_token(creds: Credentials, token_path: Path) -> None:
    """Persist the token; a failed write only costs a consent prompt next run."""
    try:
        token_path.parent.mkdir(parents=True, exist_ok=True)
        token_path.write_text(creds.to_json())
    except OSError as e:
        logger.warning("Could not cache token at %s: %s", token_path, e)
