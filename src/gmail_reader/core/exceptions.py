"""Custom exceptions for the Gmail Reader."""


class GmailReaderError(Exception):
    """Base exception for all Gmail Reader errors."""


class InvalidRequestError(GmailReaderError):
    """A fetch request was rejected before any network activity."""


class AuthenticationError(GmailReaderError):
    """Failed to authenticate with Gmail API."""


class ListingError(GmailReaderError):
    """Failed to list message IDs from the mailbox."""


class MessageFetchError(GmailReaderError):
    """Failed to fetch the full detail of a single message."""


class RateLimitError(GmailReaderError):
    """Gmail API rate limit exceeded."""


class ParseError(GmailReaderError):
    """Failed to parse email MIME content."""


class FetchTimeoutError(GmailReaderError):
    """A fetch request did not complete within its deadline."""
