"""Gmail Reader MCP server - exposes the fetch pipeline as a single tool."""

from __future__ import annotations

import logging

from mcp.server.fastmcp import FastMCP

from gmail_reader.config.logging import setup_logging
from gmail_reader.config.settings import GmailReaderSettings
from gmail_reader.core.exceptions import GmailReaderError
from gmail_reader.pipeline.orchestrator import FetchOrchestrator

logger = logging.getLogger(__name__)

READ_ACTIONS = ("read",)

mcp = FastMCP("Gmail Reader")

_settings: GmailReaderSettings | None = None
_orchestrator: FetchOrchestrator | None = None


def get_settings() -> GmailReaderSettings:
    global _settings
    if _settings is None:
        _settings = GmailReaderSettings()
    return _settings


def get_orchestrator() -> FetchOrchestrator:
    """Build the orchestrator on first use so importing never triggers OAuth."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = FetchOrchestrator.from_settings(get_settings())
    return _orchestrator


def handle_request(orchestrator: FetchOrchestrator, action: str, max_results: int) -> str:
    """Run one tool request and serialize the outcome.

    Returns the response JSON on success, or a single ``Error: ...`` line when
    the request fails as a whole.
    """
    if (action or "").strip().lower() not in READ_ACTIONS:
        return f"Error: Invalid action '{action}'. Use: {', '.join(READ_ACTIONS)}"

    try:
        response = orchestrator.fetch(max_results)
    except GmailReaderError as e:
        logger.error("Fetch failed: %s", e)
        return f"Error: {e}"

    return response.to_json()


@mcp.tool()
def gmail(action: str = "read", max_results: int | None = None) -> str:
    """
    Read the most recent emails from the Gmail inbox as clean plain text.

    Bodies are converted from HTML, links are removed and whitespace is tidied.

    Args:
        action: Operation to perform. Only "read" is supported.
        max_results: Number of emails to fetch, between 1 and 500. Defaults to
            GMAIL_DEFAULT_MAX_RESULTS (10 unless configured)

    Returns:
        JSON object with "emails" (id, from, subject, snippet, body_raw) and "count"
    """
    if max_results is None:
        max_results = get_settings().default_max_results
    return handle_request(get_orchestrator(), action, max_results)


def main() -> None:
    """Run the MCP server over stdio."""
    setup_logging(get_settings().log_level)
    logger.info("Starting Gmail Reader MCP server")
    mcp.run()


if __name__ == "__main__":
    main()
