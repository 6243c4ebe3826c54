"""Process-wide logging setup shared by the CLI and the MCP server."""

from __future__ import annotations

import logging


def setup_logging(level: str) -> None:
    """Configure logging with timestamp and module info.

    Records go to stderr, which keeps stdout free for the MCP stdio transport.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
