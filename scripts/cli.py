"""Minimal CLI entry point for manual testing of the Gmail Reader."""

from __future__ import annotations

import argparse
import sys

from gmail_reader.config.logging import setup_logging
from gmail_reader.config.settings import GmailReaderSettings
from gmail_reader.pipeline.orchestrator import MAX_RESULTS, MIN_RESULTS, FetchOrchestrator


def _add_fetch_args(subparser: argparse.ArgumentParser, default_max_results: int) -> None:
    """Add --max-results and --timeout flags to a subparser."""
    subparser.add_argument(
        "--max-results",
        "-n",
        type=int,
        default=default_max_results,
        dest="max_results",
        help=f"Number of emails to fetch ({MIN_RESULTS}-{MAX_RESULTS})",
    )
    subparser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Abort if the messages are not fetched within this many seconds",
    )


def _validate_fetch_args(args: argparse.Namespace) -> None:
    """Reject out-of-range values before any network activity."""
    if not MIN_RESULTS <= args.max_results <= MAX_RESULTS:
        print(
            f"Error: --max-results must be between {MIN_RESULTS} and {MAX_RESULTS}",
            file=sys.stderr,
        )
        sys.exit(1)
    if args.timeout is not None and args.timeout <= 0:
        print("Error: --timeout must be positive", file=sys.stderr)
        sys.exit(1)


def build_parser(settings: GmailReaderSettings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Gmail Reader - Fetch emails as clean plain text"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # fetch command
    fetch_parser = subparsers.add_parser("fetch", help="Fetch emails and print them as JSON")
    _add_fetch_args(fetch_parser, settings.default_max_results)

    # serve command
    subparsers.add_parser("serve", help="Run the MCP server on stdio")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    settings = GmailReaderSettings()
    parser = build_parser(settings)
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "fetch":
        _validate_fetch_args(args)

    setup_logging(settings.log_level)

    try:
        if args.command == "fetch":
            orchestrator = FetchOrchestrator.from_settings(settings)
            response = orchestrator.fetch(args.max_results, timeout=args.timeout)
            print(response.to_json())

        elif args.command == "serve":
            from gmail_reader.server import main as serve

            serve()

    except KeyboardInterrupt:
        print("\n\nInterrupted by user", file=sys.stderr)
        sys.exit(130)
    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
