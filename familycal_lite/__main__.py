"""Command-line entry for familycal_lite.

Starts the HTTP server, or with --dump prints one aggregation as JSON.
"""

from __future__ import annotations

import argparse
import sys
from typing import NoReturn

from . import run_server
from .calendar.lite_exceptions import LiteConfigError


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for familycal_lite CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="familycal",
        description="Family calendar aggregation server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m familycal_lite                          # Serve on 0.0.0.0:8080
  python -m familycal_lite --port 3000              # Serve on port 3000
  python -m familycal_lite --dump --from 2026-01-01 --to 2026-02-01
        """,
    )

    parser.add_argument(
        "--host",
        metavar="HOST",
        help="Bind address (default: 0.0.0.0, or from FAMILYCAL_WEB_HOST env var)",
    )
    parser.add_argument(
        "--port",
        type=int,
        metavar="PORT",
        help="Port number for the web server (default: 8080, or from FAMILYCAL_WEB_PORT env var)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--dump",
        action="store_true",
        help="Aggregate all calendars once, print the JSON payload and exit",
    )
    parser.add_argument(
        "--from",
        dest="from_",
        metavar="ISO8601",
        help="Window start for --dump (default: now - 30 days)",
    )
    parser.add_argument(
        "--to",
        metavar="ISO8601",
        help="Window end for --dump (default: now + 180 days)",
    )

    return parser


def main() -> NoReturn:
    """Run the familycal_lite CLI."""
    parser = _create_parser()
    args = parser.parse_args()

    try:
        run_server(args)
    except (ValueError, LiteConfigError) as exc:
        # Invalid --from/--to or configuration values
        print(f"familycal: {exc}", file=sys.stderr)
        sys.exit(2)
    sys.exit(0)


if __name__ == "__main__":
    main()
