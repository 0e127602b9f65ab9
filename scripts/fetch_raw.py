"""
CLI script for pre-fetching raw quest pages into the page store.

Downloads the HTML of every quest in the wiki quest list so that later
scrapes can run from cached pages with full concurrency. Pages already in
the store are skipped unless --force is given.
"""

import argparse
import getpass
import logging
import sys

from tarkov_data import service, terminal
from tarkov_data.config import get_settings
from tarkov_data.exceptions import PermissionDeniedError
from tarkov_data.pages import PageStore


def _print_status() -> None:
    status = PageStore(service.get_cache()).status()
    terminal.section_header("Page Store")
    terminal.key_value("Pages", str(status.total))
    terminal.key_value("Oldest fetch", str(status.oldest_fetch or "-"))
    terminal.key_value("Newest fetch", str(status.newest_fetch or "-"))
    terminal.key_value("Last used", str(status.last_used or "-"))


def main() -> None:
    parser = argparse.ArgumentParser(description="Fetch raw quest pages into the page store")
    parser.add_argument("--list-url", type=str, default=None, help="Override the quest list URL")
    parser.add_argument(
        "--delay",
        type=float,
        default=0.1,
        help="Seconds to wait between page fetches (default: 0.1)",
    )
    parser.add_argument("--force", action="store_true", help="Re-fetch pages already stored")
    parser.add_argument(
        "--status",
        action="store_true",
        help="Only print page store statistics",
    )
    parser.add_argument(
        "--caller",
        type=str,
        default=getpass.getuser(),
        help="Caller id checked against TARKOV_ADMIN_USERS (default: current user)",
    )

    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(message)s",
    )

    if args.status:
        _print_status()
        return

    try:
        summary = service.prefetch_pages(
            args.caller,
            args.list_url,
            args.delay,
            force=args.force,
            on_progress=lambda current, total, entry: terminal.progress(
                current, total, entry.name
            ),
        )
    except PermissionDeniedError as e:
        terminal.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        terminal.warning("\nAborted.")
        sys.exit(1)

    if summary.total == 0:
        terminal.error("No quests found on the quest list page")
        sys.exit(1)

    terminal.section_header("Fetch Summary")
    terminal.key_value("Listed", str(summary.total))
    terminal.key_value("Fetched", str(summary.fetched))
    terminal.key_value("Skipped (already stored)", str(summary.skipped))
    terminal.key_value("Failed", str(len(summary.failed)))
    for name in summary.failed:
        terminal.bullet(name, indent=2, symbol="✗")
    _print_status()


if __name__ == "__main__":
    main()
