"""
CLI script for downloading quest images into the image store.

Collects the canonical image URL of every task in the record set and
stores each image once, keyed by URL. Run a scrape first; images already
stored are skipped unless --force is given.
"""

import argparse
import getpass
import logging
import sys

from tarkov_data import service, terminal
from tarkov_data.config import get_settings
from tarkov_data.exceptions import PermissionDeniedError


def main() -> None:
    parser = argparse.ArgumentParser(description="Download quest images into the image store")
    parser.add_argument(
        "--delay",
        type=float,
        default=0.1,
        help="Seconds to wait between downloads (default: 0.1)",
    )
    parser.add_argument("--force", action="store_true", help="Re-download stored images")
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

    try:
        summary = service.download_images(
            args.caller,
            args.delay,
            force=args.force,
            on_progress=lambda current, total, url: terminal.progress(current, total, url),
        )
    except PermissionDeniedError as e:
        terminal.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        terminal.warning("\nAborted.")
        sys.exit(1)

    if summary.total == 0:
        terminal.error_with_context(
            "No quest image URLs in the record set",
            suggestions=["Run python -m scripts.scrape first"],
        )
        sys.exit(1)

    terminal.section_header("Image Download Summary")
    terminal.key_value("Image URLs", str(summary.total))
    terminal.key_value("Downloaded", str(summary.downloaded))
    terminal.key_value("Skipped (already stored)", str(summary.skipped))
    terminal.key_value("Failed", str(len(summary.failed)))
    for url in summary.failed[:10]:
        terminal.bullet(url, indent=2, symbol="✗")


if __name__ == "__main__":
    main()
