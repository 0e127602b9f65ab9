"""
CLI script for previewing the quest list the scraper would process.

Prints every quest found in the wiki's Quests navbox grouped by the trader
that gives it.
"""

import argparse
import getpass
import logging
import sys
from itertools import groupby

from tarkov_data import service, terminal
from tarkov_data.config import get_settings
from tarkov_data.exceptions import PermissionDeniedError


def main() -> None:
    parser = argparse.ArgumentParser(description="List quests found on the wiki quest list page")
    parser.add_argument("--url", type=str, default=None, help="Override the quest list URL")
    parser.add_argument(
        "--trader",
        type=str,
        default=None,
        help="Only show quests given by this trader",
    )
    parser.add_argument(
        "--urls",
        action="store_true",
        help="Print the page URL next to each quest",
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

    try:
        entries = service.list_quests(args.caller, args.url)
    except PermissionDeniedError as e:
        terminal.error(str(e))
        sys.exit(1)

    if not entries:
        terminal.error("No quests found on the quest list page")
        sys.exit(1)

    if args.trader:
        entries = [e for e in entries if e.owning_category.lower() == args.trader.lower()]

    for trader, group in groupby(entries, key=lambda e: e.owning_category):
        quests = list(group)
        terminal.subsection(f"{trader} ({len(quests)})")
        for entry in quests:
            label = f"{entry.name}  {entry.source_url}" if args.urls else entry.name
            terminal.bullet(label, indent=2)

    print()
    terminal.key_value("Total quests", str(len(entries)))


if __name__ == "__main__":
    main()
