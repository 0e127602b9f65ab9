"""
CLI script reporting the state of the quest record set.

Shows the task count, fetch and update times, stored image count and any
in-flight progress checkpoint left by a running or interrupted scrape.
"""

import argparse
import getpass
import logging
import sys

from tarkov_data import service, terminal
from tarkov_data.config import get_settings
from tarkov_data.exceptions import PermissionDeniedError


def main() -> None:
    parser = argparse.ArgumentParser(description="Show quest record set status")
    parser.add_argument("--json", action="store_true", help="Print the status as JSON")
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
        status = service.record_status(args.caller)
    except PermissionDeniedError as e:
        terminal.error(str(e))
        sys.exit(1)

    if args.json:
        print(status.model_dump_json(by_alias=True, indent=2))
        return

    terminal.section_header("Quest Records")
    if not status.exists:
        terminal.warning("No record set yet; run python -m scripts.scrape")
        return

    terminal.key_value("Tasks", str(status.task_count))
    terminal.key_value("Last fetched", str(status.last_fetched or "-"))
    terminal.key_value("Last updated", str(status.last_updated or "-"))
    if status.hours_since_fetch is not None:
        terminal.key_value("Hours since fetch", f"{status.hours_since_fetch:.1f}")
    terminal.key_value("Stored images", str(status.image_count))

    progress = status.progress
    if progress is None:
        terminal.success("No scrape in progress")
        return
    terminal.subsection("In-flight scrape")
    terminal.key_value("Job", progress.job_id, indent=2)
    completed = f"{len(progress.completed_ids)}/{progress.total_items}"
    terminal.key_value("Completed", completed, indent=2)
    terminal.key_value("Last item", progress.last_processed_item_name or "-", indent=2)
    terminal.key_value("Updated", str(progress.updated_at), indent=2)


if __name__ == "__main__":
    main()
