"""
CLI script for running a full wiki scrape and reconciling it into tasks.

Submits a scraping job and follows it until it finishes, printing job log
entries as they are appended:
1. Fetch the quest list from the wiki's Quests navbox
2. Load each quest page (cached pages by default, --live to hit the wiki)
3. Extract relations, rewards, objectives and guide steps
4. Compare against tarkov.dev and the previous extraction
5. Upsert converted tasks into the record set

Use --job-id to re-attach to a job that is already running or finished.
"""

import argparse
import getpass
import logging
import sys

from tarkov_data import service, terminal
from tarkov_data.config import get_settings
from tarkov_data.exceptions import JobError, PermissionDeniedError
from tarkov_data.models import ScrapingJob


class _LogFollower:
    def __init__(self) -> None:
        self.shown = 0

    def __call__(self, job: ScrapingJob) -> None:
        for entry in job.logs[self.shown :]:
            terminal.log_entry(entry)
        self.shown = len(job.logs)


def _print_summary(job: ScrapingJob) -> None:
    terminal.section_header("Scrape Summary")
    terminal.key_value("Job", job.job_id)
    terminal.key_value("Status", job.status)
    terminal.key_value("Total", str(job.total_items))
    terminal.key_value("Processed", str(job.processed_items))
    terminal.key_value("Successful", str(job.successful_items))
    terminal.key_value("Failed", str(job.failed_items))
    if job.completed_at is not None:
        elapsed = job.completed_at - job.started_at
        terminal.key_value("Elapsed", f"{elapsed.total_seconds():.1f}s")

    failures = [entry for entry in job.logs if entry.level == "error" and entry.item_name]
    if failures:
        terminal.subsection("Failed quests")
        for entry in failures:
            terminal.bullet(f"{entry.item_name}: {entry.message}", indent=2, symbol="✗")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Scrape Escape from Tarkov quests from the wiki into the task record set"
    )
    parser.add_argument(
        "--live",
        action="store_true",
        help="Fetch every page from the wiki instead of the page store (rate limited)",
    )
    parser.add_argument(
        "--missing",
        action="store_true",
        help="Only scrape quests that have no record yet",
    )
    parser.add_argument(
        "--resume",
        action="store_true",
        help="Continue after the last checkpoint of an interrupted run",
    )
    parser.add_argument("--list-url", type=str, default=None, help="Override the quest list URL")
    parser.add_argument(
        "--job-id",
        type=str,
        default=None,
        help="Follow an existing job instead of starting a new one",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=2.0,
        help="Seconds between job status polls (default: 2.0)",
    )
    parser.add_argument(
        "--caller",
        type=str,
        default=getpass.getuser(),
        help="Caller id checked against TARKOV_ADMIN_USERS (default: current user)",
    )
    parser.add_argument(
        "--clear-cache",
        nargs="*",
        metavar="TAG",
        help="Clear cache and exit (optionally specify tags: api, wiki, images, quests, jobs)",
    )

    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(message)s",
    )

    if args.clear_cache is not None:
        tags = args.clear_cache if args.clear_cache else None
        service.get_cache().clear_cache(tags)
        tag_str = f" ({', '.join(tags)})" if tags else " (all)"
        terminal.success(f"Cache cleared{tag_str}")
        return

    try:
        if args.job_id:
            job_id = args.job_id
            print(f"Following job {job_id}")
        else:
            job_id = service.submit_scrape_job(
                args.caller,
                use_cached_pages=not args.live,
                only_missing=args.missing,
                list_url=args.list_url,
                resume=args.resume,
            )
            print(f"Started job {job_id}")

        job = service.wait_for_job(job_id, args.poll_interval, on_update=_LogFollower())
        _print_summary(job)
        if job.status == "failed":
            sys.exit(1)

    except PermissionDeniedError as e:
        terminal.error_with_context(
            str(e),
            context={"Caller": str(e.caller)},
            suggestions=[
                "Add the caller to TARKOV_ADMIN_USERS (JSON list) in the environment or .env",
                "Pass --caller with an administrator id",
            ],
        )
        sys.exit(1)
    except JobError as e:
        terminal.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        terminal.warning("\nAborted. Re-run with --resume to continue from the last checkpoint.")
        sys.exit(1)


if __name__ == "__main__":
    main()
