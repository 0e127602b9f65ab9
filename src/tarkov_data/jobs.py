"""
Scraping job lifecycle: job documents, log channel and the batch runner.

A job document is created as soon as a scrape is submitted and is the only
thing pollers see. The runner walks the quest list either sequentially
against the live wiki (rate limited) or with a pool of worker threads over
cached pages, persisting every converted task as soon as it is extracted
and then re-converting the whole batch once every predecessor is known.

Job documents are append/replace-by-key only and become read-only once the
job reaches a terminal status.
"""

import logging
import queue
import threading
import time
import uuid
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any, NamedTuple

from tarkov_data import api
from tarkov_data.cache import CacheClient
from tarkov_data.config import get_settings
from tarkov_data.converter import convert_quest, convert_quests
from tarkov_data.diff import safe_diff_report
from tarkov_data.exceptions import APIError, ExtractionError, JobError, WikiError
from tarkov_data.listing import extract_all_quests
from tarkov_data.matching import slugify
from tarkov_data.models import (
    ExtractedQuest,
    JobStatus,
    ListEntry,
    LogEntry,
    LogLevel,
    ProgressCheckpoint,
    ScrapingJob,
    utcnow,
)
from tarkov_data.pages import PageStore
from tarkov_data.records import QuestRecordStore
from tarkov_data.scraper import scrape_quest
from tarkov_data.types import ApiTask, Trader

log = logging.getLogger(__name__)

_PYTHON_LEVELS: dict[str, int] = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class JobStore:
    def __init__(self, cache: CacheClient):
        self._cache = cache

    def create(self) -> ScrapingJob:
        job = ScrapingJob(job_id=str(uuid.uuid4()))
        self._save(job)
        return job

    def get(self, job_id: str) -> ScrapingJob | None:
        document = self._cache.get_job(job_id)
        if document is None:
            return None
        return ScrapingJob.model_validate(document)

    def _save(self, job: ScrapingJob) -> None:
        self._cache.set_job(job.job_id, job.model_dump(mode="json", by_alias=True))

    def _update(self, job_id: str, mutate: Callable[[ScrapingJob], dict[str, Any]]) -> ScrapingJob:
        with self._cache.transact():
            job = self.get(job_id)
            if job is None:
                raise JobError(f"Unknown job '{job_id}'")
            if job.is_terminal:
                raise JobError(f"Job '{job_id}' is already {job.status}")
            job = job.model_copy(update=mutate(job))
            self._save(job)
        return job

    def append_logs(self, job_id: str, entries: list[LogEntry]) -> None:
        if entries:
            self._update(job_id, lambda job: {"logs": [*job.logs, *entries]})

    def set_total(self, job_id: str, total: int) -> None:
        self._update(job_id, lambda job: {"total_items": total})

    def record_item(self, job_id: str, *, success: bool) -> ScrapingJob:
        def mutate(job: ScrapingJob) -> dict[str, Any]:
            update = {"processed_items": job.processed_items + 1}
            if success:
                update["successful_items"] = job.successful_items + 1
            else:
                update["failed_items"] = job.failed_items + 1
            return update

        return self._update(job_id, mutate)

    def finish(self, job_id: str, status: JobStatus) -> ScrapingJob:
        if status == "running":
            raise JobError("A job can only finish as completed or failed")
        return self._update(job_id, lambda job: {"status": status, "completed_at": utcnow()})


class JobLogChannel:
    """Append-only log buffer for one job, drained into the job document."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        self._entries: queue.SimpleQueue[LogEntry] = queue.SimpleQueue()

    def emit(
        self,
        level: LogLevel,
        message: str,
        *,
        item_name: str | None = None,
        item_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> LogEntry:
        entry = LogEntry(
            level=level,
            message=message,
            item_name=item_name,
            item_id=item_id,
            details=details,
        )
        self._entries.put(entry)
        if item_name:
            log.log(_PYTHON_LEVELS[level], "[%s] %s: %s", self.job_id[:8], item_name, message)
        else:
            log.log(_PYTHON_LEVELS[level], "[%s] %s", self.job_id[:8], message)
        return entry

    def drain(self) -> list[LogEntry]:
        entries = []
        while True:
            try:
                entries.append(self._entries.get_nowait())
            except queue.Empty:
                return entries


class JobOutcome(NamedTuple):
    job_id: str
    status: JobStatus
    processed: int
    successful: int
    failed: int


class ScrapeJobRunner:
    def __init__(
        self,
        cache: CacheClient,
        *,
        use_cached_pages: bool = True,
        only_missing: bool = False,
        traders: list[Trader] | None = None,
        api_tasks: list[ApiTask] | None = None,
    ):
        self._cache = cache
        self._jobs = JobStore(cache)
        self._pages = PageStore(cache)
        self._records = QuestRecordStore(cache)
        self.use_cached_pages = use_cached_pages
        self.only_missing = only_missing
        self._traders = traders
        self._api_tasks = api_tasks

        self._lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self._batch: list[ExtractedQuest] = []
        self._checkpoint: ProgressCheckpoint | None = None
        self._done: set[int] = set()
        self._channel: JobLogChannel | None = None

    @property
    def jobs(self) -> JobStore:
        return self._jobs

    def _emit(self, level: LogLevel, message: str, **kwargs: Any) -> None:
        if self._channel is None:
            raise JobError("Runner has no active job")
        self._channel.emit(level, message, **kwargs)

    def _flush(self, job_id: str) -> None:
        if self._channel is None:
            return
        with self._flush_lock:
            self._jobs.append_logs(job_id, self._channel.drain())

    def _reference_data(self) -> tuple[list[Trader], dict[str, ApiTask]]:
        traders = self._traders
        if traders is None:
            try:
                traders = api.get_traders(self._cache)
            except APIError as e:
                self._emit("warning", f"Trader roster unavailable, continuing without it: {e}")
                traders = []

        api_tasks = self._api_tasks
        if api_tasks is None:
            try:
                api_tasks = api.get_tasks(self._cache)
            except APIError as e:
                self._emit("warning", f"tarkov.dev tasks unavailable, skipping API diff: {e}")
                api_tasks = []

        return traders, api.index_tasks_by_name(api_tasks)

    def run_from_list(
        self, job_id: str, list_url: str | None = None, checkpoint: ProgressCheckpoint | None = None
    ) -> JobOutcome:
        self._channel = JobLogChannel(job_id)
        self._emit("info", f"Fetching quest list from {list_url or 'the wiki'}")
        self._flush(job_id)
        try:
            entries = extract_all_quests(list_url)
        except Exception as e:
            log.exception("Quest list extraction failed")
            return self._fail(job_id, f"Quest list extraction failed: {e}")
        return self.run(job_id, entries, checkpoint)

    def run(
        self, job_id: str, entries: list[ListEntry], checkpoint: ProgressCheckpoint | None = None
    ) -> JobOutcome:
        if self._channel is None or self._channel.job_id != job_id:
            self._channel = JobLogChannel(job_id)
        self._batch = []

        try:
            if not entries:
                return self._fail(job_id, "No quests found on the quest list page")

            if self.only_missing:
                existing = self._records.task_names()
                entries = [e for e in entries if e.name.strip().lower() not in existing]
                if not entries:
                    self._emit("success", "All listed quests already have records; nothing to scrape")
                    return self._complete(job_id)
                self._emit("info", f"{len(entries)} quest(s) missing from the record set")

            total = len(entries)
            self._jobs.set_total(job_id, total)
            traders, api_index = self._reference_data()

            pending = list(enumerate(entries))
            self._done = set()
            completed_ids: list[str] = []
            if checkpoint is not None and (
                checkpoint.completed_ids or checkpoint.last_processed_item_name
            ):
                resumed = self._resumed_ids(entries, checkpoint)
                completed_ids = sorted(resumed)
                self._restore_batch(completed_ids)
                self._done = {index for index, entry in pending if slugify(entry.name) in resumed}
                pending = [(index, entry) for index, entry in pending if index not in self._done]
                self._emit(
                    "info",
                    f"Resuming after '{checkpoint.last_processed_item_name}' "
                    f"({len(self._done)}/{total})",
                )
            base = checkpoint or ProgressCheckpoint(job_id=job_id)
            self._checkpoint = base.model_copy(
                update={
                    "job_id": job_id,
                    "total_items": total,
                    "current_index": self._low_water(),
                    "completed_ids": completed_ids,
                }
            )
            self._records.save_checkpoint(self._checkpoint)

            mode = "cached pages" if self.use_cached_pages else "live wiki"
            self._emit("info", f"Starting scrape of {len(pending)} quest(s) from {mode}")
            self._flush(job_id)

            if self.use_cached_pages:
                self._run_cached(job_id, pending, total, traders, api_index)
            else:
                self._run_live(job_id, pending, total, traders, api_index)

            self._reconcile(job_id, traders)
            return self._complete(job_id)
        except Exception as e:
            log.exception("Scrape job %s failed", job_id)
            return self._fail(job_id, f"Scrape job failed: {e}")

    def _resumed_ids(self, entries: list[ListEntry], checkpoint: ProgressCheckpoint) -> set[str]:
        if checkpoint.completed_ids:
            return set(checkpoint.completed_ids)
        # Older checkpoints only carry the last name; everything up to it in
        # this list is done. A name no longer listed resumes from the start.
        target = (checkpoint.last_processed_item_name or "").strip().lower()
        names = [entry.name.strip().lower() for entry in entries]
        if target not in names:
            return set()
        return {slugify(entry.name) for entry in entries[: names.index(target) + 1]}

    def _restore_batch(self, item_ids: list[str]) -> None:
        for item_id in item_ids:
            extracted = self._records.get_extraction(item_id)
            if extracted is not None:
                self._batch.append(extracted)

    def _low_water(self) -> int:
        position = 0
        while position in self._done:
            position += 1
        return max(position - 1, 0)

    def _run_live(
        self,
        job_id: str,
        pending: list[tuple[int, ListEntry]],
        total: int,
        traders: list[Trader],
        api_index: dict[str, ApiTask],
    ) -> None:
        delay = get_settings().request_delay
        for position, (index, entry) in enumerate(pending):
            self._process(job_id, index, entry, total, traders, api_index)
            if position < len(pending) - 1 and delay > 0:
                time.sleep(delay)

    def _run_cached(
        self,
        job_id: str,
        pending: list[tuple[int, ListEntry]],
        total: int,
        traders: list[Trader],
        api_index: dict[str, ApiTask],
    ) -> None:
        work: queue.Queue[tuple[int, ListEntry]] = queue.Queue(maxsize=max(len(pending), 1))
        for item in pending:
            work.put(item)

        def worker() -> None:
            while True:
                try:
                    index, entry = work.get_nowait()
                except queue.Empty:
                    return
                self._process(job_id, index, entry, total, traders, api_index)

        workers = max(1, min(get_settings().cached_concurrency, len(pending)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="scrape") as executor:
            futures = [executor.submit(worker) for _ in range(workers)]
            for future in futures:
                future.result()

    def _process(
        self,
        job_id: str,
        index: int,
        entry: ListEntry,
        total: int,
        traders: list[Trader],
        api_index: dict[str, ApiTask],
    ) -> None:
        item_id = slugify(entry.name)
        item = {"item_name": entry.name, "item_id": item_id}
        self._emit("info", f"[{index + 1}/{total}] Scraping: {entry.name}", **item)

        extracted: ExtractedQuest | None = None
        try:
            extracted = scrape_quest(
                entry, self._pages, use_cached=self.use_cached_pages, job_id=job_id
            )
            if extracted is None:
                self._emit("error", f"Failed to scrape: {entry.name}", **item)
        except (WikiError, ExtractionError) as e:
            self._emit("error", f"Failed to scrape: {e}", **item)
        except Exception as e:
            log.debug("Extraction of %s raised", entry.name, exc_info=True)
            self._emit("error", f"Unexpected error scraping {entry.name}: {e}", **item)

        if extracted is not None:
            prior = self._records.get_extraction(item_id)
            report = safe_diff_report(extracted, api_index.get(entry.name.strip().lower()), prior)
            self._emit(report.level, report.message(), details=report.details(), **item)
            self._records.save_extraction(extracted)
            with self._lock:
                self._batch = [q for q in self._batch if q.item_id != item_id] + [extracted]
                batch = list(self._batch)
            self._records.upsert_task(convert_quest(extracted, batch, traders))

        self._jobs.record_item(job_id, success=extracted is not None)
        with self._lock:
            self._done.add(index)
            if self._checkpoint is not None:
                self._checkpoint = self._checkpoint.advance(self._low_water(), entry.name, item_id)
                self._records.save_checkpoint(self._checkpoint)
        self._flush(job_id)

    def _reconcile(self, job_id: str, traders: list[Trader]) -> None:
        with self._lock:
            batch = list(self._batch)
        if not batch:
            return
        tasks = convert_quests(batch, traders)
        self._records.upsert_tasks(tasks)
        linked = sum(1 for task in tasks if task.task_requirements)
        self._emit(
            "info", f"Reconciled {len(tasks)} task(s), {linked} with resolved prerequisites"
        )

    def _complete(self, job_id: str) -> JobOutcome:
        job = self._jobs.get(job_id)
        successful = job.successful_items if job else 0
        failed = job.failed_items if job else 0
        self._emit("success", f"Scraping complete: {successful} succeeded, {failed} failed")
        return self._finish(job_id, "completed")

    def _fail(self, job_id: str, message: str) -> JobOutcome:
        if self._channel is None:
            self._channel = JobLogChannel(job_id)
        self._emit("error", message)
        return self._finish(job_id, "failed")

    def _finish(self, job_id: str, status: JobStatus) -> JobOutcome:
        self._flush(job_id)
        try:
            self._records.clear_checkpoint()
        except Exception as e:
            log.warning("Failed to clear progress checkpoint for job %s: %s", job_id, e)
        job = self._jobs.finish(job_id, status)
        return JobOutcome(
            job_id=job_id,
            status=job.status,
            processed=job.processed_items,
            successful=job.successful_items,
            failed=job.failed_items,
        )
