"""
Administrative operations over the scraping pipeline.

Every operation is gated on the caller being listed in ``admin_users``.
Scrape submission returns a job id immediately and runs the job on a
background thread; callers poll the job document for progress and logs.
"""

import logging
import threading
import time
from collections.abc import Callable
from urllib.parse import unquote, urlsplit

from pydantic import BaseModel, Field

from tarkov_data.cache import CacheClient
from tarkov_data.config import get_settings
from tarkov_data.exceptions import ExtractionError, JobError, PermissionDeniedError, WikiError
from tarkov_data.images import ImageStore
from tarkov_data.jobs import JobStore, ScrapeJobRunner
from tarkov_data.listing import extract_all_quests
from tarkov_data.matching import slugify
from tarkov_data.models import ExtractedQuest, ListEntry, ScrapingJob
from tarkov_data.pages import PageStore
from tarkov_data.records import QuestRecordStore, RecordStatus
from tarkov_data.scraper import scrape_quest
from tarkov_data.wiki import fetch_image, fetch_page_html

log = logging.getLogger(__name__)

_cache: CacheClient | None = None
_cache_lock = threading.Lock()


class PrefetchSummary(BaseModel):
    total: int = 0
    fetched: int = 0
    skipped: int = 0
    failed: list[str] = Field(default_factory=list)


class ImageDownloadSummary(BaseModel):
    total: int = 0
    downloaded: int = 0
    skipped: int = 0
    failed: list[str] = Field(default_factory=list)


def get_cache() -> CacheClient:
    global _cache
    with _cache_lock:
        if _cache is None:
            _cache = CacheClient(get_settings().cache_dir)
        return _cache


def is_admin(caller: str | None) -> bool:
    return bool(caller) and caller in get_settings().admin_users


def require_admin(caller: str | None) -> None:
    if not is_admin(caller):
        raise PermissionDeniedError(caller)


def submit_scrape_job(
    caller: str | None,
    *,
    use_cached_pages: bool = True,
    only_missing: bool = False,
    list_url: str | None = None,
    resume: bool = False,
    cache: CacheClient | None = None,
) -> str:
    require_admin(caller)
    cache = cache or get_cache()

    job = JobStore(cache).create()
    checkpoint = QuestRecordStore(cache).get_checkpoint() if resume else None
    runner = ScrapeJobRunner(cache, use_cached_pages=use_cached_pages, only_missing=only_missing)

    thread = threading.Thread(
        target=runner.run_from_list,
        args=(job.job_id, list_url, checkpoint),
        name=f"scrape-{job.job_id[:8]}",
        daemon=True,
    )
    thread.start()
    log.info(
        "Submitted scrape job %s (cached=%s, missing=%s)",
        job.job_id,
        use_cached_pages,
        only_missing,
    )
    return job.job_id


def get_job(job_id: str, cache: CacheClient | None = None) -> ScrapingJob | None:
    return JobStore(cache or get_cache()).get(job_id)


def wait_for_job(
    job_id: str,
    poll_interval: float = 2.0,
    *,
    timeout: float | None = None,
    on_update: Callable[[ScrapingJob], None] | None = None,
    cache: CacheClient | None = None,
) -> ScrapingJob:
    deadline = time.monotonic() + timeout if timeout is not None else None
    while True:
        job = get_job(job_id, cache)
        if job is None:
            raise JobError(f"Unknown job '{job_id}'")
        if on_update is not None:
            on_update(job)
        if job.is_terminal:
            return job
        if deadline is not None and time.monotonic() >= deadline:
            raise JobError(f"Timed out waiting for job '{job_id}'")
        time.sleep(poll_interval)


def _entry_for_url(url: str) -> ListEntry:
    path = urlsplit(url).path
    _, _, title = path.partition("/wiki/")
    name = unquote(title).replace("_", " ").strip()
    if not name:
        raise ExtractionError(f"Cannot derive a quest name from '{url}'")
    return ListEntry(name=name, source_url=url, owning_category="")


def test_page(caller: str | None, url: str, cache: CacheClient | None = None) -> ExtractedQuest:
    require_admin(caller)
    entry = _entry_for_url(url)
    extracted = scrape_quest(entry, PageStore(cache or get_cache()), use_cached=False)
    if extracted is None:
        raise ExtractionError(f"No quest data could be extracted from '{url}'")
    return extracted


def list_quests(caller: str | None, url: str | None = None) -> list[ListEntry]:
    require_admin(caller)
    return extract_all_quests(url)


def prefetch_pages(
    caller: str | None,
    list_url: str | None = None,
    delay: float = 0.1,
    *,
    force: bool = False,
    on_progress: Callable[[int, int, ListEntry], None] | None = None,
    cache: CacheClient | None = None,
) -> PrefetchSummary:
    require_admin(caller)
    pages = PageStore(cache or get_cache())
    entries = extract_all_quests(list_url)
    summary = PrefetchSummary(total=len(entries))

    for position, entry in enumerate(entries, start=1):
        if on_progress is not None:
            on_progress(position, len(entries), entry)
        item_id = slugify(entry.name)
        if not force and pages.has(item_id):
            summary.skipped += 1
            continue
        try:
            html = fetch_page_html(entry.source_url)
        except WikiError as e:
            log.warning("Failed to fetch %s: %s", entry.name, e)
            summary.failed.append(entry.name)
            continue
        pages.put(item_id, entry.name, entry.source_url, html)
        summary.fetched += 1
        if delay > 0 and position < len(entries):
            time.sleep(delay)

    return summary


def download_images(
    caller: str | None,
    delay: float = 0.1,
    *,
    force: bool = False,
    on_progress: Callable[[int, int, str], None] | None = None,
    cache: CacheClient | None = None,
) -> ImageDownloadSummary:
    require_admin(caller)
    cache = cache or get_cache()
    images = ImageStore(cache)
    tasks = QuestRecordStore(cache).get_tasks()
    urls = list(
        dict.fromkeys(
            task.image_url
            for task in tasks
            if task.image_url and task.image_url.startswith("http")
        )
    )
    summary = ImageDownloadSummary(total=len(urls))

    for position, url in enumerate(urls, start=1):
        if on_progress is not None:
            on_progress(position, len(urls), url)
        if not force and images.has(url):
            summary.skipped += 1
            continue
        try:
            content, mime_type = fetch_image(url)
        except WikiError as e:
            log.warning("Failed to download image %s: %s", url, e)
            summary.failed.append(url)
            continue
        images.put(url, content, mime_type)
        summary.downloaded += 1
        if delay > 0 and position < len(urls):
            time.sleep(delay)

    return summary


def record_status(caller: str | None, cache: CacheClient | None = None) -> RecordStatus:
    require_admin(caller)
    cache = cache or get_cache()
    status = QuestRecordStore(cache).status()
    return status.model_copy(update={"image_count": ImageStore(cache).count()})
