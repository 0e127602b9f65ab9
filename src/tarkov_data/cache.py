"""
Document store for API data, raw wiki pages, extractions and jobs using diskcache.

Provides persistent storage across script invocations and between the
background job thread and its pollers. Entries are organized by tags
(api, wiki, images, quests, jobs) for selective clearing. Read-modify-write
sequences go through ``transact()`` so that keyed upserts from concurrent
workers never interleave.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from diskcache import Cache as DiskCache

from tarkov_data.types import ApiTask, Trader

_API_EXPIRE_SECONDS = 24 * 3600
_QUESTS_KEY = "quests"


class CacheClient:
    def __init__(self, cache_dir: Path):
        self._cache_dir = cache_dir
        self._cache_dir.mkdir(parents=True, exist_ok=True)
        self._cache = DiskCache(str(self._cache_dir))
        self._lock = threading.RLock()

    @contextmanager
    def transact(self) -> Iterator[None]:
        with self._lock, self._cache.transact():
            yield

    def get_api_traders(self) -> list[Trader] | None:
        return self._cache.get("api:traders")

    def set_api_traders(self, data: list[Trader]) -> None:
        self._cache.set("api:traders", data, expire=_API_EXPIRE_SECONDS, tag="api")

    def get_api_tasks(self) -> list[ApiTask] | None:
        return self._cache.get("api:tasks")

    def set_api_tasks(self, data: list[ApiTask]) -> None:
        self._cache.set("api:tasks", data, expire=_API_EXPIRE_SECONDS, tag="api")

    def get_raw_page(self, item_id: str) -> dict[str, Any] | None:
        return self._cache.get(f"page:{item_id}")

    def set_raw_page(self, item_id: str, document: dict[str, Any]) -> None:
        self._cache.set(f"page:{item_id}", document, expire=None, tag="wiki")

    def has_raw_page(self, item_id: str) -> bool:
        return f"page:{item_id}" in self._cache

    def iter_raw_pages(self) -> Iterator[dict[str, Any]]:
        for key in self._cache.iterkeys():
            if isinstance(key, str) and key.startswith("page:"):
                document = self._cache.get(key)
                if document is not None:
                    yield document

    def get_image(self, url: str) -> dict[str, Any] | None:
        return self._cache.get(f"image:{url}")

    def set_image(self, url: str, document: dict[str, Any]) -> None:
        self._cache.set(f"image:{url}", document, expire=None, tag="images")

    def has_image(self, url: str) -> bool:
        return f"image:{url}" in self._cache

    def count_images(self) -> int:
        return sum(
            1 for key in self._cache.iterkeys() if isinstance(key, str) and key.startswith("image:")
        )

    def get_extraction(self, item_id: str) -> dict[str, Any] | None:
        return self._cache.get(f"extracted:{item_id}")

    def set_extraction(self, item_id: str, document: dict[str, Any]) -> None:
        self._cache.set(f"extracted:{item_id}", document, expire=None, tag="wiki")

    def get_quest_collection(self) -> dict[str, Any] | None:
        return self._cache.get(_QUESTS_KEY)

    def set_quest_collection(self, document: dict[str, Any]) -> None:
        self._cache.set(_QUESTS_KEY, document, expire=None, tag="quests")

    def get_job(self, job_id: str) -> dict[str, Any] | None:
        return self._cache.get(f"job:{job_id}")

    def set_job(self, job_id: str, document: dict[str, Any]) -> None:
        self._cache.set(f"job:{job_id}", document, expire=None, tag="jobs")

    def clear_cache(self, tags: list[str] | None = None) -> None:
        if tags:
            for tag in tags:
                self._cache.evict(tag)
        else:
            self._cache.clear()
