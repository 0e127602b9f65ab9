"""
Raw wiki page store keyed by item id.

Keeps the fetched HTML of every quest page so that extraction can be re-run
without hitting the wiki. Pages never expire; a re-fetch replaces the HTML
but keeps the usage stamps of the previous copy.
"""

import logging
from datetime import datetime

from pydantic import BaseModel, Field

from tarkov_data.cache import CacheClient
from tarkov_data.exceptions import StoreError
from tarkov_data.matching import slugify
from tarkov_data.models import RawPage, utcnow

log = logging.getLogger(__name__)


class PageStoreStatus(BaseModel):
    total: int = 0
    oldest_fetch: datetime | None = Field(default=None, alias="oldestFetch")
    newest_fetch: datetime | None = Field(default=None, alias="newestFetch")
    last_used: datetime | None = Field(default=None, alias="lastUsed")

    model_config = {"populate_by_name": True}


class PageStore:
    def __init__(self, cache: CacheClient):
        self._cache = cache

    def has(self, item_id: str) -> bool:
        return self._cache.has_raw_page(item_id)

    def get(self, item_id: str) -> RawPage | None:
        document = self._cache.get_raw_page(item_id)
        if document is None:
            return None
        return RawPage.model_validate(document)

    def put(self, item_id: str, item_name: str, url: str, html: str) -> RawPage:
        if item_id != slugify(item_name):
            raise StoreError(f"Page id '{item_id}' does not match slug of '{item_name}'")
        with self._cache.transact():
            previous = self.get(item_id)
            page = RawPage(
                item_id=item_id,
                item_name=item_name,
                source_url=url,
                html=html,
                fetched_at=utcnow(),
                last_used_at=previous.last_used_at if previous else None,
                job_id=previous.job_id if previous else None,
            )
            self._cache.set_raw_page(item_id, page.model_dump(mode="json", by_alias=True))
        return page

    def mark_used(self, item_id: str, job_id: str | None = None) -> None:
        try:
            with self._cache.transact():
                page = self.get(item_id)
                if page is None:
                    return
                update: dict[str, object] = {"last_used_at": utcnow()}
                if job_id is not None:
                    update["job_id"] = job_id
                page = page.model_copy(update=update)
                self._cache.set_raw_page(item_id, page.model_dump(mode="json", by_alias=True))
        except Exception as e:
            log.warning("Failed to mark page '%s' as used: %s", item_id, e)

    def count(self) -> int:
        return sum(1 for _ in self._cache.iter_raw_pages())

    def status(self) -> PageStoreStatus:
        pages = [RawPage.model_validate(document) for document in self._cache.iter_raw_pages()]
        if not pages:
            return PageStoreStatus()
        fetched = [page.fetched_at for page in pages]
        used = [page.last_used_at for page in pages if page.last_used_at is not None]
        return PageStoreStatus(
            total=len(pages),
            oldest_fetch=min(fetched),
            newest_fetch=max(fetched),
            last_used=max(used) if used else None,
        )
