"""
Persisted quest record set, extraction history and job progress checkpoint.

The record set is a single QuestCollection document. Writers only ever
replace individual tasks by id inside a store transaction, so concurrent
workers and the final reconciliation pass can interleave without losing
each other's records.
"""

import logging
from datetime import datetime

from pydantic import BaseModel, Field

from tarkov_data.cache import CacheClient
from tarkov_data.models import ExtractedQuest, ProgressCheckpoint, QuestCollection, Task, utcnow

log = logging.getLogger(__name__)


class RecordStatus(BaseModel):
    exists: bool = False
    task_count: int = Field(default=0, alias="taskCount")
    last_fetched: datetime | None = Field(default=None, alias="lastFetched")
    last_updated: datetime | None = Field(default=None, alias="lastUpdated")
    hours_since_fetch: float | None = Field(default=None, alias="hoursSinceFetch")
    progress: ProgressCheckpoint | None = None
    image_count: int = Field(default=0, alias="imageCount")

    model_config = {"populate_by_name": True}


class QuestRecordStore:
    def __init__(self, cache: CacheClient):
        self._cache = cache

    def get_collection(self) -> QuestCollection | None:
        document = self._cache.get_quest_collection()
        if document is None:
            return None
        return QuestCollection.model_validate(document)

    def _save_collection(self, collection: QuestCollection) -> None:
        self._cache.set_quest_collection(collection.model_dump(mode="json", by_alias=True))

    def status(self) -> RecordStatus:
        collection = self.get_collection()
        if collection is None:
            return RecordStatus()
        elapsed = utcnow() - collection.last_fetched
        return RecordStatus(
            exists=True,
            task_count=len(collection.tasks),
            last_fetched=collection.last_fetched,
            last_updated=collection.last_updated,
            hours_since_fetch=elapsed.total_seconds() / 3600,
            progress=collection.progress,
        )

    def get_tasks(self) -> list[Task]:
        collection = self.get_collection()
        return list(collection.tasks) if collection else []

    def task_names(self) -> set[str]:
        return {task.name.strip().lower() for task in self.get_tasks()}

    def upsert_task(self, task: Task) -> None:
        self.upsert_tasks([task])

    def upsert_tasks(self, tasks: list[Task]) -> None:
        if not tasks:
            return
        with self._cache.transact():
            collection = self.get_collection() or QuestCollection()
            by_id = {existing.id: existing for existing in collection.tasks}
            for task in tasks:
                by_id[task.id] = task
            now = utcnow()
            collection = collection.model_copy(
                update={
                    "tasks": list(by_id.values()),
                    "total_count": len(by_id),
                    "last_updated": now,
                    "last_fetched": now,
                }
            )
            self._save_collection(collection)
        log.debug("Upserted %d task(s)", len(tasks))

    def get_checkpoint(self) -> ProgressCheckpoint | None:
        collection = self.get_collection()
        return collection.progress if collection else None

    def save_checkpoint(self, checkpoint: ProgressCheckpoint) -> None:
        with self._cache.transact():
            collection = self.get_collection() or QuestCollection()
            self._save_collection(collection.model_copy(update={"progress": checkpoint}))

    def clear_checkpoint(self) -> None:
        with self._cache.transact():
            collection = self.get_collection()
            if collection is None or collection.progress is None:
                return
            self._save_collection(collection.model_copy(update={"progress": None}))

    def get_extraction(self, item_id: str) -> ExtractedQuest | None:
        document = self._cache.get_extraction(item_id)
        if document is None:
            return None
        return ExtractedQuest.model_validate(document)

    def save_extraction(self, extracted: ExtractedQuest) -> None:
        self._cache.set_extraction(
            extracted.item_id, extracted.model_dump(mode="json", by_alias=True)
        )
