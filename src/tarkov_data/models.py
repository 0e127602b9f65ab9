"""Pydantic models for wiki quest extraction, reconciled tasks and scraping jobs."""

from __future__ import annotations

import base64
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

LogLevel = Literal["info", "success", "warning", "error"]

JobStatus = Literal["running", "completed", "failed"]

TERMINAL_JOB_STATUSES: frozenset[str] = frozenset({"completed", "failed"})

# Statuses a predecessor must reach before the dependent task can be started.
REQUIREMENT_STATUS = ["Started", "AvailableForStart"]


def utcnow() -> datetime:
    return datetime.now(UTC)


# --- Wiki list & raw pages ---


class ListEntry(BaseModel):
    name: str = Field(min_length=1)
    source_url: str = Field(alias="sourceUrl")
    owning_category: str = Field(alias="owningCategory")

    model_config = {"populate_by_name": True}


class RawPage(BaseModel):
    item_id: str = Field(alias="itemId", min_length=1)
    item_name: str = Field(alias="itemName")
    source_url: str = Field(alias="sourceUrl")
    html: str
    fetched_at: datetime = Field(default_factory=utcnow, alias="fetchedAt")
    last_used_at: datetime | None = Field(default=None, alias="lastUsedAt")
    job_id: str | None = Field(default=None, alias="jobId")

    model_config = {"populate_by_name": True}


class WikiImage(BaseModel):
    url: str = Field(min_length=1)
    content: bytes
    mime_type: str = Field(default="image/png", alias="mimeType")
    last_updated: datetime = Field(default_factory=utcnow, alias="lastUpdated")

    model_config = {"populate_by_name": True}

    @property
    def data_uri(self) -> str:
        encoded = base64.b64encode(self.content).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


# --- Extraction output ---


class QuestLink(BaseModel):
    name: str
    source_url: str = Field(alias="sourceUrl")

    model_config = {"populate_by_name": True}


class Objective(BaseModel):
    id: str
    category: str = "Objective"
    description: str | None = None
    is_optional: bool = Field(default=False, alias="isOptional")
    map_names: list[str] | None = Field(default=None, alias="mapNames")

    model_config = {"populate_by_name": True}


class ReputationReward(BaseModel):
    group_name: str = Field(alias="groupName")
    amount: float

    model_config = {"populate_by_name": True}


class ExtractedQuest(BaseModel):
    item_id: str = Field(alias="itemId")
    item_name: str = Field(alias="itemName")
    source_url: str = Field(alias="sourceUrl")
    predecessor_names: list[str] | None = Field(default=None, alias="predecessorNames")
    predecessor_links: list[QuestLink] | None = Field(default=None, alias="predecessorLinks")
    successor_names: list[str] | None = Field(default=None, alias="successorNames")
    min_player_level: int | None = Field(default=None, alias="minPlayerLevel", gt=0)
    requirements_text: str | None = Field(default=None, alias="requirementsText")
    location: str | None = None
    given_by: str | None = Field(default=None, alias="givenBy")
    kappa_required: bool | None = Field(default=None, alias="kappaRequired")
    lightkeeper_required: bool | None = Field(default=None, alias="lightkeeperRequired")
    experience: int | None = None
    reputation: list[ReputationReward] | None = None
    other_rewards: list[str] | None = Field(default=None, alias="otherRewards")
    image_url: str | None = Field(default=None, alias="imageUrl")
    objectives: list[Objective] | None = None
    guide_steps: list[str] | None = Field(default=None, alias="guideSteps")
    last_extracted_at: datetime = Field(default_factory=utcnow, alias="lastExtractedAt")
    needs_reextraction: bool = Field(default=False, alias="needsReextraction")

    model_config = {"populate_by_name": True}


# --- Reconciled task ---


class Reference(BaseModel):
    id: str
    name: str
    normalized_name: str | None = Field(default=None, alias="normalizedName")

    model_config = {"populate_by_name": True}


class TraderReference(Reference):
    image_link: str | None = Field(default=None, alias="imageLink")


class RequiredTask(Reference):
    trader: Reference | None = None


class TaskRequirement(BaseModel):
    task: RequiredTask
    status: list[str] = Field(default_factory=lambda: list(REQUIREMENT_STATUS))


class TraderStanding(BaseModel):
    trader: Reference
    standing: float


class FinishRewards(BaseModel):
    trader_standing: list[TraderStanding] = Field(default_factory=list, alias="traderStanding")
    other: list[str] | None = None

    model_config = {"populate_by_name": True}


class TaskObjective(BaseModel):
    id: str
    category: str
    description: str | None = None
    optional: bool = False
    maps: list[Reference] | None = None


class Task(BaseModel):
    id: str = Field(min_length=1)
    name: str
    normalized_name: str = Field(alias="normalizedName")
    min_player_level: int | None = Field(default=None, alias="minPlayerLevel")
    experience: int | None = None
    image_url: str | None = Field(default=None, alias="imageUrl")
    wiki_link: str | None = Field(default=None, alias="wikiLink")
    kappa_required: bool = Field(default=False, alias="kappaRequired")
    lightkeeper_required: bool = Field(default=False, alias="lightkeeperRequired")
    map: Reference | None = None
    trader: TraderReference | None = None
    task_requirements: list[TaskRequirement] | None = Field(
        default=None, alias="taskRequirements"
    )
    finish_rewards: FinishRewards | None = Field(default=None, alias="finishRewards")
    objectives: list[TaskObjective] | None = None
    guide_steps: list[str] | None = Field(default=None, alias="guideSteps")

    model_config = {"populate_by_name": True}

    @property
    def predecessor_ids(self) -> list[str]:
        return [req.task.id for req in self.task_requirements or []]


# --- Jobs ---


class LogEntry(BaseModel):
    timestamp: datetime = Field(default_factory=utcnow)
    level: LogLevel
    message: str
    item_name: str | None = Field(default=None, alias="itemName")
    item_id: str | None = Field(default=None, alias="itemId")
    details: dict[str, Any] | None = None

    model_config = {"populate_by_name": True}


class ScrapingJob(BaseModel):
    job_id: str = Field(alias="jobId")
    status: JobStatus = "running"
    started_at: datetime = Field(default_factory=utcnow, alias="startedAt")
    completed_at: datetime | None = Field(default=None, alias="completedAt")
    total_items: int = Field(default=0, ge=0, alias="totalItems")
    processed_items: int = Field(default=0, ge=0, alias="processedItems")
    successful_items: int = Field(default=0, ge=0, alias="successfulItems")
    failed_items: int = Field(default=0, ge=0, alias="failedItems")
    logs: list[LogEntry] = Field(default_factory=list)

    model_config = {"populate_by_name": True}

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES


class ProgressCheckpoint(BaseModel):
    """
    Resume point of an interrupted scrape.

    ``current_index`` is a low-water mark: every list position up to and
    including it has been processed. Workers over cached pages finish out of
    order, so the ids of all processed items are kept in ``completed_ids``
    and resume skips by id rather than by position.
    """

    job_id: str = Field(alias="jobId")
    current_index: int = Field(default=0, ge=0, alias="currentIndex")
    total_items: int = Field(default=0, ge=0, alias="totalItems")
    last_processed_item_name: str | None = Field(default=None, alias="lastProcessedItemName")
    completed_ids: list[str] = Field(default_factory=list, alias="completedIds")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")

    model_config = {"populate_by_name": True, "frozen": True}

    def advance(
        self, index: int, item_name: str, item_id: str | None = None
    ) -> ProgressCheckpoint:
        completed = self.completed_ids
        if item_id is not None and item_id not in completed:
            completed = [*completed, item_id]
        return self.model_copy(
            update={
                "current_index": index,
                "last_processed_item_name": item_name,
                "completed_ids": completed,
                "updated_at": utcnow(),
            }
        )


class QuestCollection(BaseModel):
    tasks: list[Task] = Field(default_factory=list)
    total_count: int = Field(default=0, ge=0, alias="totalCount")
    last_fetched: datetime = Field(default_factory=utcnow, alias="lastFetched")
    last_updated: datetime | None = Field(default=None, alias="lastUpdated")
    progress: ProgressCheckpoint | None = None

    model_config = {"populate_by_name": True}
