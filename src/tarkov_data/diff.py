"""
Git-diff style comparison of a fresh extraction against tarkov.dev and the
previous extraction of the same quest.

Reports are informational only: they become job log lines and never block
persistence.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field

from tarkov_data.api import requirement_names
from tarkov_data.models import ExtractedQuest, LogLevel
from tarkov_data.types import ApiTask

log = logging.getLogger(__name__)

DIFF_HEADER = "--- API Data\n+++ Wiki Data"
MAX_COMMON_SHOWN = 5


class DiffReport(BaseModel):
    lines: list[str] = Field(default_factory=list)
    has_differences: bool = False
    changes: list[str] = Field(default_factory=list)
    summary: list[str] = Field(default_factory=list)
    api_prerequisites: list[str] = Field(default_factory=list)
    wiki_prerequisites: list[str] = Field(default_factory=list)

    @property
    def level(self) -> LogLevel:
        return "warning" if self.has_differences or self.changes else "success"

    def message(self) -> str:
        if self.lines or self.has_differences:
            message = DIFF_HEADER
            if self.lines:
                message += "\n" + "\n".join(self.lines)
        elif self.summary:
            message = f"Scraped successfully: {', '.join(self.summary)}"
        else:
            message = "Scraped successfully (no quest relationships found)"

        if self.changes:
            bullets = "\n".join(f"  • {change}" for change in self.changes)
            message += f"\n\nPrevious scrape changes:\n{bullets}"
        return message

    def details(self) -> dict[str, Any]:
        api = set(self.api_prerequisites)
        wiki = set(self.wiki_prerequisites)
        return {
            "diffLines": self.lines,
            "hasDifferences": self.has_differences,
            "extracted": self.summary,
            "differences": self.changes,
            "apiPrerequisites": self.api_prerequisites,
            "wikiPrerequisites": self.wiki_prerequisites,
            "apiOnly": sorted(api - wiki),
            "wikiOnly": sorted(wiki - api),
        }


def _level_block(api_level: int | None, wiki_level: int | None) -> tuple[list[str], bool]:
    if api_level != wiki_level:
        lines = ["Level:"]
        if api_level:
            lines.append(f"- {api_level} (API)")
        if wiki_level:
            lines.append(f"+ {wiki_level} (Wiki)")
        if not api_level and not wiki_level:
            lines.append("  (both empty)")
        return lines, True
    if api_level and wiki_level:
        return ["Level:", f"  {api_level} (matches)"], False
    return [], False


def _prerequisite_block(api_names: set[str], wiki_names: set[str]) -> tuple[list[str], bool]:
    api_only = sorted(api_names - wiki_names)
    wiki_only = sorted(wiki_names - api_names)
    common = sorted(api_names & wiki_names)
    if not (api_only or wiki_only or common):
        return [], False

    lines = ["Prerequisites:"]
    lines.extend(f"- {name} (API only)" for name in api_only)
    lines.extend(f"+ {name} (Wiki only)" for name in wiki_only)
    if common and not api_only and not wiki_only:
        lines.append(f"  {len(common)} prerequisite(s) match")
    elif common:
        lines.extend(f"  {name} (both)" for name in common[:MAX_COMMON_SHOWN])
        if len(common) > MAX_COMMON_SHOWN:
            lines.append(f"  ... and {len(common) - MAX_COMMON_SHOWN} more matching")
    return lines, bool(api_only or wiki_only)


def _prior_changes(fresh: ExtractedQuest, prior: ExtractedQuest) -> list[str]:
    changes = []
    before = set(prior.predecessor_names or [])
    after = set(fresh.predecessor_names or [])
    if before != after:
        changes.append(f"Previous quests changed: {len(before)} -> {len(after)}")

    before = set(prior.successor_names or [])
    after = set(fresh.successor_names or [])
    if before != after:
        changes.append(f"Leads to quests changed: {len(before)} -> {len(after)}")

    if prior.min_player_level != fresh.min_player_level:
        changes.append(
            f"Level changed: {prior.min_player_level or 'N/A'} -> {fresh.min_player_level or 'N/A'}"
        )
    return changes


def _summary(fresh: ExtractedQuest) -> list[str]:
    summary = []
    if fresh.predecessor_names:
        summary.append(f"{len(fresh.predecessor_names)} previous quest(s)")
    if fresh.successor_names:
        summary.append(f"{len(fresh.successor_names)} leads to quest(s)")
    if fresh.min_player_level:
        summary.append(f"Level {fresh.min_player_level}")
    return summary


def build_diff_report(
    fresh: ExtractedQuest,
    api_task: ApiTask | None = None,
    prior: ExtractedQuest | None = None,
) -> DiffReport:
    lines: list[str] = []
    has_differences = False
    api_prerequisites: list[str] = []

    if api_task is not None:
        level_lines, level_differs = _level_block(
            api_task.get("minPlayerLevel"), fresh.min_player_level
        )
        api_prerequisites = requirement_names(api_task)
        prereq_lines, prereqs_differ = _prerequisite_block(
            set(api_prerequisites), set(fresh.predecessor_names or [])
        )
        lines.extend(level_lines)
        lines.extend(prereq_lines)
        has_differences = level_differs or prereqs_differ

        if fresh.successor_names:
            lines.append("Leads To:")
            lines.extend(f"+ {name} (Wiki only)" for name in fresh.successor_names)

    return DiffReport(
        lines=lines,
        has_differences=has_differences,
        changes=_prior_changes(fresh, prior) if prior is not None else [],
        summary=_summary(fresh),
        api_prerequisites=api_prerequisites,
        wiki_prerequisites=list(fresh.predecessor_names or []),
    )


def safe_diff_report(
    fresh: ExtractedQuest,
    api_task: ApiTask | None = None,
    prior: ExtractedQuest | None = None,
) -> DiffReport:
    try:
        return build_diff_report(fresh, api_task, prior)
    except Exception:
        log.exception("Failed to build diff report for '%s'", fresh.item_name)
        return DiffReport()
