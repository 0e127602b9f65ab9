"""
Convert extracted wiki quests into tarkov.dev-shaped task records.

Predecessors are resolved against the batch being converted: first by exact
page URL from the relation links, then by fuzzy name match for any names the
links did not cover. Predecessors that do not appear in the batch are
dropped.
"""

import logging

from tarkov_data.matching import compact_name, names_match, normalize_name, slugify
from tarkov_data.models import (
    ExtractedQuest,
    FinishRewards,
    Reference,
    RequiredTask,
    Task,
    TaskObjective,
    TaskRequirement,
    TraderReference,
    TraderStanding,
)
from tarkov_data.types import Trader

log = logging.getLogger(__name__)


def find_trader(name: str | None, traders: list[Trader]) -> Trader | None:
    if not name:
        return None
    lowered = name.strip().lower()
    compact = compact_name(name)
    for trader in traders:
        if trader["name"].lower() == lowered:
            return trader
        if trader.get("normalizedName", "").lower() == compact:
            return trader
    return None


def _map_reference(name: str) -> Reference:
    return Reference(id=slugify(name), name=name, normalized_name=compact_name(name))


def _required_task(
    predecessor: ExtractedQuest, name: str, traders: list[Trader]
) -> TaskRequirement:
    trader = find_trader(predecessor.given_by, traders)
    return TaskRequirement(
        task=RequiredTask(
            id=predecessor.item_id,
            name=name,
            normalized_name=normalize_name(name),
            trader=Reference(id=trader["id"], name=trader["name"]) if trader else None,
        )
    )


def _resolve_requirements(
    record: ExtractedQuest, batch: list[ExtractedQuest], traders: list[Trader]
) -> list[TaskRequirement]:
    requirements: list[TaskRequirement] = []
    resolved_ids: set[str] = set()

    by_url = {quest.source_url: quest for quest in batch if quest.source_url}
    for link in record.predecessor_links or []:
        predecessor = by_url.get(link.source_url)
        if predecessor is None or predecessor.item_id in resolved_ids:
            continue
        resolved_ids.add(predecessor.item_id)
        requirements.append(_required_task(predecessor, link.name, traders))

    names = record.predecessor_names or []
    if names and (not requirements or len(requirements) < len(names)):
        matched_names = {req.task.name.lower() for req in requirements}
        for name in names:
            if name.lower() in matched_names:
                continue
            predecessor = next(
                (
                    quest
                    for quest in batch
                    if quest.item_id != record.item_id and names_match(quest.item_name, name)
                ),
                None,
            )
            if predecessor is None or predecessor.item_id in resolved_ids:
                continue
            resolved_ids.add(predecessor.item_id)
            requirements.append(_required_task(predecessor, name, traders))

    return requirements


def _finish_rewards(record: ExtractedQuest, traders: list[Trader]) -> FinishRewards | None:
    standings = []
    for reward in record.reputation or []:
        trader = find_trader(reward.group_name, traders)
        standings.append(
            TraderStanding(
                trader=Reference(
                    id=trader["id"] if trader else slugify(reward.group_name),
                    name=trader["name"] if trader else reward.group_name,
                ),
                standing=reward.amount,
            )
        )
    if not standings and not record.other_rewards:
        return None
    return FinishRewards(trader_standing=standings, other=record.other_rewards)


def convert_quest(
    record: ExtractedQuest, batch: list[ExtractedQuest], traders: list[Trader]
) -> Task:
    trader = find_trader(record.given_by, traders)
    requirements = _resolve_requirements(record, batch, traders)

    objectives = [
        TaskObjective(
            id=objective.id,
            category=objective.category,
            description=objective.description,
            optional=objective.is_optional,
            maps=[_map_reference(name) for name in objective.map_names]
            if objective.map_names
            else None,
        )
        for objective in record.objectives or []
    ]

    return Task(
        id=record.item_id,
        name=record.item_name,
        normalized_name=normalize_name(record.item_name),
        min_player_level=record.min_player_level,
        experience=record.experience,
        image_url=record.image_url,
        wiki_link=record.source_url,
        kappa_required=bool(record.kappa_required),
        lightkeeper_required=bool(record.lightkeeper_required),
        map=_map_reference(record.location) if record.location else None,
        trader=TraderReference(
            id=trader["id"],
            name=trader["name"],
            normalized_name=trader.get("normalizedName") or compact_name(trader["name"]),
            image_link=trader.get("image4xLink"),
        )
        if trader
        else None,
        task_requirements=requirements or None,
        finish_rewards=_finish_rewards(record, traders),
        objectives=objectives or None,
        guide_steps=record.guide_steps or None,
    )


def convert_quests(batch: list[ExtractedQuest], traders: list[Trader]) -> list[Task]:
    if not traders:
        log.warning("Trader roster unavailable; tasks will carry no trader references")
    return [convert_quest(record, batch, traders) for record in batch]
