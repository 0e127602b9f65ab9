"""
Type definitions for tarkov.dev GraphQL responses.

Provides TypedDict structures matching the subset of the API schema this
project reads, to enable strict type checking and better IDE support.
"""

from typing import NotRequired, TypedDict


class Trader(TypedDict):
    id: str
    name: str
    normalizedName: NotRequired[str]
    image4xLink: NotRequired[str]


class TaskRef(TypedDict):
    id: str
    name: str
    normalizedName: NotRequired[str]


class TaskRequirementRef(TypedDict):
    task: TaskRef
    status: NotRequired[list[str]]


class ApiTask(TypedDict):
    id: str
    name: str
    normalizedName: NotRequired[str]
    minPlayerLevel: NotRequired[int | None]
    experience: NotRequired[int | None]
    wikiLink: NotRequired[str | None]
    kappaRequired: NotRequired[bool | None]
    lightkeeperRequired: NotRequired[bool | None]
    trader: NotRequired[TaskRef | None]
    taskRequirements: NotRequired[list[TaskRequirementRef]]
