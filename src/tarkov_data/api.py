"""
tarkov.dev GraphQL client for the authoritative trader and task data.

Wraps the public GraphQL endpoint with caching, retry with exponential
backoff and error handling. Responses are cached for a day since quest
data only changes with game patches.
"""

import logging
import time
from typing import Any

import httpx

from tarkov_data.cache import CacheClient
from tarkov_data.config import get_settings
from tarkov_data.exceptions import APIError
from tarkov_data.types import ApiTask, Trader

log = logging.getLogger(__name__)

TRADERS_QUERY = """
query traders {
  traders {
    id
    name
    normalizedName
    image4xLink
  }
}
"""

TASKS_QUERY = """
query tasks {
  tasks(gameMode: regular, limit: 9999) {
    id
    name
    normalizedName
    minPlayerLevel
    experience
    wikiLink
    kappaRequired
    lightkeeperRequired
    trader {
      id
      name
      normalizedName
    }
    taskRequirements {
      task {
        id
        name
        normalizedName
      }
      status
    }
  }
}
"""


def _execute_query(query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
    settings = get_settings()
    try:
        response = httpx.post(
            settings.api_url,
            json={"query": query, "variables": variables or {}},
            timeout=settings.api_timeout,
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise APIError(f"GraphQL request failed: HTTP {e.response.status_code}") from e
    except httpx.RequestError as e:
        raise APIError(f"Network error executing GraphQL query: {e}") from e

    try:
        payload: dict[str, Any] = response.json()
    except (ValueError, TypeError) as e:
        raise APIError("Invalid JSON response from GraphQL endpoint") from e

    if payload.get("errors"):
        messages = ", ".join(err.get("message", "unknown") for err in payload["errors"])
        raise APIError(f"GraphQL errors: {messages}")

    if "data" not in payload or payload["data"] is None:
        raise APIError("Unexpected GraphQL response format: missing 'data'")

    return payload["data"]


def execute_query_with_retry(query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
    settings = get_settings()
    last_error: APIError | None = None

    for attempt in range(settings.api_retries):
        try:
            return _execute_query(query, variables)
        except APIError as e:
            last_error = e
            if attempt < settings.api_retries - 1:
                delay = settings.api_retry_delay * (2**attempt)
                log.warning(
                    "GraphQL attempt %d/%d failed (%s), retrying in %.1fs",
                    attempt + 1,
                    settings.api_retries,
                    e,
                    delay,
                )
                time.sleep(delay)

    raise last_error or APIError("GraphQL query failed after retries")


def get_traders(cache: CacheClient, *, force: bool = False) -> list[Trader]:
    if not force:
        cached = cache.get_api_traders()
        if cached is not None:
            log.info("Traders: using cached API data")
            return cached

    log.info("Traders: fetching from tarkov.dev")
    data = execute_query_with_retry(TRADERS_QUERY)
    traders: list[Trader] = data.get("traders") or []
    cache.set_api_traders(traders)
    return traders


def get_tasks(cache: CacheClient, *, force: bool = False) -> list[ApiTask]:
    if not force:
        cached = cache.get_api_tasks()
        if cached is not None:
            log.info("Tasks: using cached API data")
            return cached

    log.info("Tasks: fetching from tarkov.dev")
    data = execute_query_with_retry(TASKS_QUERY)
    tasks: list[ApiTask] = data.get("tasks") or []
    cache.set_api_tasks(tasks)
    return tasks


def index_tasks_by_name(tasks: list[ApiTask]) -> dict[str, ApiTask]:
    return {clean_name(task["name"]).lower(): task for task in tasks if task.get("name")}


def requirement_names(task: ApiTask) -> list[str]:
    return [
        req["task"]["name"]
        for req in task.get("taskRequirements") or []
        if req.get("task") and req["task"].get("name")
    ]


def clean_name(name: str) -> str:
    return " ".join(name.replace("\n", " ").replace("\r", " ").split())
