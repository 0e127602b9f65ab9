"""
Single-quest pipeline: fetch-or-cache the page, then run the field extractors.

Fetch failures propagate as WikiError so the caller can record a failed
item; a page that parses but carries no recognizable quest content yields
None.
"""

import logging

from tarkov_data.config import get_settings
from tarkov_data.extractors import extract_quest_page
from tarkov_data.matching import slugify
from tarkov_data.models import ExtractedQuest, ListEntry
from tarkov_data.pages import PageStore
from tarkov_data.wiki import fetch_page_html

log = logging.getLogger(__name__)

_CONTENT_FIELDS = (
    "predecessor_names",
    "successor_names",
    "location",
    "given_by",
    "experience",
    "reputation",
    "other_rewards",
    "image_url",
    "objectives",
    "guide_steps",
    "requirements_text",
)


def load_page_html(
    entry: ListEntry, pages: PageStore, *, use_cached: bool, job_id: str | None = None
) -> str:
    item_id = slugify(entry.name)
    if use_cached:
        page = pages.get(item_id)
        if page is not None:
            pages.mark_used(item_id, job_id)
            log.debug("Quest '%s': using cached page", entry.name)
            return page.html
        log.info("Quest '%s': not in page store, fetching live", entry.name)

    html = fetch_page_html(entry.source_url)
    pages.put(item_id, entry.name, entry.source_url, html)
    return html


def has_quest_content(extracted: ExtractedQuest) -> bool:
    return any(getattr(extracted, field) for field in _CONTENT_FIELDS)


def scrape_quest(
    entry: ListEntry, pages: PageStore, *, use_cached: bool = True, job_id: str | None = None
) -> ExtractedQuest | None:
    html = load_page_html(entry, pages, use_cached=use_cached, job_id=job_id)
    extracted = extract_quest_page(
        html,
        item_id=slugify(entry.name),
        item_name=entry.name,
        source_url=entry.source_url,
        base_url=get_settings().wiki_base_url,
    )
    if not has_quest_content(extracted):
        log.warning("Quest '%s': page has no recognizable quest content", entry.name)
        return None
    return extracted
