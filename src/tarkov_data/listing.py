"""
Quest list extraction from the wiki's "Quests" navbox.

The list page groups quests by the trader who gives them: every navbox brick
holds rows whose group cell names the trader and whose companion cell links
each quest. Rows for non-trader groupings are skipped.
"""

import logging
from urllib.parse import unquote, urljoin

from tarkov_data import dom
from tarkov_data.exceptions import WikiError
from tarkov_data.models import ListEntry
from tarkov_data.wiki import default_list_url, fetch_page_html

log = logging.getLogger(__name__)

SENTINEL_GROUPS = frozenset({"Quests", "Operational Tasks", "Miscellaneous"})


def _entry_name(text: str, href: str) -> str:
    if text and text != "-":
        return text
    _, _, title = href.partition("/wiki/")
    return unquote(title.split("?")[0]).replace("_", " ").strip()


def parse_quest_list(html: str, base_url: str) -> list[ListEntry]:
    doc = dom.parse_html(html)
    entries: list[ListEntry] = []
    seen_urls: set[str] = set()
    seen_names: set[tuple[str, str]] = set()

    for brick in doc.select(".va-navbox-brick"):
        for row in brick.find_all("tr"):
            group_cell = row.select_one(".va-navbox-group")
            if group_cell is None:
                continue
            owner_link = group_cell.find("a")
            owner = dom.text_of(owner_link) if owner_link is not None else dom.text_of(group_cell)
            if not owner or owner in SENTINEL_GROUPS:
                continue

            quest_cell = row.select_one(".va-navbox-cell")
            if quest_cell is None:
                continue
            owner_href = owner_link.get("href") if owner_link is not None else None

            for link in dom.wiki_links(quest_cell):
                href = str(link["href"])
                text = dom.text_of(link)
                if href == owner_href or not text:
                    continue
                if text == owner or any(sentinel in text for sentinel in SENTINEL_GROUPS):
                    continue

                url = urljoin(base_url.rstrip("/") + "/", href)
                name = _entry_name(text, href)
                if not name or url in seen_urls or (name, owner) in seen_names:
                    continue
                seen_urls.add(url)
                seen_names.add((name, owner))
                entries.append(ListEntry(name=name, source_url=url, owning_category=owner))

    return entries


def extract_all_quests(url: str | None = None) -> list[ListEntry]:
    list_url = url or default_list_url()
    try:
        html = fetch_page_html(list_url)
    except WikiError as e:
        log.error("Failed to fetch quest list page %s: %s", list_url, e)
        return []

    entries = parse_quest_list(html, list_url)
    log.info("Found %d quests on %s", len(entries), list_url)
    return entries
