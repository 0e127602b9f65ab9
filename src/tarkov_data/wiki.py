"""
Escape from Tarkov Fandom wiki client for fetching rendered quest pages.

Pages are fetched as plain rendered HTML (the same document a browser gets),
not through the MediaWiki parse API, since the navbox and infobox classes the
extractors rely on only exist in the rendered skin. Page fetches are never
retried; the job orchestrator records a failed item instead.
"""

import logging
from urllib.parse import quote

import httpx

from tarkov_data.config import get_settings
from tarkov_data.exceptions import WikiError

log = logging.getLogger(__name__)

_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}

QUEST_LIST_PATH = "/wiki/Quests"


def default_list_url() -> str:
    return get_settings().wiki_base_url.rstrip("/") + QUEST_LIST_PATH


def wiki_url_for_name(name: str) -> str:
    title = quote("_".join(name.split()), safe="'()!,:")
    return f"{get_settings().wiki_base_url.rstrip('/')}/wiki/{title}"


def fetch_page_html(url: str) -> str:
    if not url or not url.strip():
        raise WikiError("Page URL cannot be empty")

    settings = get_settings()
    log.debug("Fetching wiki page %s", url)
    try:
        response = httpx.get(
            url,
            headers=_HEADERS,
            timeout=settings.api_timeout,
            follow_redirects=True,
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise WikiError(
            f"Failed to fetch wiki page '{url}': HTTP {e.response.status_code}"
        ) from e
    except httpx.RequestError as e:
        raise WikiError(f"Network error fetching wiki page '{url}': {e}") from e

    html = response.text
    if not html.strip():
        raise WikiError(f"Wiki page '{url}' returned an empty document")
    return html


def fetch_image(url: str) -> tuple[bytes, str]:
    if not url or not url.strip():
        raise WikiError("Image URL cannot be empty")

    settings = get_settings()
    log.debug("Fetching wiki image %s", url)
    try:
        response = httpx.get(
            url,
            headers={"User-Agent": _HEADERS["User-Agent"]},
            timeout=settings.api_timeout,
            follow_redirects=True,
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise WikiError(f"Failed to fetch image '{url}': HTTP {e.response.status_code}") from e
    except httpx.RequestError as e:
        raise WikiError(f"Network error fetching image '{url}': {e}") from e

    content = response.content
    if not content:
        raise WikiError(f"Image '{url}' returned no data")
    mime_type = response.headers.get("content-type") or "image/png"
    return content, mime_type.split(";")[0].strip()
