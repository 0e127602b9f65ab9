"""Tests for scraper module."""

from pathlib import Path

import pytest

from tarkov_data import scraper
from tarkov_data.exceptions import WikiError
from tarkov_data.models import ExtractedQuest, ListEntry
from tarkov_data.pages import PageStore

FIXTURE_HTML = (Path(__file__).parent / "fixtures" / "shootout_picnic.html").read_text(
    encoding="utf-8"
)

ENTRY = ListEntry(
    name="Shootout picnic",
    source_url="https://escapefromtarkov.fandom.com/wiki/Shootout_picnic",
    owning_category="Prapor",
)


@pytest.fixture
def pages(cache_client) -> PageStore:
    return PageStore(cache_client)


class TestLoadPageHtml:
    def test_cached_page_is_used(self, mocker, pages: PageStore):
        pages.put("shootout-picnic", ENTRY.name, ENTRY.source_url, "<p>cached</p>")
        mock_fetch = mocker.patch("tarkov_data.scraper.fetch_page_html")

        html = scraper.load_page_html(ENTRY, pages, use_cached=True, job_id="job-1")

        assert html == "<p>cached</p>"
        mock_fetch.assert_not_called()
        assert pages.get("shootout-picnic").job_id == "job-1"

    def test_cache_miss_fetches_and_stores(self, mocker, pages: PageStore):
        mock_fetch = mocker.patch(
            "tarkov_data.scraper.fetch_page_html", return_value="<p>live</p>"
        )

        html = scraper.load_page_html(ENTRY, pages, use_cached=True)

        assert html == "<p>live</p>"
        mock_fetch.assert_called_once_with(ENTRY.source_url)
        assert pages.get("shootout-picnic").html == "<p>live</p>"

    def test_live_mode_ignores_cache(self, mocker, pages: PageStore):
        pages.put("shootout-picnic", ENTRY.name, ENTRY.source_url, "<p>old</p>")
        mocker.patch("tarkov_data.scraper.fetch_page_html", return_value="<p>new</p>")

        html = scraper.load_page_html(ENTRY, pages, use_cached=False)

        assert html == "<p>new</p>"
        assert pages.get("shootout-picnic").html == "<p>new</p>"

    def test_fetch_errors_propagate(self, mocker, pages: PageStore):
        mocker.patch(
            "tarkov_data.scraper.fetch_page_html", side_effect=WikiError("HTTP 404")
        )

        with pytest.raises(WikiError):
            scraper.load_page_html(ENTRY, pages, use_cached=False)
        assert not pages.has("shootout-picnic")


class TestScrapeQuest:
    def test_extracts_from_cached_page(self, mocker, pages: PageStore):
        pages.put("shootout-picnic", ENTRY.name, ENTRY.source_url, FIXTURE_HTML)
        mocker.patch("tarkov_data.scraper.fetch_page_html")

        extracted = scraper.scrape_quest(ENTRY, pages)

        assert extracted.item_id == "shootout-picnic"
        assert extracted.item_name == "Shootout picnic"
        assert extracted.source_url == ENTRY.source_url
        assert extracted.predecessor_names == ["Debut"]
        assert extracted.given_by == "Prapor"

    def test_page_without_content_returns_none(self, mocker, pages: PageStore):
        mocker.patch(
            "tarkov_data.scraper.fetch_page_html",
            return_value="<html><body><p>This page does not exist.</p></body></html>",
        )

        assert scraper.scrape_quest(ENTRY, pages, use_cached=False) is None


def test_has_quest_content():
    bare = ExtractedQuest(item_id="debut", item_name="Debut", source_url="u")

    assert not scraper.has_quest_content(bare)
    assert scraper.has_quest_content(bare.model_copy(update={"experience": 100}))
    assert scraper.has_quest_content(bare.model_copy(update={"successor_names": ["Shortage"]}))
