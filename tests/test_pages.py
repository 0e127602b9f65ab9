"""Tests for pages module."""

import pytest

from tarkov_data.cache import CacheClient
from tarkov_data.exceptions import StoreError
from tarkov_data.pages import PageStore

URL = "https://escapefromtarkov.fandom.com/wiki/Shootout_picnic"


@pytest.fixture
def pages(cache_client: CacheClient) -> PageStore:
    return PageStore(cache_client)


def test_put_and_get(pages: PageStore):
    pages.put("shootout-picnic", "Shootout picnic", URL, "<p>v1</p>")

    page = pages.get("shootout-picnic")

    assert page is not None
    assert page.item_name == "Shootout picnic"
    assert page.source_url == URL
    assert page.html == "<p>v1</p>"
    assert page.last_used_at is None
    assert pages.has("shootout-picnic")


def test_get_missing(pages: PageStore):
    assert pages.get("debut") is None
    assert not pages.has("debut")


def test_put_rejects_mismatched_id(pages: PageStore):
    with pytest.raises(StoreError, match="does not match slug"):
        pages.put("picnic", "Shootout picnic", URL, "<p>x</p>")


def test_refetch_replaces_html_and_keeps_usage(pages: PageStore):
    pages.put("shootout-picnic", "Shootout picnic", URL, "<p>v1</p>")
    pages.mark_used("shootout-picnic", "job-1")
    used = pages.get("shootout-picnic")

    pages.put("shootout-picnic", "Shootout picnic", URL, "<p>v2</p>")
    page = pages.get("shootout-picnic")

    assert page.html == "<p>v2</p>"
    assert page.last_used_at == used.last_used_at
    assert page.job_id == "job-1"
    assert page.fetched_at >= used.fetched_at


def test_mark_used_without_job_keeps_job_id(pages: PageStore):
    pages.put("debut", "Debut", URL, "<p>x</p>")
    pages.mark_used("debut", "job-1")

    pages.mark_used("debut")

    page = pages.get("debut")
    assert page.job_id == "job-1"
    assert page.last_used_at is not None


def test_mark_used_missing_page_is_noop(pages: PageStore):
    pages.mark_used("debut", "job-1")
    assert pages.get("debut") is None


def test_mark_used_failure_is_logged(mocker, pages: PageStore, caplog):
    pages.put("debut", "Debut", URL, "<p>x</p>")
    mocker.patch.object(CacheClient, "set_raw_page", side_effect=OSError("disk full"))

    pages.mark_used("debut", "job-1")

    assert "Failed to mark page 'debut' as used" in caplog.text


def test_status(pages: PageStore):
    assert pages.status().total == 0
    assert pages.status().oldest_fetch is None

    pages.put("debut", "Debut", URL, "<p>1</p>")
    pages.put("shortage", "Shortage", URL, "<p>2</p>")
    pages.mark_used("debut")

    status = pages.status()

    assert status.total == 2
    assert pages.count() == 2
    assert status.oldest_fetch <= status.newest_fetch
    assert status.last_used == pages.get("debut").last_used_at
