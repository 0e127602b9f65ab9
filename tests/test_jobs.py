"""Tests for jobs module."""

import pytest

from tarkov_data.cache import CacheClient
from tarkov_data.exceptions import APIError, JobError, WikiError
from tarkov_data.jobs import JobLogChannel, JobStore, ScrapeJobRunner
from tarkov_data.matching import slugify
from tarkov_data.models import ListEntry, LogEntry, ProgressCheckpoint, Task
from tarkov_data.pages import PageStore
from tarkov_data.records import QuestRecordStore

WIKI = "https://escapefromtarkov.fandom.com/wiki"

FIRST = "Living High is Not a Crime"
SECOND = "Shootout picnic"
THIRD = "Delivery from the Past"
FIRST_ID, SECOND_ID, THIRD_ID = slugify(FIRST), slugify(SECOND), slugify(THIRD)


def _url(name: str) -> str:
    return f"{WIKI}/{name.replace(' ', '_')}"


def _page(previous: str = "") -> str:
    relations = ""
    if previous:
        relations = (
            "<table class='va-infobox-group'><tr><th>Related quests</th></tr>"
            f"<tr><td>Previous: {previous}</td></tr></table>"
        )
    return (
        "<html><body><div class='mw-parser-output'>"
        f"{relations}<h2>Rewards</h2><ul><li>+500 EXP</li></ul>"
        "</div></body></html>"
    )


ENTRIES = [
    ListEntry(name=name, source_url=_url(name), owning_category="Prapor")
    for name in (FIRST, SECOND, THIRD)
]

PAGES = {
    _url(FIRST): _page(),
    _url(SECOND): _page(f"<a href='/wiki/{FIRST.replace(' ', '_')}'>{FIRST}</a>"),
    # Plain text with a misspelled word; only the token-overlap rule matches it.
    _url(THIRD): _page("Living Hihg is Not a Crime"),
}


@pytest.fixture(autouse=True)
def no_request_delay(monkeypatch):
    monkeypatch.setenv("TARKOV_REQUEST_DELAY", "0")


@pytest.fixture
def mock_fetch(mocker):
    return mocker.patch("tarkov_data.scraper.fetch_page_html", side_effect=PAGES.__getitem__)


def _runner(cache: CacheClient, **kwargs) -> ScrapeJobRunner:
    kwargs.setdefault("traders", [])
    kwargs.setdefault("api_tasks", [])
    return ScrapeJobRunner(cache, **kwargs)


def _messages(job) -> list[str]:
    return [entry.message for entry in job.logs]


def _predecessors(cache: CacheClient) -> dict[str, list[str]]:
    return {task.id: task.predecessor_ids for task in QuestRecordStore(cache).get_tasks()}


def _fetched(mock_fetch) -> list[str]:
    return [c.args[0] for c in mock_fetch.call_args_list]


EXPECTED_PREDECESSORS = {
    FIRST_ID: [],
    SECOND_ID: [FIRST_ID],
    THIRD_ID: [FIRST_ID],
}


class TestJobStore:
    def test_create(self, cache_client: CacheClient):
        store = JobStore(cache_client)

        job = store.create()

        assert job.status == "running"
        assert store.get(job.job_id) == job
        assert store.get("missing") is None

    def test_counters(self, cache_client: CacheClient):
        store = JobStore(cache_client)
        job_id = store.create().job_id

        store.set_total(job_id, 2)
        store.record_item(job_id, success=True)
        job = store.record_item(job_id, success=False)

        assert (job.total_items, job.processed_items) == (2, 2)
        assert (job.successful_items, job.failed_items) == (1, 1)

    def test_logs_append_in_order(self, cache_client: CacheClient):
        store = JobStore(cache_client)
        job_id = store.create().job_id

        store.append_logs(job_id, [LogEntry(level="info", message="one")])
        store.append_logs(job_id, [LogEntry(level="error", message="two")])

        assert _messages(store.get(job_id)) == ["one", "two"]

    def test_terminal_job_is_read_only(self, cache_client: CacheClient):
        store = JobStore(cache_client)
        job_id = store.create().job_id

        finished = store.finish(job_id, "completed")

        assert finished.completed_at is not None
        with pytest.raises(JobError, match="already completed"):
            store.append_logs(job_id, [LogEntry(level="info", message="late")])
        with pytest.raises(JobError):
            store.record_item(job_id, success=True)
        with pytest.raises(JobError):
            store.finish(job_id, "failed")

    def test_cannot_finish_as_running(self, cache_client: CacheClient):
        store = JobStore(cache_client)
        job_id = store.create().job_id

        with pytest.raises(JobError):
            store.finish(job_id, "running")

    def test_unknown_job(self, cache_client: CacheClient):
        with pytest.raises(JobError, match="Unknown job"):
            JobStore(cache_client).set_total("missing", 1)


def test_log_channel_drains_in_order():
    channel = JobLogChannel("job-1")
    channel.emit("info", "first")
    channel.emit("success", "second", item_name="Debut", item_id="debut")

    entries = channel.drain()

    assert [e.message for e in entries] == ["first", "second"]
    assert entries[1].item_id == "debut"
    assert channel.drain() == []


class TestLiveRun:
    def test_end_to_end(self, cache_client: CacheClient, mock_fetch):
        runner = _runner(cache_client, use_cached_pages=False)
        job_id = runner.jobs.create().job_id

        outcome = runner.run(job_id, ENTRIES)

        assert outcome.status == "completed"
        assert (outcome.processed, outcome.successful, outcome.failed) == (3, 3, 0)
        assert mock_fetch.call_count == 3

        job = runner.jobs.get(job_id)
        assert job.status == "completed"
        assert job.total_items == 3
        assert job.completed_at is not None
        assert job.logs[-1].message == "Scraping complete: 3 succeeded, 0 failed"
        assert job.logs[-1].level == "success"

        assert _predecessors(cache_client) == EXPECTED_PREDECESSORS
        assert QuestRecordStore(cache_client).get_checkpoint() is None
        assert PageStore(cache_client).has(SECOND_ID)

    def test_items_logged_in_list_order(self, cache_client: CacheClient, mock_fetch):
        runner = _runner(cache_client, use_cached_pages=False)
        job_id = runner.jobs.create().job_id

        runner.run(job_id, ENTRIES)

        scraping = [m for m in _messages(runner.jobs.get(job_id)) if "Scraping:" in m]
        assert scraping == [
            f"[1/3] Scraping: {FIRST}",
            f"[2/3] Scraping: {SECOND}",
            f"[3/3] Scraping: {THIRD}",
        ]

    def test_failed_items_are_counted(self, mocker, cache_client: CacheClient):
        def fetch(url):
            if url == _url(SECOND):
                raise WikiError(f"Failed to fetch wiki page '{url}': HTTP 404")
            return PAGES[url]

        mocker.patch("tarkov_data.scraper.fetch_page_html", side_effect=fetch)
        runner = _runner(cache_client, use_cached_pages=False)
        job_id = runner.jobs.create().job_id

        outcome = runner.run(job_id, ENTRIES)

        assert outcome.status == "completed"
        assert (outcome.processed, outcome.successful, outcome.failed) == (3, 2, 1)
        errors = [e for e in runner.jobs.get(job_id).logs if e.level == "error"]
        assert len(errors) == 1
        assert errors[0].item_id == SECOND_ID
        assert "HTTP 404" in errors[0].message

    def test_empty_page_is_a_failure(self, mocker, cache_client: CacheClient):
        mocker.patch(
            "tarkov_data.scraper.fetch_page_html", return_value="<html><body></body></html>"
        )
        runner = _runner(cache_client, use_cached_pages=False)
        job_id = runner.jobs.create().job_id

        outcome = runner.run(job_id, ENTRIES[:1])

        assert outcome.failed == 1
        assert f"Failed to scrape: {FIRST}" in _messages(runner.jobs.get(job_id))

    def test_request_delay_between_fetches(self, mocker, monkeypatch, cache_client, mock_fetch):
        monkeypatch.setenv("TARKOV_REQUEST_DELAY", "1.5")
        mock_sleep = mocker.patch("tarkov_data.jobs.time.sleep")
        runner = _runner(cache_client, use_cached_pages=False)

        runner.run(runner.jobs.create().job_id, ENTRIES)

        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.5, 1.5]

    def test_checkpoint_clear_failure_still_finishes(self, mocker, cache_client, mock_fetch):
        mocker.patch.object(
            QuestRecordStore, "clear_checkpoint", side_effect=OSError("database is locked")
        )
        runner = _runner(cache_client, use_cached_pages=False)
        job_id = runner.jobs.create().job_id

        outcome = runner.run(job_id, ENTRIES[:1])

        assert outcome.status == "completed"
        assert runner.jobs.get(job_id).status == "completed"


class TestCachedRun:
    def test_end_to_end_from_page_store(self, mocker, cache_client: CacheClient):
        pages = PageStore(cache_client)
        for entry in ENTRIES:
            pages.put(slugify(entry.name), entry.name, entry.source_url, PAGES[entry.source_url])
        mock_fetch = mocker.patch("tarkov_data.scraper.fetch_page_html")
        runner = _runner(cache_client, use_cached_pages=True)
        job_id = runner.jobs.create().job_id

        outcome = runner.run(job_id, ENTRIES)

        mock_fetch.assert_not_called()
        assert (outcome.processed, outcome.successful, outcome.failed) == (3, 3, 0)
        assert _predecessors(cache_client) == EXPECTED_PREDECESSORS
        assert pages.get(FIRST_ID).job_id == job_id

        messages = _messages(runner.jobs.get(job_id))
        assert "Starting scrape of 3 quest(s) from cached pages" in messages
        assert {m for m in messages if "Scraping:" in m} == {
            f"[1/3] Scraping: {FIRST}",
            f"[2/3] Scraping: {SECOND}",
            f"[3/3] Scraping: {THIRD}",
        }

    def test_missing_pages_fetched_live(self, cache_client: CacheClient, mock_fetch):
        runner = _runner(cache_client, use_cached_pages=True)

        outcome = runner.run(runner.jobs.create().job_id, ENTRIES)

        assert outcome.successful == 3
        assert mock_fetch.call_count == 3

    def test_checkpoint_tracks_every_finished_item(self, mocker, cache_client, mock_fetch):
        save = mocker.spy(QuestRecordStore, "save_checkpoint")
        runner = _runner(cache_client, use_cached_pages=True)

        runner.run(runner.jobs.create().job_id, ENTRIES)

        last = save.call_args_list[-1].args[1]
        assert set(last.completed_ids) == {FIRST_ID, SECOND_ID, THIRD_ID}
        assert last.current_index == 2


class TestRunOptions:
    def test_empty_list_fails_job(self, cache_client: CacheClient):
        runner = _runner(cache_client)
        job_id = runner.jobs.create().job_id

        outcome = runner.run(job_id, [])

        assert outcome.status == "failed"
        job = runner.jobs.get(job_id)
        assert job.logs[-1].level == "error"
        assert job.logs[-1].message == "No quests found on the quest list page"

    def test_only_missing(self, cache_client: CacheClient, mock_fetch):
        QuestRecordStore(cache_client).upsert_task(
            Task(id=FIRST_ID, name=FIRST, normalized_name=FIRST_ID)
        )
        runner = _runner(cache_client, use_cached_pages=False, only_missing=True)
        job_id = runner.jobs.create().job_id

        outcome = runner.run(job_id, ENTRIES[:2])

        assert outcome.processed == 1
        assert runner.jobs.get(job_id).total_items == 1
        mock_fetch.assert_called_once_with(_url(SECOND))

    def test_only_missing_with_nothing_missing(self, cache_client: CacheClient, mock_fetch):
        QuestRecordStore(cache_client).upsert_task(
            Task(id=FIRST_ID, name=FIRST, normalized_name=FIRST_ID)
        )
        runner = _runner(cache_client, only_missing=True)
        job_id = runner.jobs.create().job_id

        outcome = runner.run(job_id, ENTRIES[:1])

        assert outcome.status == "completed"
        assert outcome.processed == 0
        mock_fetch.assert_not_called()


class TestResume:
    def test_resume_after_last_processed_name(self, cache_client: CacheClient, mock_fetch):
        first = _runner(cache_client, use_cached_pages=False)
        first.run(first.jobs.create().job_id, ENTRIES[:1])
        mock_fetch.reset_mock()

        checkpoint = ProgressCheckpoint(
            job_id="interrupted",
            current_index=0,
            total_items=3,
            last_processed_item_name=FIRST,
        )
        runner = _runner(cache_client, use_cached_pages=False)
        job_id = runner.jobs.create().job_id

        outcome = runner.run(job_id, ENTRIES, checkpoint)

        assert outcome.processed == 2
        assert _fetched(mock_fetch) == [_url(SECOND), _url(THIRD)]
        assert f"Resuming after '{FIRST}' (1/3)" in _messages(runner.jobs.get(job_id))
        assert _predecessors(cache_client) == EXPECTED_PREDECESSORS
        assert QuestRecordStore(cache_client).get_checkpoint() is None

    def test_resume_with_only_missing_scrapes_the_rest(self, cache_client, mock_fetch):
        records = QuestRecordStore(cache_client)
        records.upsert_tasks(
            [
                Task(id=FIRST_ID, name=FIRST, normalized_name=FIRST_ID),
                Task(id=SECOND_ID, name=SECOND, normalized_name=SECOND_ID),
            ]
        )
        checkpoint = ProgressCheckpoint(
            job_id="interrupted",
            current_index=1,
            total_items=3,
            last_processed_item_name=SECOND,
        )
        runner = _runner(cache_client, use_cached_pages=False, only_missing=True)
        job_id = runner.jobs.create().job_id

        outcome = runner.run(job_id, ENTRIES, checkpoint)

        assert outcome.status == "completed"
        assert outcome.processed == 1
        assert _fetched(mock_fetch) == [_url(THIRD)]
        assert THIRD_ID in {task.id for task in records.get_tasks()}

    def test_resume_skips_by_completed_ids(self, cache_client: CacheClient, mock_fetch):
        # Workers finished the first and third items before the second.
        checkpoint = ProgressCheckpoint(
            job_id="interrupted",
            current_index=0,
            total_items=3,
            last_processed_item_name=THIRD,
            completed_ids=[FIRST_ID, THIRD_ID],
        )
        runner = _runner(cache_client, use_cached_pages=False)
        job_id = runner.jobs.create().job_id

        outcome = runner.run(job_id, ENTRIES, checkpoint)

        assert outcome.processed == 1
        assert _fetched(mock_fetch) == [_url(SECOND)]
        assert f"Resuming after '{THIRD}' (2/3)" in _messages(runner.jobs.get(job_id))


class TestReferenceData:
    def test_reference_data_failure_is_a_warning(self, mocker, cache_client, mock_fetch):
        mocker.patch("tarkov_data.jobs.api.get_traders", side_effect=APIError("HTTP 502"))
        mocker.patch("tarkov_data.jobs.api.get_tasks", return_value=[])
        runner = ScrapeJobRunner(cache_client, use_cached_pages=False)
        job_id = runner.jobs.create().job_id

        outcome = runner.run(job_id, ENTRIES[:1])

        assert outcome.status == "completed"
        warnings = [e.message for e in runner.jobs.get(job_id).logs if e.level == "warning"]
        assert any("Trader roster unavailable" in w for w in warnings)

    def test_diff_against_api_task(self, cache_client: CacheClient, mock_fetch):
        api_tasks = [
            {
                "id": "task-picnic",
                "name": SECOND,
                "minPlayerLevel": 3,
                "taskRequirements": [{"task": {"id": "task-living-high", "name": FIRST}}],
            }
        ]
        runner = _runner(cache_client, use_cached_pages=False, api_tasks=api_tasks)
        job_id = runner.jobs.create().job_id

        runner.run(job_id, ENTRIES[:2])

        [report] = [
            e for e in runner.jobs.get(job_id).logs
            if e.item_id == SECOND_ID and e.details is not None
        ]
        assert report.level == "warning"
        assert report.message.startswith("--- API Data\n+++ Wiki Data")
        assert report.details["apiPrerequisites"] == [FIRST]


def test_run_from_list(mocker, cache_client: CacheClient, mock_fetch):
    mock_list = mocker.patch("tarkov_data.jobs.extract_all_quests", return_value=ENTRIES[:1])
    runner = _runner(cache_client, use_cached_pages=False)
    job_id = runner.jobs.create().job_id

    outcome = runner.run_from_list(job_id, f"{WIKI}/Quests")

    mock_list.assert_called_once_with(f"{WIKI}/Quests")
    assert outcome.status == "completed"
    assert _messages(runner.jobs.get(job_id))[0] == f"Fetching quest list from {WIKI}/Quests"
