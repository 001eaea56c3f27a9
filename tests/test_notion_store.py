from __future__ import annotations

import httpx
import pytest
from notion_client import APIResponseError

from fakes import TASKS_DB, FakeNotion, page, rich, url_prop
from issuemirror import properties as props
from issuemirror.errors import MirrorError
from issuemirror.models import MirrorRecord
from issuemirror.notion_store import NotionMirrorStore, index_records
from issuemirror.retry import RetryConfig

URL = "https://github.com/acme/widgets/issues/1"


def _api_error(code: str, status: int) -> APIResponseError:
    response = httpx.Response(status, request=httpx.Request("POST", "https://api.notion.com/v1/pages"))
    return APIResponseError(response, f"{code} from notion", code)


def _task(page_id: str, url: str | None, **extra):
    return page(page_id, {"Task name": rich("title", page_id), "Github issue": url_prop(url)}, **extra)


def test_query_drains_all_pages():
    rows = [_task(f"p{i}", f"{URL}{i}") for i in range(250)]
    notion = FakeNotion({TASKS_DB: rows})

    got = list(NotionMirrorStore(notion).query(TASKS_DB))

    assert len(got) == 250
    cursors = [c.get("start_cursor") for _, c in notion.calls]
    assert cursors == [None, "100", "200"]
    assert all(c["page_size"] == 100 for _, c in notion.calls)


def test_fetch_existing_records_filters_server_side():
    notion = FakeNotion({TASKS_DB: [_task("p1", URL), _task("p2", None)]})
    store = NotionMirrorStore(notion)

    linked = store.fetch_existing_records(TASKS_DB, "Github issue")
    everything = store.fetch_existing_records(TASKS_DB, "Github issue", only_linked=False)

    assert [r.record_id for r in linked] == ["p1"]
    assert notion.calls[0][1]["filter"] == {"property": "Github issue", "url": {"is_not_empty": True}}
    assert notion.calls[0][1]["sorts"] == [{"timestamp": "created_time", "direction": "ascending"}]
    assert "filter" not in notion.calls[1][1]
    # unlinked records never reach the index either way
    assert index_records(everything)[0].keys() == index_records(linked)[0].keys()


def test_index_records_keeps_first_and_reports_duplicates():
    records = [
        MirrorRecord("a", URL),
        MirrorRecord("b", None),
        MirrorRecord("c", URL),
        MirrorRecord("d", "https://other", in_trash=True),
    ]
    by_url, duplicates = index_records(records)
    assert by_url[URL].record_id == "a"
    assert "https://other" not in by_url
    assert duplicates == {URL: ["a", "c"]}


def test_find_record_by_url():
    notion = FakeNotion({TASKS_DB: [_task("p1", "https://x/2"), _task("p2", URL)]})
    store = NotionMirrorStore(notion)

    record = store.find_record(TASKS_DB, "Github issue", URL)

    assert record is not None and record.record_id == "p2"
    assert record.properties["Task name"] == props.TitleValue(("p2",))
    assert store.find_record(TASKS_DB, "Github issue", "https://missing") is None


def test_create_and_update_return_page_id():
    notion = FakeNotion({TASKS_DB: []})
    store = NotionMirrorStore(notion)

    created = store.create_record(TASKS_DB, {"Task name": props.title("T"), "Github issue": props.url(URL)})
    updated = store.update_record(created, {"Task name": props.title("T2")})

    assert created == updated == "page-1"
    assert notion.calls[0][1]["properties"]["Github issue"] == {"url": URL}
    assert notion.tables[TASKS_DB][0]["properties"]["Task name"]["title"][0]["plain_text"] == "T2"


def test_rate_limited_write_is_retried():
    notion = FakeNotion({TASKS_DB: []})
    notion.write_errors.append(_api_error("rate_limited", 429))
    store = NotionMirrorStore(notion, retry=RetryConfig(attempts=3, base_sleep=0))

    assert store.create_record(TASKS_DB, {"Task name": props.title("T")}) == "page-1"
    assert len(notion.writes()) == 2


def test_validation_error_is_wrapped_without_retry():
    notion = FakeNotion({TASKS_DB: []})
    notion.write_errors.append(_api_error("validation_error", 400))
    store = NotionMirrorStore(notion, retry=RetryConfig(attempts=3, base_sleep=0))

    with pytest.raises(MirrorError, match="Failed to create record"):
        store.create_record(TASKS_DB, {"Task name": props.title("T")})
    assert len(notion.writes()) == 1
