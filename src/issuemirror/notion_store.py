"""Notion mirror store: paginated reads and point writes.

Wraps a ``notion_client.Client``. Database queries are drained through
:func:`issuemirror.pagination.iter_pages`; writes accept typed property maps
and return the written page id. Every call goes through
:func:`issuemirror.retry.run_with_retries` so rate limiting is absorbed here
rather than in the reconciler.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import Any, Protocol, TypeVar

from notion_client import APIResponseError, Client

from .errors import MirrorError
from .models import MirrorRecord
from .pagination import Page, iter_pages
from .properties import PropertyMap, to_payload
from .retry import RetryConfig, run_with_retries

NOTION_PAGE_SIZE = 100
CREATION_ORDER = [{"timestamp": "created_time", "direction": "ascending"}]

T = TypeVar("T")

logger = logging.getLogger(__name__)


class NotionSDK(Protocol):  # pragma: no cover - interface only
    databases: Any
    pages: Any


def create_notion_client(token: str, *, timeout_ms: int = 60_000) -> Client:
    return Client(auth=token, timeout_ms=timeout_ms)


def linked_filter(url_property: str) -> dict[str, Any]:
    return {"property": url_property, "url": {"is_not_empty": True}}


def index_records(
    records: Iterable[MirrorRecord],
) -> tuple[dict[str, MirrorRecord], dict[str, list[str]]]:
    """Key records by external identifier.

    Unlinked and trashed records are ignored. When several records share one
    URL the first one (oldest, given creation-ordered input) is kept and the
    rest are reported as duplicates.
    """
    by_url: dict[str, MirrorRecord] = {}
    duplicates: dict[str, list[str]] = {}
    for record in records:
        if not record.external_id or record.in_trash:
            continue
        kept = by_url.get(record.external_id)
        if kept is None:
            by_url[record.external_id] = record
            continue
        duplicates.setdefault(record.external_id, [kept.record_id]).append(record.record_id)
    return by_url, duplicates


class NotionMirrorStore:
    def __init__(self, client: NotionSDK, *, retry: RetryConfig | None = None):
        self.client = client
        self.retry = retry

    def _call(self, fn: Callable[[], T]) -> T:
        return run_with_retries(fn, cfg=self.retry)

    # ---- reads -----------------------------------------------------------
    def query(
        self,
        database_id: str,
        *,
        filter: Mapping[str, Any] | None = None,
        sorts: list[dict[str, Any]] | None = None,
    ) -> Iterator[dict[str, Any]]:
        def fetch(cursor: str | None) -> Page[Any]:
            params: dict[str, Any] = {"database_id": database_id, "page_size": NOTION_PAGE_SIZE}
            if cursor:
                params["start_cursor"] = cursor
            if filter:
                params["filter"] = dict(filter)
            if sorts:
                params["sorts"] = sorts
            return Page.from_notion(self._call(lambda: self.client.databases.query(**params)))

        for page in iter_pages(fetch):
            if isinstance(page, Mapping) and page.get("object", "page") == "page":
                yield dict(page)

    def fetch_existing_records(
        self, database_id: str, url_property: str, *, only_linked: bool = True
    ) -> list[MirrorRecord]:
        """Read every task record; ``only_linked`` pushes the URL filter server-side."""
        pages = self.query(
            database_id,
            filter=linked_filter(url_property) if only_linked else None,
            sorts=CREATION_ORDER,
        )
        records = [MirrorRecord.from_page(page, url_property) for page in pages]
        logger.debug(
            "read %d mirror records (%d linked)",
            len(records),
            sum(1 for r in records if r.linked),
        )
        return records

    def find_record(self, database_id: str, url_property: str, url: str) -> MirrorRecord | None:
        response = self._call(
            lambda: self.client.databases.query(
                database_id=database_id,
                filter={"property": url_property, "url": {"equals": url}},
                sorts=CREATION_ORDER,
                page_size=1,
            )
        )
        for page in Page.from_notion(response).items:
            record = MirrorRecord.from_page(page, url_property)
            if not record.in_trash:
                return record
        return None

    # ---- writes ----------------------------------------------------------
    def create_record(self, database_id: str, properties: PropertyMap) -> str:
        try:
            page = self._call(
                lambda: self.client.pages.create(
                    parent={"database_id": database_id}, properties=to_payload(properties)
                )
            )
        except APIResponseError as exc:
            raise MirrorError(f"Failed to create record in {database_id}: {exc}") from exc
        return str(page.get("id") or "")

    def update_record(self, record_id: str, properties: PropertyMap) -> str:
        try:
            page = self._call(
                lambda: self.client.pages.update(page_id=record_id, properties=to_payload(properties))
            )
        except APIResponseError as exc:
            raise MirrorError(f"Failed to update record {record_id}: {exc}") from exc
        return str(page.get("id") or record_id)


__all__ = [
    "NotionMirrorStore",
    "create_notion_client",
    "index_records",
    "linked_filter",
]
