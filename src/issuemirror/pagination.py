"""Cursor pagination helpers shared by the GitHub and Notion readers.

Both upstream (GraphQL connections) and mirror (Notion database queries)
return pages shaped as ``items + cursor + more-flag``. ``iter_pages`` drives
the loop once so every caller only supplies a ``fetch_page(cursor)`` thunk.
Nested GraphQL connections arrive with their first page already embedded in
the parent node; pass it as ``first`` to avoid refetching it.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T] = field(default_factory=list)
    end_cursor: str | None = None
    has_next_page: bool = False

    @classmethod
    def from_connection(cls, connection: Mapping[str, Any] | None) -> Page[Any]:
        """Build a page from a GraphQL connection (``nodes`` + ``pageInfo``)."""
        if not isinstance(connection, Mapping):
            return Page()
        nodes = connection.get("nodes")
        info = connection.get("pageInfo")
        items = [n for n in nodes if n is not None] if isinstance(nodes, list) else []
        if not isinstance(info, Mapping):
            return Page(items=items)
        cursor = info.get("endCursor")
        return Page(
            items=items,
            end_cursor=cursor if isinstance(cursor, str) else None,
            has_next_page=bool(info.get("hasNextPage")),
        )

    @classmethod
    def from_notion(cls, response: Mapping[str, Any]) -> Page[Any]:
        """Build a page from a Notion list response (``results`` + ``next_cursor``)."""
        results = response.get("results")
        cursor = response.get("next_cursor")
        return Page(
            items=list(results) if isinstance(results, list) else [],
            end_cursor=cursor if isinstance(cursor, str) else None,
            has_next_page=bool(response.get("has_more")),
        )


def iter_pages(
    fetch_page: Callable[[str | None], Page[T]], *, first: Page[T] | None = None
) -> Iterator[T]:
    page = first if first is not None else fetch_page(None)
    while True:
        yield from page.items
        # A missing cursor with has_next_page set would loop forever on page one.
        if not page.has_next_page or not page.end_cursor:
            return
        page = fetch_page(page.end_cursor)


def drain_pages(
    fetch_page: Callable[[str | None], Page[T]], *, first: Page[T] | None = None
) -> list[T]:
    return list(iter_pages(fetch_page, first=first))


__all__ = ["Page", "iter_pages", "drain_pages"]
