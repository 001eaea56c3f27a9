"""Typed Notion property values.

Every property read from (or written to) Notion is represented by exactly
one of the value classes below. Raw page payloads are narrowed once, in
``parse_property``; the mapper, diff engine and relation resolver only ever
see these types.

Each value offers ``canonical()`` which renders the comparable string used by
the diff engine:

* title / rich_text -> run contents joined by a space
* status / select   -> option name or ``""``
* multi_select      -> sorted option names, comma-joined
* number            -> decimal string or ``""``
* url / email / phone_number -> raw string or ``""``
* people / relation -> sorted ids, comma-joined
* date              -> start string or ``""``

Writable kinds also offer ``to_payload()`` producing the Notion request body
for that property.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, ClassVar, Union

# Notion limits for rich text arrays
MAX_TEXT_RUN = 2000
# page reads return at most 25 items of a rich text array; longer text is cut
MAX_TEXT_RUNS = 25


def _split_runs(content: str) -> tuple[str, ...]:
    if not content:
        return ()
    runs = [content[i : i + MAX_TEXT_RUN] for i in range(0, len(content), MAX_TEXT_RUN)]
    return tuple(runs[:MAX_TEXT_RUNS])


def _text_run(content: str) -> dict[str, Any]:
    return {"type": "text", "text": {"content": content}}


def _format_number(value: int | float | None) -> str:
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return ""
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def _option_name(name: str) -> str:
    # Notion rejects commas in select option names
    return name.replace(",", "").strip()


@dataclass(frozen=True)
class TitleValue:
    kind: ClassVar[str] = "title"
    texts: tuple[str, ...] = ()

    def canonical(self) -> str:
        return " ".join(self.texts)

    def to_payload(self) -> dict[str, Any]:
        return {"title": [_text_run(t) for t in self.texts]}


@dataclass(frozen=True)
class RichTextValue:
    kind: ClassVar[str] = "rich_text"
    texts: tuple[str, ...] = ()

    def canonical(self) -> str:
        return " ".join(self.texts)

    def to_payload(self) -> dict[str, Any]:
        return {"rich_text": [_text_run(t) for t in self.texts]}


@dataclass(frozen=True)
class StatusValue:
    kind: ClassVar[str] = "status"
    name: str | None = None

    def canonical(self) -> str:
        return self.name or ""

    def to_payload(self) -> dict[str, Any]:
        return {"status": {"name": self.name} if self.name else None}


@dataclass(frozen=True)
class SelectValue:
    kind: ClassVar[str] = "select"
    name: str | None = None

    def canonical(self) -> str:
        return self.name or ""

    def to_payload(self) -> dict[str, Any]:
        return {"select": {"name": self.name} if self.name else None}


@dataclass(frozen=True)
class MultiSelectValue:
    kind: ClassVar[str] = "multi_select"
    names: tuple[str, ...] = ()

    def canonical(self) -> str:
        return ",".join(sorted(self.names))

    def to_payload(self) -> dict[str, Any]:
        return {"multi_select": [{"name": n} for n in self.names]}


@dataclass(frozen=True)
class NumberValue:
    kind: ClassVar[str] = "number"
    value: int | float | None = None

    def canonical(self) -> str:
        return _format_number(self.value)

    def to_payload(self) -> dict[str, Any]:
        return {"number": self.value}


@dataclass(frozen=True)
class UrlValue:
    kind: ClassVar[str] = "url"
    url: str | None = None

    def canonical(self) -> str:
        return self.url or ""

    def to_payload(self) -> dict[str, Any]:
        return {"url": self.url or None}


@dataclass(frozen=True)
class EmailValue:
    kind: ClassVar[str] = "email"
    email: str | None = None

    def canonical(self) -> str:
        return self.email or ""

    def to_payload(self) -> dict[str, Any]:
        return {"email": self.email or None}


@dataclass(frozen=True)
class PhoneValue:
    kind: ClassVar[str] = "phone_number"
    phone: str | None = None

    def canonical(self) -> str:
        return self.phone or ""

    def to_payload(self) -> dict[str, Any]:
        return {"phone_number": self.phone or None}


@dataclass(frozen=True)
class PeopleValue:
    kind: ClassVar[str] = "people"
    ids: tuple[str, ...] = ()

    def canonical(self) -> str:
        return ",".join(sorted(self.ids))

    def to_payload(self) -> dict[str, Any]:
        return {"people": [{"object": "user", "id": i} for i in self.ids]}


@dataclass(frozen=True)
class RelationValue:
    kind: ClassVar[str] = "relation"
    ids: tuple[str, ...] = ()

    def canonical(self) -> str:
        return ",".join(sorted(self.ids))

    def to_payload(self) -> dict[str, Any]:
        return {"relation": [{"id": i} for i in self.ids]}


@dataclass(frozen=True)
class DateValue:
    kind: ClassVar[str] = "date"
    start: str | None = None
    end: str | None = None

    def canonical(self) -> str:
        return self.start or ""

    def to_payload(self) -> dict[str, Any]:
        if not self.start:
            return {"date": None}
        body: dict[str, Any] = {"start": self.start}
        if self.end:
            body["end"] = self.end
        return {"date": body}


@dataclass(frozen=True)
class FormulaValue:
    """Computed value; Notion does not accept writes to formula properties."""

    kind: ClassVar[str] = "formula"
    value: str | int | float | bool | None = None

    def canonical(self) -> str:
        if isinstance(self.value, bool):
            return "true" if self.value else "false"
        if isinstance(self.value, (int, float)):
            return _format_number(self.value)
        return self.value or ""


@dataclass(frozen=True)
class UnsupportedValue:
    """Any property kind the engine does not model (checkbox, files, rollup...)."""

    type_name: str
    kind: ClassVar[str] = "unsupported"

    def canonical(self) -> str:
        return ""


PropertyValue = Union[
    TitleValue,
    RichTextValue,
    StatusValue,
    SelectValue,
    MultiSelectValue,
    NumberValue,
    UrlValue,
    EmailValue,
    PhoneValue,
    PeopleValue,
    RelationValue,
    DateValue,
    FormulaValue,
    UnsupportedValue,
]
WritableValue = Union[
    TitleValue,
    RichTextValue,
    StatusValue,
    SelectValue,
    MultiSelectValue,
    NumberValue,
    UrlValue,
    EmailValue,
    PhoneValue,
    PeopleValue,
    RelationValue,
    DateValue,
]
PropertyMap = dict[str, WritableValue]


# ---- builders -------------------------------------------------------------


def title(content: str) -> TitleValue:
    return TitleValue(_split_runs(content))


def text(content: str) -> RichTextValue:
    return RichTextValue(_split_runs(content))


def status(name: str | None) -> StatusValue:
    return StatusValue(name or None)


def select(name: str | None) -> SelectValue:
    cleaned = _option_name(name) if name else ""
    return SelectValue(cleaned or None)


def multi_select(names: Iterable[str]) -> MultiSelectValue:
    seen: list[str] = []
    for raw in names:
        cleaned = _option_name(raw)
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return MultiSelectValue(tuple(seen))


def number(value: int | float | None) -> NumberValue:
    return NumberValue(value)


def url(value: str | None) -> UrlValue:
    return UrlValue(value or None)


def people(ids: Iterable[str]) -> PeopleValue:
    return PeopleValue(tuple(dict.fromkeys(ids)))


def relation(ids: Iterable[str]) -> RelationValue:
    return RelationValue(tuple(dict.fromkeys(ids)))


def date(start: str | None, end: str | None = None) -> DateValue:
    return DateValue(start or None, end or None)


def to_payload(properties: Mapping[str, WritableValue]) -> dict[str, dict[str, Any]]:
    return {name: value.to_payload() for name, value in properties.items()}


# ---- boundary parsing -----------------------------------------------------


def _run_texts(runs: Any) -> tuple[str, ...]:
    if not isinstance(runs, list):
        return ()
    out: list[str] = []
    for run in runs:
        if not isinstance(run, Mapping):
            continue
        plain = run.get("plain_text")
        if isinstance(plain, str):
            out.append(plain)
            continue
        body = run.get("text")
        if isinstance(body, Mapping) and isinstance(body.get("content"), str):
            out.append(body["content"])
    return tuple(out)


def _option(payload: Any) -> str | None:
    if isinstance(payload, Mapping):
        name = payload.get("name")
        if isinstance(name, str) and name:
            return name
    return None


def _ids(entries: Any) -> tuple[str, ...]:
    if not isinstance(entries, list):
        return ()
    return tuple(
        str(e["id"]) for e in entries if isinstance(e, Mapping) and e.get("id")
    )


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _parse_formula(payload: Any) -> FormulaValue:
    if not isinstance(payload, Mapping):
        return FormulaValue()
    ftype = payload.get("type")
    value = payload.get(ftype) if isinstance(ftype, str) else None
    if ftype == "date" and isinstance(value, Mapping):
        return FormulaValue(_str_or_none(value.get("start")))
    if isinstance(value, (str, int, float, bool)):
        return FormulaValue(value)
    return FormulaValue()


def parse_property(payload: Mapping[str, Any]) -> PropertyValue:
    """Narrow one raw Notion property payload into its typed value."""
    ptype = payload.get("type")
    if not isinstance(ptype, str):
        return UnsupportedValue("unknown")
    raw = payload.get(ptype)
    if ptype == "title":
        return TitleValue(_run_texts(raw))
    if ptype == "rich_text":
        return RichTextValue(_run_texts(raw))
    if ptype == "status":
        return StatusValue(_option(raw))
    if ptype == "select":
        return SelectValue(_option(raw))
    if ptype == "multi_select":
        names = tuple(n for n in (_option(o) for o in raw or []) if n) if isinstance(raw, list) else ()
        return MultiSelectValue(names)
    if ptype == "number":
        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            return NumberValue(raw)
        return NumberValue()
    if ptype == "url":
        return UrlValue(_str_or_none(raw))
    if ptype == "email":
        return EmailValue(_str_or_none(raw))
    if ptype == "phone_number":
        return PhoneValue(_str_or_none(raw))
    if ptype == "people":
        return PeopleValue(_ids(raw))
    if ptype == "relation":
        return RelationValue(_ids(raw))
    if ptype == "date":
        if isinstance(raw, Mapping):
            return DateValue(_str_or_none(raw.get("start")), _str_or_none(raw.get("end")))
        return DateValue()
    if ptype == "formula":
        return _parse_formula(raw)
    return UnsupportedValue(ptype)


def parse_properties(payload: Any) -> dict[str, PropertyValue]:
    if not isinstance(payload, Mapping):
        return {}
    out: dict[str, PropertyValue] = {}
    for name, prop in payload.items():
        if isinstance(prop, Mapping):
            out[str(name)] = parse_property(prop)
    return out


__all__ = [
    "DateValue",
    "EmailValue",
    "FormulaValue",
    "MultiSelectValue",
    "NumberValue",
    "PeopleValue",
    "PhoneValue",
    "PropertyMap",
    "PropertyValue",
    "RelationValue",
    "RichTextValue",
    "SelectValue",
    "StatusValue",
    "TitleValue",
    "UnsupportedValue",
    "UrlValue",
    "WritableValue",
    "date",
    "multi_select",
    "number",
    "parse_properties",
    "parse_property",
    "people",
    "relation",
    "select",
    "status",
    "text",
    "title",
    "to_payload",
    "url",
]
