"""
Fetch API shaped value types.

The hosted router is written against Request/Response/Headers objects of
the Fetch API. These are immutable Python equivalents: built once per
exchange, passed by reference, never mutated.
"""
import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union
from urllib.parse import urlsplit

from yomitan_local.ports.blob import AUDIO_MPEG

HeaderInput = Union[Mapping[str, str], Iterable[Tuple[str, str]], None]
QueryValue = Union[str, Tuple[str, ...]]

JSON_CONTENT_TYPE = "application/json; charset=utf-8"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"


def _join_values(name: str, values: List[str]) -> str:
    if name.lower() == "cookie":
        return "; ".join(values)
    return ", ".join(values)


class FetchHeaders(Mapping[str, str]):
    """
    Immutable header set.

    Lookup is case-insensitive; iteration yields names with the casing they
    arrived with. Repeated headers are merged per HTTP semantics, except
    set-cookie whose values are kept apart for multi_items().
    """

    __slots__ = ("_entries", "_index")

    def __init__(self, headers: HeaderInput = None):
        if isinstance(headers, FetchHeaders):
            pairs: Iterable[Tuple[str, str]] = headers.multi_items()
        elif isinstance(headers, Mapping):
            pairs = headers.items()
        else:
            pairs = headers or ()

        merged: Dict[str, Tuple[str, List[str]]] = {}
        for name, value in pairs:
            key = name.lower()
            if key in merged:
                merged[key][1].append(str(value))
            else:
                merged[key] = (name, [str(value)])

        self._entries: Tuple[Tuple[str, Tuple[str, ...]], ...] = tuple(
            (name, tuple(values)) for name, values in merged.values()
        )
        self._index = {name.lower(): i for i, (name, _) in enumerate(self._entries)}

    def __getitem__(self, name: str) -> str:
        entry_name, values = self._entries[self._index[name.lower()]]
        return _join_values(entry_name, list(values))

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._index

    def get_all(self, name: str) -> List[str]:
        """Every raw value received for a header, in arrival order."""
        index = self._index.get(name.lower())
        if index is None:
            return []
        return list(self._entries[index][1])

    def multi_items(self) -> List[Tuple[str, str]]:
        """Pairs to write on the wire: merged values, set-cookie left split."""
        items = []
        for name, values in self._entries:
            if name.lower() == "set-cookie":
                items.extend((name, v) for v in values)
            else:
                items.append((name, _join_values(name, list(values))))
        return items

    def __repr__(self) -> str:
        return f"FetchHeaders({dict(self.items())!r})"


def _freeze_query(query: Mapping[str, Any]) -> Mapping[str, QueryValue]:
    frozen = {}
    for name, value in query.items():
        frozen[name] = tuple(value) if isinstance(value, (list, tuple)) else value
    return MappingProxyType(frozen)


@dataclass(frozen=True)
class FetchRequest:
    """
    Router-facing request.

    params and query are not part of the standard Fetch Request; the
    router's routing layer reads them as request metadata.
    """

    method: str
    url: str
    headers: FetchHeaders = field(default_factory=FetchHeaders)
    params: Mapping[str, str] = field(default_factory=dict)
    query: Mapping[str, QueryValue] = field(default_factory=dict)
    body: Optional[bytes] = None

    def __post_init__(self):
        object.__setattr__(self, "method", self.method.upper())
        if not isinstance(self.headers, FetchHeaders):
            object.__setattr__(self, "headers", FetchHeaders(self.headers))
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))
        object.__setattr__(self, "query", _freeze_query(self.query))

    @property
    def path(self) -> str:
        return urlsplit(self.url).path

    async def text(self) -> str:
        return (self.body or b"").decode("utf-8")

    async def json(self) -> Any:
        return json.loads(self.body or b"")

    async def array_buffer(self) -> bytes:
        return self.body or b""


@dataclass(frozen=True)
class FetchResponse:
    """Router-produced response: status, headers and raw body bytes."""

    status: int = 200
    headers: FetchHeaders = field(default_factory=FetchHeaders)
    body: bytes = b""

    def __post_init__(self):
        if not isinstance(self.headers, FetchHeaders):
            object.__setattr__(self, "headers", FetchHeaders(self.headers))
        if isinstance(self.body, str):
            object.__setattr__(self, "body", self.body.encode("utf-8"))
        elif not isinstance(self.body, bytes):
            object.__setattr__(self, "body", bytes(self.body or b""))

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    async def text(self) -> str:
        return self.body.decode("utf-8")

    async def json(self) -> Any:
        return json.loads(self.body)

    async def array_buffer(self) -> bytes:
        return self.body

    @classmethod
    def json_response(cls, value: Any, status: int = 200, headers: HeaderInput = None) -> "FetchResponse":
        body = json.dumps(value, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
        return cls(status, _with_content_type(headers, JSON_CONTENT_TYPE), body)

    @classmethod
    def text_response(cls, text: str, status: int = 200, headers: HeaderInput = None) -> "FetchResponse":
        return cls(status, _with_content_type(headers, TEXT_CONTENT_TYPE), text.encode("utf-8"))

    @classmethod
    def binary_response(
        cls,
        data: bytes,
        status: int = 200,
        headers: HeaderInput = None,
        content_type: str = AUDIO_MPEG,
    ) -> "FetchResponse":
        return cls(status, _with_content_type(headers, content_type), bytes(data))


def _with_content_type(headers: HeaderInput, content_type: str) -> FetchHeaders:
    existing = FetchHeaders(headers)
    if "content-type" in existing:
        return existing
    return FetchHeaders([*existing.multi_items(), ("content-type", content_type)])
