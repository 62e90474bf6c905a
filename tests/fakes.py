"""In-memory transport used by the traversal tests."""

from __future__ import annotations

from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Tuple, Union

from requests.structures import CaseInsensitiveDict

from traverser.workflows.traverse import TraverseSettings, default_traverse_options
from traverser.workflows.traverse_utils import decode_body

Route = Union[BaseException, Tuple[int, Mapping[str, str], bytes]]


class FakeResponse:
    def __init__(self, url: str, status: int, headers: Mapping[str, str], body: bytes, chunk_size: int = 4) -> None:
        self.url = url
        self.status = status
        self.headers = CaseInsensitiveDict(headers)
        self.body = body
        self.chunk_size = chunk_size
        self.body_used = False
        self.cancelled = False

    @property
    def content_length(self) -> Optional[int]:
        raw = self.headers.get("Content-Length")
        return int(raw) if raw is not None else None

    def _claim(self) -> None:
        assert not self.body_used, "body read twice"
        assert not self.cancelled, "body read after cancel"
        self.body_used = True

    async def read(self) -> bytes:
        self._claim()
        return self.body

    async def text(self) -> str:
        return decode_body(await self.read(), self.headers.get("Content-Type") or "")

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        self._claim()
        for start in range(0, len(self.body), self.chunk_size):
            yield self.body[start : start + self.chunk_size]

    async def cancel(self) -> None:
        self.cancelled = True


class FakeTransport:
    """Serve canned responses keyed by URL; unknown URLs raise ConnectionError."""

    def __init__(self, routes: Optional[Dict[str, Route]] = None) -> None:
        self.routes: Dict[str, Route] = dict(routes or {})
        self.calls: List[Tuple[Any, Optional[Mapping[str, Any]]]] = []
        self.responses: List[FakeResponse] = []

    def add(self, url: str, status: int = 200, headers: Optional[Mapping[str, str]] = None, body: bytes = b"") -> None:
        self.routes[url] = (status, dict(headers or {}), body)

    async def __call__(self, request: Any, request_options: Optional[Mapping[str, Any]] = None) -> FakeResponse:
        self.calls.append((request, request_options))
        route = self.routes.get(request)
        if route is None:
            raise ConnectionError(f"cannot resolve {request}")
        if isinstance(route, BaseException):
            raise route
        status, headers, body = route
        response = FakeResponse(request, status, headers, body)
        self.responses.append(response)
        return response


def make_options(transport: FakeTransport, **overrides: Any):
    overrides.setdefault("settings", TraverseSettings())
    return default_traverse_options(transport=transport, **overrides)


def html(body: str) -> Tuple[Dict[str, str], bytes]:
    return {"Content-Type": "text/html; charset=utf-8"}, body.encode("utf-8")
