"""Transport boundary for traversals.

A transport is an awaitable ``(request, request_options) -> HttpResponse``.
Redirects at the HTTP level are always followed by the transport; timeouts
come from the per-request options (``timeout`` seconds) or the transport's
own default.

Two implementations ship here: :class:`AiohttpTransport` (the default) and
:class:`RequestsTransport`, which drives a blocking ``requests`` session from
a worker thread. Both hand back a response adapter whose body can be consumed
exactly once (``read``/``text``/``iter_chunks``) or released with ``cancel``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Mapping, Optional, Protocol

import aiohttp
import requests

from .traverse_config import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_TIMEOUT,
    DEFAULT_USER_AGENT,
    HDR_CONTENT_ENCODING,
    HDR_CONTENT_LENGTH,
    HDR_CONTENT_TYPE,
    HDR_USER_AGENT,
)
from .traverse_utils import decode_body

logger = logging.getLogger(__name__)


class HeaderLookup(Protocol):
    def get(self, name: str, default: Any = None) -> Any: ...


class HttpResponse(Protocol):
    status: int
    url: str
    headers: HeaderLookup
    body_used: bool

    @property
    def content_length(self) -> Optional[int]: ...

    async def read(self) -> bytes: ...

    async def text(self) -> str: ...

    def iter_chunks(self) -> AsyncIterator[bytes]: ...

    async def cancel(self) -> None: ...


Transport = Callable[[Any, Optional[Mapping[str, Any]]], Awaitable[HttpResponse]]


class BodyConsumedError(RuntimeError):
    """Raised when a response body is read a second time."""


class _ResponseBase:
    headers: HeaderLookup

    def __init__(self) -> None:
        self.body_used = False
        self._released = False

    def _claim(self) -> None:
        if self.body_used:
            raise BodyConsumedError(f"Response body for {self.url} was already consumed")
        self.body_used = True

    @property
    def url(self) -> str:  # pragma: no cover - overridden
        raise NotImplementedError

    @property
    def content_length(self) -> Optional[int]:
        """Declared body size, or None when unknown or content-encoded."""

        encoding = (self.headers.get(HDR_CONTENT_ENCODING) or "").strip().lower()
        if encoding not in {"", "identity"}:
            return None
        raw = self.headers.get(HDR_CONTENT_LENGTH)
        try:
            return int(raw) if raw is not None else None
        except (TypeError, ValueError):
            return None

    async def text(self) -> str:
        body = await self.read()
        return decode_body(body, self.headers.get(HDR_CONTENT_TYPE) or "")

    async def read(self) -> bytes:  # pragma: no cover - overridden
        raise NotImplementedError


class AiohttpResponse(_ResponseBase):
    def __init__(
        self,
        response: aiohttp.ClientResponse,
        owned_session: Optional[aiohttp.ClientSession] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        super().__init__()
        self._response = response
        self._owned_session = owned_session
        self._chunk_size = chunk_size
        self.status = response.status
        self.headers = response.headers

    @property
    def url(self) -> str:
        return str(self._response.url)

    async def read(self) -> bytes:
        self._claim()
        try:
            return await self._response.read()
        finally:
            await self._release()

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        self._claim()
        try:
            async for chunk in self._response.content.iter_chunked(self._chunk_size):
                yield chunk
        finally:
            await self._release()

    async def cancel(self) -> None:
        if self._released:
            return
        self._response.close()
        await self._release()

    async def _release(self) -> None:
        if self._released:
            return
        self._released = True
        if not self._response.content.at_eof():
            self._response.close()
        if self._owned_session is not None:
            await self._owned_session.close()


class RequestsResponse(_ResponseBase):
    def __init__(
        self,
        response: requests.Response,
        owned_session: Optional[requests.Session] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        super().__init__()
        self._response = response
        self._owned_session = owned_session
        self._chunk_size = chunk_size
        self.status = response.status_code
        self.headers = response.headers

    @property
    def url(self) -> str:
        return self._response.url

    async def read(self) -> bytes:
        self._claim()
        try:
            return await asyncio.to_thread(lambda: self._response.content)
        finally:
            await self._release()

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        self._claim()
        chunks = self._response.iter_content(chunk_size=self._chunk_size)
        try:
            while True:
                chunk = await asyncio.to_thread(next, chunks, None)
                if chunk is None:
                    break
                if chunk:
                    yield chunk
        finally:
            await self._release()

    async def cancel(self) -> None:
        await self._release()

    async def _release(self) -> None:
        if self._released:
            return
        self._released = True
        self._response.close()
        if self._owned_session is not None:
            self._owned_session.close()


def _split_options(
    request_options: Optional[Mapping[str, Any]],
    user_agent: str,
) -> tuple[str, Dict[str, str], Any, Dict[str, Any]]:
    options = dict(request_options or {})
    method = str(options.pop("method", "GET")).upper()
    headers = {HDR_USER_AGENT: user_agent}
    headers.update(options.pop("headers", None) or {})
    timeout = options.pop("timeout", None)
    # HTTP redirects are always resolved by the transport.
    options.pop("allow_redirects", None)
    options.pop("redirect", None)
    return method, headers, timeout, options


@dataclass
class AiohttpTransport:
    """Default transport backed by :mod:`aiohttp`.

    Without an injected ``session`` every call opens its own
    ``ClientSession``, closed again once the body is consumed or cancelled.
    """

    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT
    session: Optional[aiohttp.ClientSession] = None
    chunk_size: int = DEFAULT_CHUNK_SIZE

    async def __call__(
        self,
        request: Any,
        request_options: Optional[Mapping[str, Any]] = None,
    ) -> AiohttpResponse:
        method, headers, timeout, options = _split_options(request_options, self.user_agent)
        if not isinstance(timeout, aiohttp.ClientTimeout):
            timeout = aiohttp.ClientTimeout(total=self.timeout if timeout is None else float(timeout))
        owned: Optional[aiohttp.ClientSession] = None
        session = self.session
        if session is None:
            session = owned = aiohttp.ClientSession()
        logger.debug("aiohttp %s %s", method, request)
        try:
            response = await session.request(
                method,
                request,
                headers=headers,
                timeout=timeout,
                allow_redirects=True,
                **options,
            )
        except BaseException:
            if owned is not None:
                await owned.close()
            raise
        return AiohttpResponse(response, owned, self.chunk_size)


@dataclass
class RequestsTransport:
    """Transport backed by a blocking :mod:`requests` session run in a thread."""

    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT
    session: Optional[requests.Session] = None
    chunk_size: int = DEFAULT_CHUNK_SIZE

    async def __call__(
        self,
        request: Any,
        request_options: Optional[Mapping[str, Any]] = None,
    ) -> RequestsResponse:
        method, headers, timeout, options = _split_options(request_options, self.user_agent)
        owned: Optional[requests.Session] = None
        session = self.session
        if session is None:
            session = owned = requests.Session()
        logger.debug("requests %s %s", method, request)
        try:
            response = await asyncio.to_thread(
                session.request,
                method,
                str(request),
                headers=headers,
                timeout=self.timeout if timeout is None else timeout,
                allow_redirects=True,
                stream=True,
                **options,
            )
        except BaseException:
            if owned is not None:
                owned.close()
            raise
        return RequestsResponse(response, owned, self.chunk_size)


__all__ = [
    "AiohttpResponse",
    "AiohttpTransport",
    "BodyConsumedError",
    "HttpResponse",
    "RequestsResponse",
    "RequestsTransport",
    "Transport",
]
