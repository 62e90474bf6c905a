"""Traverse a URL and classify the outcome through an enhancer chain.

``traverse`` is the single entry point. It runs the request enhancers, calls
the transport, wraps the response as a :class:`SuccessfulTraversal` and hands
it to the configured result enhancers, which refine it step by step:

1. label clean-up
2. status validation (200 -> content, anything else -> invalid status)
3. text detection for ``text/*`` bodies
4. meta-refresh redirect detection, which re-enters ``traverse``
5. caller content enhancers (only for content results)

Failures never escape: a transport or pipeline exception becomes an
:class:`UnsuccessfulTraversal`, and an unread response body is always
cancelled before ``traverse`` returns.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Iterator, Mapping, Optional, Sequence
from urllib.parse import urljoin

from .enhance import Enhancer, EnhancerSync, apply, enhancer, enhancer_sync
from .results import (
    InvalidHttpStatus,
    SuccessfulTraversal,
    TraversalContent,
    TraversalContentRedirect,
    TraversalResult,
    TraversalTextContent,
    UnsuccessfulTraversal,
    extend,
    is_invalid_http_status,
    is_traversal_content,
    is_traversal_text_content,
    transform,
)
from .transport import AiohttpTransport, HttpResponse, Transport
from .traverse_config import (
    DEFAULT_MAX_REDIRECT_HOPS,
    DEFAULT_TIMEOUT,
    DEFAULT_USER_AGENT,
    ENV_MAX_REDIRECT_HOPS,
    ENV_TIMEOUT,
    ENV_USER_AGENT,
    HDR_CONTENT_DISPOSITION,
    HDR_CONTENT_TYPE,
    HTML_CONTENT_PREFIX,
    HTTP_OK,
    META_REFRESH_PATTERN,
    TEXT_CONTENT_PREFIX,
)
from .traverse_utils import (
    clean_label,
    content_disposition_params,
    decode_body,
    env_float,
    env_int,
    env_str,
    remove_url_tracking_codes,
)

logger = logging.getLogger(__name__)


class TraversalError(Exception):
    """Base class for errors raised inside a traversal."""


class RedirectLoopError(TraversalError):
    """A meta-refresh chain revisited a URL or exceeded the hop limit."""

    def __init__(self, request: Any, hops: int, reason: str) -> None:
        super().__init__(f"redirect loop at {request!r} after {hops} hop(s): {reason}")
        self.request = request
        self.hops = hops
        self.reason = reason


@dataclass(frozen=True)
class TraverseSettings:
    """Environment-derived knobs used to build default options."""

    timeout: float = DEFAULT_TIMEOUT
    max_redirect_hops: int = DEFAULT_MAX_REDIRECT_HOPS
    user_agent: str = DEFAULT_USER_AGENT

    @classmethod
    def from_env(cls) -> "TraverseSettings":
        return cls(
            timeout=env_float(ENV_TIMEOUT, DEFAULT_TIMEOUT),
            max_redirect_hops=max(0, env_int(ENV_MAX_REDIRECT_HOPS, DEFAULT_MAX_REDIRECT_HOPS)),
            user_agent=env_str(ENV_USER_AGENT, DEFAULT_USER_AGENT),
        )


@dataclass(frozen=True)
class TraverseOptions:
    tr_enhancer: Enhancer
    ri_enhancer: Optional[EnhancerSync] = None
    transport: Transport = field(default_factory=AiohttpTransport)
    max_redirect_hops: int = DEFAULT_MAX_REDIRECT_HOPS


@dataclass(frozen=True)
class TraverseContext:
    request: Any
    options: TraverseOptions
    request_options: Optional[Mapping[str, Any]] = None
    label: Optional[str] = None
    parent: Optional["TraverseContext"] = field(default=None, repr=False)

    def ancestors(self) -> Iterator["TraverseContext"]:
        current = self.parent
        while current is not None:
            yield current
            current = current.parent

    @property
    def hops(self) -> int:
        return sum(1 for _ in self.ancestors())


# ---------------------------------------------------------------------------
# Request enhancers
# ---------------------------------------------------------------------------


def remove_url_tracking_codes_enhancer(_: TraverseContext, request: Any) -> Any:
    if isinstance(request, str):
        return remove_url_tracking_codes(request)
    return request


# ---------------------------------------------------------------------------
# Result enhancers
# ---------------------------------------------------------------------------


async def remove_label_line_breaks_and_trim_spaces(
    _: TraverseContext,
    instance: TraversalResult,
) -> TraversalResult:
    if not instance.label:
        return instance
    label = clean_label(instance.label)
    if label == instance.label:
        return instance
    return transform(
        instance,
        label=label,
        remarks="Removed line breaks and trimmed spaces in label",
    )


async def validate_status(_: TraverseContext, instance: TraversalResult) -> TraversalResult:
    """Classify a successful traversal by HTTP status."""

    if not isinstance(instance, SuccessfulTraversal):
        return instance
    if is_traversal_content(instance) or is_invalid_http_status(instance):
        return instance

    response = instance.response
    if response.status == HTTP_OK:
        content_type = response.headers.get(HDR_CONTENT_TYPE)
        disposition = response.headers.get(HDR_CONTENT_DISPOSITION)
        return extend(
            instance,
            TraversalContent,
            http_status=response.status,
            content_type=content_type.strip() if content_type else "",
            content_disposition=content_disposition_params(disposition) if disposition else None,
        )
    logger.debug("invalid HTTP status %s for %s", response.status, instance.terminal_url)
    return extend(instance, InvalidHttpStatus, invalid_http_status=response.status)


@dataclass(frozen=True)
class DetectTextContent:
    """Read and decode ``text/*`` bodies into :class:`TraversalTextContent`."""

    status_validator: Enhancer = validate_status

    def is_proper_content_type(self, instance: TraversalContent) -> bool:
        return instance.content_type.lower().startswith(TEXT_CONTENT_PREFIX)

    async def __call__(self, ctx: TraverseContext, instance: TraversalResult) -> TraversalResult:
        instance = await apply(self.status_validator, ctx, instance)
        if is_traversal_text_content(instance) or not isinstance(instance, TraversalContent):
            return instance
        if not self.is_proper_content_type(instance):
            return instance
        body = await instance.response.read()
        return extend(
            instance,
            TraversalTextContent,
            body_bytes=body,
            body_text=decode_body(body, instance.content_type),
            is_html_content=instance.content_type.lower().startswith(HTML_CONTENT_PREFIX),
        )


detect_text_content = DetectTextContent()


def extract_meta_refresh_url(html: str) -> Optional[str]:
    match = META_REFRESH_PATTERN.search(html)
    if not match:
        return None
    return match.group(3) or None


@dataclass(frozen=True)
class DetectMetaRefreshRedirect:
    """Follow ``<meta http-equiv="refresh" content="0;url=...">`` redirects."""

    detect_text_content: Enhancer = detect_text_content

    async def __call__(self, ctx: TraverseContext, instance: TraversalResult) -> TraversalResult:
        instance = await apply(self.detect_text_content, ctx, instance)
        if not isinstance(instance, TraversalTextContent) or not instance.is_html_content:
            return instance
        target = extract_meta_refresh_url(instance.body_text)
        if not target:
            return instance
        logger.debug("meta-refresh redirect %s -> %s", instance.terminal_url, target)
        request = urljoin(instance.terminal_url, target) if instance.terminal_url else target
        redirected = await traverse(replace(ctx, request=request, parent=ctx))
        return transform(
            instance,
            TraversalContentRedirect,
            remarks=f"DetectMetaRefreshRedirect({target})",
            content_redirect_url=target,
            redirected=redirected,
        )


detect_meta_refresh_redirect = DetectMetaRefreshRedirect()


@dataclass(frozen=True)
class EnhanceContent:
    """Run ``content_enhancer`` only against content results."""

    content_enhancer: Enhancer

    async def __call__(self, ctx: TraverseContext, instance: TraversalResult) -> TraversalResult:
        if is_traversal_content(instance):
            return await apply(self.content_enhancer, ctx, instance)
        return instance


def default_traverse_options(
    *,
    content_enhancers: Sequence[Any] = (),
    tr_enhancer: Optional[Enhancer] = None,
    ri_enhancer: Optional[EnhancerSync] = None,
    transport: Optional[Transport] = None,
    max_redirect_hops: Optional[int] = None,
    settings: Optional[TraverseSettings] = None,
) -> TraverseOptions:
    settings = settings or TraverseSettings.from_env()
    return TraverseOptions(
        tr_enhancer=tr_enhancer
        or enhancer(
            remove_label_line_breaks_and_trim_spaces,
            validate_status,
            detect_text_content,
            detect_meta_refresh_redirect,
            EnhanceContent(enhancer(*content_enhancers)),
        ),
        ri_enhancer=ri_enhancer or enhancer_sync(remove_url_tracking_codes_enhancer),
        transport=transport
        or AiohttpTransport(timeout=settings.timeout, user_agent=settings.user_agent),
        max_redirect_hops=settings.max_redirect_hops if max_redirect_hops is None else max_redirect_hops,
    )


def _redirect_loop(ctx: TraverseContext, request: Any) -> Optional[RedirectLoopError]:
    if ctx.parent is None:
        return None
    hops = ctx.hops
    if hops > ctx.options.max_redirect_hops:
        return RedirectLoopError(request, hops, f"exceeded {ctx.options.max_redirect_hops} hop(s)")
    for ancestor in ctx.ancestors():
        seen = ancestor.request
        if ancestor.options.ri_enhancer is not None:
            seen = ancestor.options.ri_enhancer(ancestor, seen)
        if seen == request:
            return RedirectLoopError(request, hops, "URL already visited")
    return None


async def traverse(ctx: TraverseContext) -> TraversalResult:
    """Fetch ``ctx.request`` and run the result enhancers; never raises."""

    request, request_options, options, label = ctx.request, ctx.request_options, ctx.options, ctx.label
    response = None
    try:
        if options.ri_enhancer is not None:
            request = options.ri_enhancer(ctx, request)
        loop = _redirect_loop(ctx, request)
        if loop is not None:
            raise loop
        response = await options.transport(request, request_options)
        start = SuccessfulTraversal(
            request=request,
            request_options=request_options,
            label=label,
            response=response,
            terminal_url=response.url,
        )
        return await apply(options.tr_enhancer, ctx, start)
    except Exception as exc:
        logger.debug("traversal of %r failed: %s", request, exc)
        return UnsuccessfulTraversal(
            request=request,
            request_options=request_options,
            label=label,
            error=exc,
        )
    finally:
        if response is not None and not response.body_used:
            await _cancel_body(response)


async def _cancel_body(response: HttpResponse) -> None:
    try:
        await response.cancel()
    except Exception as exc:  # pragma: no cover - transport-specific failures
        logger.warning("failed to cancel unread body for %s: %s", response.url, exc)


__all__ = [
    "DetectMetaRefreshRedirect",
    "DetectTextContent",
    "EnhanceContent",
    "RedirectLoopError",
    "TraversalError",
    "TraverseContext",
    "TraverseOptions",
    "TraverseSettings",
    "default_traverse_options",
    "detect_meta_refresh_redirect",
    "detect_text_content",
    "extract_meta_refresh_url",
    "remove_label_line_breaks_and_trim_spaces",
    "remove_url_tracking_codes_enhancer",
    "traverse",
    "validate_status",
]
