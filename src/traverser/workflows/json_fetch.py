"""Typed JSON fetches guarded by a runtime shape check.

``safe_fetch_json`` separates two kinds of failure so callers can tell them
apart:

* the traversal never produced parsed JSON (transport error, non-200 status)
  -> ``on_invalid_result(result)``
* JSON arrived but has the wrong shape (guard rejected it, or it did not parse)
  -> ``on_guard_failure(value)`` (or ``on_parse_failure(text)`` when given)

Exactly one callback fires for a failing call; the callback's return value is
what ``safe_fetch_json`` returns. On success the parsed value is returned and
neither callback runs.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Mapping, Optional, TypeVar

from .results import (
    TraversalContent,
    TraversalResult,
    TraversalStructuredContent,
    TraversalTextContent,
    extend,
    is_traversal_structured_content,
    terminal_result,
)
from .traverse import TraverseContext, TraverseOptions, default_traverse_options, traverse
from .traverse_utils import decode_body

logger = logging.getLogger(__name__)

T = TypeVar("T")

Guard = Callable[[Any], bool]


async def parse_json_content(_: Any, instance: TraversalResult) -> TraversalResult:
    """Content enhancer producing :class:`TraversalStructuredContent`."""

    if not isinstance(instance, TraversalContent) or is_traversal_structured_content(instance):
        return instance
    if isinstance(instance, TraversalTextContent):
        body, text = instance.body_bytes or b"", instance.body_text
    else:
        body = await instance.response.read()
        text = decode_body(body, instance.content_type)
    value: Any = None
    error: Optional[BaseException] = None
    try:
        value = json.loads(text)
    except ValueError as exc:
        logger.debug("JSON parse failed for %s: %s", instance.terminal_url, exc)
        error = exc
    return extend(
        instance,
        TraversalStructuredContent,
        body_bytes=body,
        body_text=text,
        structured=value,
        parse_error=error,
    )


@dataclass(frozen=True)
class JsonTraverseOptions(Generic[T]):
    guard: Guard
    on_guard_failure: Callable[[Any], Optional[T]]
    traverse_options: TraverseOptions
    on_parse_failure: Optional[Callable[[str], Optional[T]]] = None


def json_traverse_options(
    guard: Guard,
    on_guard_failure: Callable[[Any], Optional[T]],
    *,
    on_parse_failure: Optional[Callable[[str], Optional[T]]] = None,
    **overrides: Any,
) -> JsonTraverseOptions[T]:
    """Build options whose terminal content enhancer parses JSON.

    ``overrides`` are forwarded to :func:`default_traverse_options`
    (``transport``, ``max_redirect_hops``...).
    """

    return JsonTraverseOptions(
        guard=guard,
        on_guard_failure=on_guard_failure,
        on_parse_failure=on_parse_failure,
        traverse_options=default_traverse_options(content_enhancers=[parse_json_content], **overrides),
    )


async def safe_fetch_json(
    request: Any,
    json_options: JsonTraverseOptions[T],
    on_invalid_result: Callable[[TraversalResult], Optional[T]],
    *,
    request_options: Optional[Mapping[str, Any]] = None,
    label: Optional[str] = None,
) -> Optional[T]:
    result = await traverse(
        TraverseContext(
            request=request,
            options=json_options.traverse_options,
            request_options=request_options,
            label=label,
        )
    )
    final = terminal_result(result)
    if not isinstance(final, TraversalStructuredContent):
        return on_invalid_result(result)
    if final.parse_error is not None:
        handler = json_options.on_parse_failure or json_options.on_guard_failure
        return handler(final.body_text)
    if json_options.guard(final.structured):
        return final.structured
    return json_options.on_guard_failure(final.structured)


def type_guard(*required_keys: str) -> Guard:
    """Guard accepting mappings that carry every key in ``required_keys``."""

    def guard(value: Any) -> bool:
        return isinstance(value, Mapping) and all(key in value for key in required_keys)

    return guard


def type_guard_array_of(*required_keys: str) -> Guard:
    """Guard accepting lists whose every element passes :func:`type_guard`."""

    element = type_guard(*required_keys)

    def guard(value: Any) -> bool:
        return isinstance(value, list) and all(element(item) for item in value)

    return guard


__all__ = [
    "Guard",
    "JsonTraverseOptions",
    "json_traverse_options",
    "parse_json_content",
    "safe_fetch_json",
    "type_guard",
    "type_guard_array_of",
]
