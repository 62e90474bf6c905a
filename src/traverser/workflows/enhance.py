"""Enhancer composition.

An enhancer is any callable ``(ctx, value) -> value`` (awaitable for the async
flavour), or an object exposing the same signature as ``enhance``. Composites
run every stage in order, feeding each output to the next stage and threading
the same context through; nothing short-circuits.
"""

from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, TypeVar, Union

C = TypeVar("C")
V = TypeVar("V")

Enhancer = Callable[[C, V], Awaitable[V]]
EnhancerSync = Callable[[C, V], V]
EnhancerLike = Union[Callable[[Any, Any], Any], Any]


def _as_callable(stage: EnhancerLike) -> Callable[[Any, Any], Any]:
    method = getattr(stage, "enhance", None)
    if callable(method):
        return method
    if callable(stage):
        return stage
    raise TypeError(f"Not an enhancer: {stage!r}")


def enhancer(*stages: EnhancerLike) -> Enhancer:
    """Compose async (or sync) stages into a single async enhancer."""

    pipeline = tuple(_as_callable(stage) for stage in stages)

    async def composite(ctx: Any, value: Any) -> Any:
        for stage in pipeline:
            value = stage(ctx, value)
            if inspect.isawaitable(value):
                value = await value
        return value

    composite.stages = pipeline  # type: ignore[attr-defined]
    return composite


def enhancer_sync(*stages: EnhancerLike) -> EnhancerSync:
    """Compose synchronous stages into a single synchronous enhancer."""

    pipeline = tuple(_as_callable(stage) for stage in stages)

    def composite(ctx: Any, value: Any) -> Any:
        for stage in pipeline:
            value = stage(ctx, value)
        return value

    composite.stages = pipeline  # type: ignore[attr-defined]
    return composite


async def apply(stage: EnhancerLike, ctx: Any, value: Any) -> Any:
    """Run one stage, awaiting it when it is asynchronous."""

    result = _as_callable(stage)(ctx, value)
    if inspect.isawaitable(result):
        result = await result
    return result


__all__ = ["Enhancer", "EnhancerSync", "apply", "enhancer", "enhancer_sync"]
