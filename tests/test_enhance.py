import asyncio

from traverser.workflows.enhance import apply, enhancer, enhancer_sync


def test_enhancer_runs_stages_in_order_with_same_context():
    seen = []

    async def add(ctx, value):
        seen.append(ctx)
        return value + ["add"]

    def sync_stage(ctx, value):
        seen.append(ctx)
        return value + ["sync"]

    class Stage:
        async def enhance(self, ctx, value):
            seen.append(ctx)
            return value + ["object"]

    composite = enhancer(add, sync_stage, Stage())
    result = asyncio.run(composite("ctx", []))

    assert result == ["add", "sync", "object"]
    assert seen == ["ctx", "ctx", "ctx"]


def test_empty_enhancer_is_identity():
    value = object()
    assert asyncio.run(enhancer()(None, value)) is value
    assert enhancer_sync()(None, value) is value


def test_enhancer_never_short_circuits():
    calls = []

    def passthrough(name):
        def stage(ctx, value):
            calls.append(name)
            return value

        return stage

    composite = enhancer_sync(passthrough("a"), passthrough("b"), passthrough("c"))
    assert composite(None, 1) == 1
    assert calls == ["a", "b", "c"]


def test_composites_nest():
    inner = enhancer_sync(lambda ctx, v: v + 1, lambda ctx, v: v * 2)
    outer = enhancer_sync(inner, lambda ctx, v: v - 3)
    assert outer(None, 4) == 7


def test_apply_awaits_async_and_sync_stages():
    async def double(ctx, value):
        return value * 2

    assert asyncio.run(apply(double, None, 3)) == 6
    assert asyncio.run(apply(lambda ctx, v: v + 1, None, 3)) == 4
