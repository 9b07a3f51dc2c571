"""
Tests for finalization and scoped use of resolved designs.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

import pytest

from aiodesign import AlreadyFinalizedError, Design, Injector, bind


async def resolve_key1(_injector: Injector) -> int:
    return 123


async def resolve_key2(injector: Injector) -> str:
    return f"key1 is {await injector.key1}"


async def resolve_key3(injector: Injector) -> bool:
    return await injector.key2 == "key1 is 123"


class AsyncResource:
    """A resource released through aclose()."""

    def __init__(self, name: str):
        self.name = name
        self.closed = False

    async def aclose(self) -> None:
        await asyncio.sleep(0.01)
        self.closed = True


class SyncResource:
    """A resource released through close()."""

    def __init__(self) -> None:
        self.closed = False

    def close(self) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_finalizes_dependents_first() -> None:
    called: list[str] = []

    def call_with(key: str, expected: object):
        async def finalize(item: object) -> None:
            assert item == expected
            called.append(key)

        return finalize

    design = (
        bind("key1", resolve_key1, call_with("key1", 123))
        .bind("key2", resolve_key2, call_with("key2", "key1 is 123"))
        .bind("key3", resolve_key3, call_with("key3", True))
    )
    _, finalize = await design.resolve({})
    await finalize()

    assert called == ["key3", "key2", "key1"]
    assert finalize.finalized


@pytest.mark.asyncio
async def test_levels_follow_discovered_graph() -> None:
    async def b(injector: Injector) -> int:
        return await injector.c1 + await injector.c2

    async def a(injector: Injector) -> int:
        return await injector.b

    design = (
        bind("a1", a).bind("a2", a).bind("b", b).bind("c1", lambda _: 1).bind("c2", lambda _: 2)
    )
    _, finalize = await design.resolve()

    assert finalize.levels == [["a1", "a2"], ["b"], ["c1", "c2"]]


@pytest.mark.asyncio
async def test_cannot_finalize_twice() -> None:
    _, finalize = await Design.empty().resolve({})
    await finalize()

    with pytest.raises(AlreadyFinalizedError, match="already finalized"):
        await finalize()


@pytest.mark.asyncio
async def test_level_completes_before_next_starts() -> None:
    events: list[str] = []

    async def dependent(injector: Injector) -> int:
        return await injector.leaf

    def slow_finalizer(name: str):
        async def finalize(_item: object) -> None:
            events.append(f"start {name}")
            await asyncio.sleep(0.01)
            events.append(f"end {name}")

        return finalize

    async def leaf_finalizer(_item: object) -> None:
        events.append("leaf")

    design = (
        bind("leaf", lambda _: 0, leaf_finalizer)
        .bind("d1", dependent, slow_finalizer("d1"))
        .bind("d2", dependent, slow_finalizer("d2"))
    )
    _, finalize = await design.resolve()
    await finalize()

    assert events[:2] == ["start d1", "start d2"]
    assert set(events[2:4]) == {"end d1", "end d2"}
    assert events[4] == "leaf"


@pytest.mark.asyncio
async def test_finalizer_failure_surfaces_after_all_levels() -> None:
    released: list[str] = []

    async def failing(_item: object) -> None:
        raise RuntimeError("fails")

    async def release(item: str) -> None:
        released.append(item)

    async def top(injector: Injector) -> str:
        await injector.bottom
        return "top"

    design = bind("bottom", lambda _: "bottom", release).bind("top", top, failing)
    _, finalize = await design.resolve()

    with pytest.raises(RuntimeError, match="fails"):
        await finalize()

    assert released == ["bottom"]


@pytest.mark.asyncio
async def test_can_use_own_batch_runner() -> None:
    observed: list[str] = []

    async def failing(_item: int) -> None:
        raise RuntimeError("fails")

    async def swallowing_runner(batch: list[asyncio.Future[None]]) -> None:
        try:
            await asyncio.gather(*batch)
        except RuntimeError as e:
            observed.append(str(e))

    _, finalize = await bind("key1", lambda _: 123, failing).resolve({})
    await finalize(swallowing_runner)

    assert observed == ["fails"]


@pytest.mark.asyncio
async def test_sequential_runner_still_finalizes_level_concurrently() -> None:
    events: list[str] = []

    def slow_release(name: str) -> Callable[[str], Awaitable[None]]:
        async def release(_value: str) -> None:
            events.append(f"start {name}")
            await asyncio.sleep(0.01)
            events.append(f"end {name}")

        return release

    async def one_by_one(batch: list[asyncio.Future[None]]) -> None:
        for future in batch:
            try:
                await future
            except Exception:
                pass

    design = bind("a", lambda _: "a", slow_release("a")).bind("b", lambda _: "b", slow_release("b"))
    _, finalize = await design.resolve()
    assert finalize.levels == [["a", "b"]]

    await finalize(one_by_one)

    assert sorted(events[:2]) == ["start a", "start b"]
    assert sorted(events[2:]) == ["end a", "end b"]


@pytest.mark.asyncio
async def test_runner_ignoring_batch_does_not_skip_finalizers() -> None:
    released: list[str] = []

    async def release(value: str) -> None:
        await asyncio.sleep(0.01)
        released.append(value)

    async def ignoring_runner(_batch: list[asyncio.Future[None]]) -> None:
        return None

    async def make_top(injector: Injector) -> str:
        return f"top({await injector.base})"

    design = bind("base", lambda _: "base", release).bind("top", make_top, release)
    _, finalize = await design.resolve()
    await finalize(ignoring_runner)

    # still level by level: "top" depends on "base"
    assert released == ["top(base)", "base"]
    assert finalize.levels == [["top"], ["base"]]


@pytest.mark.asyncio
async def test_sync_finalizer_is_accepted() -> None:
    released: list[int] = []

    _, finalize = await bind("key1", lambda _: 1, released.append).resolve()
    await finalize()

    assert released == [1]


@pytest.mark.asyncio
async def test_bind_resource_uses_aclose() -> None:
    async def make(_injector: Injector) -> AsyncResource:
        return AsyncResource("resource")

    container, finalize = await Design.empty().bind_resource("resource", make).resolve({})
    resource = container.resource

    assert isinstance(resource, AsyncResource)
    assert not resource.closed

    await finalize()

    assert resource.closed


@pytest.mark.asyncio
async def test_bind_resource_falls_back_to_close() -> None:
    container, finalize = await Design.empty().bind_resource(
        "resource", lambda _: SyncResource()
    ).resolve()

    await finalize()

    assert container.resource.closed


@pytest.mark.asyncio
async def test_bind_resource_without_cleanup_fails_on_finalize() -> None:
    _, finalize = await Design.empty().bind_resource("plain", lambda _: 42).resolve()

    with pytest.raises(TypeError, match="neither aclose"):
        await finalize()


@pytest.mark.asyncio
async def test_use_runs_callback_in_resource_safe_manner() -> None:
    messages: list[str] = []

    async def create(_injector: Injector) -> str:
        messages.append("resource creating")
        return "test-resource"

    async def release(_item: str) -> None:
        messages.append("resource finalizing")

    design = bind("resource", create, release)

    async def callback(container) -> str:
        messages.append(f"using resource: {container.resource}")
        return "processed"

    result = await design.use({})(callback)

    assert result == "processed"
    assert messages == [
        "resource creating",
        "using resource: test-resource",
        "resource finalizing",
    ]


@pytest.mark.asyncio
async def test_use_finalizes_when_callback_fails() -> None:
    messages: list[str] = []

    async def create(_injector: Injector) -> str:
        messages.append("resource creating")
        return "test-resource"

    async def release(_item: str) -> None:
        messages.append("resource finalizing")

    async def callback(_container) -> None:
        raise ValueError("fail")

    with pytest.raises(ValueError, match="fail"):
        await bind("resource", create, release).use({})(callback)

    assert messages == ["resource creating", "resource finalizing"]


@pytest.mark.asyncio
async def test_use_keeps_callback_error_over_finalizer_error(
    caplog: pytest.LogCaptureFixture,
) -> None:
    async def failing(_item: object) -> None:
        raise RuntimeError("finalizer failed")

    def callback(_container) -> None:
        raise ValueError("callback failed")

    with caplog.at_level(logging.ERROR, logger="aiodesign.result"):
        with pytest.raises(ValueError, match="callback failed"):
            await bind("key", lambda _: 1, failing).use()(callback)

    assert "Finalization failed" in caplog.text


@pytest.mark.asyncio
async def test_use_accepts_sync_callback() -> None:
    result = await bind("key", lambda _: 21).use()(lambda container: container.key * 2)

    assert result == 42


@pytest.mark.asyncio
async def test_result_as_async_context_manager() -> None:
    resource = AsyncResource("ctx")

    async with await bind("resource", lambda _: resource).bind_resource(
        "owned", lambda _: AsyncResource("owned")
    ).resolve() as container:
        owned = container.owned
        assert container.resource is resource
        assert not owned.closed

    assert owned.closed
    assert not resource.closed
