"""
Design - immutable, composable blueprint of bindings.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Iterator, Mapping
from types import MappingProxyType
from typing import Any, TypeVar

from .bindings import Binding, FinalizerFn, Producer, close_resource, merge_bindings, no_finalizer
from .resolver import resolve
from .result import Container, Result

T = TypeVar("T")


class Design:
    """
    A key-value blueprint of an object graph.

    Each key is bound to a producer that receives an ``Injector`` and
    returns the value (or an awaitable of it). Dependencies are whatever the
    producer requests through the injector; nothing has to be declared up
    front. Every operation returns a new ``Design``.

    Example:
        ```python
        async def greeting(injector: Injector) -> str:
            return f"hello, {await injector.name}"

        design = Design.empty().bind("greeting", greeting)
        container, finalize = await design.resolve({"name": "world"})
        assert container.greeting == "hello, world"
        await finalize()
        ```
    """

    __slots__ = ("_bindings",)

    def __init__(self, bindings: Mapping[str, Binding] | None = None):
        self._bindings: Mapping[str, Binding] = MappingProxyType(dict(bindings or {}))

    @classmethod
    def empty(cls) -> Design:
        """A design without bindings."""
        return cls()

    @classmethod
    def pure(cls, mapping: Mapping[str, Any]) -> Design:
        """A design binding every entry of ``mapping`` to its value as is."""
        return cls({key: Binding.value(key, value) for key, value in mapping.items()})

    @property
    def bindings(self) -> Mapping[str, Binding]:
        """Read-only view of the bindings."""
        return self._bindings

    def keys(self) -> list[str]:
        return list(self._bindings)

    def __contains__(self, key: object) -> bool:
        return key in self._bindings

    def __len__(self) -> int:
        return len(self._bindings)

    def __iter__(self) -> Iterator[str]:
        return iter(self._bindings)

    def __repr__(self) -> str:
        return f"Design({list(self._bindings)!r})"

    def bind(self, key: str, produce: Producer, finalize: FinalizerFn | None = None) -> Design:
        """
        Bind ``key`` to a producer and an optional finalizer.

        An existing binding for ``key`` is replaced in the returned design.
        """
        binding = Binding(key, produce, finalize or no_finalizer)
        return Design(merge_bindings(self._bindings, {key: binding}))

    def bind_resource(self, key: str, produce: Producer) -> Design:
        """Bind ``key`` and finalize it with the value's ``aclose()`` or ``close()``."""
        return self.bind(key, produce, close_resource)

    def merge(self, other: Design) -> Design:
        """Combine two designs; bindings of ``other`` win on a key collision."""
        return Design(merge_bindings(self._bindings, other._bindings))

    async def resolve(self, requirements: Mapping[str, Any] | None = None) -> Result:
        """
        Produce every binding, with ``requirements`` supplied as plain values.

        Raises:
            ProducerFailureError: a producer failed, a dependency was missing
                or a cycle was detected. The original error, such as a
                ``MissingDependencyError`` or ``CyclicDependencyError``, is
                on its ``cause`` attribute and chained as ``__cause__``; it
                is never raised on its own.
        """
        merged = self.merge(Design.pure(requirements or {}))
        return await resolve(merged._bindings)

    def use(
        self, requirements: Mapping[str, Any] | None = None
    ) -> Callable[[Callable[[Container], T | Awaitable[T]]], Awaitable[T]]:
        """
        Run a callback against a resolved container, then finalize it.

        The finalizer runs exactly once whether or not the callback fails;
        a callback failure is re-raised after finalization.

        Example:
            ```python
            result = await design.use({"url": url})(lambda c: c.client.fetch())
            ```
        """

        async def run(callback: Callable[[Container], T | Awaitable[T]]) -> T:
            async with await self.resolve(requirements) as container:
                outcome = callback(container)
                if inspect.isawaitable(outcome):
                    return await outcome
                return outcome

        return run


def bind(key: str, produce: Producer, finalize: FinalizerFn | None = None) -> Design:
    """Shortcut for ``Design.empty().bind(...)``."""
    return Design.empty().bind(key, produce, finalize)
