"""
Resolved containers and their finalizers.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterator, Mapping
from dataclasses import dataclass
from types import TracebackType
from typing import Any, TypeAlias

from .bindings import Binding
from .dag import DesignError

logger = logging.getLogger(__name__)

BatchRunner: TypeAlias = Callable[[list[asyncio.Future[None]]], Awaitable[None]]


class AlreadyFinalizedError(DesignError):
    """Raised when a result is finalized a second time."""

    def __init__(self) -> None:
        super().__init__("already finalized")


async def run_concurrently(batch: list[asyncio.Future[None]]) -> None:
    """
    Default batch runner.

    Waits for every finalizer of the level to settle, then raises the first
    failure, if any.
    """
    outcomes = await asyncio.gather(*batch, return_exceptions=True)
    failures = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
    for extra in failures[1:]:
        logger.warning("Additional finalizer failure in the same level", exc_info=extra)
    if failures:
        raise failures[0]


class Container(Mapping[str, Any]):
    """
    Read-only mapping of every bound key to its resolved value.

    Values can also be read as attributes: ``container.db`` is ``container["db"]``.
    Keys named after mapping methods (``get``, ``keys``, ``items``,
    ``values``) are only reachable by subscription.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, Any] | None = None):
        self._values: dict[str, Any] = dict(values or {})

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._values[name]
        except KeyError:
            raise AttributeError(f"Container has no key {name!r}") from None

    def __repr__(self) -> str:
        return f"Container({self._values!r})"


class Finalizer:
    """
    One-shot teardown of a resolved container.

    Keys are finalized level by level in the order given by
    ``DependencyGraph.dependencies_for_each_depth``: dependents before the
    keys they depend on. Finalizers inside one level are started together
    and handed to the batch runner as one batch of futures.
    """

    def __init__(
        self,
        container: Container,
        bindings: Mapping[str, Binding],
        levels: list[list[str]],
    ):
        self._container = container
        self._bindings = bindings
        self._levels = levels
        self._finalized = False

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def levels(self) -> list[list[str]]:
        return [list(level) for level in self._levels]

    async def __call__(self, batch_runner: BatchRunner | None = None) -> None:
        """
        Run every finalizer.

        Args:
            batch_runner: Awaits one level's finalizers, which are already
                running when it is called. Defaults to ``run_concurrently``;
                a custom runner may swallow failures. Finalizers it leaves
                pending are still awaited before the next level starts.

        Raises:
            AlreadyFinalizedError: if called more than once
        """
        if self._finalized:
            raise AlreadyFinalizedError()
        self._finalized = True

        runner = batch_runner or run_concurrently
        failures: list[Exception] = []
        loop = asyncio.get_running_loop()

        for depth, keys in enumerate(self._levels):
            logger.debug("Finalizing level %d: %s", depth, keys)
            batch: list[asyncio.Future[None]] = [
                loop.create_task(self._finalize_key(key), name=f"aiodesign:finalize:{key}")
                for key in keys
            ]
            try:
                await runner(batch)
            except Exception as e:
                logger.debug("Finalizer level %d failed: %s", depth, e)
                failures.append(e)

            pending = [future for future in batch if not future.done()]
            if pending:
                await asyncio.wait(pending)

        for extra in failures[1:]:
            logger.warning("Additional finalizer failure", exc_info=extra)
        if failures:
            raise failures[0]

    async def _finalize_key(self, key: str) -> None:
        outcome = self._bindings[key].finalize(self._container[key])
        if inspect.isawaitable(outcome):
            await outcome


@dataclass(frozen=True)
class Result:
    """
    Outcome of one resolution: the container and its finalizer.

    Unpacks as ``container, finalize = await design.resolve(...)`` and works
    as an async context manager that finalizes on exit:

        ```python
        async with await design.resolve({"url": url}) as container:
            await container.client.fetch()
        ```
    """

    container: Container
    finalize: Finalizer

    def __iter__(self) -> Iterator[Any]:
        yield self.container
        yield self.finalize

    async def __aenter__(self) -> Container:
        return self.container

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if exc_value is None:
            await self.finalize()
            return

        try:
            await self.finalize()
        except Exception:
            # Keep the original failure; the finalizer's one is only logged
            logger.exception("Finalization failed while handling %r", exc_value)
