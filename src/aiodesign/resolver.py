"""
Dependency resolution and execution engine.

Bindings are evaluated lazily and concurrently. Each key gets one memoized
task, so a producer runs at most once however many dependents read it, and
the dependency graph is recorded as producers request values through their
injectors.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Mapping
from typing import Any

from .bindings import Binding
from .dag import DependencyGraph, DesignError
from .injector import Injector
from .result import Container, Finalizer, Result

logger = logging.getLogger(__name__)


class MissingDependencyError(DesignError):
    """Raised when a producer requests a key that is not bound."""

    def __init__(self, key: str, requested_by: str | None = None):
        self.key = key
        self.requested_by = requested_by
        msg = f'missing dependency "{key}"'
        if requested_by is not None:
            msg += f' (required by "{requested_by}")'
        super().__init__(msg)


class ProducerFailureError(DesignError):
    """
    Raised when a binding could not be produced.

    Wraps the original error once; dependents of the failed key re-raise the
    same instance unchanged.
    """

    def __init__(self, key: str, cause: BaseException):
        self.key = key
        self.cause = cause
        super().__init__(f'failed to resolve "{key}" because: {cause}')


class AlreadyResolvedError(DesignError):
    """Raised when a resolver is asked to resolve a second time."""

    def __init__(self) -> None:
        super().__init__("already resolved")


class DependencyResolver:
    """
    Resolves every binding of one blueprint exactly once.

    A resolver is single-use: its memoized values and discovered graph belong
    to the one container it builds, so a second ``resolve()`` is rejected.
    Build a new resolver, or call ``Design.resolve`` again, for a fresh graph.
    """

    def __init__(self, bindings: Mapping[str, Binding]):
        super().__init__()
        self._bindings: dict[str, Binding] = dict(bindings)
        self._graph: DependencyGraph[str] = DependencyGraph()
        self._cells: dict[str, asyncio.Task[Any]] = {}
        self._resolve_started = False

    @property
    def graph(self) -> DependencyGraph[str]:
        return self._graph

    def keys(self) -> list[str]:
        return list(self._bindings)

    def request(self, key: str, requested_by: str | None = None) -> asyncio.Task[Any]:
        """
        Return the memoized task producing ``key``, starting it on first use.

        The dependency edge is recorded before anything is awaited, so a
        cycle is reported at the first mutual request.

        Raises:
            MissingDependencyError: if ``key`` is not bound
            CyclicDependencyError: if ``requested_by -> key`` closes a cycle
        """
        if key not in self._bindings:
            raise MissingDependencyError(key, requested_by)

        if requested_by is None:
            self._graph.add_node(key)
        else:
            self._graph.add_edge(requested_by, key)

        cell = self._cells.get(key)
        if cell is None:
            cell = asyncio.get_running_loop().create_task(
                self._produce(key), name=f"aiodesign:{key}"
            )
            self._cells[key] = cell
        return cell

    def is_resolved(self, key: str) -> bool:
        """Check if ``key`` has been produced successfully."""
        cell = self._cells.get(key)
        return (
            cell is not None
            and cell.done()
            and not cell.cancelled()
            and cell.exception() is None
        )

    def resolved_count(self) -> int:
        """Number of keys produced successfully so far."""
        return sum(1 for key in self._cells if self.is_resolved(key))

    async def resolve(self) -> Result:
        """
        Produce every binding and build the finalizer.

        Raises:
            ProducerFailureError: the first binding that failed. Other
                producers already running are left to finish.
            AlreadyResolvedError: if called more than once
        """
        if self._resolve_started:
            raise AlreadyResolvedError()
        self._resolve_started = True

        keys = list(self._bindings)
        values = await asyncio.gather(*(self.request(key) for key in keys))
        container = Container(dict(zip(keys, values, strict=True)))

        levels = self._graph.dependencies_for_each_depth()
        logger.debug("Resolved %d bindings in %d levels", len(container), len(levels))
        return Result(container, Finalizer(container, self._bindings, levels))

    async def _produce(self, key: str) -> Any:
        binding = self._bindings[key]
        injector = Injector(self, key)
        logger.debug("Producing %r", key)

        try:
            value = binding.produce(injector)
            if inspect.isawaitable(value):
                value = await value
        except ProducerFailureError:
            raise
        except Exception as e:
            logger.debug("Producer for %r failed: %s", key, e)
            raise ProducerFailureError(key, e) from e

        logger.debug("Produced %r", key)
        return value


async def resolve(bindings: Mapping[str, Binding]) -> Result:
    """Resolve a mapping of bindings into a container and its finalizer."""
    return await DependencyResolver(bindings).resolve()
