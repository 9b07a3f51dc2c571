"""
Dependency graph discovered while bindings are resolved.

Edges point from a dependent key to the key it requires, e.g. after
``add_edge("service", "db")`` the graph holds ``{"service": {"db"}, "db": {}}``.
"""

from __future__ import annotations

from collections.abc import Hashable, Iterator
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)


class DesignError(Exception):
    """Base class for every error raised by aiodesign."""


class CyclicDependencyError(DesignError):
    """Raised when an edge would close a cycle in the dependency graph."""

    def __init__(self, cycle: list[Hashable]):
        self.cycle = cycle
        cycle_str = " -> ".join(str(key) for key in cycle)
        super().__init__(f"cyclic dependency detected: {cycle_str}")


class DependencyGraph(Generic[K]):
    """Mutable adjacency map with incremental cycle detection."""

    def __init__(self) -> None:
        super().__init__()
        # dicts used as insertion-ordered sets
        self._dependencies: dict[K, dict[K, None]] = {}

    def add_node(self, key: K) -> None:
        """Register a key; no-op when it is already known."""
        self._ensure_node(key)

    def add_edge(self, from_key: K, to_key: K) -> None:
        """
        Record that ``from_key`` depends on ``to_key``.

        Raises:
            CyclicDependencyError: if the edge closes a cycle. The edge is
                removed again before raising, the graph stays acyclic.
        """
        self._ensure_node(to_key)
        dependencies = self._ensure_node(from_key)
        is_new = to_key not in dependencies
        dependencies[to_key] = None

        cycle = self._find_cycle(from_key)
        if cycle is not None:
            if is_new:
                del dependencies[to_key]
            raise CyclicDependencyError(cycle)

    def dependencies_of(self, key: K) -> list[K]:
        """Keys that ``key`` directly depends on."""
        return list(self._dependencies.get(key, ()))

    @property
    def nodes(self) -> list[K]:
        return list(self._dependencies)

    def __contains__(self, key: object) -> bool:
        return key in self._dependencies

    def __len__(self) -> int:
        return len(self._dependencies)

    def dependencies_for_each_depth(self) -> list[list[K]]:
        """
        Group keys into levels, most dependent keys first.

        Keys without dependencies are peeled off repeatedly and each peeled
        batch is put in front of the previous ones. For ``a1, a2 -> b`` and
        ``b -> c1, c2`` the result is ``[[a1, a2], [b], [c1, c2]]``.
        Works on a copy; the graph itself is left untouched.
        """
        remaining = {key: dict(deps) for key, deps in self._dependencies.items()}
        levels: list[list[K]] = []

        while remaining:
            independent = [key for key, deps in remaining.items() if not deps]
            if not independent:
                # Unreachable while add_edge keeps the graph acyclic
                raise CyclicDependencyError(list(remaining))

            for key in independent:
                del remaining[key]
            for deps in remaining.values():
                for key in independent:
                    deps.pop(key, None)

            levels.insert(0, independent)

        return levels

    def _ensure_node(self, key: K) -> dict[K, None]:
        return self._dependencies.setdefault(key, {})

    def _find_cycle(self, origin: K) -> list[K] | None:
        """Depth-first search for a path leading from ``origin`` back to it."""
        explored: set[K] = set()
        path: list[K] = [origin]
        stack: list[Iterator[K]] = [iter(list(self._dependencies.get(origin, ())))]

        while stack:
            try:
                node = next(stack[-1])
            except StopIteration:
                stack.pop()
                finished = path.pop()
                if finished != origin:
                    explored.add(finished)
                continue

            if node == origin:
                return path + [node]
            if node in explored or node in path:
                continue

            path.append(node)
            stack.append(iter(list(self._dependencies.get(node, ()))))

        return None
