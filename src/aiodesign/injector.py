"""
Injector - the view a producer uses to request other keys.
"""

from __future__ import annotations

from collections.abc import Awaitable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .resolver import DependencyResolver


class Injector:
    """
    Per-key access to the values of other bindings.

    Every request made through an injector is recorded as a dependency of
    the key the injector was built for, so the dependency graph grows as
    producers actually read their inputs.

    Example:
        ```python
        async def make_service(injector: Injector) -> Service:
            db = await injector.db          # same as injector.get("db")
            config = await injector["config"]
            return Service(db, config)
        ```
    """

    __slots__ = ("_resolver", "_requested_by")

    def __init__(self, resolver: DependencyResolver, requested_by: str):
        self._resolver = resolver
        self._requested_by = requested_by

    @property
    def requested_by(self) -> str:
        """The key whose producer owns this injector."""
        return self._requested_by

    def get(self, key: str) -> Awaitable[Any]:
        """
        Request the value bound to ``key``.

        Returns an awaitable shared by every requester of ``key``.

        Raises:
            MissingDependencyError: if ``key`` is not bound
            CyclicDependencyError: if the request closes a dependency cycle
        """
        return self._resolver.request(key, self._requested_by)

    def keys(self) -> list[str]:
        """All keys that can be requested."""
        return self._resolver.keys()

    def __getitem__(self, key: str) -> Awaitable[Any]:
        return self.get(key)

    def __getattr__(self, name: str) -> Awaitable[Any]:
        if name.startswith("_"):
            raise AttributeError(name)
        return self.get(name)

    def __repr__(self) -> str:
        return f"Injector(requested_by={self._requested_by!r})"
