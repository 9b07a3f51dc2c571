"""
Binding definitions for aiodesign.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeAlias

if TYPE_CHECKING:
    from .injector import Injector

Producer: TypeAlias = Callable[["Injector"], Any]
FinalizerFn: TypeAlias = Callable[[Any], Awaitable[None] | None]


async def no_finalizer(_value: Any) -> None:
    """Default finalizer, does nothing."""


async def close_resource(value: Any) -> None:
    """Release a value through its own ``aclose()`` or ``close()`` method."""
    closer = getattr(value, "aclose", None) or getattr(value, "close", None)
    if closer is None:
        raise TypeError(f"{type(value).__name__} has neither aclose() nor close()")
    result = closer()
    if inspect.isawaitable(result):
        await result


@dataclass(frozen=True)
class Binding:
    """A key paired with its producer and finalizer."""

    key: str
    produce: Producer
    finalize: FinalizerFn = field(default=no_finalizer)

    @classmethod
    def value(cls, key: str, value: Any) -> Binding:
        """Binding that ignores its injector and returns ``value`` as is."""
        return cls(key, lambda _injector: value)


def merge_bindings(
    left: Mapping[str, Binding], right: Mapping[str, Binding]
) -> dict[str, Binding]:
    """
    Union of two binding mappings.

    On a key collision the binding from ``right`` wins. Neither input is modified.
    """
    merged = dict(left)
    merged.update(right)
    return merged
