"""
aiodesign - lazy, asynchronous object graphs built from named producers.

This library provides:
- Immutable, mergeable designs of key -> producer bindings
- Dependency discovery at resolution time through injectors
- Cycle and missing-dependency detection
- Concurrent, memoized resolution (each producer runs at most once)
- Finalization in dependency order, dependents first
"""

from .bindings import Binding, close_resource, merge_bindings
from .dag import CyclicDependencyError, DependencyGraph, DesignError
from .design import Design, bind
from .injector import Injector
from .resolver import (
    AlreadyResolvedError,
    DependencyResolver,
    MissingDependencyError,
    ProducerFailureError,
    resolve,
)
from .result import AlreadyFinalizedError, Container, Finalizer, Result, run_concurrently

__all__ = [
    "AlreadyFinalizedError",
    "AlreadyResolvedError",
    "Binding",
    "Container",
    "CyclicDependencyError",
    "DependencyGraph",
    "DependencyResolver",
    "Design",
    "DesignError",
    "Finalizer",
    "Injector",
    "MissingDependencyError",
    "ProducerFailureError",
    "Result",
    "bind",
    "close_resource",
    "merge_bindings",
    "resolve",
    "run_concurrently",
]
