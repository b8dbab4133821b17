"""A per-thread lake, created on demand and reached through :func:`with_lake`."""

from __future__ import annotations

import threading
from typing import Callable, TypeVar

from lakepool.lake import Lake

DEFAULT_SIZE = 65536

_T = TypeVar("_T")
_local = threading.local()


class LakeNotInitializedError(RuntimeError):
    """Raised when the current thread's lake is used before it is created."""


def thread_lake_init() -> None:
    """Give the current thread a fresh lake of ``DEFAULT_SIZE`` bytes."""
    _local.lake = Lake(DEFAULT_SIZE)


def thread_lake_release() -> None:
    """Drop the current thread's lake."""
    _local.lake = None


def with_lake(func: Callable[[Lake], _T]) -> _T:
    """Call ``func`` with the current thread's lake and return its result."""
    lake = getattr(_local, "lake", None)
    if lake is None:
        raise LakeNotInitializedError(
            "Lake not initialized. Call `thread_lake_init()` first."
        )
    return func(lake)