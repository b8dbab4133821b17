"""Shared lake bookkeeping: errors, statistics, snapshots and sandboxes."""

from __future__ import annotations

from dataclasses import dataclass
from types import TracebackType


class LakeError(Exception):
    """Raised when a lake or view cannot hold the requested amount of data."""


@dataclass(frozen=True)
class LakeStats:
    """A point-in-time summary of a lake's fill level."""

    used: int
    remaining: int
    capacity: int
    generation: int


@dataclass(frozen=True)
class LakeSnapshot:
    """A value checkpoint of a lake's offset that can be rewound to."""

    offset: int


class LakeMeta:
    """Mixin for anything that hands out memory linearly.

    Implementers provide three attributes: ``offset`` (the current fill
    level, writable), ``generation`` (bumped on every full reset) and
    ``capacity`` (total size in bytes).
    """

    offset: int
    generation: int
    capacity: int

    def stats(self) -> LakeStats:
        """Return the current usage figures."""
        return LakeStats(
            used=self.offset,
            remaining=self.capacity - self.offset,
            capacity=self.capacity,
            generation=self.generation,
        )

    def sandbox(self) -> SandboxGuard:
        """Open a sandbox that rolls the offset back unless committed."""
        return SandboxGuard(self, self.offset)


class SandboxGuard:
    """Scope that restores a lake's offset when closed without a commit.

    Use it as a context manager, or call :meth:`close` explicitly.
    """

    def __init__(self, lake: LakeMeta, base_offset: int) -> None:
        self.lake: LakeMeta | None = lake
        self.base_offset = base_offset
        self.committed = False

    def view(self) -> LakeMeta:
        """Return the guarded lake."""
        if self.lake is None:
            raise RuntimeError("sandbox no longer holds a lake")
        return self.lake

    def commit(self) -> None:
        """Keep every allocation made inside the sandbox."""
        lake = self.view()
        delta = lake.offset - self.base_offset
        lake.offset = self.base_offset + delta
        self.committed = True

    def commit_and_return(self) -> LakeMeta:
        """Commit and hand the lake back, releasing it from the guard."""
        lake = self.view()
        delta = lake.offset - self.base_offset
        lake.offset = self.base_offset + delta
        self.committed = True
        self.lake = None
        return lake

    def close(self) -> None:
        """Roll back uncommitted allocations and release the lake."""
        if not self.committed and self.lake is not None:
            self.lake.offset = self.base_offset
        self.lake = None

    def __enter__(self) -> SandboxGuard:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()