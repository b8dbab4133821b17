"""The lake: a preallocated linear arena with marks, snapshots and rewinds."""

from __future__ import annotations

import struct
from typing import Any, Callable

from lakepool.droplet import Droplet, DropletDyn
from lakepool.lake_view import LakeView, _struct_alignment
from lakepool.meta import LakeError, LakeMeta, LakeSnapshot
from lakepool.utils import align_up


class Lake(LakeMeta):
    """A fixed-size byte arena from which droplets are carved in order.

    Allocation only moves the offset forward. Memory comes back through
    :meth:`reset` (which also starts a new generation, invalidating every
    droplet), through marks, or through snapshots.
    """

    def __init__(self, size: int) -> None:
        if size < 0:
            raise ValueError(f"size must be non-negative, got {size}")
        self._buf = bytearray(size)
        self.capacity = size
        self.offset = 0
        self.generation = 0
        self.zeroing = False
        self._marks: list[int] = []

    def snapshot(self) -> LakeSnapshot:
        """Capture the current offset."""
        return LakeSnapshot(offset=self.offset)

    def rewind(self, snapshot: LakeSnapshot) -> None:
        """Return to the offset stored in ``snapshot``."""
        self.offset = snapshot.offset

    def split(self, length: int) -> LakeView:
        """Hand ``length`` bytes to a new view that allocates on its own."""
        if length < 0:
            raise ValueError(f"length must be non-negative, got {length}")
        if self.offset + length > self.capacity:
            raise LakeError(
                f"lake overflow: cannot split {length} bytes, {self.remaining()} available"
            )
        view = LakeView(self._buf, self.capacity, self.offset, length)
        view.zeroing = self.zeroing
        self.offset += length
        return view

    def process(self, func: Callable[[int], Any]) -> DropletDyn:
        """Store the bytes ``func`` produces and return them as a droplet.

        ``func`` receives the number of bytes still available and returns a
        bytes-like object (or an iterable of byte values).
        """
        remaining = self.capacity - self.offset
        if remaining == 0:
            raise LakeError("lake is full")
        start = self.offset
        generation = self.generation
        data = bytes(func(remaining))
        length = len(data)
        if length > remaining:
            raise LakeError(
                f"lake overflow: produced {length} bytes, {remaining} available"
            )
        self._buf[start : start + length] = data
        self.offset += length
        return DropletDyn(self, self._buf, start, length, generation)

    def alloc(self, size: int) -> Droplet | None:
        """Carve a fixed-size droplet, or return None if it does not fit."""
        if size < 0:
            raise ValueError(f"size must be non-negative, got {size}")
        if self.offset + size > self.capacity:
            return None
        droplet = Droplet(self, self._buf, self.offset, size, 0, self.generation)
        self.offset += size
        return droplet

    def alloc_dyn(self, size: int) -> DropletDyn | None:
        """Carve a droplet of a size chosen at run time, or None if it does not fit."""
        if size < 0:
            raise ValueError(f"size must be non-negative, got {size}")
        if self.offset + size > self.capacity:
            return None
        droplet = DropletDyn(self, self._buf, self.offset, size, self.generation)
        self.offset += size
        return droplet

    def reset(self) -> None:
        """Release everything, drop all marks and start a new generation."""
        if self.zeroing:
            self._buf[: self.offset] = bytes(self.offset)
        self.offset = 0
        self._marks.clear()
        self.generation += 1

    def used(self) -> int:
        """Bytes handed out so far."""
        return self.offset

    def remaining(self) -> int:
        """Bytes still available."""
        return self.capacity - self.offset

    def is_empty(self) -> bool:
        """Whether nothing is allocated."""
        return self.offset == 0

    def is_full(self) -> bool:
        """Whether every byte is allocated."""
        return self.offset == self.capacity

    def as_bytes(self) -> bytes:
        """A copy of the allocated part of the buffer."""
        return bytes(self._buf[: self.offset])

    def as_memoryview(self) -> memoryview:
        """A writable view of the allocated part of the buffer."""
        return memoryview(self._buf)[: self.offset]

    def peek(self, size: int) -> bytes | None:
        """The ``size`` bytes the next allocation would receive, or None if they do not fit."""
        if size < 0:
            raise ValueError(f"size must be non-negative, got {size}")
        if self.offset + size > self.capacity:
            return None
        return bytes(self._buf[self.offset : self.offset + size])

    def reset_to(self, n: int) -> None:
        """Move the offset back by ``n`` bytes, stopping at zero."""
        self.offset = max(0, self.offset - n)

    def mark(self) -> None:
        """Push the current offset onto the mark stack."""
        self._marks.append(self.offset)

    def reset_to_mark(self) -> None:
        """Pop the latest mark and rewind to it; does nothing without marks."""
        if self._marks:
            self.offset = self._marks.pop()

    def move_mark(self) -> None:
        """Move the latest mark to the current offset."""
        if self._marks:
            self._marks[-1] = self.offset

    def clear(self) -> None:
        """Same as :meth:`reset`."""
        self.reset()

    def alloc_struct(self, fmt: str) -> memoryview:
        """Reserve room for one ``struct`` record, aligned as the format requires.

        Returns the writable bytes of the record; fill them with
        ``struct.pack_into``.
        """
        layout = struct.Struct(fmt)
        start = align_up(self.offset, _struct_alignment(fmt))
        if start + layout.size > self.capacity:
            raise LakeError("Lake overflow")
        self.offset = start + layout.size
        return memoryview(self._buf)[start : self.offset]

    def alloc_slice(self, fmt: str, count: int) -> memoryview:
        """Reserve room for ``count`` records of ``fmt``.

        Single native type codes come back as a typed memoryview whose items
        can be read and assigned directly; other formats as raw bytes.
        """
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        layout = struct.Struct(fmt)
        size = layout.size * count
        start = align_up(self.offset, _struct_alignment(fmt))
        if start + size > self.capacity:
            raise LakeError("Lake overflow")
        self.offset = start + size
        region = memoryview(self._buf)[start : self.offset]
        code = fmt.lstrip("@")
        if len(code) == 1:
            try:
                return region.cast(code)
            except (TypeError, ValueError):
                return region
        return region

    def __repr__(self) -> str:
        return (
            f"Lake(capacity={self.capacity}, used={self.offset}, "
            f"generation={self.generation})"
        )