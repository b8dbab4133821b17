"""Views: sub-lakes that allocate from a borrowed section of a buffer."""

from __future__ import annotations

import struct
from typing import Any, Callable

from lakepool.droplet import Droplet, DropletDyn
from lakepool.meta import LakeError, LakeMeta
from lakepool.utils import align_up


def _struct_alignment(fmt: str) -> int:
    """Alignment a ``struct`` format needs, following native layout rules."""
    if fmt and fmt[0] in "=<>!":
        return 1
    align = 1
    for code in fmt.lstrip("@"):
        if code.isdigit() or code.isspace() or code in "xsp":
            continue
        align = max(align, struct.calcsize("@" + code))
    return align


class LakeView(LakeMeta):
    """A section of a larger buffer with its own offset, marks and generation.

    ``size`` is the capacity of the lake the view belongs to; it bounds what
    :meth:`process` may produce. ``capacity`` bounds fixed allocations and
    splits. The view never copies the buffer: droplets and sub-views share it.
    """

    def __init__(
        self,
        buffer: Any,
        size: int | None = None,
        start: int = 0,
        capacity: int | None = None,
    ) -> None:
        window = memoryview(buffer)
        if window.readonly:
            raise TypeError("a lake view needs a writable buffer")
        if start < 0 or start > len(window):
            raise ValueError(f"start {start} lies outside a buffer of {len(window)} bytes")
        if capacity is None:
            capacity = len(window) - start
        if capacity < 0 or start + capacity > len(window):
            raise ValueError(
                f"capacity {capacity} from {start} does not fit a buffer of {len(window)} bytes"
            )
        self._window = window[start:]
        self.size = len(window) if size is None else size
        self.capacity = capacity
        self.offset = 0
        self.generation = 0
        self.zeroing = False
        self._marks: list[int] = []

    def alloc(self, size: int) -> Droplet | None:
        """Carve a fixed-size droplet, or return None if it does not fit."""
        if size < 0:
            raise ValueError(f"size must be non-negative, got {size}")
        if self.offset + size > self.capacity:
            return None
        droplet = Droplet(
            self,
            self._window,
            self.offset,
            size,
            self.offset + size,
            self.generation,
        )
        self.offset += size
        return droplet

    def process(self, func: Callable[[int], Any]) -> DropletDyn:
        """Store the bytes ``func`` produces and return them as a droplet.

        ``func`` receives the number of bytes still available and returns a
        bytes-like object (or an iterable of byte values).
        """
        remaining = self.size - self.offset
        if remaining <= 0:
            raise LakeError("lake view is full")
        data = bytes(func(remaining))
        length = len(data)
        if length > remaining or self.offset + length > len(self._window):
            raise LakeError(
                f"lake view overflow: produced {length} bytes, {remaining} available"
            )
        start = self.offset
        self._window[start : start + length] = data
        self.offset += length
        return DropletDyn(self, self._window, start, length, self.generation)

    def split(self, length: int) -> LakeView | None:
        """Fork off a sub-view of ``length`` bytes, or None if it does not fit."""
        if length < 0:
            raise ValueError(f"length must be non-negative, got {length}")
        if self.offset + length > self.capacity:
            return None
        view = LakeView(self._window, self.size, self.offset, length)
        view.zeroing = self.zeroing
        self.offset += length
        return view

    def used(self) -> int:
        """Bytes handed out so far."""
        return self.offset

    def remaining(self) -> int:
        """Bytes still available for fixed allocations."""
        return self.capacity - self.offset

    def reset(self) -> None:
        """Release everything, drop all marks and start a new generation."""
        if self.zeroing:
            self._window[: self.offset] = bytes(self.offset)
        self.offset = 0
        self._marks.clear()
        self.generation += 1

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

    def as_memoryview(self) -> memoryview:
        """A writable view of the whole region this view controls."""
        return self._window[: self.capacity]

    def alloc_struct(self, fmt: str) -> memoryview:
        """Reserve room for one ``struct`` record, aligned as the format requires.

        Returns the writable bytes of the record; fill them with
        ``struct.pack_into``.
        """
        layout = struct.Struct(fmt)
        start = align_up(self.offset, _struct_alignment(fmt))
        if start + layout.size > self.capacity:
            raise LakeError("LakeView overflow")
        self.offset = start + layout.size
        return self._window[start : self.offset]

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
            raise LakeError("LakeView overflow")
        self.offset = start + size
        region = self._window[start : self.offset]
        code = fmt.lstrip("@")
        if len(code) == 1:
            try:
                return region.cast(code)
            except (TypeError, ValueError):
                return region
        return region

    def __repr__(self) -> str:
        return (
            f"LakeView(capacity={self.capacity}, used={self.offset}, "
            f"generation={self.generation})"
        )