"""Droplets: fixed or dynamically sized fragments carved from a lake."""

from __future__ import annotations

import struct
from array import array
from typing import Any

from lakepool.meta import LakeError, LakeMeta


class StaleDropletError(RuntimeError):
    """Raised when a droplet is used after its lake was reset or rewound past it."""


class DropletOverflowError(LakeError):
    """Raised when a write does not fit into a droplet."""


class DropletBase:
    """Common behaviour of droplets.

    A droplet does not own memory: it is a window onto part of its lake's
    buffer, plus the generation and offset needed to tell whether the lake
    has since reclaimed that memory. ``offset`` also serves as the write
    cursor for the ``write*`` methods.
    """

    lake: LakeMeta
    offset: int
    generation: int
    _start: int
    _size: int
    _view: memoryview

    def _setup(
        self,
        lake: LakeMeta,
        buffer: Any,
        start: int,
        size: int,
        offset: int,
        generation: int,
    ) -> None:
        self.lake = lake
        self.offset = offset
        self.generation = generation
        self._start = start
        self._size = size
        self._view = memoryview(buffer)[start : start + size]

    def is_valid(self) -> bool:
        """Whether the lake still holds this droplet's memory."""
        return self.lake.generation == self.generation and self.lake.offset >= self.offset

    def _guard(self) -> None:
        if not self.is_valid():
            raise StaleDropletError("droplet is stale: its lake was reset or rewound past it")

    def as_memoryview(self) -> memoryview:
        """A writable view of the droplet's bytes."""
        self._guard()
        return self._view

    def as_bytes(self) -> bytes:
        """A copy of the droplet's bytes."""
        return self.as_memoryview().tobytes()

    def as_str(self) -> str | None:
        """The contents decoded as UTF-8, or None if they are not valid UTF-8."""
        try:
            return self.as_bytes().decode("utf-8")
        except UnicodeDecodeError:
            return None

    def as_array(self, typecode: str) -> array | None:
        """The contents as an array of ``typecode`` items.

        Returns None when the length is not a whole number of items or the
        droplet does not start on an item boundary.
        """
        data = self.as_bytes()
        result = array(typecode)
        size = result.itemsize
        if len(data) % size or self._start % size:
            return None
        result.frombytes(data)
        return result

    def deserialize(self, fmt: str) -> tuple | None:
        """Unpack one ``struct`` record from the start, or None if it does not fit."""
        layout = struct.Struct(fmt)
        view = self.as_memoryview()
        if layout.size > len(view):
            return None
        return layout.unpack_from(view)

    def deserialize_slice(self, fmt: str) -> list | None:
        """Unpack the whole droplet as repeated ``struct`` records.

        Single-field formats yield plain values, others yield tuples. Returns
        None when the length is not a whole number of records.
        """
        layout = struct.Struct(fmt)
        view = self.as_memoryview()
        if layout.size == 0 or len(view) % layout.size:
            return None
        fields = len(layout.unpack(bytes(layout.size)))
        records = layout.iter_unpack(view)
        if fields == 1:
            return [record[0] for record in records]
        return list(records)

    def reset(self) -> None:
        """Move the write cursor back to the start."""
        self.offset = 0

    def remaining(self) -> int:
        """Bytes left between the write cursor and the end."""
        return len(self) - self.offset

    def write(self, data: bytes | bytearray | memoryview) -> None:
        """Copy ``data`` in at the write cursor and advance it."""
        size = len(self)
        remaining = self.remaining()
        length = len(data)
        if length > size or length > remaining:
            raise DropletOverflowError(
                f"droplet overflow: trying to write {length}, "
                f"but buffer is only {size} and remaining {remaining}"
            )
        self._view[self.offset : self.offset + length] = data
        self.offset += length

    def write_num_str(self, value: int) -> None:
        """Write the decimal digits of a non-negative integer."""
        if value < 0:
            raise ValueError(f"value must be non-negative, got {value}")
        self.write(str(value).encode("ascii"))

    def write_num_str_fixed(self, value: int, length: int) -> None:
        """Write exactly ``length`` decimal digits, zero-padded, keeping the low digits."""
        if value < 0 or length < 0:
            raise ValueError("value and length must be non-negative")
        if length == 0:
            return
        digits = f"{value % 10**length:0{length}d}"
        self.write(digits.encode("ascii"))

    def write_byte(self, value: int) -> None:
        """Write a single byte at the write cursor."""
        self.write(bytes((value,)))

    def __len__(self) -> int:
        self._guard()
        return self._size

    def __getitem__(self, index: int | slice) -> int | bytes:
        item = self.as_memoryview()[index]
        if isinstance(item, memoryview):
            return item.tobytes()
        return item

    def __setitem__(self, index: int | slice, value: Any) -> None:
        self.as_memoryview()[index] = value

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(size={self._size}, offset={self.offset}, "
            f"generation={self.generation}, valid={self.is_valid()})"
        )


class Droplet(DropletBase):
    """A fixed-size droplet.

    ``offset`` is the lake offset the droplet's validity is measured against.
    """

    def __init__(
        self,
        lake: LakeMeta,
        buffer: Any,
        start: int,
        size: int,
        offset: int,
        generation: int,
    ) -> None:
        self._setup(lake, buffer, start, size, offset, generation)


class DropletDyn(DropletBase):
    """A droplet whose length was decided at run time.

    ``start`` is its position in ``buffer``, which is also the lake's offset
    at the moment it was carved out.
    """

    def __init__(
        self,
        lake: LakeMeta,
        buffer: Any,
        start: int,
        size: int,
        generation: int,
    ) -> None:
        self._setup(lake, buffer, start, size, start, generation)