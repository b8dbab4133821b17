"""A small ring buffer for building short byte strings."""

from __future__ import annotations

from lakepool.meta import LakeError


class SmallLake:
    """A fixed-size byte buffer written from a moving position.

    Writes that do not fit in the space left wrap around to the start; the
    readable contents are the bytes before the current position.
    """

    def __init__(self, size: int) -> None:
        if size <= 0:
            raise ValueError(f"size must be positive, got {size}")
        self.buf = bytearray(size)
        self.pos = 0

    def reset_pos(self) -> None:
        """Move the position back to the start."""
        self.pos = 0

    def write_byte(self, value: int) -> None:
        """Write one byte, wrapping to the start when the end is reached."""
        self.buf[self.pos] = value
        self.pos += 1
        if self.pos >= len(self.buf):
            self.pos = 0

    def as_bytes(self) -> bytes:
        """The bytes before the current position."""
        return bytes(self.buf[: self.pos])

    def __len__(self) -> int:
        return self.pos

    def write(self, data: bytes | bytearray | memoryview) -> None:
        """Append ``data``; if it does not fit after the position, write it at the start."""
        length = len(data)
        size = len(self.buf)
        if length > size:
            raise LakeError(
                f"DataLake overflow: trying to write {length}, but buffer is only {size}"
            )
        if length > size - self.pos:
            self.pos = 0
        self.buf[self.pos : self.pos + length] = data
        self.pos += length

    def write_num_str(self, value: int) -> None:
        """Write the decimal digits of a non-negative integer."""
        if value < 0:
            raise ValueError(f"value must be non-negative, got {value}")
        self.write(str(value).encode("ascii"))

    def write_num_str_fixed(self, value: int, length: int) -> None:
        """Write exactly ``length`` decimal digits, zero-padded, keeping the low digits."""
        if value < 0 or length < 0:
            raise ValueError("value and length must be non-negative")
        if self.pos + length > len(self.buf):
            raise LakeError(
                f"DataLake overflow: trying to write {length} at {self.pos}, "
                f"but buffer is only {len(self.buf)}"
            )
        if length == 0:
            return
        digits = f"{value % 10**length:0{length}d}".encode("ascii")
        self.buf[self.pos : self.pos + length] = digits
        self.pos += length