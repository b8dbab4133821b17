"""Small arithmetic helpers shared by the allocators."""

from __future__ import annotations


def align_up(offset: int, align: int) -> int:
    """Round ``offset`` up to the next multiple of ``align``.

    ``align`` must be a positive power of two.
    """
    if align <= 0 or align & (align - 1):
        raise ValueError(f"alignment must be a power of two, got {align}")
    return (offset + align - 1) & ~(align - 1)