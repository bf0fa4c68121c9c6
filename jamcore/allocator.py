"""A bump allocator over a fixed byte arena, reset in one step."""

from __future__ import annotations

from typing import Optional

from .logger import check


class ScratchAllocator:
    """Hands out consecutive slices of an arena until released."""

    def __init__(self, size: int, base: Optional[bytearray] = None) -> None:
        if size < 0:
            raise ValueError(f"size must be non-negative, got {size}")
        if base is None:
            base = bytearray(size)
        check(len(base) >= size, "Arena of %d bytes is smaller than %d", len(base), size)
        self.base = base
        self.size = size
        self.offset = 0

    @property
    def remaining(self) -> int:
        """Bytes still available before the next release."""
        return self.size - self.offset

    def alloc(self, size: int) -> memoryview:
        """Return a view of the next ``size`` bytes; contents are left as they were."""
        if size < 0:
            raise ValueError(f"size must be non-negative, got {size}")
        remaining = self.remaining
        check(
            remaining >= size,
            "Not enough scratch space for allocation (requested %d, only had %d)",
            size,
            remaining,
        )
        start = self.offset
        self.offset += size
        return memoryview(self.base)[start:start + size]

    def calloc(self, size: int) -> memoryview:
        """Return a zero-filled view of the next ``size`` bytes."""
        view = self.alloc(size)
        view[:] = bytes(size)
        return view

    def release(self) -> None:
        """Make the whole arena available again."""
        self.offset = 0