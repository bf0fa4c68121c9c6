"""Bit-mask helpers, in-place sample buffer arithmetic and clamping."""

from __future__ import annotations

from collections.abc import MutableSequence, Sequence


def bitcount(mask: int) -> int:
    """Return the number of set bits in a non-negative integer mask."""
    if mask < 0:
        raise ValueError(f"mask must be non-negative, got {mask}")
    return bin(mask).count("1")


def count_trailing_zeros(mask: int) -> int:
    """Return the index of the lowest set bit of a positive mask."""
    if mask <= 0:
        raise ValueError(f"mask must be positive, got {mask}")
    return (mask & -mask).bit_length() - 1


def buffer_sum(buffer: MutableSequence[float], value: float) -> None:
    """Add ``value`` to every sample of ``buffer`` in place."""
    for index, sample in enumerate(buffer):
        buffer[index] = sample + value


def buffer_product(buffer: MutableSequence[float], value: float) -> None:
    """Multiply every sample of ``buffer`` by ``value`` in place."""
    for index, sample in enumerate(buffer):
        buffer[index] = sample * value


def buffer_parallel_sum(buffer_out: MutableSequence[float], buffer_in: Sequence[float]) -> None:
    """Add ``buffer_in`` sample by sample onto ``buffer_out`` in place."""
    if len(buffer_out) != len(buffer_in):
        raise ValueError(
            f"buffer lengths differ: {len(buffer_out)} != {len(buffer_in)}"
        )
    for index, sample in enumerate(buffer_in):
        buffer_out[index] += sample


def clamp_high(value: float, maximum: float) -> float:
    """Limit ``value`` to at most ``maximum``."""
    return maximum if value > maximum else value


def clamp_low(value: float, minimum: float) -> float:
    """Limit ``value`` to at least ``minimum``."""
    return minimum if value < minimum else value


def clamp(value: float, minimum: float, maximum: float) -> float:
    """Limit ``value`` to the range ``[minimum, maximum]``."""
    return clamp_low(clamp_high(value, maximum), minimum)