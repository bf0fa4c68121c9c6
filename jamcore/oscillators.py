"""Simple periodic signal generators."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import IntEnum
from typing import MutableSequence

from .core_engine import CoreEngine
from .logger import LogLevel, check, log_message

_TWO_PI = 2.0 * math.pi


class Waveform(IntEnum):
    """Shapes an oscillator can produce."""

    SIN = 0
    SQUARE = 1
    SAW = 2


_WAVEFORM_VALUES = frozenset(int(waveform) for waveform in Waveform)


@dataclass
class Oscillator:
    """Adds a periodic waveform to both channels of the buffer it processes."""

    waveform: Waveform
    frequency: float
    phase: float = 0.0
    amplitude: float = 1.0

    def __post_init__(self) -> None:
        check(int(self.waveform) in _WAVEFORM_VALUES, "Waveform type ID invalid")
        self.waveform = Waveform(self.waveform)

    def _sample(self, phase: float) -> float:
        waveform = self.waveform
        if waveform == Waveform.SIN:
            return math.sin(phase)
        if waveform == Waveform.SQUARE:
            return 1.0 if phase < math.pi else -1.0
        if waveform == Waveform.SAW:
            return (phase / _TWO_PI) * 2.0 - 1.0
        check(False, "Unknown waveform type %d", int(waveform))
        return 0.0

    def process(self, sample_rate: float, num_frames: int, buffer: MutableSequence[float]) -> None:
        """Mix ``num_frames`` frames of the waveform into the interleaved buffer."""
        increment = (_TWO_PI * self.frequency) / sample_rate
        phase = self.phase
        for frame in range(num_frames):
            value = self._sample(phase) * self.amplitude
            buffer[2 * frame] += value
            buffer[2 * frame + 1] += value
            phase += increment
            while phase >= _TWO_PI:
                phase -= _TWO_PI
            self.phase = phase

    def register(self, engine: CoreEngine) -> int:
        """Add this oscillator to ``engine`` and return its processor id."""
        log_message(LogLevel.INFO, "Creating WAVEFORM_%s Oscillator", self.waveform.name)
        return engine.create_processor(_process, None, self)


def _process(sample_rate: float, num_frames: int, buffer, oscillator: Oscillator) -> None:
    oscillator.process(sample_rate, num_frames, buffer)