"""A constant-power stereo fader with volume and pan."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import MutableSequence

from .core_engine import CoreEngine
from .logger import LogLevel, log_message
from .utils import clamp


@dataclass
class Fader:
    """Scales the left and right channels by volume and a constant-power pan.

    ``pan`` runs from -1 (hard left) to 1 (hard right) and ``vol`` from 0 to 1;
    values outside those ranges are clamped while processing.
    """

    pan: float = 0.0
    vol: float = 0.0

    def process(self, sample_rate: float, num_frames: int, buffer: MutableSequence[float]) -> None:
        """Apply the current gains to ``num_frames`` interleaved stereo frames."""
        vol = clamp(self.vol, 0.0, 1.0)
        pan = clamp(self.pan, -1.0, 1.0)
        angle = (pan + 1.0) * (math.pi / 4.0)
        left_gain = math.cos(angle) * vol
        right_gain = math.sin(angle) * vol
        for frame in range(num_frames):
            buffer[2 * frame] *= left_gain
            buffer[2 * frame + 1] *= right_gain

    def register(self, engine: CoreEngine) -> int:
        """Add this fader to ``engine`` and return its processor id."""
        log_message(LogLevel.INFO, "Creating Fader: pan = %f, vol = %f", self.pan, self.vol)
        return engine.create_processor(_process, None, self)


def _process(sample_rate: float, num_frames: int, buffer, fader: Fader) -> None:
    fader.process(sample_rate, num_frames, buffer)