"""Second-order IIR (biquad) filters for interleaved stereo audio."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import IntEnum
from typing import MutableSequence, Optional

from .core_engine import CoreEngine
from .logger import LogLevel, check, log_message, log_periodic
from .thread_pool import ThreadPool

IIR_RECALCULATE = 1 << 0


class FilterType(IntEnum):
    """Filter responses; the shelving types are not available yet."""

    LOWPASS = 0
    HIGHPASS = 1
    BANDPASS = 2
    BANDSTOP = 3
    HIGH_SHELVE = 4
    LOW_SHELVE = 5


@dataclass(frozen=True)
class Coefficients:
    """Biquad coefficients; ``a0`` normalises the difference equation."""

    a0: float = 0.0
    a1: float = 0.0
    a2: float = 0.0
    b0: float = 0.0
    b1: float = 0.0
    b2: float = 0.0


@dataclass
class _ChannelHistory:
    inputs: list = field(default_factory=lambda: [0.0, 0.0])
    outputs: list = field(default_factory=lambda: [0.0, 0.0])


class IirFilter:
    """A biquad filter with separate history for the left and right channels.

    Changing ``filter_type``, ``freq`` or the other parameters takes effect
    after :meth:`recalculate`; the new coefficients are computed on the
    engine's thread pool after the next processed block.
    """

    def __init__(
        self,
        sample_rate: float,
        filter_type: FilterType,
        freq: float,
        q_factor: float = 1.0,
        atten: float = 1.0,
        db_gain: float = 0.0,
    ) -> None:
        self.sample_rate = float(sample_rate)
        self.filter_type = filter_type
        self.freq = freq
        self.q_factor = q_factor
        self.atten = atten
        self.db_gain = db_gain
        self.flags = 0
        self.thread_pool: Optional[ThreadPool] = None
        self.coeffs = Coefficients()
        self._history = (_ChannelHistory(), _ChannelHistory())
        self.calculate_coeffs()

    def calculate_coeffs(self) -> None:
        """Compute the coefficients for the current type and parameters."""
        gain = 10.0 ** (self.db_gain / (40.0 * self.freq))
        omega = (2.0 * math.pi * self.freq) / self.sample_rate
        alpha = math.sin(omega) / (2.0 * self.q_factor)
        cos_omega = math.cos(omega)
        filter_type = self.filter_type

        if filter_type == FilterType.LOWPASS:
            b0 = (1.0 - cos_omega) / 2.0
            coeffs = Coefficients(
                a0=1.0 + alpha,
                a1=-2.0 * cos_omega,
                a2=1.0 - alpha,
                b0=b0,
                b1=1.0 - cos_omega,
                b2=b0,
            )
        elif filter_type == FilterType.HIGHPASS:
            b0 = (1.0 + cos_omega) / 2.0
            coeffs = Coefficients(
                a0=1.0 + alpha,
                a1=-2.0 * cos_omega,
                a2=1.0 - alpha,
                b0=b0,
                b1=-(1.0 + cos_omega),
                b2=b0,
            )
        elif filter_type == FilterType.BANDPASS:
            coeffs = Coefficients(
                a0=1.0 + alpha / gain,
                a1=-2.0 * cos_omega,
                a2=1.0 - alpha / gain,
                b0=1.0 + alpha * gain,
                b1=-2.0 * cos_omega,
                b2=1.0 - alpha * gain,
            )
        else:
            check(False, "Unknown IIR filter type")
            return

        self.coeffs = coeffs
        log_message(
            LogLevel.INFO,
            "Calculated IIR coefficients: a0=%f, a1=%f, a2=%f, b0=%f, b1=%f, b2=%f",
            coeffs.a0,
            coeffs.a1,
            coeffs.a2,
            coeffs.b0,
            coeffs.b1,
            coeffs.b2,
        )

    def filter_sample(self, sample: float, index: int) -> float:
        """Filter one sample of channel ``index`` (0 left, 1 right)."""
        check(0 <= index < 2, "Sample channel index can only be 0 (left) or 1 (right)")
        coeffs = self.coeffs
        history = self._history[index]
        inputs, outputs = history.inputs, history.outputs

        output = (
            coeffs.b0 * sample
            + coeffs.b1 * inputs[0]
            + coeffs.b2 * inputs[1]
            - coeffs.a1 * outputs[0]
            - coeffs.a2 * outputs[1]
        )
        check(coeffs.a0 != 0, "IIR a0 cannot be zero for valid filter")
        output /= coeffs.a0

        inputs[1], inputs[0] = inputs[0], sample
        outputs[1], outputs[0] = outputs[0], output

        log_periodic(("iir_filter", "sample"), LogLevel.INFO, 1000, "%f -> %f", sample, output)
        return output

    def process(self, sample_rate: float, num_frames: int, buffer: MutableSequence[float]) -> None:
        """Filter ``num_frames`` interleaved frames in place."""
        for frame in range(num_frames):
            left = 2 * frame
            buffer[left] = self.filter_sample(buffer[left], 0)
            buffer[left + 1] = self.filter_sample(buffer[left + 1], 1)

        if self.flags & IIR_RECALCULATE:
            check(self.thread_pool is not None, "Filter is not registered with an engine")
            self.sample_rate = float(sample_rate)
            self.flags &= ~IIR_RECALCULATE
            self.thread_pool.defer_task(_calculate, self)

    def recalculate(self) -> None:
        """Ask for new coefficients after the next processed block."""
        self.flags |= IIR_RECALCULATE

    def register(self, engine: CoreEngine) -> int:
        """Add this filter to ``engine`` and return its processor id."""
        self.thread_pool = engine.thread_pool
        return engine.create_processor(_process, None, self)


def _calculate(iir_filter: IirFilter) -> None:
    iir_filter.calculate_coeffs()


def _process(sample_rate: float, num_frames: int, buffer, iir_filter: IirFilter) -> None:
    iir_filter.process(sample_rate, num_frames, buffer)