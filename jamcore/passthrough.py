"""A processor that leaves its input untouched."""

from __future__ import annotations

from typing import Any

from .core_engine import CoreEngine
from .logger import LogLevel, log_message


def process_passthrough(sample_rate: float, num_frames: int, buffer: Any, data: Any) -> None:
    """Leave the buffer exactly as it is."""


def create_passthrough(engine: CoreEngine) -> int:
    """Add a passthrough processor to ``engine`` and return its id."""
    log_message(LogLevel.INFO, "Creating Passthrough Processor")
    return engine.create_processor(process_passthrough, None, None)