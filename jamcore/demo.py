"""A scripted demonstration: two oscillators and a filtered WAV file, mixed live."""

from __future__ import annotations

import argparse
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .core_engine import SAMPLE_RATE_DEFAULT, CoreEngine
from .fader import Fader
from .iir_filter import FilterType, IirFilter
from .logger import LogLevel, log_message
from .oscillators import Oscillator, Waveform
from .utils import clamp_low
from .wav_player import WavPlayer, WavPlayerFlag

DEFAULT_WAV_PATH = "example/Kings.wav"


@dataclass
class Demo:
    """The processors of the demonstration graph and their ids."""

    sin_osc: Oscillator
    square_osc: Oscillator
    wav_player: WavPlayer
    lowpass: IirFilter
    square_fader: Fader
    sin_fader: Fader
    wav_fader: Fader
    sin_id: int
    square_id: int
    wav_id: int
    filter_id: int
    square_fader_id: int
    sin_fader_id: int
    wav_fader_id: int


def build_demo(engine: CoreEngine, wav_path: str) -> Demo:
    """Create the demonstration processors in ``engine`` and route them."""
    sin_osc = Oscillator(Waveform.SIN, 440.0, 0.0, 0.5)
    sin_id = sin_osc.register(engine)
    engine.add_source(sin_id)

    square_osc = Oscillator(Waveform.SQUARE, 440.0, 0.0, 0.015)
    square_id = square_osc.register(engine)
    engine.add_source(square_id)

    wav_player = WavPlayer(wav_path, WavPlayerFlag.LOOPING)
    wav_id = wav_player.register(engine)
    engine.add_source(wav_id)

    lowpass = IirFilter(SAMPLE_RATE_DEFAULT, FilterType.LOWPASS, 100, 1, 1)
    filter_id = lowpass.register(engine)

    square_fader = Fader(pan=-1.0, vol=0.0)
    sin_fader = Fader(pan=1.0, vol=0.0)
    wav_fader = Fader(pan=0.0, vol=0.0)
    square_fader_id = square_fader.register(engine)
    sin_fader_id = sin_fader.register(engine)
    wav_fader_id = wav_fader.register(engine)

    engine.route(sin_id, sin_fader_id, True)
    engine.route(square_id, square_fader_id, True)
    engine.route(wav_id, filter_id, True)
    engine.route(filter_id, wav_fader_id, True)

    return Demo(
        sin_osc=sin_osc,
        square_osc=square_osc,
        wav_player=wav_player,
        lowpass=lowpass,
        square_fader=square_fader,
        sin_fader=sin_fader,
        wav_fader=wav_fader,
        sin_id=sin_id,
        square_id=square_id,
        wav_id=wav_id,
        filter_id=filter_id,
        square_fader_id=square_fader_id,
        sin_fader_id=sin_fader_id,
        wav_fader_id=wav_fader_id,
    )


def _ramp(steps: int, tick: float, action: Callable[[], None]) -> None:
    for _ in range(steps):
        action()
        time.sleep(tick)


def _run_timeline(demo: Demo, window: int, tick: float, seek_pause: float) -> None:
    faders = (demo.sin_fader, demo.square_fader, demo.wav_fader)

    fade_in_step = 0.3 / window

    def fade_in() -> None:
        for fader in faders:
            fader.vol += fade_in_step

    _ramp(window, tick, fade_in)

    for index in reversed(range(5)):
        position = 300000 * index
        log_message(LogLevel.INFO, "Seeking wav file to %d", position)
        demo.wav_player.seek(position)
        if demo.lowpass.filter_type == FilterType.LOWPASS:
            demo.lowpass.filter_type = FilterType.HIGHPASS
            demo.lowpass.freq = 1000
        else:
            demo.lowpass.filter_type = FilterType.LOWPASS
            demo.lowpass.freq = 100
        demo.lowpass.recalculate()
        time.sleep(seek_pause)

    pan_step = 2.0 / window
    pitch_step = 440.0 / window

    def sweep(direction: float) -> Callable[[], None]:
        def step() -> None:
            demo.sin_fader.pan -= direction * pan_step
            demo.square_fader.pan += direction * pan_step
            demo.sin_osc.frequency += direction * pitch_step
            demo.square_osc.frequency -= direction * pitch_step

        return step

    _ramp(window, tick, sweep(1.0))
    _ramp(window, tick, sweep(-1.0))

    fade_out_step = 1.0 / window
    for fader in faders:

        def fade_out(fader: Fader = fader) -> None:
            fader.vol = clamp_low(fader.vol - fade_out_step, 0.0)

        _ramp(window, tick, fade_out)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Play the demonstration through the engine and return the exit status."""
    parser = argparse.ArgumentParser(description="Play a short scripted mix.")
    parser.add_argument("wav", nargs="?", default=DEFAULT_WAV_PATH, help="WAV file to stream")
    parser.add_argument("--window-ms", type=int, default=2000, help="steps in each ramp")
    parser.add_argument("--tick-ms", type=float, default=1.0, help="pause between ramp steps")
    parser.add_argument(
        "--seek-pause-ms", type=float, default=2000.0, help="pause after each seek"
    )
    args = parser.parse_args(argv)
    if args.window_ms <= 0:
        parser.error("--window-ms must be positive")
    if args.tick_ms < 0 or args.seek_pause_ms < 0:
        parser.error("pauses must not be negative")

    with CoreEngine(0.5, 1024) as engine:
        demo = build_demo(engine, args.wav)
        engine.start()
        _run_timeline(demo, args.window_ms, args.tick_ms / 1000.0, args.seek_pause_ms / 1000.0)
        engine.stop()
    return 0