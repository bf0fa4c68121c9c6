import math

import pytest

from jamcore.core_engine import CoreEngine
from jamcore.logger import EngineAssertionError
from jamcore.oscillators import Oscillator, Waveform


@pytest.fixture
def engine():
    with CoreEngine(1.0, 64, output_thread=False) as eng:
        yield eng


def _left(buffer):
    return buffer[0::2]


def test_sin_wave():
    osc = Oscillator(Waveform.SIN, 1.0, 0.0, 1.0)
    buffer = [0.0] * 8
    osc.process(4.0, 4, buffer)
    assert _left(buffer) == pytest.approx([0.0, 1.0, 0.0, -1.0], abs=1e-9)


def test_saw_wave():
    osc = Oscillator(Waveform.SAW, 1.0, 0.0, 1.0)
    buffer = [0.0] * 8
    osc.process(4.0, 4, buffer)
    assert _left(buffer) == pytest.approx([-1.0, -0.5, 0.0, 0.5], abs=1e-9)


def test_square_wave():
    osc = Oscillator(Waveform.SQUARE, 1.0, 0.0, 1.0)
    buffer = [0.0] * 8
    osc.process(4.0, 4, buffer)
    assert _left(buffer) == [1.0, 1.0, -1.0, -1.0]


def test_channels_carry_the_same_signal():
    osc = Oscillator(Waveform.SIN, 440.0, 0.0, 0.5)
    buffer = [0.0] * 64
    osc.process(48000.0, 32, buffer)
    assert buffer[0::2] == buffer[1::2]


def test_amplitude_scales_and_adds_onto_buffer():
    osc = Oscillator(Waveform.SQUARE, 1.0, 0.0, 0.25)
    buffer = [1.0, 1.0, 1.0, 1.0]
    osc.process(4.0, 2, buffer)
    assert buffer == [1.25, 1.25, 1.25, 1.25]


def test_phase_wraps_into_one_period():
    osc = Oscillator(Waveform.SIN, 1.0, 0.0, 1.0)
    osc.process(4.0, 4, [0.0] * 8)
    assert 0.0 <= osc.phase < 2.0 * math.pi
    assert osc.phase == pytest.approx(0.0, abs=1e-9)


def test_phase_continues_across_blocks():
    whole = Oscillator(Waveform.SIN, 300.0, 0.0, 1.0)
    split = Oscillator(Waveform.SIN, 300.0, 0.0, 1.0)
    whole_buffer = [0.0] * 16
    first = [0.0] * 8
    second = [0.0] * 8
    whole.process(48000.0, 8, whole_buffer)
    split.process(48000.0, 4, first)
    split.process(48000.0, 4, second)
    assert first + second == pytest.approx(whole_buffer)


def test_invalid_waveform_is_rejected():
    with pytest.raises(EngineAssertionError):
        Oscillator(3, 440.0)


def test_waveform_given_as_int_becomes_enum():
    osc = Oscillator(2, 440.0)
    assert osc.waveform is Waveform.SAW


def test_unknown_waveform_while_processing():
    osc = Oscillator(Waveform.SIN, 440.0)
    osc.waveform = 9
    with pytest.raises(EngineAssertionError):
        osc.process(48000.0, 1, [0.0, 0.0])


def test_oscillator_in_rendered_graph(engine):
    osc = Oscillator(Waveform.SIN, 440.0, 0.0, 0.5)
    osc_id = osc.register(engine)
    engine.add_source(osc_id)
    engine.start()
    samples = engine.render(8)
    engine.stop()
    assert len(samples) == 16
    assert samples[0::2] == samples[1::2]
    assert samples[0] == 0.0
    assert samples[2] > 0.0
    assert max(abs(sample) for sample in samples) <= 0.5