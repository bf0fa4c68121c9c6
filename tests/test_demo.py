import wave

import pytest

from jamcore.core_engine import CoreEngine, EngineFlag
from jamcore.demo import build_demo, main
from jamcore.iir_filter import FilterType
from jamcore.logger import EngineAssertionError
from jamcore.wav_player import WavPlayerFlag


def write_wav(path, frames=2000):
    data = b"".join(
        (index % 2000 - 1000).to_bytes(2, "little", signed=True) * 2 for index in range(frames)
    )
    with wave.open(str(path), "wb") as handle:
        handle.setnchannels(2)
        handle.setsampwidth(2)
        handle.setframerate(44100)
        handle.writeframes(data)
    return str(path)


def test_build_demo_routes_graph(tmp_path):
    wav_path = write_wav(tmp_path / "demo.wav")
    with CoreEngine(1.0, 1024, output_thread=False) as engine:
        demo = build_demo(engine, wav_path)
        expected_sources = (1 << demo.sin_id) | (1 << demo.square_id) | (1 << demo.wav_id)
        assert engine.source_mask == expected_sources
        processors = engine.processors
        assert processors[demo.sin_id].output_routing_mask == 1 << demo.sin_fader_id
        assert processors[demo.square_id].output_routing_mask == 1 << demo.square_fader_id
        assert processors[demo.wav_id].output_routing_mask == 1 << demo.filter_id
        assert processors[demo.filter_id].output_routing_mask == 1 << demo.wav_fader_id
        assert processors[demo.wav_fader_id].input_routing_mask == 1 << demo.filter_id
        assert demo.wav_player.flags & WavPlayerFlag.LOOPING
        assert demo.lowpass.filter_type == FilterType.LOWPASS
        assert len({demo.sin_id, demo.square_id, demo.wav_id, demo.filter_id,
                    demo.sin_fader_id, demo.square_fader_id, demo.wav_fader_id}) == 7


def test_demo_is_silent_until_faded_in(tmp_path):
    wav_path = write_wav(tmp_path / "silent.wav")
    with CoreEngine(1.0, 1024, output_thread=False) as engine:
        build_demo(engine, wav_path)
        engine.start()
        out = engine.render(512)
        engine.stop()
    assert len(out) == 1024
    assert all(sample == 0.0 for sample in out)


def test_sin_fader_panned_right(tmp_path):
    wav_path = write_wav(tmp_path / "pan.wav")
    with CoreEngine(1.0, 1024, output_thread=False) as engine:
        demo = build_demo(engine, wav_path)
        demo.sin_fader.vol = 1.0
        engine.start()
        out = engine.render(512)
        engine.stop()
    left, right = out[0::2], out[1::2]
    assert max(abs(sample) for sample in left) < 1e-9
    assert max(abs(sample) for sample in right) > 0.1


def test_build_demo_missing_wav(tmp_path):
    with CoreEngine(output_thread=False) as engine:
        with pytest.raises(EngineAssertionError):
            build_demo(engine, str(tmp_path / "missing.wav"))


def test_main_runs_short_timeline(tmp_path):
    wav_path = write_wav(tmp_path / "main.wav")
    status = main([wav_path, "--window-ms", "3", "--tick-ms", "0", "--seek-pause-ms", "0"])
    assert status == 0
    with CoreEngine(output_thread=False) as engine:
        assert engine.is_flag_set(EngineFlag.INITIALIZED)


def test_main_missing_file_releases_engine(tmp_path):
    with pytest.raises(EngineAssertionError):
        main([str(tmp_path / "missing.wav"), "--window-ms", "1", "--tick-ms", "0"])
    with CoreEngine(output_thread=False) as engine:
        assert not engine.is_flag_set(EngineFlag.STARTED)


def test_main_rejects_bad_window(tmp_path):
    with pytest.raises(SystemExit) as info:
        main([write_wav(tmp_path / "bad.wav"), "--window-ms", "0"])
    assert info.value.code == 2