import wave

import pytest

from jamcore.core_engine import CoreEngine
from jamcore.logger import EngineAssertionError
from jamcore.thread_pool import ThreadPool
from jamcore.wav_player import AUDIO_FILE_CHUNK_SIZE, WavPlayer, WavPlayerFlag


def write_wav(path, samples, *, channels=2, width=2, rate=44100):
    def encode(value):
        if width == 1:
            return bytes([value])
        return value.to_bytes(width, "little", signed=True)

    with wave.open(str(path), "wb") as handle:
        handle.setnchannels(channels)
        handle.setsampwidth(width)
        handle.setframerate(rate)
        handle.writeframes(b"".join(encode(value) for value in samples))
    return path


def render(player, frames):
    buffer = [0.0] * (2 * frames)
    player.process(44100.0, frames, buffer)
    return buffer


@pytest.fixture
def pool():
    thread_pool = ThreadPool(1, 16)
    yield thread_pool
    thread_pool.close()


def test_short_file_plays_then_finishes(tmp_path):
    path = write_wav(tmp_path / "short.wav", [16384, -16384, 0, 0, -32768, 0])
    with WavPlayer(path) as player:
        out = render(player, 4)
        assert out[0] == -out[1]
        assert out[0] > 0
        assert out[2:4] == [0.0, 0.0]
        assert out[4] == -1.0
        assert out[6:] == [0.0, 0.0]
        assert player.current_frame == 3
        assert player.flags & WavPlayerFlag.FINISHED

        again = render(player, 4)
        assert again == [0.0] * 8


def test_process_adds_onto_existing_samples(tmp_path):
    path = write_wav(tmp_path / "add.wav", [1000, 2000, 3000, 4000])
    with WavPlayer(path) as fresh:
        expected = render(fresh, 2)
    with WavPlayer(path) as player:
        buffer = [1.0] * 4
        player.process(44100.0, 2, buffer)
    assert [value - 1.0 for value in buffer] == pytest.approx(expected)


def test_mono_file_is_duplicated_to_both_channels(tmp_path):
    path = write_wav(tmp_path / "mono.wav", [100, -2000, 30000], channels=1)
    with WavPlayer(path) as player:
        out = render(player, 3)
    assert out[0::2] == out[1::2]
    assert out[4] > out[0] > out[2]


def test_eight_bit_midpoint_is_silence(tmp_path):
    path = write_wav(tmp_path / "u8.wav", [128, 0, 255, 128], width=1)
    with WavPlayer(path) as player:
        out = render(player, 2)
    assert out[0] == 0.0
    assert out[1] == -1.0
    assert out[2] > 0.99
    assert out[3] == 0.0


def test_sample_widths_decode_to_the_same_level(tmp_path):
    paths = [
        write_wav(tmp_path / "w2.wav", [16384, -8192], width=2),
        write_wav(tmp_path / "w3.wav", [16384 << 8, -8192 << 8], width=3),
        write_wav(tmp_path / "w4.wav", [16384 << 16, -8192 << 16], width=4),
    ]
    outputs = []
    for path in paths:
        with WavPlayer(path) as player:
            outputs.append(render(player, 1))
    assert outputs[0] == outputs[1] == outputs[2]


def test_long_file_streams_in_chunks(tmp_path, pool):
    total = AUDIO_FILE_CHUNK_SIZE + 10
    samples = [value for index in range(total) for value in (index, -index)]
    path = write_wav(tmp_path / "long.wav", samples)
    with WavPlayer(path) as player:
        player.thread_pool = pool
        assert player.total_frames == total
        assert player.current_num_frames == [AUDIO_FILE_CHUNK_SIZE, 10]

        played = []
        for _ in range(AUDIO_FILE_CHUNK_SIZE // 512):
            played.extend(render(player, 512))
        assert pool.pending_tasks == 1
        assert player.current_buffer_index == 1

        tail = render(player, 512)
        played.extend(tail[:20])
        assert tail[20:] == [0.0] * (len(tail) - 20)
        assert player.current_frame == total
        assert player.flags & WavPlayerFlag.FINISHED

        left, right = played[0::2], played[1::2]
        assert len(left) == total
        assert all(a < b for a, b in zip(left, left[1:]))
        assert right == [-value for value in left]

        player.load_next_chunk()
        assert player.current_num_frames[0] == 0


def test_looping_rewinds_to_start(tmp_path, pool):
    path = write_wav(tmp_path / "loop.wav", [500, -500, 1500, -1500, 2500, -2500])
    with WavPlayer(path, WavPlayerFlag.LOOPING) as player:
        player.thread_pool = pool
        first = render(player, 3)
        assert player.flags & WavPlayerFlag.SEEK
        assert pool.pending_tasks == 1

        player.load_next_chunk()
        assert player.current_frame == 0
        assert not player.flags & WavPlayerFlag.SEEK

        gap = render(player, 3)
        assert gap == [0.0] * 6
        assert render(player, 3) == first
        assert not player.flags & WavPlayerFlag.FINISHED


def test_seek_applies_on_next_load(tmp_path):
    path = write_wav(tmp_path / "seek.wav", [1, 1, 2, 2, 3, 3, 4, 4])
    with WavPlayer(path) as player:
        player.seek(2)
        assert player.flags & WavPlayerFlag.SEEK
        player.load_next_chunk()
        assert player.current_frame == 2
        assert player.current_num_frames[1] == 2
        assert not player.flags & WavPlayerFlag.SEEK


def test_negative_seek_is_rejected(tmp_path):
    path = write_wav(tmp_path / "neg.wav", [1, 1])
    with WavPlayer(path) as player:
        with pytest.raises(EngineAssertionError):
            player.seek(-1)


def test_seek_past_end_fails_on_load(tmp_path):
    path = write_wav(tmp_path / "past.wav", [1, 1, 2, 2])
    with WavPlayer(path) as player:
        player.seek(player.total_frames + 1)
        with pytest.raises(EngineAssertionError):
            player.load_next_chunk()


def test_looping_without_engine_fails(tmp_path):
    path = write_wav(tmp_path / "alone.wav", [1, 1])
    with WavPlayer(path, WavPlayerFlag.LOOPING) as player:
        assert player.total_frames == 1
        with pytest.raises(EngineAssertionError):
            render(player, 2)
        assert player.current_frame == 1
        assert not player.flags & WavPlayerFlag.FINISHED


def test_missing_file_is_an_error(tmp_path):
    with pytest.raises(EngineAssertionError):
        WavPlayer(tmp_path / "missing.wav")


def test_empty_file_is_an_error(tmp_path):
    path = write_wav(tmp_path / "empty.wav", [])
    with pytest.raises(EngineAssertionError):
        WavPlayer(path)


def test_register_and_destroy_with_engine(tmp_path):
    path = write_wav(tmp_path / "reg.wav", [1, 1, 2, 2])
    player = WavPlayer(path)
    with CoreEngine(output_thread=False) as engine:
        processor_id = player.register(engine)
        assert engine.processors[processor_id].data is player
        assert player.thread_pool is engine.thread_pool
        assert not player.closed
    assert player.closed