"""Streams a WAV file into the audio graph through two alternating chunks."""

from __future__ import annotations

import itertools
import sys
import threading
import wave
from array import array
from enum import IntFlag
from os import PathLike
from typing import MutableSequence, Optional, Union

from .core_engine import CoreEngine
from .logger import LogLevel, check, log_message
from .thread_pool import ThreadPool

AUDIO_FILE_CHUNK_SIZE = 4096

_SUPPORTED_WIDTHS = (1, 2, 3, 4)
_player_ids = itertools.count()


class WavPlayerFlag(IntFlag):
    """State bits of a :class:`WavPlayer`."""

    NONE = 0
    LOOPING = 1 << 0
    FINISHED = 1 << 1
    SEEK = 1 << 2


def _decode_mono(raw: bytes, width: int) -> list[float]:
    """Turn little-endian PCM bytes into floats in [-1, 1)."""
    if width == 1:
        return [(byte - 128) / 128.0 for byte in raw]
    if width == 3:
        return [
            int.from_bytes(raw[start:start + 3], "little", signed=True) / 8388608.0
            for start in range(0, len(raw) - len(raw) % 3, 3)
        ]
    typecode, scale = ("h", 32768.0) if width == 2 else ("i", 2147483648.0)
    values = array(typecode)
    values.frombytes(raw[: len(raw) - len(raw) % values.itemsize])
    if sys.byteorder == "big":
        values.byteswap()
    return [value / scale for value in values]


def _decode_stereo(raw: bytes, width: int, channels: int) -> list[float]:
    """Decode PCM frames into interleaved stereo floats."""
    samples = _decode_mono(raw, width)
    left = samples[0::channels]
    right = samples[1::channels] if channels > 1 else left
    return [sample for pair in zip(left, right) for sample in pair]


class WavPlayer:
    """Plays a PCM WAV file, reading it one chunk ahead on the thread pool.

    Two chunk buffers alternate: one is played while the other is refilled by
    a deferred :meth:`load_next_chunk`. A seek takes effect on the next load.
    """

    def __init__(
        self,
        filename: Union[str, PathLike],
        flags: WavPlayerFlag = WavPlayerFlag.NONE,
    ) -> None:
        self.id = next(_player_ids)
        self.filename = str(filename)
        log_message(
            LogLevel.INFO, "Creating WavPlayer { id: %d, file: %s }", self.id, self.filename
        )
        try:
            audio_file = wave.open(self.filename, "rb")
        except (OSError, EOFError, wave.Error) as error:
            check(False, "Failed to open %s (%s)", self.filename, error)
            raise
        try:
            width = audio_file.getsampwidth()
            total_frames = audio_file.getnframes()
            check(
                width in _SUPPORTED_WIDTHS,
                "Unsupported sample width of %d bytes in %s",
                width,
                self.filename,
            )
            check(total_frames > 0, "Total frames read in %s was 0", self.filename)
        except Exception:
            audio_file.close()
            raise

        self._file = audio_file
        self._width = width
        self._channels = audio_file.getnchannels()
        self.file_sample_rate = audio_file.getframerate()
        self.total_frames = total_frames
        self.flags = WavPlayerFlag(flags)
        self.current_frame = 0
        self.seek_position = 0
        self.current_buffer_index = 0
        self.current_num_frames = [0, 0]
        self.thread_pool: Optional[ThreadPool] = None
        self._buffers = ([0.0] * (AUDIO_FILE_CHUNK_SIZE * 2), [0.0] * (AUDIO_FILE_CHUNK_SIZE * 2))
        self._buffer_offset = 0
        self._lock = threading.Lock()
        self._io_lock = threading.Lock()
        self._closed = False

        # Fill buffer 0 with the first chunk and buffer 1 with the second.
        self.current_buffer_index = 1
        self.load_next_chunk()
        self.current_buffer_index = 0
        self.load_next_chunk()

    def __enter__(self) -> "WavPlayer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.destroy()

    @property
    def closed(self) -> bool:
        """Whether the underlying file has been released."""
        return self._closed

    def _set_flag(self, flag: WavPlayerFlag) -> None:
        self.flags = WavPlayerFlag(self.flags | flag)

    def _clear_flag(self, flag: WavPlayerFlag) -> None:
        self.flags = WavPlayerFlag(self.flags & ~int(flag))

    def load_next_chunk(self) -> None:
        """Read the next chunk of the file into the buffer not being played."""
        with self._lock:
            target = 1 if self.current_buffer_index == 0 else 0
            seek_requested = bool(self.flags & WavPlayerFlag.SEEK)
            position = self.seek_position
            if seek_requested:
                self._clear_flag(WavPlayerFlag.SEEK)

        with self._io_lock:
            check(not self._closed, "WavPlayer %d is closed", self.id)
            if seek_requested:
                check(
                    0 <= position <= self.total_frames,
                    "Failed to seek wav file to %d for id %d",
                    position,
                    self.id,
                )
                self._file.setpos(position)
                with self._lock:
                    self.current_frame = position
            raw = self._file.readframes(AUDIO_FILE_CHUNK_SIZE)

        samples = _decode_stereo(raw, self._width, self._channels)
        with self._lock:
            self._buffers[target][: len(samples)] = samples
            self.current_num_frames[target] = len(samples) // 2

    def _switch_buffer(self, index: int) -> None:
        self.current_num_frames[index] = 0
        self.current_buffer_index = 1 - index
        self._buffer_offset = 0

    def _defer_load(self) -> None:
        check(self.thread_pool is not None, "WavPlayer is not registered with an engine")
        self.thread_pool.defer_task(_load_next_chunk, self)

    def process(self, sample_rate: float, num_frames: int, buffer: MutableSequence[float]) -> None:
        """Mix up to ``num_frames`` frames of the file into ``buffer``."""
        with self._lock:
            if self.flags & WavPlayerFlag.FINISHED:
                return
            index = self.current_buffer_index
            available = self.current_num_frames[index]
            offset = self._buffer_offset
            frames = max(0, min(available - offset, num_frames))
            start = 2 * offset
            chunk = self._buffers[index][start:start + 2 * frames]
            self.current_frame += frames
            self._buffer_offset = offset + frames

            load_next = False
            if self._buffer_offset >= available:
                if self.current_num_frames[1 - index] > 0:
                    self._switch_buffer(index)
                    load_next = True
                elif self.flags & WavPlayerFlag.LOOPING:
                    self._switch_buffer(index)
                    self.seek_position = 0
                    self._set_flag(WavPlayerFlag.SEEK)
                    load_next = True
                else:
                    self._set_flag(WavPlayerFlag.FINISHED)

        for position, sample in enumerate(chunk):
            buffer[position] += sample

        if load_next:
            self._defer_load()

    def seek(self, seek_position: int) -> None:
        """Move playback to ``seek_position`` frames on the next chunk load."""
        check(seek_position >= 0, "Seek position must be non-negative, got %d", seek_position)
        with self._lock:
            self.seek_position = seek_position
            self._set_flag(WavPlayerFlag.SEEK)

    def destroy(self) -> None:
        """Release the file."""
        log_message(LogLevel.INFO, "Destroying WavPlayer")
        with self._io_lock:
            if not self._closed:
                self._file.close()
                self._closed = True

    def register(self, engine: CoreEngine) -> int:
        """Add this player to ``engine`` and return its processor id."""
        self.thread_pool = engine.thread_pool
        return engine.create_processor(_process, _destroy, self)


def _load_next_chunk(player: WavPlayer) -> None:
    player.load_next_chunk()


def _process(sample_rate: float, num_frames: int, buffer, player: WavPlayer) -> None:
    player.process(sample_rate, num_frames, buffer)


def _destroy(player: WavPlayer) -> None:
    player.destroy()