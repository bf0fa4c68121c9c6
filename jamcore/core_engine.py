"""The audio graph engine: processors, routing and the render loop."""

from __future__ import annotations

import signal
import threading
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Callable, Optional

from .allocator import ScratchAllocator
from .logger import LogLevel, check, log_message, log_raw
from .thread_pool import TaskInfo, ThreadPool
from .utils import buffer_parallel_sum, buffer_product, count_trailing_zeros

MAX_PROCESSORS = 4096
MAX_TASKS = 256

STACK_ARENA_SIZE_KB = 32
DEFAULT_HEAP_ARENA_SIZE_KB = 30000

BUFFER_SIZE = 1024
SAMPLE_RATE_DEFAULT = 48000
MAX_STACK_DEPTH = 128
_SAMPLE_BYTES = 4
_POOL_THREADS = 4

ProcessFunc = Callable[[float, int, Any, Any], None]
DestroyFunc = Callable[[Any], None]

_instance: Optional["CoreEngine"] = None
_instance_lock = threading.Lock()


class EngineFlag(IntEnum):
    """Bit positions of the engine state flags."""

    INITIALIZED = 0
    STARTED = 1
    STOP_REQUESTED = 2
    AUDIO_THREAD_SILENCED = 3


@dataclass
class AudioProcessor:
    """A node of the audio graph and the masks of its connections."""

    process: ProcessFunc
    destroy: Optional[DestroyFunc] = None
    data: Any = None
    input_routing_mask: int = 0
    output_routing_mask: int = 0


def _iter_bits(mask: int):
    while mask:
        index = count_trailing_zeros(mask)
        mask &= ~(1 << index)
        yield index


class CoreEngine:
    """Owns the processor graph and renders interleaved stereo audio.

    Creating an engine initialises it; only one engine may be initialised at
    a time. When started with ``output_thread`` enabled, a background thread
    plays the part of the audio device and calls :meth:`render` in real time.
    """

    _num_panics = 0

    def __init__(
        self,
        master_volume_scale: float = 1.0,
        heap_arena_size_kb: int = DEFAULT_HEAP_ARENA_SIZE_KB,
        *,
        output_thread: bool = True,
    ) -> None:
        global _instance
        check(heap_arena_size_kb > 0, "Provided heap size must be greater than zero")
        with _instance_lock:
            check(_instance is None, "Error, already existing instance of engine")
            _instance = self

        self.heap_arena = bytearray(heap_arena_size_kb * 1024)
        self.scratch_allocator = ScratchAllocator(STACK_ARENA_SIZE_KB * 1024)
        self.master_volume_scale = master_volume_scale
        self.sample_rate = 0.0
        self.processor_mask = 0
        self.source_mask = 0
        self.processors: dict[int, AudioProcessor] = {}
        self.thread_pool = ThreadPool(_POOL_THREADS, MAX_TASKS)

        self._flags = 0
        self._flags_lock = threading.Lock()
        self._cond = threading.Condition()
        self._use_output_thread = output_thread
        self._output_thread: Optional[threading.Thread] = None
        self._output_stop = threading.Event()
        self._output_done = False
        self._previous_sigint: Any = None
        self._sigint_installed = False

        self._set_flag(EngineFlag.INITIALIZED)

    # -- flags -------------------------------------------------------------

    def _set_flag(self, flag: EngineFlag) -> None:
        with self._flags_lock:
            self._flags |= 1 << flag

    def _unset_flag(self, flag: EngineFlag) -> None:
        with self._flags_lock:
            self._flags &= ~(1 << flag)

    def is_flag_set(self, flag: EngineFlag) -> bool:
        """Return whether the given state flag is set."""
        return bool(self._flags & (1 << flag))

    # -- lifecycle ---------------------------------------------------------

    def __enter__(self) -> "CoreEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        if self.is_flag_set(EngineFlag.STARTED):
            self.stop()
        if self.is_flag_set(EngineFlag.INITIALIZED):
            self.deinit()

    def deinit(self) -> None:
        """Destroy every live processor and release the engine."""
        global _instance
        check(self.is_flag_set(EngineFlag.INITIALIZED), "Engine not intialised")
        check(
            not self.is_flag_set(EngineFlag.STARTED),
            "Engine is running on deinit, must stop it first",
        )
        for processor_id in _iter_bits(self.processor_mask):
            processor = self.processors[processor_id]
            if processor.destroy is not None:
                processor.destroy(processor.data)

        with self._flags_lock:
            self._flags = 0
        self.scratch_allocator.release()
        self.thread_pool.close()
        with _instance_lock:
            if _instance is self:
                _instance = None

    def start(self) -> None:
        """Begin rendering audio and running deferred tasks."""
        global _instance
        check(self.is_flag_set(EngineFlag.INITIALIZED), "Engine not initialised")
        with _instance_lock:
            check(_instance is self, "Instance is null, may not have been initialised")
        log_message(LogLevel.INFO, "Initializing audio output")

        self.sample_rate = float(SAMPLE_RATE_DEFAULT)
        self.thread_pool.start()

        if self._use_output_thread:
            self._output_stop.clear()
            self._output_done = False
            self._output_thread = threading.Thread(target=self._run_output, daemon=True)
            self._output_thread.start()

        if threading.current_thread() is threading.main_thread():
            self._previous_sigint = signal.signal(signal.SIGINT, _handle_sigint)
            self._sigint_installed = True

        self._set_flag(EngineFlag.STARTED)

    def stop(self) -> None:
        """Silence the output, wait for the render side to confirm, then halt."""
        check(self.is_flag_set(EngineFlag.INITIALIZED), "Engine not initialised")
        check(self.is_flag_set(EngineFlag.STARTED), "Engine not started")

        self.thread_pool.stop()
        self._set_flag(EngineFlag.STOP_REQUESTED)
        log_message(LogLevel.INFO, "Deinitializing audio output")

        if self._output_thread is None:
            self.render(0)
        with self._cond:
            self._cond.wait_for(
                lambda: self.is_flag_set(EngineFlag.AUDIO_THREAD_SILENCED)
                or self._output_done
            )
        self._unset_flag(EngineFlag.STARTED)

        if self._output_thread is not None:
            self._output_stop.set()
            self._output_thread.join()
            self._output_thread = None

        if self._sigint_installed:
            if threading.current_thread() is threading.main_thread():
                signal.signal(signal.SIGINT, self._previous_sigint)
            self._sigint_installed = False

    def _run_output(self) -> None:
        frames = BUFFER_SIZE // 2
        try:
            while not self._output_stop.is_set():
                self.render(frames)
                period = frames / (self.sample_rate or SAMPLE_RATE_DEFAULT)
                self._output_stop.wait(period)
        except Exception as error:
            log_message(LogLevel.ERROR, "Audio output failed: %s", error)
        finally:
            with self._cond:
                self._output_done = True
                self._cond.notify_all()

    # -- graph -------------------------------------------------------------

    def add_source(self, processor_id: int) -> None:
        """Mark a processor as a root of the graph."""
        check(self.is_flag_set(EngineFlag.INITIALIZED), "Engine not initialised")
        check(0 <= processor_id < MAX_PROCESSORS, "Invalid processor id")
        self.source_mask |= 1 << processor_id

    def create_processor(
        self,
        process: ProcessFunc,
        destroy: Optional[DestroyFunc],
        data: Any,
    ) -> int:
        """Add a processor in the lowest free slot and return its id."""
        check(self.is_flag_set(EngineFlag.INITIALIZED), "Engine not initialised")
        mask = self.processor_mask
        free_slot = ((mask + 1) & ~mask).bit_length() - 1
        check(free_slot < MAX_PROCESSORS, "No free processor slots left")
        self.processor_mask |= 1 << free_slot
        self.processors[free_slot] = AudioProcessor(process, destroy, data)
        return free_slot

    def remove_processor(self, processor_id: int) -> None:
        """Disable a processor so its slot can be reused."""
        check(0 <= processor_id < MAX_PROCESSORS, "Invalid processor id %d", processor_id)
        check(
            self.processor_mask & (1 << processor_id),
            "Tried to remove non-existing processor %d",
            processor_id,
        )
        self.processor_mask &= ~(1 << processor_id)

    def route(self, src_id: int, dst_id: int, should_route: bool) -> None:
        """Connect or disconnect the output of ``src_id`` to ``dst_id``."""
        check(0 <= src_id < MAX_PROCESSORS, "Invalid src processor id %d", src_id)
        check(0 <= dst_id < MAX_PROCESSORS, "Invalid dst processor id %d", dst_id)
        check(
            self.processor_mask & (1 << src_id),
            "Tried to route non-existing src processor %d",
            src_id,
        )
        check(
            self.processor_mask & (1 << dst_id),
            "Tried to route non-existing dst processor %d",
            dst_id,
        )
        src = self.processors[src_id]
        dst = self.processors[dst_id]
        if should_route:
            src.output_routing_mask |= 1 << dst_id
            dst.input_routing_mask |= 1 << src_id
        else:
            src.output_routing_mask &= ~(1 << dst_id)
            dst.input_routing_mask &= ~(1 << src_id)

    def submit_task(self, task: TaskInfo) -> None:
        """Defer a non-realtime task to run after the next render."""
        self.thread_pool.defer_task(task.callback, task.data)

    # -- rendering ---------------------------------------------------------

    def _alloc_buffer(self, zeroed: bool) -> memoryview:
        size = BUFFER_SIZE * _SAMPLE_BYTES
        view = (
            self.scratch_allocator.calloc(size)
            if zeroed
            else self.scratch_allocator.alloc(size)
        )
        return view.cast("f")

    def _traverse(
        self,
        processor_id: int,
        num_frames: int,
        input_buffer: memoryview,
        output_buffer,
        depth: int,
    ) -> None:
        check(depth < MAX_STACK_DEPTH, "Stack depth limit exceeded")
        processor = self.processors[processor_id]
        processor.process(self.sample_rate, num_frames, input_buffer, processor.data)

        if processor.output_routing_mask == 0:
            buffer_parallel_sum(output_buffer, input_buffer)
            return

        for next_id in _iter_bits(processor.output_routing_mask):
            next_buffer = self._alloc_buffer(zeroed=False)
            next_buffer[:] = input_buffer
            self._traverse(next_id, num_frames, next_buffer, output_buffer, depth + 1)

    def render(self, num_frames: int) -> list[float]:
        """Render ``num_frames`` interleaved stereo frames and return the samples."""
        master = [0.0] * BUFFER_SIZE
        check(
            0 <= num_frames <= BUFFER_SIZE // 2,
            "Number of frames exceeds buffer capacity",
        )
        silence = master[: num_frames * 2]

        if not self.is_flag_set(EngineFlag.STARTED):
            return silence

        if self.is_flag_set(EngineFlag.STOP_REQUESTED):
            self.master_volume_scale = 0.0
            with self._cond:
                self._set_flag(EngineFlag.AUDIO_THREAD_SILENCED)
                self._cond.notify_all()
            return silence

        try:
            input_buffer = self._alloc_buffer(zeroed=True)
            processor_mask = self.processor_mask
            for source_id in _iter_bits(self.source_mask):
                if processor_mask & (1 << source_id):
                    self._traverse(source_id, num_frames, input_buffer, master, 0)
            buffer_product(master, self.master_volume_scale)
        finally:
            self.scratch_allocator.release()

        self.thread_pool.flush_tasks()
        return master[: num_frames * 2]

    # -- failure -----------------------------------------------------------

    def panic(self) -> None:
        """Stop the engine and leave the program; raises :class:`SystemExit`."""
        global _instance
        log_message(LogLevel.ERROR, "CoreEngine Panic %d", CoreEngine._num_panics)
        CoreEngine._num_panics += 1
        with _instance_lock:
            if _instance is self:
                _instance = None

        if self.is_flag_set(EngineFlag.STOP_REQUESTED):
            log_message(
                LogLevel.WARNING,
                "CoreEngine error occurred while trying to stop after previous panic",
            )
            raise SystemExit(1)

        self.stop()
        raise SystemExit(0)


def global_panic() -> None:
    """Panic the live engine, or leave with status 1 if there is none."""
    instance = _instance
    if instance is None:
        raise SystemExit(1)
    instance.panic()


def _handle_sigint(signum, frame) -> None:
    log_raw(LogLevel.WARNING, "\n")
    log_message(LogLevel.WARNING, "Caught SIGINT %d, exiting...", signum)
    global_panic()