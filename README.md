# jamcore

jamcore is a small audio engine built around a graph of processors. Each
processor receives an interleaved stereo buffer (left, right, left, right, …)
and changes it in place. Sources such as oscillators and WAV players add
samples. Effects such as faders and biquad filters shape what reaches them.
Processors are connected with routes. To render a block, the engine walks the
graph from every source. It gives each branch its own copy of the signal and
sums the ends of all branches into a master buffer. It then scales that buffer
by the master volume.

The package uses only the Python standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Building blocks

- `jamcore.core_engine.CoreEngine` is the engine. Creating one initialises it.
  Only one engine may be live at a time, and a second one fails the check. The
  engine holds the processor table, the set of sources and the routing masks.
  Its methods are:
  - `create_processor(process, destroy, data)`, which returns the lowest free
    id.
  - `add_source`, `route(src_id, dst_id, should_route)` and `remove_processor`.
  - `submit_task`.
  - `start`, `stop` and `deinit`.
  - `render(num_frames)`, which takes up to 512 frames and returns
    `2 * num_frames` samples.

  `is_flag_set` reports the `EngineFlag` states `INITIALIZED`, `STARTED`,
  `STOP_REQUESTED` and `AUDIO_THREAD_SILENCED`. The engine is also a context
  manager: on exit it stops and deinitialises itself. `panic()` and the
  module-level `global_panic()` stop the engine and raise `SystemExit`. While
  the engine is started from the main thread, Ctrl-C triggers a panic.
- `jamcore.oscillators.Oscillator(waveform, frequency, phase, amplitude)` adds
  a `Waveform.SIN`, `SQUARE` or `SAW` wave to both channels.
- `jamcore.fader.Fader(pan, vol)` applies volume and constant-power panning.
  Pan runs from -1 (left) to 1 (right) and volume from 0 to 1. Values outside
  these ranges are clamped while processing.
- `jamcore.iir_filter.IirFilter(sample_rate, filter_type, freq, q_factor,
  atten, db_gain)` is a biquad filter that keeps separate history for each
  channel. `FilterType.LOWPASS`, `HIGHPASS` and `BANDPASS` are computed. The
  other `FilterType` members (`BANDSTOP`, `HIGH_SHELVE`, `LOW_SHELVE`) fail
  with `EngineAssertionError`. After changing `filter_type` or `freq`, call
  `recalculate()`. The new coefficients are then computed on the engine's
  thread pool after the next processed block.
- `jamcore.wav_player.WavPlayer(filename, flags)` streams a PCM WAV file with
  8-, 16-, 24- or 32-bit samples in two alternating chunks of 4096 frames.
  Mono files are played on both channels. For files with more than two
  channels, only the first two are used. `WavPlayerFlag.LOOPING` makes it
  restart at the end. `seek(frame)` takes effect on the next chunk load, and
  `destroy()` closes the file.
- `jamcore.passthrough.create_passthrough(engine)` registers a processor that
  leaves the signal unchanged.
- `jamcore.thread_pool.ThreadPool(num_threads, capacity)` runs deferred tasks,
  newest first. A task waits until `flush_tasks()` or `stop()` wakes the
  workers, and `stop()` runs whatever is still pending. The engine flushes its
  pool after every rendered block.
- `jamcore.allocator.ScratchAllocator` is the bump allocator that the engine
  uses for per-block buffers.
- `jamcore.logger` provides levelled, coloured console output through
  `log_message`, `log_raw`, `log_once`, `log_periodic` and `set_log_level`.
  `check(condition, message, *args)` calls the handler installed with
  `register_assert_handler`, if there is one, and then raises
  `EngineAssertionError`.
- `jamcore.utils` holds the bit-mask, buffer-arithmetic and clamping helpers.

Every processor class has `register(engine)`, which adds the processor to an
engine and returns its id.

## Example

```python
from jamcore.core_engine import CoreEngine
from jamcore.fader import Fader
from jamcore.oscillators import Oscillator, Waveform

with CoreEngine(0.5, 1024, output_thread=False) as engine:
    osc = Oscillator(Waveform.SIN, 440.0, 0.0, 0.5)
    osc_id = osc.register(engine)
    engine.add_source(osc_id)

    fader = Fader(pan=0.0, vol=0.8)
    fader_id = fader.register(engine)
    engine.route(osc_id, fader_id, True)

    engine.start()
    block = engine.render(512)   # 1024 interleaved stereo samples
    engine.stop()
```

When `output_thread=True` (the default), `start()` launches a background thread
that calls `render` at the pace of the sample rate (48 kHz).

`jamcore.demo.build_demo(engine, wav_path)` builds the demo graph. In it, a sine
oscillator, a square oscillator and a looping WAV player each feed their own
fader, and the WAV player passes through a lowpass filter on the way.

## Demo command

```
jamcore-demo path/to/file.wav
```

This command builds the demo graph, starts the engine and runs a scripted
sequence against it:

1. It fades everything in.
2. It seeks through the file, switching the filter between lowpass and
   highpass at each seek.
3. It sweeps the pan and pitch of the oscillators across and back.
4. It fades each channel out in turn.

Options:

- `--window-ms` sets the number of steps in each ramp (default 2000).
- `--tick-ms` sets the pause between steps (default 1).
- `--seek-pause-ms` sets the pause after each seek (default 2000).

If no file is given, the command looks for `example/Kings.wav`.

## What it does not do

- jamcore does not talk to a sound card. Rendered blocks are returned from
  `render`, and the output thread discards them. The demo command therefore
  runs its whole timeline without making any sound. To hear the audio, pass
  the rendered samples to an audio or file-writing library of your own.
- The output sample rate is fixed at 48 kHz. WAV files are streamed at their
  own rate without resampling.