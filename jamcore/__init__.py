"""A small audio engine with a routable graph of oscillators, faders, filters and WAV players."""

__version__ = "0.1.0"