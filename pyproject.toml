[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "jamcore"
version = "0.1.0"
description = "A small audio engine with a routable processor graph: oscillators, faders, biquad filters and WAV file streaming, rendered to interleaved stereo blocks."
requires-python = ">=3.10"
dependencies = []
keywords = ["audio", "dsp", "synthesis", "oscillator", "iir", "biquad", "mixer", "audio-graph", "wav"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Sound/Audio :: Sound Synthesis",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
jamcore-demo = "jamcore.demo:main"

[tool.hatch.build.targets.wheel]
packages = ["jamcore"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
