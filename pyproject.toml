[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "livecaption"
version = "0.1.0"
description = "Voice-activity-driven audio segmentation and filtering of speech-recognition results for live captions"
requires-python = ">=3.10"
dependencies = []
keywords = ["speech", "transcription", "vad", "captions", "subtitles", "segmentation"]
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
    "Topic :: Multimedia :: Sound/Audio :: Speech",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["livecaption"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
