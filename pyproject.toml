[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tekscope"
version = "0.1.0"
description = "Waveform acquisition, decoding and SCPI control for Tektronix TDS 520A oscilloscopes"
requires-python = ">=3.10"
dependencies = [
    "psutil",
]
keywords = ["oscilloscope", "tektronix", "tds520a", "scpi", "gpib", "waveform"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Instrument Drivers",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["tekscope"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
