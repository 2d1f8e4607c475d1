"""SCPI control, waveform decoding and background acquisition for Tektronix TDS 520A oscilloscopes."""

__version__ = "0.1.0"