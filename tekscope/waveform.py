"""Raw waveform buffers and their decoding into time/voltage samples."""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass, field

from .channel import ScopeChannel
from .log import get_logger
from .preamble import WaveformPreamble

_CATEGORY = "Decoder"
_FLOAT32 = struct.Struct("f")


class DecodeError(ValueError):
    """Raised when a waveform buffer cannot be decoded."""


@dataclass(frozen=True)
class WaveformSample:
    time: float
    voltage: float


@dataclass
class DecodedWaveform:
    """A decoded waveform ready for display."""

    samples: list[WaveformSample] = field(default_factory=list)
    x_min: float = 0.0
    x_max: float = 0.0
    y_min: float = 0.0
    y_max: float = 0.0
    sec_per_div: float = 0.0
    volts_per_div: float = 0.0
    channel: ScopeChannel = ScopeChannel.CH1
    sequence_number: int = 0


@dataclass
class WaveformBuffer:
    """Raw ADC bytes from CURVE? together with the preamble that scales them."""

    preamble: WaveformPreamble = field(default_factory=WaveformPreamble)
    raw_data: bytes = b""
    channel: ScopeChannel = ScopeChannel.CH1
    timestamp: float = 0.0
    sequence_number: int = 0

    def is_valid(self) -> bool:
        return self.preamble.is_valid() and bool(self.raw_data)

    def clear(self) -> None:
        self.raw_data = b""
        self.preamble = WaveformPreamble()


def _to_float32(value: float) -> float:
    try:
        return _FLOAT32.unpack(_FLOAT32.pack(value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def read_sample(data: bytes, byte_width: int, is_signed: bool, is_big_endian: bool) -> int:
    """Read one ADC code; two-byte samples are always taken as signed 16-bit."""
    if byte_width == 1:
        if len(data) < 1:
            raise ValueError("sample needs 1 byte")
        return int.from_bytes(data[:1], "big", signed=is_signed)
    if len(data) < 2:
        raise ValueError("sample needs 2 bytes")
    order = "big" if is_big_endian else "little"
    return int.from_bytes(data[:2], order, signed=True)


def decode(buffer: WaveformBuffer) -> DecodedWaveform:
    """Convert the raw bytes of a buffer into scaled samples."""
    log = get_logger()
    if not buffer.is_valid():
        log.error(_CATEGORY, "Invalid WaveformBuffer passed to Decode")
        raise DecodeError("invalid waveform buffer")

    pre = buffer.preamble
    width = pre.byte_width
    if width <= 0:
        raise DecodeError(f"invalid byte width {width}")
    n_samples = len(buffer.raw_data) // width
    if n_samples <= 0:
        log.error(_CATEGORY, "Zero samples after raw data / byteWidth division")
        raise DecodeError("no complete samples in raw data")

    raw = buffer.raw_data
    chunks = (raw[offset:offset + width] for offset in range(0, n_samples * width, width))
    samples = [
        WaveformSample(
            _to_float32(pre.to_time(index)),
            _to_float32(pre.to_voltage(read_sample(chunk, width, pre.is_signed, pre.is_big_endian))),
        )
        for index, chunk in enumerate(chunks)
    ]
    times = [s.time for s in samples]
    volts = [s.voltage for s in samples]

    result = DecodedWaveform(
        samples=samples,
        x_min=min(times),
        x_max=max(times),
        y_min=min(volts),
        y_max=max(volts),
        sec_per_div=pre.sec_per_div,
        volts_per_div=pre.volts_per_div,
        channel=buffer.channel,
        sequence_number=buffer.sequence_number,
    )
    log.debug(
        _CATEGORY,
        f"Decoded {n_samples} samples. V=[{result.y_min:g}..{result.y_max:g}] "
        f"T=[{result.x_min:g}..{result.x_max:g}]",
    )
    return result