"""Waveform preamble parsing (WFMPRE? and WAVFRM? responses)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Union

from .log import get_logger
from .strutil import parse_double, parse_int, trim

_CATEGORY = "WfmPre"

# Keyword fields that hold a plain number; a value that fails to parse keeps the default.
_NUMERIC_KEYWORDS: dict[str, tuple[str, Callable[[str], float]]] = {
    "XINCR": ("x_incr", parse_double),
    "XZERO": ("x_zero", parse_double),
    "PT_OFF": ("pt_off", parse_int),
    "NR_PT": ("nr_pt", parse_int),
    "YMULT": ("y_mult", parse_double),
    "YZERO": ("y_zero", parse_double),
    "YOFF": ("y_off", parse_double),
}


class PreambleError(ValueError):
    """Raised when a preamble or WAVFRM? response cannot be parsed."""


@dataclass
class WaveformPreamble:
    """Scaling factors that turn raw ADC codes into volts and sample indices into seconds."""

    x_incr: float = 1.0
    x_zero: float = 0.0
    pt_off: int = 0
    nr_pt: int = 0
    y_mult: float = 1.0
    y_zero: float = 0.0
    y_off: float = 0.0
    byte_width: int = 1
    is_signed: bool = True
    is_big_endian: bool = True
    volts_per_div: float = 0.0
    sec_per_div: float = 0.0

    def to_voltage(self, raw_adc: int) -> float:
        return (float(raw_adc) - self.y_off) * self.y_mult + self.y_zero

    def to_time(self, sample_index: int) -> float:
        return self.x_zero + (sample_index - self.pt_off) * self.x_incr

    def is_valid(self) -> bool:
        return self.nr_pt > 0 and self.x_incr > 0.0


def _split_fields(text: str) -> list[str]:
    """Split on semicolons that are not inside double quotes."""
    fields: list[str] = []
    current: list[str] = []
    in_quote = False
    for ch in text:
        if ch == '"':
            in_quote = not in_quote
            current.append(ch)
        elif ch == ";" and not in_quote:
            fields.append("".join(current))
            current = []
        else:
            current.append(ch)
    if current:
        fields.append("".join(current))
    return fields


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        return value[1:-1]
    return value


def _parsed_or(parser: Callable[[str], float], text: str, default):
    try:
        return parser(text)
    except ValueError:
        return default


def _parse_positional(pre: WaveformPreamble, fields: list[str]) -> None:
    def get(index: int) -> str:
        return _unquote(trim(fields[index])) if index < len(fields) else ""

    pre.byte_width = _parsed_or(parse_int, get(0), 1)
    pre.is_signed = get(3).upper() == "RI"
    pre.is_big_endian = get(4).upper() == "MSB"
    pre.nr_pt = _parsed_or(parse_int, get(6), pre.nr_pt)
    pre.x_incr = _parsed_or(parse_double, get(9), pre.x_incr)

    if len(fields) >= 16:
        # Variant with XZERO inserted before PT_OFF.
        pre.x_zero = _parsed_or(parse_double, get(10), pre.x_zero)
        pre.pt_off = _parsed_or(parse_int, get(11), pre.pt_off)
        pre.y_mult = _parsed_or(parse_double, get(13), pre.y_mult)
        pre.y_zero = _parsed_or(parse_double, get(14), pre.y_zero)
        pre.y_off = _parsed_or(parse_double, get(15), pre.y_off)
    else:
        pre.pt_off = _parsed_or(parse_int, get(10), pre.pt_off)
        pre.y_mult = _parsed_or(parse_double, get(12), pre.y_mult)
        pre.y_zero = _parsed_or(parse_double, get(13), pre.y_zero)
        pre.y_off = _parsed_or(parse_double, get(14), pre.y_off)


def _parse_keywords(pre: WaveformPreamble, fields: list[str]) -> None:
    for token in fields:
        text = trim(token)
        key, sep, rest = text.partition(" ")
        if not sep:
            continue
        key = trim(key).upper()
        value = _unquote(trim(rest))

        if key in _NUMERIC_KEYWORDS:
            attr, parser = _NUMERIC_KEYWORDS[key]
            setattr(pre, attr, _parsed_or(parser, value, getattr(pre, attr)))
        elif key == "BYT_NR":
            pre.byte_width = _parsed_or(parse_int, value, 1)
        elif key == "BN_FMT":
            pre.is_signed = value.upper() == "RI"
        elif key == "BYT_OR":
            pre.is_big_endian = value.upper() == "MSB"


def parse_preamble(response: str) -> WaveformPreamble:
    """Parse a WFMPRE? response in positional or keyword form."""
    log = get_logger()
    first = response[:1]
    if not first or not (first.isascii() and first.isalnum()):
        log.warning(_CATEGORY, "Preamble starts with unexpected char, discarding")
        raise PreambleError("preamble must start with a letter or digit")

    fields = _split_fields(response)
    if not fields:
        log.warning(_CATEGORY, "Empty preamble response")
        raise PreambleError("empty preamble response")

    pre = WaveformPreamble()
    if " " not in fields[0]:
        _parse_positional(pre, fields)
    else:
        _parse_keywords(pre, fields)

    if pre.nr_pt <= 0 or pre.x_incr <= 0.0:
        log.error(_CATEGORY, f"Invalid preamble: NR_PT={pre.nr_pt} XINCR={pre.x_incr:g}")
        raise PreambleError(f"invalid preamble: NR_PT={pre.nr_pt} XINCR={pre.x_incr:g}")

    pre.sec_per_div = pre.x_incr * pre.nr_pt / 10.0  # 10 horizontal divisions
    pre.volts_per_div = pre.y_mult * 25.6  # 256 ADC counts over 10 divisions

    log.debug(
        _CATEGORY,
        f"Parsed: NR_PT={pre.nr_pt} XINCR={pre.x_incr:g} YMULT={pre.y_mult:g} "
        f"YOFF={pre.y_off:g} YZERO={pre.y_zero:g}",
    )
    return pre


def parse_wavfrm(response: Union[bytes, str]) -> tuple[WaveformPreamble, bytes]:
    """Parse a WAVFRM? response: ASCII preamble, '%', then an IEEE 488.2 binary block."""
    data = response.encode("latin-1") if isinstance(response, str) else bytes(response)
    log = get_logger()

    sep = data.find(b"%")
    if sep < 0:
        log.error(_CATEGORY, "WAVFRM? response has no '%' separator")
        raise PreambleError("WAVFRM? response has no '%' separator")

    preamble = parse_preamble(data[:sep].decode("latin-1"))

    block = data[sep + 1:]
    if len(block) < 2 or block[0:1] != b"#":
        log.error(_CATEGORY, "WAVFRM? binary block does not start with '#'")
        raise PreambleError("binary block does not start with '#'")

    n_digits = block[1] - ord("0")
    if n_digits <= 0 or n_digits > 9 or len(block) < 2 + n_digits:
        log.error(_CATEGORY, f"WAVFRM? binary block: bad digit count {n_digits}")
        raise PreambleError(f"bad digit count {n_digits}")

    try:
        data_len = parse_int(block[2:2 + n_digits].decode("latin-1"))
    except ValueError:
        data_len = 0

    if data_len <= 0 or 2 + n_digits + data_len > len(block):
        log.error(_CATEGORY, f"WAVFRM? binary block: dataLen={data_len} out of range")
        raise PreambleError(f"data length {data_len} out of range")

    start = 2 + n_digits
    raw = block[start:start + data_len]
    log.debug(_CATEGORY, f"WAVFRM? parsed: preamble OK + {data_len} bytes")
    return preamble, raw