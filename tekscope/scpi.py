"""SCPI command strings for the TDS 520A oscilloscope."""

from __future__ import annotations

from .channel import ScopeChannel, channel_name


def idn() -> str:
    return "*IDN?"


def rst() -> str:
    return "*RST"


def cls() -> str:
    return "*CLS"


def opc() -> str:
    return "*OPC"


def opc_query() -> str:
    return "*OPC?"


def esr() -> str:
    return "*ESR?"


def data_source(channel: ScopeChannel) -> str:
    return "DATA:SOURCE " + channel_name(channel)


def data_source_query() -> str:
    return "DATA:SOURCE?"


def data_encdg() -> str:
    """Signed binary encoding."""
    return "DATA:ENCDG RIBinary"


def data_width(width: int) -> str:
    return f"DATA:WIDTH {int(width)}"


def data_start_stop(nr_pt: int = 250) -> str:
    """Transfer range; a non-positive point count selects 500 points."""
    stop = nr_pt if nr_pt > 0 else 500
    return f"DATA:START 1;DATA:STOP {int(stop)}"


def wfm_pre() -> str:
    return "WFMPRE?"


def curve() -> str:
    return "CURVE?"


def wav_frm() -> str:
    """Preamble and binary data in a single transfer."""
    return "WAVFRM?"


def ch_scale(channel: ScopeChannel, value: float) -> str:
    return "CH%d:SCALE %g" % (int(channel), value)


def ch_scale_query(channel: ScopeChannel) -> str:
    return f"CH{int(channel)}:SCALE?"


def ch_position(channel: ScopeChannel, value: float) -> str:
    return "CH%d:POSITION %g" % (int(channel), value)


def hor_scale(value: float) -> str:
    return "HORizontal:SCAle %g" % value


def hor_scale_query() -> str:
    return "HORizontal:SCAle?"


def hor_record_len() -> str:
    return "HORizontal:RECOrdlength?"


def acq_state(run: bool) -> str:
    return "ACQuire:STATE RUN" if run else "ACQuire:STATE STOP"


def acq_state_query() -> str:
    return "ACQuire:STATE?"


def acq_mode(mode: str) -> str:
    """Acquisition mode: SAMple, AVErage or ENVelope."""
    return "ACQuire:MODe " + mode


def acq_single() -> str:
    return "ACQuire:STOPAfter SEQuence"


def trig_state_query() -> str:
    return "TRIGger:STATE?"


def force_trig() -> str:
    return "TRIGger FORCe"


def trig_level_query() -> str:
    return "TRIGger:MAIn:LEVel?"


def trig_level(value: float) -> str:
    return "TRIGger:MAIn:LEVel %g" % value