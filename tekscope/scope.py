"""High-level control of a Tektronix TDS 520A oscilloscope."""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Optional

from . import scpi
from .channel import ScopeChannel, channel_name
from .log import get_logger
from .preamble import PreambleError, WaveformPreamble, parse_preamble
from .strutil import parse_double, trim
from .waveform import WaveformBuffer

_CATEGORY = "Scope"


class ScopeError(RuntimeError):
    """Raised when the instrument cannot be reached or gives an unusable answer."""


class ScopeDevice(ABC):
    """An open instrument session on the bus.

    Implementations raise ScopeError when a bus operation fails.
    """

    @abstractmethod
    def write(self, command: str) -> None:
        """Send a command string."""

    @abstractmethod
    def query(self, command: str) -> str:
        """Send a command and return the ASCII response."""

    @abstractmethod
    def read_binary_block(self) -> bytes:
        """Read an IEEE 488.2 definite-length block and return its payload."""

    @abstractmethod
    def clear(self) -> None:
        """Send a device clear."""

    @abstractmethod
    def drain_input(self) -> None:
        """Discard any bytes left in the instrument's output queue."""

    @abstractmethod
    def close(self) -> None:
        """Take the session offline."""


class ScopeState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ACQUIRING = "acquiring"
    ERROR = "error"


@dataclass
class ScopeStatus:
    state: ScopeState = ScopeState.DISCONNECTED
    idn: str = ""
    last_error: str = ""
    active_channel: ScopeChannel = ScopeChannel.CH1
    time_div: float = 1e-3
    volt_div: list[float] = field(default_factory=lambda: [0.0] * 4)
    trigger_state: str = ""
    acquisitions_per_sec: int = 0


@dataclass(frozen=True)
class DisplayParams:
    sec_per_div: float = 0.0
    volts_per_div: float = 0.0


def _now_ms() -> int:
    return int(time.monotonic() * 1000)


class TektronixScope:
    """Instrument abstraction built on a session returned by ``open_device``."""

    def __init__(self, open_device: Callable[[], ScopeDevice]) -> None:
        self._open_device = open_device
        self._device: Optional[ScopeDevice] = None
        self._channel = ScopeChannel.CH1
        self._idn = ""
        self._lock = threading.RLock()
        self._acq_count = 0
        self._acq_count_reset_ms = 0
        self._acq_rate = 0
        self._display = DisplayParams()
        self._preamble_cache = WaveformPreamble()
        self._preamble_valid = False

    def __enter__(self) -> "TektronixScope":
        return self

    def __exit__(self, *exc_info) -> None:
        self.disconnect()

    @property
    def channel(self) -> ScopeChannel:
        return self._channel

    @property
    def idn(self) -> str:
        return self._idn

    @property
    def acquisitions_per_sec(self) -> int:
        return self._acq_rate

    def _require_device(self) -> ScopeDevice:
        if self._device is None:
            raise ScopeError("Not connected")
        return self._device

    # ---- Connection ----

    def connect(self) -> None:
        """Open the session, identify the instrument and configure data encoding."""
        log = get_logger()
        with self._lock:
            if self._device is not None:
                self._device.close()
                self._device = None
            device = self._open_device()
            self._device = device
            try:
                self._initialise(device)
            except ScopeError:
                device.close()
                self._device = None
                raise

    def _initialise(self, device: ScopeDevice) -> None:
        log = get_logger()
        try:
            device.clear()
        except ScopeError:
            pass
        time.sleep(0.1)
        device.drain_input()
        time.sleep(0.1)

        # Retry once in case the first response is stale buffer data.
        idn = ""
        for _ in range(2):
            try:
                idn = device.query(scpi.idn())
            except ScopeError:
                log.error(_CATEGORY, "*IDN? failed after connect")
                raise
            if "," in idn:
                break
            log.warning(_CATEGORY, f"*IDN? returned stale data '{idn}', retrying...")
            device.drain_input()
            time.sleep(0.1)
            idn = ""
        if "," not in idn:
            log.error(_CATEGORY, f"*IDN? invalid: {idn}")
            raise ScopeError("*IDN? did not return a valid response")

        self._idn = idn
        log.info(_CATEGORY, f"Connected: {idn}")
        self._setup_data_encoding()
        self._acq_count = 0
        self._acq_count_reset_ms = _now_ms()

    def disconnect(self) -> None:
        with self._lock:
            if self._device is not None:
                self._device.close()
                self._device = None
            get_logger().info(_CATEGORY, "Disconnected")

    def is_connected(self) -> bool:
        return self._device is not None

    def identify(self) -> str:
        return self._require_device().query(scpi.idn())

    def _setup_data_encoding(self) -> None:
        device = self._require_device()
        # Signed binary, one byte per sample (8-bit ADC).
        device.write(scpi.data_encdg())
        device.write(scpi.data_width(1))
        device.write(scpi.data_start_stop())
        get_logger().debug(_CATEGORY, "Data encoding configured: RIBinary, width=1")

    # ---- Acquisition control ----

    def start_continuous(self) -> None:
        device = self._require_device()
        device.write(scpi.acq_mode("SAMple"))
        device.write("ACQuire:STOPAfter RUNSTop")
        device.write(scpi.acq_state(True))
        get_logger().info(_CATEGORY, "Acquisition started (continuous)")

    def stop(self) -> None:
        self._require_device().write(scpi.acq_state(False))
        get_logger().info(_CATEGORY, "Acquisition stopped")

    def acquire_single(self) -> None:
        """Arm a single-sequence acquisition without waiting for completion."""
        device = self._require_device()
        device.write(scpi.acq_single())
        device.write(scpi.acq_state(True))
        get_logger().info(_CATEGORY, "Single acquisition triggered")

    def set_channel(self, channel: ScopeChannel) -> None:
        channel = ScopeChannel(channel)
        self._require_device().write(scpi.data_source(channel))
        self._channel = channel
        self.invalidate_preamble_cache()
        get_logger().info(_CATEGORY, f"Active channel: {channel_name(channel)}")

    # ---- Waveform fetch ----

    def fetch_waveform(self) -> WaveformBuffer:
        """Read one waveform from the active channel while the scope keeps running."""
        log = get_logger()
        device = self._require_device()

        if not self._preamble_valid:
            # Brief stop so the format fields are stable while read.
            try:
                device.write(scpi.acq_state(False))
            except ScopeError:
                log.error(_CATEGORY, "STOP for preamble refresh failed")
                raise
            try:
                response = device.query(scpi.wfm_pre())
            except ScopeError:
                log.error(_CATEGORY, "WFMPRE? failed")
                raise
            finally:
                try:
                    device.write(scpi.acq_state(True))
                except ScopeError:
                    pass
            try:
                self._preamble_cache = parse_preamble(response)
            except PreambleError as exc:
                log.error(_CATEGORY, f"Preamble parse failed: {response}")
                raise ScopeError("Failed to parse waveform preamble") from exc
            self._preamble_valid = True
            log.debug(_CATEGORY, "Preamble refreshed from scope")

        preamble = replace(self._preamble_cache)

        try:
            device.write(scpi.curve())
        except ScopeError:
            log.error(_CATEGORY, "CURVE? write failed")
            raise
        try:
            raw = bytes(device.read_binary_block())
        except ScopeError:
            log.error(_CATEGORY, "Binary block read failed")
            # A device clear flushes the bus after a timeout.
            try:
                device.clear()
            except ScopeError:
                pass
            time.sleep(0.05)
            raise

        buffer = WaveformBuffer(
            preamble=preamble,
            raw_data=raw,
            channel=self._channel,
            timestamp=time.monotonic(),
        )
        self._display = DisplayParams(preamble.sec_per_div, preamble.volts_per_div)

        self._acq_count += 1
        now = _now_ms()
        elapsed = now - self._acq_count_reset_ms
        if elapsed >= 1000:
            self._acq_rate = (self._acq_count * 1000) // elapsed
            self._acq_count = 0
            self._acq_count_reset_ms = now

        log.debug(
            _CATEGORY,
            f"Waveform fetched: {len(raw)} samples, channel {channel_name(self._channel)}",
        )
        return buffer

    # ---- Settings queries ----

    def _query_number(self, command: str) -> float:
        response = self._require_device().query(command)
        try:
            return parse_double(response)
        except ValueError as exc:
            raise ScopeError(f"unparsable response to {command}: {response!r}") from exc

    def query_horizontal_scale(self) -> float:
        return self._query_number(scpi.hor_scale_query())

    def query_channel_scale(self, channel: ScopeChannel) -> float:
        return self._query_number(scpi.ch_scale_query(channel))

    def query_trigger_state(self) -> str:
        return self._require_device().query(scpi.trig_state_query())

    def query_trigger_level(self) -> float:
        with self._lock:
            return self._query_number(scpi.trig_level_query())

    # ---- Settings writes ----

    def set_horizontal_scale(self, sec_per_div: float) -> None:
        with self._lock:
            self._require_device().write(scpi.hor_scale(sec_per_div))
            self.invalidate_preamble_cache()

    def set_channel_scale(self, channel: ScopeChannel, volts_per_div: float) -> None:
        with self._lock:
            self._require_device().write(scpi.ch_scale(channel, volts_per_div))
            self.invalidate_preamble_cache()

    def adjust_trigger_level(self, delta_volts: float) -> None:
        """Move the trigger level; an unreadable current level counts as zero."""
        with self._lock:
            device = self._require_device()
            current = 0.0
            try:
                current = parse_double(device.query(scpi.trig_level_query()))
            except (ScopeError, ValueError):
                pass
            device.write(scpi.trig_level(current + delta_volts))

    # ---- Recovery ----

    def reset(self) -> None:
        self._require_device().write(scpi.rst())
        time.sleep(3.0)  # the instrument needs about 3 s after *RST
        self._setup_data_encoding()

    def clear_status(self) -> None:
        self._require_device().write(scpi.cls())

    def wait_for_opc(self, timeout_ms: int) -> None:
        """Poll *OPC? until it answers 1; raise ScopeError after timeout_ms."""
        device = self._require_device()
        start = time.monotonic()
        while True:
            try:
                if trim(device.query(scpi.opc_query())) == "1":
                    return
            except ScopeError:
                pass
            if (time.monotonic() - start) * 1000 > timeout_ms:
                get_logger().error(_CATEGORY, f"*OPC? timeout after {timeout_ms} ms")
                raise ScopeError("WaitForOPC timeout")
            time.sleep(0.1)

    # ---- Status ----

    def status(self) -> ScopeStatus:
        return ScopeStatus(
            state=ScopeState.CONNECTED if self.is_connected() else ScopeState.DISCONNECTED,
            idn=self._idn,
            active_channel=self._channel,
            acquisitions_per_sec=self._acq_rate,
        )

    def cached_display_params(self) -> DisplayParams:
        """Display parameters from the last fetched preamble; no bus traffic."""
        return self._display

    def set_cached_display_params(self, sec_per_div: float, volts_per_div: float) -> None:
        self._display = DisplayParams(sec_per_div, volts_per_div)

    def invalidate_preamble_cache(self) -> None:
        """Force the preamble to be read again on the next fetch."""
        self._preamble_valid = False