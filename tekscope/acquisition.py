"""Background worker that fetches waveforms and hands decoded results to a ring buffer."""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, replace
from enum import Enum, auto
from typing import Callable, Optional

from .channel import ScopeChannel
from .log import get_logger
from .ringbuffer import RingBuffer
from .scope import ScopeError, TektronixScope
from .waveform import DecodedWaveform, DecodeError, decode

_CATEGORY = "AcqThread"

MAX_CONSECUTIVE_ERRORS = 15


class AcqThreadState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    ERROR = "error"


@dataclass
class AcqThreadStats:
    acquisitions_total: int = 0
    acquisitions_per_sec: int = 0
    gpib_errors: int = 0
    reconnects: int = 0
    last_error: str = ""


class ScopeCommand(Enum):
    """Requests posted from other threads and carried out on the acquisition thread."""

    SET_CHANNEL_1 = auto()
    SET_CHANNEL_2 = auto()
    SET_CHANNEL_3 = auto()
    SET_CHANNEL_4 = auto()
    TIME_DIV_UP = auto()
    TIME_DIV_DOWN = auto()
    VOLT_DIV_UP = auto()
    VOLT_DIV_DOWN = auto()
    TRIG_LEVEL_UP = auto()
    TRIG_LEVEL_DOWN = auto()
    ACQUIRE_SINGLE = auto()
    RUN = auto()


_CHANNEL_COMMANDS = {
    ScopeChannel.CH1: ScopeCommand.SET_CHANNEL_1,
    ScopeChannel.CH2: ScopeCommand.SET_CHANNEL_2,
    ScopeChannel.CH3: ScopeCommand.SET_CHANNEL_3,
    ScopeChannel.CH4: ScopeCommand.SET_CHANNEL_4,
}
_COMMAND_CHANNELS = {command: channel for channel, command in _CHANNEL_COMMANDS.items()}

AcqCallback = Callable[[DecodedWaveform], None]


def _now_ms() -> int:
    return int(time.monotonic() * 1000)


class AcquisitionWorker:
    """Runs the acquisition loop; the only place where the instrument is touched."""

    def __init__(self, ring_buffer: RingBuffer) -> None:
        self._ring = ring_buffer
        self._scope: Optional[TektronixScope] = None
        self._thread: Optional[threading.Thread] = None
        self._state = AcqThreadState.STOPPED
        self._stop_event = threading.Event()

        self._cmd_lock = threading.Lock()
        self._commands: deque[ScopeCommand] = deque()

        self._target_interval_ms = 0
        self._callback: Optional[AcqCallback] = None

        self._stats_lock = threading.Lock()
        self._stats = AcqThreadStats()
        self._window_count = 0
        self._window_start_ms = 0

        self._consecutive_errors = 0
        self._seq_num = 0

        # Pauses in seconds after a failed fetch, between retries and before reconnecting.
        self.error_delay = 0.3
        self.retry_delay = 0.2
        self.reconnect_delay = 2.0

    def set_scope(self, scope: TektronixScope) -> None:
        """Attach an already-connected instrument."""
        self._scope = scope

    # ---- Lifecycle ----

    def start(self, channel: ScopeChannel = ScopeChannel.CH1) -> None:
        """Start the loop on the given channel; raise RuntimeError if that is not possible."""
        log = get_logger()
        if self._state is not AcqThreadState.STOPPED:
            raise RuntimeError(f"acquisition already {self._state.value}")
        if self._scope is None or not self._scope.is_connected():
            log.error(_CATEGORY, "Cannot start: scope not connected")
            raise RuntimeError("scope not connected")

        self._stop_event.clear()
        self._consecutive_errors = 0
        self._seq_num = 0
        self._window_start_ms = _now_ms()
        self._window_count = 0

        # The channel is selected on the worker thread, not the caller's.
        self.request_channel_change(channel)

        self._state = AcqThreadState.RUNNING
        self._thread = threading.Thread(target=self._run, name="acquisition", daemon=True)
        self._thread.start()
        log.info(_CATEGORY, "Started")

    def stop(self) -> None:
        """Ask the loop to finish; returns at once."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._state = AcqThreadState.STOPPING
        get_logger().info(_CATEGORY, "Stop requested")

    def wait_for_stop(self, timeout_ms: int = 5000) -> None:
        """Wait for the loop to finish, then join the thread."""
        thread = self._thread
        if thread is None:
            return
        thread.join(timeout_ms / 1000.0)
        thread.join()
        self._thread = None

    def state(self) -> AcqThreadState:
        return self._state

    def stats(self) -> AcqThreadStats:
        with self._stats_lock:
            return replace(self._stats)

    # ---- Commands ----

    def post_command(self, command: ScopeCommand) -> None:
        """Queue a command for the worker thread; safe from any thread."""
        with self._cmd_lock:
            self._commands.append(ScopeCommand(command))

    def request_channel_change(self, channel: ScopeChannel) -> None:
        self.post_command(_CHANNEL_COMMANDS[ScopeChannel(channel)])

    def request_single(self) -> None:
        self.post_command(ScopeCommand.ACQUIRE_SINGLE)

    def request_run(self) -> None:
        self.post_command(ScopeCommand.RUN)

    # ---- Rate and callback ----

    def set_target_rate(self, acq_per_sec: int) -> None:
        """Limit acquisitions per second; 0 runs as fast as possible."""
        self._target_interval_ms = 1000 // acq_per_sec if acq_per_sec > 0 else 0

    def target_rate(self) -> int:
        interval = self._target_interval_ms
        return 1000 // interval if interval > 0 else 0

    def set_callback(self, callback: Optional[AcqCallback]) -> None:
        """Call ``callback`` with each decoded waveform, on the worker thread."""
        self._callback = callback

    # ---- Worker thread ----

    def _run(self) -> None:
        log = get_logger()
        log.info(_CATEGORY, "Thread started")
        try:
            while not self._stop_event.is_set():
                cycle_start = _now_ms()
                self._drain_commands()

                if not self._acquisition_cycle():
                    if self._stop_event.is_set():
                        break
                    if self._consecutive_errors >= MAX_CONSECUTIVE_ERRORS:
                        log.warning(
                            _CATEGORY,
                            f"{self._consecutive_errors} consecutive errors - attempting reconnect",
                        )
                        self._attempt_reconnect()
                    else:
                        self._stop_event.wait(self.retry_delay)
                    continue

                interval = self._target_interval_ms
                if interval > 0:
                    elapsed = _now_ms() - cycle_start
                    if elapsed < interval:
                        self._stop_event.wait((interval - elapsed) / 1000.0)
        finally:
            self._state = AcqThreadState.STOPPED
            log.info(_CATEGORY, "Thread exited")

    def _drain_commands(self) -> None:
        # Take the queue under the lock and run it outside, so posting never blocks on I/O.
        with self._cmd_lock:
            pending, self._commands = self._commands, deque()

        scope = self._scope
        for command in pending:
            if command in _COMMAND_CHANNELS:
                try:
                    scope.set_channel(_COMMAND_CHANNELS[command])
                except ScopeError as exc:
                    self._handle_error(exc)
            elif command is ScopeCommand.ACQUIRE_SINGLE:
                try:
                    scope.acquire_single()
                except ScopeError as exc:
                    self._handle_error(exc)
                else:
                    get_logger().info(_CATEGORY, "Single acquisition triggered")
            else:
                try:
                    self._run_setting_command(command)
                except ScopeError:
                    pass
                if command is ScopeCommand.RUN:
                    get_logger().info(_CATEGORY, "Continuous acquisition resumed")

    def _run_setting_command(self, command: ScopeCommand) -> None:
        scope = self._scope
        if command in (ScopeCommand.TIME_DIV_UP, ScopeCommand.TIME_DIV_DOWN):
            factor = 2.0 if command is ScopeCommand.TIME_DIV_UP else 0.5
            current = scope.query_horizontal_scale()
            if current > 0.0:
                scope.set_horizontal_scale(current * factor)
        elif command in (ScopeCommand.VOLT_DIV_UP, ScopeCommand.VOLT_DIV_DOWN):
            factor = 2.0 if command is ScopeCommand.VOLT_DIV_UP else 0.5
            channel = scope.channel
            current = scope.query_channel_scale(channel)
            if current > 0.0:
                scope.set_channel_scale(channel, current * factor)
        elif command is ScopeCommand.TRIG_LEVEL_UP:
            scope.adjust_trigger_level(+0.1)
        elif command is ScopeCommand.TRIG_LEVEL_DOWN:
            scope.adjust_trigger_level(-0.1)
        elif command is ScopeCommand.RUN:
            scope.start_continuous()

    def _acquisition_cycle(self) -> bool:
        """Fetch and decode one waveform; False means a bus error."""
        try:
            raw = self._scope.fetch_waveform()
        except ScopeError as exc:
            self._handle_error(exc)
            self._stop_event.wait(self.error_delay)
            return False

        self._consecutive_errors = 0
        self._seq_num += 1
        raw.sequence_number = self._seq_num

        try:
            decoded = decode(raw)
        except DecodeError:
            get_logger().warning(_CATEGORY, f"Decode failed for seq {self._seq_num}")
            return True  # not a bus error; keep running

        if self._callback is not None:
            self._callback(decoded)

        self._ring.push(decoded)

        with self._stats_lock:
            self._stats.acquisitions_total += 1
            self._window_count += 1
            now = _now_ms()
            elapsed = now - self._window_start_ms
            if elapsed >= 1000:
                self._stats.acquisitions_per_sec = (self._window_count * 1000) // elapsed
                self._window_count = 0
                self._window_start_ms = now
        return True

    def _handle_error(self, error: Exception) -> None:
        self._consecutive_errors += 1
        with self._stats_lock:
            self._stats.gpib_errors += 1
            self._stats.last_error = str(error)
        get_logger().error(
            _CATEGORY, f"GPIB error #{self._consecutive_errors}: {error}"
        )

    def _attempt_reconnect(self) -> None:
        log = get_logger()
        self._consecutive_errors = 0
        with self._stats_lock:
            self._stats.reconnects += 1

        scope = self._scope
        scope.disconnect()
        self._stop_event.wait(self.reconnect_delay)

        log.info(_CATEGORY, "Reconnecting")
        try:
            scope.connect()
        except ScopeError as exc:
            log.error(_CATEGORY, f"Reconnect failed: {exc}")
            self._state = AcqThreadState.ERROR
            self._stop_event.set()
            return

        try:
            scope.start_continuous()
        except ScopeError:
            pass
        self.post_command(ScopeCommand.SET_CHANNEL_1)  # re-apply channel after reconnect
        log.info(_CATEGORY, "Reconnected successfully")