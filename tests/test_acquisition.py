import time
from contextlib import contextmanager

import pytest

from tekscope import scpi
from tekscope.acquisition import (
    AcqThreadState,
    AcqThreadStats,
    AcquisitionWorker,
    ScopeCommand,
)
from tekscope.channel import ScopeChannel
from tekscope.ringbuffer import RingBuffer
from tekscope.scope import ScopeDevice, ScopeError, TektronixScope
from tekscope.waveform import DecodedWaveform

PREAMBLE = '1;8;BIN;RI;MSB;"Ch1, DC coupling";4;Y;"s";1.0E-3;0;"Volts";1.0E-2;0.0E+0;0.0E+0'


class FakeDevice(ScopeDevice):
    def __init__(self, fail_reads=False):
        self.writes = []
        self.fail_reads = fail_reads
        self.block = bytes([0, 1, 2, 3])
        self.responses = {
            "*IDN?": "TEKTRONIX,TDS 520A,0,CF:91.1CT FV:v1.0",
            "WFMPRE?": PREAMBLE,
            "HORizontal:SCAle?": "1.0E-3",
            "CH1:SCALE?": "0.5",
            "CH2:SCALE?": "0.5",
            "TRIGger:MAIn:LEVel?": "0.2",
            "*OPC?": "1",
        }

    def write(self, command):
        self.writes.append(command)

    def query(self, command):
        try:
            return self.responses[command]
        except KeyError:
            raise ScopeError(f"no response to {command}") from None

    def read_binary_block(self):
        if self.fail_reads:
            raise ScopeError("timeout")
        return self.block

    def clear(self):
        pass

    def drain_input(self):
        pass

    def close(self):
        pass


def connected_scope(device):
    scope = TektronixScope(lambda: device)
    scope.connect()
    return scope


def fast_worker(ring=None):
    worker = AcquisitionWorker(ring if ring is not None else RingBuffer())
    worker.error_delay = 0.0
    worker.retry_delay = 0.0
    worker.reconnect_delay = 0.0
    return worker


@contextmanager
def running(worker, channel=ScopeChannel.CH1):
    worker.start(channel)
    try:
        yield worker
    finally:
        worker.stop()
        worker.wait_for_stop(3000)


def wait_until(predicate, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_start_without_scope_raises():
    worker = AcquisitionWorker(RingBuffer())
    with pytest.raises(RuntimeError):
        worker.start()


def test_start_with_disconnected_scope_raises():
    worker = AcquisitionWorker(RingBuffer())
    worker.set_scope(TektronixScope(FakeDevice))
    with pytest.raises(RuntimeError):
        worker.start()
    assert worker.state() is AcqThreadState.STOPPED


def test_start_twice_raises():
    worker = fast_worker()
    worker.set_scope(connected_scope(FakeDevice()))
    with running(worker):
        with pytest.raises(RuntimeError):
            worker.start()
    assert worker.state() is AcqThreadState.STOPPED


@pytest.mark.parametrize("rate", [1, 2, 4, 5, 10, 20, 50])
def test_target_rate_round_trip(rate):
    worker = AcquisitionWorker(RingBuffer())
    worker.set_target_rate(rate)
    assert worker.target_rate() == rate


def test_target_rate_zero_means_unlimited():
    worker = AcquisitionWorker(RingBuffer())
    worker.set_target_rate(10)
    worker.set_target_rate(0)
    assert worker.target_rate() == 0


def test_waveforms_reach_ring_buffer_on_start_channel():
    device = FakeDevice()
    ring = RingBuffer()
    worker = fast_worker(ring)
    worker.set_scope(connected_scope(device))
    with running(worker, ScopeChannel.CH2):
        assert wait_until(lambda: len(ring) > 0)
    assert worker.state() is AcqThreadState.STOPPED
    assert scpi.data_source(ScopeChannel.CH2) in device.writes
    first = ring.pop()
    assert first.sequence_number == 1
    assert first.channel is ScopeChannel.CH2
    assert len(first.samples) == len(device.block)
    assert first.y_min == 0.0
    assert first.y_min <= first.y_max
    assert worker.stats().acquisitions_total >= 1


def test_callback_receives_decoded_waveforms():
    received = []
    worker = fast_worker()
    worker.set_scope(connected_scope(FakeDevice()))
    worker.set_callback(received.append)
    with running(worker):
        assert wait_until(lambda: len(received) >= 2)
    assert all(isinstance(w, DecodedWaveform) for w in received)
    numbers = [w.sequence_number for w in received]
    assert numbers == sorted(numbers)


def test_time_div_up_doubles_horizontal_scale():
    device = FakeDevice()
    worker = fast_worker()
    worker.set_scope(connected_scope(device))
    expected = scpi.hor_scale(1.0e-3 * 2.0)
    with running(worker):
        worker.post_command(ScopeCommand.TIME_DIV_UP)
        assert wait_until(lambda: expected in device.writes)
    assert device.writes.count(expected) == 1
    assert worker.state() is AcqThreadState.STOPPED
    assert worker.stats().gpib_errors == 0


def test_volt_div_down_halves_channel_scale():
    device = FakeDevice()
    worker = fast_worker()
    worker.set_scope(connected_scope(device))
    expected = scpi.ch_scale(ScopeChannel.CH1, 0.5 * 0.5)
    with running(worker):
        worker.post_command(ScopeCommand.VOLT_DIV_DOWN)
        assert wait_until(lambda: expected in device.writes)
    assert device.writes.count(expected) == 1
    assert worker.state() is AcqThreadState.STOPPED
    assert worker.stats().gpib_errors == 0


def test_trig_level_up_adds_step_to_current_level():
    device = FakeDevice()
    worker = fast_worker()
    worker.set_scope(connected_scope(device))
    expected = scpi.trig_level(0.2 + 0.1)
    with running(worker):
        worker.post_command(ScopeCommand.TRIG_LEVEL_UP)
        assert wait_until(lambda: expected in device.writes)
    assert device.writes.count(expected) == 1
    assert worker.state() is AcqThreadState.STOPPED
    assert worker.stats().gpib_errors == 0


def test_channel_single_and_run_requests_reach_device():
    device = FakeDevice()
    worker = fast_worker()
    worker.set_scope(connected_scope(device))
    with running(worker):
        worker.request_channel_change(ScopeChannel.CH3)
        worker.request_single()
        worker.request_run()
        assert wait_until(lambda: "ACQuire:STOPAfter RUNSTop" in device.writes)
    assert scpi.data_source(ScopeChannel.CH3) in device.writes
    assert scpi.acq_single() in device.writes


def test_fetch_errors_are_counted_and_trigger_reconnect():
    device = FakeDevice(fail_reads=True)
    worker = fast_worker()
    worker.set_scope(connected_scope(device))
    with running(worker):
        assert wait_until(lambda: worker.stats().reconnects >= 1)
    stats = worker.stats()
    assert stats.gpib_errors >= 15
    assert stats.last_error == "timeout"
    assert stats.acquisitions_total == 0


def test_failed_reconnect_stops_worker():
    device = FakeDevice(fail_reads=True)
    opens = []

    def open_device():
        opens.append(1)
        if len(opens) > 1:
            raise ScopeError("bus offline")
        return device

    scope = TektronixScope(open_device)
    scope.connect()
    worker = fast_worker()
    worker.set_scope(scope)
    worker.start()
    assert wait_until(lambda: worker.state() is AcqThreadState.STOPPED)
    worker.wait_for_stop(3000)
    assert worker.stats().reconnects == 1
    assert not scope.is_connected()


def test_stats_are_a_snapshot():
    worker = AcquisitionWorker(RingBuffer())
    snapshot = worker.stats()
    snapshot.gpib_errors = 99
    assert worker.stats() == AcqThreadStats()