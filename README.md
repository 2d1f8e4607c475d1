# tekscope

Tools for driving a Tektronix TDS 520A oscilloscope and turning its output
into usable waveforms:

- `tekscope.channel` defines `ScopeChannel` (CH1 to CH4) and `channel_name`.
- `tekscope.scpi` builds the SCPI command strings the instrument understands.
- `tekscope.preamble` parses `WFMPRE?` responses with `parse_preamble` and
  `WAVFRM?` responses with `parse_wavfrm`. It handles both the positional
  format and the keyword format. Failures raise `PreambleError`.
- `tekscope.waveform` turns raw ADC bytes in a `WaveformBuffer` into a
  `DecodedWaveform` of time and voltage samples with `decode`. Failures raise
  `DecodeError`.
- `tekscope.ringbuffer.RingBuffer` is a bounded, thread-safe FIFO with a
  power-of-two capacity. It holds at most `capacity - 1` items.
- `tekscope.scope.TektronixScope` is the high-level instrument object. It
  works over any `ScopeDevice` session that you supply. Bus and protocol
  failures raise `ScopeError`.
- `tekscope.acquisition.AcquisitionWorker` runs a background loop. It fetches
  and decodes waveforms into a `RingBuffer` and carries out `ScopeCommand`s
  that you queue from other threads. After 15 consecutive errors it tries to
  reconnect.
- `tekscope.log` (`get_logger`, `Logger`, `LogLevel`), `tekscope.strutil` and
  `tekscope.netutil` are supporting utilities.

## Installation

```
pip install .
```

To also install the test dependencies:

```
pip install .[test]
```

## Examples

Build commands:

```python
from tekscope import scpi
from tekscope.channel import ScopeChannel

scpi.data_source(ScopeChannel.CH2)   # 'DATA:SOURCE CH2'
scpi.hor_scale(1e-3)                 # 'HORizontal:SCAle 0.001'
```

Parse a preamble and decode a waveform:

```python
from tekscope.preamble import parse_preamble
from tekscope.waveform import WaveformBuffer, decode

pre = parse_preamble('1;8;BIN;RI;MSB;"Ch1";4;Y;"s";1.0E-6;0;"Volts";2.0E-3;0.0E+0;0.0E+0')
wave = decode(WaveformBuffer(preamble=pre, raw_data=bytes([0, 10, 246, 127])))
print(wave.y_min, wave.y_max)
```

Drive an instrument through your own bus session:

```python
from tekscope.scope import ScopeDevice, TektronixScope
from tekscope.ringbuffer import RingBuffer
from tekscope.acquisition import AcquisitionWorker

class MyDevice(ScopeDevice):
    # Implement write, query, read_binary_block, clear, drain_input and close.
    # Raise tekscope.scope.ScopeError when a bus operation fails.
    ...

scope = TektronixScope(MyDevice)
scope.connect()                      # clears the device, checks *IDN?, sets encoding
scope.start_continuous()

ring = RingBuffer(8)
worker = AcquisitionWorker(ring)
worker.set_scope(scope)
worker.set_target_rate(10)           # at most 10 acquisitions per second
worker.start()
# ... later, ring.pop() or ring.peek_latest() returns a DecodedWaveform
worker.stop()
worker.wait_for_stop()
scope.disconnect()
```

Log entries go to the `tekscope` standard-library logger at debug level. You
can also send them to a file with `get_logger().enable_file_log(path)` or to a
function with `get_logger().set_callback(fn)`.

## What this package does not do

- It has no GPIB or VISA driver. Opening the bus and moving bytes is up to the
  `ScopeDevice` implementation you pass to `TektronixScope`.
- It has no graphical display, no web server and no command-line program. It
  is a library only.
- Device discovery and automatic address scanning are not included.

## Running the tests

```
pytest
```