# canlink

A library for working with CAN bus traffic from Python.

- `canlink.frame.CanFrame` is a classic CAN frame. It holds an identifier
  (`can_id`), an `extended_format` flag and up to 8 data bytes. Longer data
  raises `ValueError`. `hex_dump()` returns the data as hex pairs.
- `canlink.filter.CanFilter` is an identifier/mask acceptance filter, checked
  with `matches(can_id)`.
- `canlink.timestamp.TimeStamp` is a time split into seconds and
  microseconds. It supports `+` and `-` with another timestamp or with
  milliseconds; subtraction stops at zero.
- `canlink.trc_writer.TRCWriter` and `canlink.trc_reader.TRCReader` write and
  read PCAN-style `.trc` trace files. Both raise their own errors:
  `TRCWriteError` and `TRCReadError`.
- `canlink.sender.CanSender` is an abstract base class. A background thread
  sends frames, or ordered groups of frames, every *period* milliseconds, and
  the period is shared across the frames of a group. Calling `send_frames`
  with the same identifiers in the same order replaces the group being sent.
  Use `unsend_frames` and `is_sent` to stop a group and to query it.
- `canlink.receiver.CanReceiver` is an abstract base class for frame sources.
- `canlink.sniffer.CanSniffer` waits on several receivers with `select`. It
  calls `on_receive(frame, timestamp, interface)` for each accepted frame and
  `on_timeout()` when a wait expires.
- `canlink.socketcan` is the SocketCAN backend for Linux. It provides
  `SocketCanHelper`, `SocketCanSender` and `SocketCanReceiver`, plus the
  `pack_frame`, `unpack_frame` and `build_kernel_filters` encoders.
- `canlink.helpers` and `canlink.easy.CanEasy` find every available
  interface and set each one up at a single bitrate.

## Installation

```
pip install .
```

The package has no runtime dependencies. The SocketCAN backend runs only on
Linux. It uses the `ip` tool to bring interfaces up and down and to set the
bitrate. Virtual interfaces keep their bitrate unchanged.

## Writing and reading a trace

```python
from canlink.frame import CanFrame
from canlink.timestamp import TimeStamp
from canlink.trc_writer import TRCWriter
from canlink.trc_reader import TRCReader

with TRCWriter("capture.trc") as writer:
    writer.write(CanFrame(True, 0x18FEF100, b"\x01\x02\x03"), TimeStamp(1, 500))

with TRCReader("capture.trc") as reader:
    print(reader.number_of_frames)
    time_us, frame = reader.read_next_can_frame()
```

The writer numbers lines from 1 and records times in milliseconds. The reader
checks the entire file when it loads it and reports each frame's time in
microseconds. `seek_position(index)` moves to a frame by its index, counted
from 0.

## Sending and sniffing on SocketCAN

```python
from canlink.easy import CanEasy
from canlink.frame import CanFrame

def on_receive(frame, timestamp, interface):
    print(interface, hex(frame.can_id), frame.hex_dump())

def on_timeout():
    pass

with CanEasy() as easy:
    easy.initialize(250000, on_receive, on_timeout)
    for iface in easy.initialized_ifaces:
        easy.get_sender(iface).send_frame(CanFrame(True, 0x18FEF100, b"\x00" * 8), 100)
    easy.sniffer.sniff(1000)   # loops until easy.sniffer.finish() is called
```

If you call `initialize(bitrate)` without callbacks, the interfaces are set up
for sending only.

## What it does not do

- SocketCAN is the only backend.
- The package has no command-line program or server.
- It does not decode higher-level protocols carried in the frames.

## Tests

```
pip install .[test]
pytest
```