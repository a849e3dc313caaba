# yesense

Tools for talking to Yesense inertial measurement units over a serial line.

- `yesense.analysis` decodes the data blocks of an output frame into a
  `ProtocolInfo` record: IMU temperatures, acceleration, free and secondary
  acceleration, angular rate, magnetic field (normalised and raw), Euler
  angles, quaternions and their increments, velocity increments, location,
  velocity, status, sample and data-ready timestamps, and GNSS master and
  slave data. `parse_data_by_id(data_id, length, data, info)` decodes one
  block and returns whether it succeeded; `parse_payload(payload, info)`
  decodes a whole payload and returns the `DataId`s it decoded. Blocks with an
  unknown id or a wrong length are skipped a byte at a time. UTC blocks
  (`DataId.UTC`) are not decoded.
- `yesense.commands` builds configuration and query command frames, each a
  `Command` with its two-byte checksum: `production_query`, `baudrate_query`,
  `baudrate_setting`, `frequency_query`, `frequency_setting`,
  `output_content_query`, `output_content_setting`, `standard_param_query`,
  `standard_param_setting`, `mode_query`, `mode_setting` and
  `gyro_bias_estimate`. For the setting commands, bit 7 of the value selects
  memory instead of flash. Unsupported values raise `CommandError`.
  `build_command` and `checksum` are available for frames of your own.
- `yesense.stream` holds `FrameDecoder`. Its `feed` method takes raw bytes as
  they arrive and returns the completed `DataFrame`s and `CommandResponse`s.
  Decoded values accumulate in `decoder.info`. NMEA sentences (starting with
  `$`) found in the stream are collected, and `gps_sentences()` returns the
  latest of each kind. Call `expect_response` after sending a command so that
  its answer is recognised.
- `yesense.messages` turns decoded data into records:
  - `build_imu_message` gives an orientation quaternion plus angular rate in
    rad/s, linear acceleration and covariance diagonals.
  - `build_pose` gives a pose at the origin with that orientation.
  - `all_data` gives a nested dict of every value, including the raw NMEA
    sentences.
  - `GpsOrigin.relative_position` gives the distance from a first fix.
- `yesense.driver` ties these together around an open serial connection.
  - `YesenseDriver` has `send` and `poll`, and is a context manager that closes
    the port.
  - After each checked frame the driver keeps the latest `imu`, `pose` and
    `data`, and appends the pose to `path`.
  - `open_driver` finds and opens the device.

## Installation

```
pip install .
```

## Running

```
yesense
```

This lists the entries of `/dev` whose names start with `ttyUSB` and picks the
first one whose USB vendor and product ids belong to a Yesense device. It
opens that port at 460800 baud, retrying every 5 seconds if the port will not
open. It then prints one JSON line for each checked data frame (the `all_data`
record) and for each command response. It exits with status 1 if no device is
found.

Options:

- `--port PREFIX`: path prefix of the ports to search (default `/dev/ttyUSB0`,
  which matches every `/dev/ttyUSB*`)
- `--baudrate N`: default `460800`
- `--linear-acceleration-stddev`, `--angular-velocity-stddev`,
  `--orientation-stddev`: values placed on the covariance diagonals
- `--gyro-bias {enable,disable,query}`: send a gyro bias estimation command at
  start-up

## Using the library

Decoding a capture:

```python
from yesense.stream import FrameDecoder

decoder = FrameDecoder()
with open("capture.bin", "rb") as capture:
    for item in decoder.feed(capture.read()):
        print(item)
print(decoder.gps_sentences())
```

Building a command to send yourself:

```python
from yesense.commands import frequency_setting

command = frequency_setting(0x88)   # bit 7 set: store in memory; 0x08 is 100 Hz
print(bytes(command).hex(" "))
```

Driving a device:

```python
import time

from yesense.commands import baudrate_query
from yesense.driver import open_driver

with open_driver("/dev/ttyUSB0", 460800) as driver:
    driver.send(baudrate_query())
    time.sleep(0.1)
    for item in driver.poll():
        print(item)
    print(driver.imu)
```

`YesenseDriver` also accepts any object with `read`, `write`, `in_waiting`
and `close`, such as a pyserial `Serial`.

## What it does not do

The package does not publish to a message bus and does not broadcast
coordinate transforms. Decoded data is returned to the caller, kept on the
driver, or printed as JSON lines by the `yesense` command.

The command line can only send gyro bias estimation commands. The other
configuration commands are available from `yesense.commands` and must be sent
with `YesenseDriver.send`.

NMEA output settings are not supported.

## Tests

```
pip install .[test]
pytest
```