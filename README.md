# mediadev

Building blocks for working with media capture devices:

- `mediadev.driver` keeps a registry of drivers (`Manager`, reached through
  `get_manager()`). It can filter them and tracks whether each one is closed, opened
  or running.
- `mediadev.availability` holds the errors that say why a device cannot be used:
  `UnimplementedError`, `BusyError` and `NoDeviceError`, all subclasses of
  `AvailabilityError`.
- `mediadev.frame` decodes raw frames in these formats: I420, NV12, NV21, YUY2/YUYV,
  UYVY, Z16 depth and MJPEG. An MJPEG frame that has no Huffman tables gets default
  tables before it is decoded.
- `mediadev.camera` holds camera helpers that work without hardware: frame-rate
  enumeration, resolution candidates, the read-timeout setting and the mapping from
  errno to availability.
- `mediadev.testdrivers` provides synthetic sources: `VideoTest`, which shows colour
  bars, a gray ramp and noise, and `AudioTest`, which plays a sine tone.
- `mediadev.vnc` is an RFB (VNC) client. `mediadev.vncdriver.VncDevice` exposes a
  VNC server's framebuffer as a video device.

## Installation

```
pip install .
```

To run the tests, install the test extra and run pytest:

```
pip install .[test]
pytest
```

## Decoding a frame

```python
from mediadev.frame import Format, new_decoder

decode = new_decoder(Format.YUY2)
image = decode(bytes([0x01, 0x82, 0x03, 0x84, 0x05, 0x86, 0x07, 0x88]), 2, 2)
print(image.y, image.cb, image.cr)   # b'\x01\x03\x05\x07' b'\x82\x86' b'\x84\x88'
```

The YUV decoders return a `YCbCr` image. `decode_z16` returns a `Gray16`, whose
`at(x, y)` gives a single depth value. `decode_mjpeg` returns a Pillow image.
`new_decoder` raises `ValueError` for a format it has no decoder for (RGBA and I444).
A decoder also raises `ValueError` when a frame is shorter than its width and height
require. A Z16 frame must have exactly the required length.

## Registering and querying drivers

```python
from mediadev.driver import DeviceType, filter_device_type, get_manager
from mediadev.testdrivers import register_test_drivers

manager = get_manager()
register_test_drivers(manager)

for drv in manager.query(filter_device_type(DeviceType.CAMERA)):
    drv.open()
    frames = drv.video_record(drv.properties()[0])
    frame = next(frames)
    drv.close()
```

`Manager.register(adapter, info)` wraps an adapter as a `VideoDriver` if it has
`video_record`, or as an `AudioDriver` if it has `audio_record`. Any other adapter
raises `TypeError`. You can combine the filters `filter_video_recorder`,
`filter_audio_recorder`, `filter_id`, `filter_device_type`, `filter_and` and
`filter_not`.

A driver moves through the states `State.CLOSED`, `State.OPENED` and
`State.RUNNING`. A transition that is not allowed raises `RuntimeError`, for example
recording before opening or opening twice. While a driver is closed, `properties()`
returns an empty list. If recording fails, the driver closes itself and the error
propagates. `is_available(driver)` raises `UnimplementedError` when the adapter
cannot report whether it is available.

## Camera helpers

```python
from mediadev.camera import FrameRate, calc_framerate, enum_framerate, read_timeout

calc_framerate(1, 30)                                           # 30.0
enum_framerate(FrameRate(max_numerator=1, max_denominator=15))  # [15.0]
read_timeout({})                                                # 5
```

`read_timeout` reads the number of seconds from the variable named by
`READ_TIMEOUT_ENV`. It uses 5 when that value is missing, not an integer or not
positive.

## VNC

```python
from mediadev.vncdriver import VncDevice

device = VncDevice("localhost:5900")
device.open()
print(device.properties())
device.close()
```

At a lower level, `mediadev.vnc.client.client(sock, config)` runs the handshake over a
connected socket and starts a thread that reads server messages. Every message read is
put on `ClientConfig.server_message_queue`. To use VNC password authentication:

```python
import socket
from mediadev.vnc.auth import PasswordAuth
from mediadev.vnc.client import ClientConfig, client

password = "password"
conn = client(socket.create_connection(("localhost", 5900)),
              ClientConfig(auth=[PasswordAuth(password=password)]))
```

## What this package does not do

It has no drivers for real cameras, microphones or screens. `mediadev.camera` only
holds helpers, and the only devices you can record from are the synthetic test
sources and `VncDevice`. It does not encode media and does not stream it anywhere. It
has no command-line program.