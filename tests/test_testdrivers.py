import pytest

from mediadev.driver import (
    DeviceType,
    Manager,
    MediaProperties,
    State,
    filter_audio_recorder,
    filter_device_type,
    filter_video_recorder,
)
from mediadev.frame import Format, SubsampleRatio
from mediadev.testdrivers import AudioTest, VideoTest, register_test_drivers


def _video_props(**kw):
    base = dict(width=14, height=8, frame_rate=500)
    base.update(kw)
    return MediaProperties(**base)


def test_register_test_drivers():
    manager = Manager()
    drivers = register_test_drivers(manager)
    assert len(manager.query(lambda d: True)) == 2
    cameras = manager.query(filter_device_type(DeviceType.CAMERA))
    assert [d.info.label for d in cameras] == ["VideoTest"]
    assert len(manager.query(filter_video_recorder())) == 1
    mics = manager.query(filter_audio_recorder())
    assert [d.info.label for d in mics] == ["AudioTest"]
    assert {d.id for d in drivers} == {cameras[0].id, mics[0].id}


def test_video_properties_through_driver():
    video, _ = register_test_drivers(Manager())
    assert video.properties() == []
    video.open()
    props = video.properties()
    assert len(props) == 1
    assert props[0].frame_format == Format.YUYV
    assert props[0].device_id == video.id


def test_video_frame_layout():
    cam = VideoTest()
    cam.open()
    props = _video_props()
    frame = next(cam.video_record(props))
    assert len(frame.y) == props.width * props.height
    assert len(frame.cb) == props.width * props.height // 2
    assert len(frame.cr) == len(frame.cb)
    assert frame.subsample_ratio == SubsampleRatio.RATIO_422
    assert frame.c_stride == props.width // 2
    cam.close()


def test_video_colour_bars_and_ramp():
    cam = VideoTest()
    cam.open()
    props = _video_props()
    frame = next(cam.video_record(props))
    w, h = props.width, props.height
    assert (frame.cb[0], frame.cr[0]) == (128, 128)
    assert (frame.cb[w // 2 - 1], frame.cr[w // 2 - 1]) == (240, 110)
    last_row = frame.y[w * (h - 1) : w * h]
    ramp_end = w * 5 // 7
    ramp = list(last_row[:ramp_end])
    assert ramp == sorted(ramp)
    assert set(last_row[ramp_end:]) <= {0, 255}
    assert set(frame.cb[w * (h - 1) // 2 :]) == {128}
    cam.close()


def test_video_reader_stops_after_close():
    cam = VideoTest()
    cam.open()
    reader = cam.video_record(_video_props())
    next(reader)
    cam.close()
    assert list(reader) == []


def test_video_needs_frame_rate():
    cam = VideoTest()
    cam.open()
    with pytest.raises(ValueError):
        cam.video_record(_video_props(frame_rate=0))


def test_video_record_error_closes_driver():
    video, _ = register_test_drivers(Manager())
    video.open()
    with pytest.raises(ValueError):
        video.video_record(_video_props(frame_rate=0))
    assert video.status == State.CLOSED


def test_audio_properties():
    props = AudioTest().properties()
    assert [p.channel_count for p in props] == [1, 2]
    assert all(p.sample_rate == 48000 for p in props)


def test_audio_chunk_shape_and_channels():
    mic = AudioTest()
    mic.open()
    props = MediaProperties(sample_rate=1000, latency=0.01, channel_count=2)
    chunk = next(mic.audio_record(props))
    assert chunk.length == 10
    assert chunk.channels == 2
    assert chunk.sampling_rate == 1000
    assert len(chunk.data) == chunk.length * chunk.channels
    assert chunk.data[0::2] == chunk.data[1::2]
    mic.close()


def test_audio_default_latency():
    mic = AudioTest()
    mic.open()
    default = next(mic.audio_record(MediaProperties(sample_rate=48000, channel_count=1)))
    explicit = next(
        mic.audio_record(MediaProperties(sample_rate=48000, latency=0.02, channel_count=1))
    )
    assert default.length == explicit.length
    assert default.data == explicit.data
    mic.close()


def test_audio_tone_is_periodic():
    mic = AudioTest()
    mic.open()
    reader = mic.audio_record(MediaProperties(sample_rate=5000, latency=0.01, channel_count=1))
    samples = []
    for chunk in reader:
        samples.extend(chunk.data)
        if len(samples) >= 200:
            break
    mic.close()
    assert samples[:100] == samples[100:200]
    assert max(samples) == pytest.approx(0.25)
    assert min(samples) == pytest.approx(-0.25)


def test_audio_reader_stops_after_close():
    _, audio = register_test_drivers(Manager())
    audio.open()
    reader = audio.audio_record(MediaProperties(sample_rate=1000, latency=0.01, channel_count=1))
    assert audio.status == State.RUNNING
    next(reader)
    audio.close()
    assert list(reader) == []