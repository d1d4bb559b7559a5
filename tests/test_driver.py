import threading

import pytest

from mediadev.availability import UnimplementedError
from mediadev.driver import (
    AudioDriver,
    DeviceType,
    Info,
    Manager,
    MediaProperties,
    State,
    VideoDriver,
    filter_and,
    filter_audio_recorder,
    filter_device_type,
    filter_id,
    filter_not,
    filter_video_recorder,
    get_manager,
    is_available,
    transition,
    wrap_adapter,
)


def filter_true(_):
    return True


def filter_false(_):
    return False


class RecordError(Exception):
    pass


RECORD_ERR = RecordError("failed to start recording")


class AdapterMock:
    def __init__(self):
        self.closed_calls = 0

    def open(self):
        pass

    def close(self):
        self.closed_calls += 1

    def properties(self):
        return [MediaProperties()]


class VideoAdapterMock(AdapterMock):
    def video_record(self, props):
        return "video-reader"


class VideoAdapterBrokenMock(AdapterMock):
    def video_record(self, props):
        raise RECORD_ERR


class AudioAdapterMock(AdapterMock):
    def audio_record(self, props):
        return "audio-reader"


class AudioAdapterBrokenMock(AdapterMock):
    def audio_record(self, props):
        raise RECORD_ERR


class AvailabilityAdapterMock(VideoAdapterMock):
    def is_available(self):
        return True


def test_filter_not():
    assert filter_not(filter_true)(None) is False
    assert filter_not(filter_false)(None) is True


@pytest.mark.parametrize(
    "filters, expected",
    [
        ((filter_true, filter_true), True),
        ((filter_true, filter_false), False),
        ((filter_false, filter_true), False),
        ((filter_false, filter_false), False),
        ((filter_false, filter_true, filter_true), False),
        ((filter_true, filter_true, filter_true), True),
    ],
)
def test_filter_and(filters, expected):
    assert filter_and(*filters)(None) is expected


def test_register():
    m = Manager()
    m.register(VideoAdapterMock(), Info())
    assert len(m.query(filter_true)) == 1
    m.register(AudioAdapterMock(), Info())
    assert len(m.query(filter_true)) == 2
    with pytest.raises(TypeError):
        m.register(AdapterMock(), Info())
    assert len(m.query(filter_true)) == 2


def test_register_sync():
    m = Manager()
    start = threading.Event()

    def race():
        start.wait()
        m.register(VideoAdapterMock(), Info())

    threads = [threading.Thread(target=race) for _ in range(2)]
    for t in threads:
        t.start()
    start.set()
    for t in threads:
        t.join()
    assert len(m.query(filter_true)) == 2


def test_query_sync():
    m = Manager()
    start = threading.Event()
    results = []

    def race():
        start.wait()
        results.append(len(m.query(filter_true)))

    threads = [threading.Thread(target=race) for _ in range(2)]
    for t in threads:
        t.start()
    start.set()
    m.register(VideoAdapterMock(), Info())
    for t in threads:
        t.join()
    assert all(r in (0, 1) for r in results)
    assert len(m.query(filter_true)) == 1


def test_query_filters_and_delete():
    m = Manager()
    video = m.register(VideoAdapterMock(), Info(label="cam", device_type=DeviceType.CAMERA))
    audio = m.register(AudioAdapterMock(), Info(label="mic", device_type=DeviceType.MICROPHONE))
    assert m.query(filter_video_recorder()) == [video]
    assert m.query(filter_audio_recorder()) == [audio]
    assert m.query(filter_id(audio.id)) == [audio]
    assert m.query(filter_device_type(DeviceType.CAMERA)) == [video]
    m.delete(video.id)
    assert m.query(filter_true) == [audio]
    m.delete("unknown")
    assert m.query(filter_true) == [audio]


def test_get_manager_singleton():
    registered = get_manager().register(VideoAdapterMock(), Info(label="shared"))
    try:
        assert get_manager().query(filter_id(registered.id)) == [registered]
    finally:
        get_manager().delete(registered.id)
    assert get_manager().query(filter_id(registered.id)) == []


def noop():
    return None


def test_update_sequence():
    s = State.CLOSED
    s = transition(s, State.OPENED, noop)
    assert s == State.OPENED
    s = transition(s, State.CLOSED, noop)
    assert s == State.CLOSED
    s = transition(s, State.OPENED, noop)
    assert s == State.OPENED


@pytest.mark.parametrize(
    "current, target",
    [
        (State.OPENED, State.OPENED),
        (State.RUNNING, State.OPENED),
        (State.CLOSED, State.RUNNING),
        (State.RUNNING, State.RUNNING),
    ],
)
def test_invalid_transitions(current, target):
    with pytest.raises(RuntimeError, match="invalid state"):
        transition(current, target, noop)


def test_transition_action_failure_propagates():
    def fail():
        raise RECORD_ERR

    with pytest.raises(RecordError):
        transition(State.CLOSED, State.OPENED, fail)


def test_video_wrapper_state():
    d = wrap_adapter(VideoAdapterMock(), Info())
    assert isinstance(d, VideoDriver)
    assert d.properties() == []
    with pytest.raises(RuntimeError):
        d.video_record(MediaProperties())
    d.open()
    assert d.video_record(MediaProperties()) == "video-reader"
    assert d.status == State.RUNNING


def test_video_wrapper_with_broken_recorder_state():
    adapter = VideoAdapterBrokenMock()
    d = wrap_adapter(adapter, Info())
    d.open()
    with pytest.raises(RecordError) as info:
        d.video_record(MediaProperties())
    assert info.value is RECORD_ERR
    assert d.status == State.CLOSED
    assert adapter.closed_calls == 1


def test_audio_wrapper_state():
    d = wrap_adapter(AudioAdapterMock(), Info())
    assert isinstance(d, AudioDriver)
    assert d.properties() == []
    with pytest.raises(RuntimeError):
        d.audio_record(MediaProperties())
    d.open()
    assert d.audio_record(MediaProperties()) == "audio-reader"


def test_audio_wrapper_with_broken_recorder_state():
    d = wrap_adapter(AudioAdapterBrokenMock(), Info())
    d.open()
    with pytest.raises(RecordError) as info:
        d.audio_record(MediaProperties())
    assert info.value is RECORD_ERR
    assert d.status == State.CLOSED


def test_properties_carry_device_id():
    d = wrap_adapter(VideoAdapterMock(), Info())
    d.open()
    props = d.properties()
    assert len(props) == 1
    assert props[0].device_id == d.id


def test_wrapper_availability_adapter():
    d = wrap_adapter(AvailabilityAdapterMock(), Info())
    assert is_available(d) is True

    d = wrap_adapter(VideoAdapterMock(), Info())
    with pytest.raises(UnimplementedError):
        is_available(d)

    d = wrap_adapter(AudioAdapterMock(), Info())
    with pytest.raises(UnimplementedError):
        is_available(d)


def test_wrapped_ids_are_unique():
    a = wrap_adapter(VideoAdapterMock(), Info())
    b = wrap_adapter(VideoAdapterMock(), Info())
    assert a.id != b.id
    assert a.info == Info()