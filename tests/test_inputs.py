import pytest

from backdrop.inputs.camera_input import CameraInput
from backdrop.inputs.video_input import VideoInput
from backdrop.utils.errors import AlreadyActiveError, CameraAccessError

from fakes import FakeCapture


def test_video_input_configures_path_without_opening():
    vi = VideoInput("/tmp/video.mp4", allow_missing=True)
    assert str(vi.path) == "/tmp/video.mp4"
    vi.start()
    assert vi.current_frame() is None
    vi.stop()


def test_camera_applies_resolution_hint_and_reads_frames():
    cap = FakeCapture()
    cam = CameraInput(device="cam-hint", capture_factory=lambda device: cap)
    handle = cam.start((32, 24))
    assert (handle.width, handle.height) == (32, 24)

    first = cam.current_frame()
    second = cam.current_frame()
    assert first.size == (32, 24)
    assert (first.index, second.index) == (1, 2)
    assert not first.data.flags.writeable
    cam.stop()


def test_camera_is_exclusive_per_device():
    cam = CameraInput(device="cam-exclusive", capture_factory=lambda device: FakeCapture())
    other = CameraInput(device="cam-exclusive", capture_factory=lambda device: FakeCapture())
    cam.start()
    with pytest.raises(AlreadyActiveError):
        cam.start()
    with pytest.raises(AlreadyActiveError):
        other.start()
    cam.stop()
    other.start()
    other.stop()


def test_camera_stop_is_idempotent():
    cap = FakeCapture()
    cam = CameraInput(device="cam-stop", capture_factory=lambda device: cap)
    cam.start()
    cam.stop()
    cam.stop()
    assert cap.release_calls == 1
    assert not cam.active
    assert cam.current_frame() is None


def test_unopened_camera_raises_and_releases_claim():
    cam = CameraInput(device="cam-denied", capture_factory=lambda device: FakeCapture(opened=False))
    with pytest.raises(CameraAccessError):
        cam.start()
    retry = CameraInput(device="cam-denied", capture_factory=lambda device: FakeCapture())
    retry.start()
    retry.stop()


def test_failed_grab_raises_camera_access_error():
    cam = CameraInput(device="cam-unplugged", capture_factory=lambda device: FakeCapture(fail_read=True))
    cam.start()
    with pytest.raises(CameraAccessError):
        cam.current_frame()
    cam.stop()
