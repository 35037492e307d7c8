"""Tests for the OpenCV capture and decode adapters."""
import asyncio
import threading

import cv2
import pytest
from PIL import Image

import codec
from camera import OpenCVCamera, OpenCVQRDecoder, read_qr_image
from exceptions import CameraAccessDenied
from scanner import CameraFacing, ScanSession, ScanState


@pytest.fixture
def qr_png(tmp_path):
    path = tmp_path / "batch.png"
    path.write_bytes(codec.render_qr(codec.encode("BATCH_001")))
    return path


@pytest.fixture
def blank_png(tmp_path):
    path = tmp_path / "blank.png"
    Image.new("RGB", (300, 300), "white").save(path)
    return path


def test_read_qr_image(qr_png):
    assert read_qr_image(str(qr_png)) == "HerbTrace:BATCH_001"


def test_read_qr_image_without_code(blank_png):
    assert read_qr_image(str(blank_png)) is None


def test_read_qr_image_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_qr_image(str(tmp_path / "nope.png"))


@pytest.mark.asyncio
async def test_decoder_on_frames(qr_png, blank_png):
    decoder = OpenCVQRDecoder()
    assert await decoder.decode(cv2.imread(str(blank_png))) is None
    assert await decoder.decode(cv2.imread(str(qr_png))) == "HerbTrace:BATCH_001"
    decoder.reset()
    assert await decoder.decode(cv2.imread(str(qr_png))) == "HerbTrace:BATCH_001"


def test_camera_index_for_preference():
    camera = OpenCVCamera(index=0, front_index=1)
    assert camera._index_for(CameraFacing.ENVIRONMENT) == 0
    assert camera._index_for(CameraFacing.USER) == 1
    assert OpenCVCamera(index=2)._index_for(CameraFacing.USER) == 2


@pytest.mark.asyncio
async def test_missing_camera_is_denied():
    with pytest.raises(CameraAccessDenied):
        await OpenCVCamera(index=97).request_access(CameraFacing.ENVIRONMENT)


class BlockingCapture:
    """Stands in for cv2.VideoCapture; ``read`` blocks until ``gate`` is set."""

    def __init__(self):
        self.gate = threading.Event()
        self.reading = threading.Event()
        self.in_read = False
        self.release_calls = 0
        self.released_during_read = False

    def read(self):
        self.in_read = True
        self.reading.set()
        self.gate.wait(5)
        self.in_read = False
        return True, "frame"

    def release(self):
        if self.in_read:
            self.released_during_read = True
        self.release_calls += 1


class StubCamera(OpenCVCamera):
    def __init__(self, cap):
        super().__init__(index=0)
        self.cap = cap

    def _open(self, index):
        return self.cap


async def wait_released(cap, rounds=200):
    for _ in range(rounds):
        if cap.release_calls:
            return
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_release_after_finished_read_is_immediate():
    cap = BlockingCapture()
    cap.gate.set()
    camera = OpenCVCamera(index=0)

    assert await camera.read_frame(cap) == "frame"
    camera.release(cap)

    assert cap.release_calls == 1


@pytest.mark.asyncio
async def test_release_waits_for_pending_read():
    cap = BlockingCapture()
    camera = OpenCVCamera(index=0)
    reading = asyncio.create_task(camera.read_frame(cap))
    await asyncio.to_thread(cap.reading.wait, 5)

    reading.cancel()
    with pytest.raises(asyncio.CancelledError):
        await reading
    camera.release(cap)
    assert cap.release_calls == 0

    cap.gate.set()
    await wait_released(cap)
    assert cap.release_calls == 1
    assert not cap.released_during_read


class NeverDecodes:
    async def decode(self, frame):
        return None

    def reset(self):
        pass


@pytest.mark.asyncio
async def test_cancelled_session_releases_capture_once_read_returns():
    cap = BlockingCapture()
    session = ScanSession(StubCamera(cap), NeverDecodes())
    task = asyncio.create_task(session.start())
    await asyncio.to_thread(cap.reading.wait, 5)
    assert session.state is ScanState.STREAMING

    session.cancel()

    assert session.state is ScanState.CANCELLED
    assert not session.holds_camera
    assert await task is None
    assert cap.release_calls == 0

    cap.gate.set()
    await wait_released(cap)
    assert cap.release_calls == 1
    assert not cap.released_during_read
