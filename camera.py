"""OpenCV implementations of the capture device and frame decoder."""
import asyncio
import logging
from typing import Optional

import cv2

from config import CAMERA_INDEX
from exceptions import CameraAccessDenied
from scanner import CameraFacing

logger = logging.getLogger(__name__)


class OpenCVCamera:
    """``cv2.VideoCapture`` as a capture device.

    OpenCV has no notion of which way a camera faces, so the rear camera is
    whatever ``index`` points at. ``front_index`` is used only when the user
    facing camera is asked for explicitly.
    """

    def __init__(self, index: int = CAMERA_INDEX, front_index: Optional[int] = None):
        self.index = index
        self.front_index = front_index
        self._reading = None

    def _index_for(self, preference: CameraFacing) -> int:
        if preference is CameraFacing.USER and self.front_index is not None:
            return self.front_index
        return self.index

    @staticmethod
    def _open(index: int):
        cap = cv2.VideoCapture(index)
        if not cap.isOpened():
            cap.release()
            return None
        return cap

    @staticmethod
    def _release_late(future) -> None:
        if future.cancelled() or future.exception() is not None:
            return
        cap = future.result()
        if cap is not None:
            logger.debug("releasing camera opened after the request was abandoned")
            cap.release()

    async def request_access(self, preference: CameraFacing):
        index = self._index_for(preference)
        opening = asyncio.get_running_loop().run_in_executor(None, self._open, index)
        try:
            cap = await asyncio.shield(opening)
        except asyncio.CancelledError:
            # the open keeps running in its thread; make sure it does not leak
            opening.add_done_callback(self._release_late)
            raise
        if cap is None:
            raise CameraAccessDenied(f"Camera {index} is not available. Check that it is connected and not in use.")
        logger.info("opened camera %d", index)
        return cap

    async def read_frame(self, handle):
        reading = asyncio.get_running_loop().run_in_executor(None, handle.read)
        self._reading = reading
        # shielded so a cancelled read still reports when the thread is done with the capture
        ok, frame = await asyncio.shield(reading)
        self._reading = None
        return frame if ok else None

    def release(self, handle) -> None:
        reading, self._reading = self._reading, None
        if reading is not None and not reading.done():
            # VideoCapture is not thread-safe: wait for the read to return first
            logger.debug("deferring camera release until the pending read returns")
            reading.add_done_callback(lambda _f: handle.release())
            return
        handle.release()


class OpenCVQRDecoder:
    def __init__(self):
        self._detector = None

    async def decode(self, frame) -> Optional[str]:
        if self._detector is None:
            self._detector = cv2.QRCodeDetector()
        data, _points, _ = await asyncio.to_thread(self._detector.detectAndDecode, frame)
        return data or None

    def reset(self) -> None:
        self._detector = None


def read_qr_image(image_path: str) -> Optional[str]:
    """Raw text of the QR code in an image file, or None if there is none."""
    img = cv2.imread(image_path)
    if img is None:
        raise FileNotFoundError(image_path)
    data, _points, _ = cv2.QRCodeDetector().detectAndDecode(img)
    return data or None
