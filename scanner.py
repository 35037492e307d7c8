"""Camera scan sessions.

A :class:`ScanSession` owns one capture handle for its whole life and walks
through::

    IDLE -> REQUESTING -> STREAMING <-> DECODING -> SUCCEEDED | FAILED | CANCELLED -> CLOSED

Whatever path leaves REQUESTING/STREAMING/DECODING, the capture handle is
released and the decoder reset before observers hear about the new state.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Callable, List, Optional, Protocol

import codec
from exceptions import CameraAccessDenied, HerbTraceError, InvalidPayloadFormat, ScanStateError

logger = logging.getLogger(__name__)

SCAN_FAULT_MESSAGE = "Could not scan QR code. Please try again or enter the batch ID manually."
SCAN_TIMEOUT_MESSAGE = "Scanning timed out. Please try again."


class ScanState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    DECODING = "decoding"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    CLOSED = "closed"


ACTIVE_STATES = frozenset({ScanState.REQUESTING, ScanState.STREAMING, ScanState.DECODING})
FINISHED_STATES = frozenset({ScanState.SUCCEEDED, ScanState.FAILED, ScanState.CANCELLED})


class CameraFacing(str, Enum):
    ENVIRONMENT = "environment"  # rear camera
    USER = "user"


class CaptureDevice(Protocol):
    async def request_access(self, preference: CameraFacing) -> Any:
        """Return a capture handle, or None / raise CameraAccessDenied if refused."""

    async def read_frame(self, handle: Any) -> Optional[Any]:
        """Next frame, or None when nothing is available yet."""

    def release(self, handle: Any) -> None: ...


class FrameDecoder(Protocol):
    async def decode(self, frame: Any) -> Optional[str]:
        """Raw text of the code in ``frame``, or None when no code is visible."""

    def reset(self) -> None: ...


Observer = Callable[["ScanSession", ScanState], None]


async def _bounded(awaitable, timeout: Optional[float]):
    if timeout is None:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout)


class ScanSession:
    def __init__(
        self,
        device: CaptureDevice,
        decoder: FrameDecoder,
        *,
        preference: CameraFacing = CameraFacing.ENVIRONMENT,
        access_timeout: Optional[float] = None,
        decode_timeout: Optional[float] = None,
        frame_interval: float = 0.0,
    ):
        self.state = ScanState.IDLE
        self.batch_id: Optional[str] = None
        self.last_error: Optional[str] = None
        self.error: Optional[HerbTraceError] = None

        self._device = device
        self._decoder = decoder
        self._preference = preference
        self._access_timeout = access_timeout
        self._decode_timeout = decode_timeout
        self._frame_interval = frame_interval

        self._handle = None
        self._decoder_attached = False
        self._task: Optional[asyncio.Task] = None
        self._observers: List[Observer] = []

    @property
    def holds_camera(self) -> bool:
        return self._handle is not None

    def subscribe(self, observer: Observer) -> None:
        self._observers.append(observer)

    # ---------- transitions ----------
    def _set_state(self, state: ScanState) -> None:
        logger.debug("scan session %s -> %s", self.state.value, state.value)
        self.state = state
        for observer in list(self._observers):
            observer(self, state)

    def _release(self) -> None:
        handle, self._handle = self._handle, None
        attached, self._decoder_attached = self._decoder_attached, False
        try:
            if handle is not None:
                self._device.release(handle)
                logger.debug("capture handle released")
        finally:
            if attached:
                self._decoder.reset()

    def _finish(self, state: ScanState, error: Optional[HerbTraceError] = None,
                message: Optional[str] = None) -> bool:
        if self.state not in ACTIVE_STATES:
            return False
        self._release()
        if error is not None:
            self.error = error
            message = message or error.message
        if message:
            self.last_error = message
        self._set_state(state)
        return True

    def _interrupt(self) -> None:
        task = self._task
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()

    # ---------- public API ----------
    async def start(self) -> Optional[str]:
        """Run the session until it succeeds, fails or is cancelled.

        Returns the scanned batch ID, or None when the session ended without
        one (see ``state`` and ``last_error``).
        """
        if self.state is not ScanState.IDLE:
            raise ScanStateError(f"cannot start a scan session that is {self.state.value}")
        self._task = asyncio.current_task()
        self._set_state(ScanState.REQUESTING)
        try:
            return await self._run()
        except asyncio.TimeoutError:
            logger.info("scan session timed out")
            self._finish(ScanState.CANCELLED, message=SCAN_TIMEOUT_MESSAGE)
            return None
        except asyncio.CancelledError:
            if self._finish(ScanState.CANCELLED):
                # cancelled by our caller, not by cancel()/close()
                raise
            self._task.uncancel()
            return None
        except Exception as e:
            logger.exception("scan session fault")
            fault = HerbTraceError(SCAN_FAULT_MESSAGE)
            fault.__cause__ = e
            self._finish(ScanState.FAILED, fault)
            return None

    async def _run(self) -> Optional[str]:
        try:
            handle = await _bounded(self._device.request_access(self._preference), self._access_timeout)
        except asyncio.TimeoutError:
            raise
        except CameraAccessDenied as e:
            return self._denied(e)
        except Exception:
            logger.warning("camera unavailable", exc_info=True)
            return self._denied(CameraAccessDenied())
        if handle is None:
            return self._denied(CameraAccessDenied())

        self._handle = handle
        self._decoder_attached = True
        self._set_state(ScanState.STREAMING)

        while self.state is ScanState.STREAMING:
            frame = await _bounded(self._device.read_frame(self._handle), self._decode_timeout)
            if self.state is not ScanState.STREAMING:
                break
            if frame is None:
                await asyncio.sleep(self._frame_interval)
                continue

            self._set_state(ScanState.DECODING)
            if self.state is not ScanState.DECODING:
                break
            text = await _bounded(self._decoder.decode(frame), self._decode_timeout)
            if self.state is not ScanState.DECODING:
                break
            if text is None:
                # nothing readable in this frame, keep going
                self._set_state(ScanState.STREAMING)
                await asyncio.sleep(self._frame_interval)
                continue

            try:
                batch_id = codec.decode(text)
            except InvalidPayloadFormat as e:
                logger.info("scanned code is not a batch payload: %r", text)
                self._finish(ScanState.FAILED, e)
                return None
            self.batch_id = batch_id
            self._finish(ScanState.SUCCEEDED)
            logger.info("scanned batch %s", batch_id)
            return batch_id
        return None

    def _denied(self, error: CameraAccessDenied) -> None:
        logger.info("camera access denied")
        self._finish(ScanState.FAILED, error)
        self.close()
        return None

    def cancel(self) -> None:
        if self.state in (ScanState.IDLE, ScanState.CLOSED):
            raise ScanStateError(f"cannot cancel a scan session that is {self.state.value}")
        if self.state in FINISHED_STATES:
            return
        self._finish(ScanState.CANCELLED)
        self._interrupt()

    def close(self) -> None:
        if self.state is ScanState.CLOSED:
            return
        if self.state in ACTIVE_STATES:
            self.cancel()
        self._release()
        self._set_state(ScanState.CLOSED)
