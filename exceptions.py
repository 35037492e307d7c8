class HerbTraceError(Exception):
    """Base error. ``message`` is safe to show to the end user."""

    message = "Something went wrong"

    def __init__(self, message: str = None):
        self.message = message or self.message
        super().__init__(self.message)


class DuplicateBatch(HerbTraceError):
    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"Batch {batch_id} is already registered")


class UnknownBatch(HerbTraceError):
    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"Batch {batch_id} is not registered")


class NotFound(HerbTraceError):
    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"No data found for batch ID: {batch_id}")


class InvalidPayloadFormat(HerbTraceError):
    message = "This QR code does not contain a HerbTrace batch ID"


class CameraAccessDenied(HerbTraceError):
    message = "Camera access denied. Please allow camera access to scan QR codes."


class EmptyIdentifier(HerbTraceError):
    message = "Please enter a batch ID to search"


class StoreFault(HerbTraceError):
    message = "Failed to fetch batch data. Please try again."


class ScanStateError(HerbTraceError):
    """Raised when a scan session is asked for a transition it cannot make."""
