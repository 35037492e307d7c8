import base64
import io

import qrcode

from exceptions import EmptyIdentifier, InvalidPayloadFormat

PAYLOAD_PREFIX = "HerbTrace:"


def encode(batch_id: str) -> str:
    """Payload string for a batch: ``"HerbTrace:" + batch_id``."""
    if not batch_id or not batch_id.strip():
        raise EmptyIdentifier()
    return PAYLOAD_PREFIX + batch_id


def decode(raw: str) -> str:
    """Candidate batch ID from a scanned payload.

    The prefix match is exact and case-sensitive and nothing is stripped.
    Whether the batch exists is not checked here.
    """
    if not isinstance(raw, str) or not raw.startswith(PAYLOAD_PREFIX):
        raise InvalidPayloadFormat()
    batch_id = raw[len(PAYLOAD_PREFIX):]
    if not batch_id:
        raise InvalidPayloadFormat()
    return batch_id


def render_qr(payload: str) -> bytes:
    img = qrcode.make(payload)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def render_qr_data_url(payload: str) -> str:
    return "data:image/png;base64," + base64.b64encode(render_qr(payload)).decode("ascii")
