"""
Scan a HerbTrace QR code with the local camera (or from an image file) and
print the batch timeline from the API.
Run:
    python scripts/scan_camera.py [--image qr.png] [--api http://localhost:8000]
"""
import argparse
import asyncio
import logging
import sys

import requests

import codec
from camera import OpenCVCamera, OpenCVQRDecoder, read_qr_image
from config import BASE_URL, CAMERA_INDEX, LOG_FORMAT, SCAN_ACCESS_TIMEOUT, SCAN_DECODE_TIMEOUT
from exceptions import InvalidPayloadFormat
from scanner import ScanSession

logger = logging.getLogger("scan_camera")


async def scan_from_camera(index: int, timeout: float):
    session = ScanSession(
        OpenCVCamera(index),
        OpenCVQRDecoder(),
        access_timeout=SCAN_ACCESS_TIMEOUT,
        decode_timeout=SCAN_DECODE_TIMEOUT,
        frame_interval=0.05,
    )
    session.subscribe(lambda s, state: logger.info("scanner: %s", state.value))
    try:
        return await asyncio.wait_for(session.start(), timeout)
    except asyncio.TimeoutError:
        print("No QR code found, giving up.")
        return None
    finally:
        if session.last_error:
            print(session.last_error)
        session.close()


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--image", default=None, help="decode this image instead of the camera")
    parser.add_argument("--camera", type=int, default=CAMERA_INDEX)
    parser.add_argument("--timeout", type=float, default=60.0)
    parser.add_argument("--api", default=BASE_URL)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

    if args.image:
        raw = read_qr_image(args.image)
        if raw is None:
            print("No QR code found in", args.image)
            return 1
        try:
            batch_id = codec.decode(raw)
        except InvalidPayloadFormat as e:
            print(e.message)
            return 1
    else:
        batch_id = asyncio.run(scan_from_camera(args.camera, args.timeout))
        if batch_id is None:
            return 1

    rr = requests.get(f"{args.api}/api/batches/{batch_id}/timeline")
    if rr.status_code != 200:
        print("lookup", rr.status_code, rr.text)
        return 1
    print("Batch", batch_id)
    for entry in rr.json():
        print(entry["timestamp"], entry["title"], "-", entry["description"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
