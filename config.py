import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:////tmp/herbtrace.db")
BASE_URL = os.getenv("BASE_URL", "http://localhost:8000")

# "memory" or "sql"
STORE_BACKEND = os.getenv("STORE_BACKEND", "memory")

CAMERA_INDEX = int(os.getenv("CAMERA_INDEX", "0"))


def _optional_seconds(name: str):
    raw = os.getenv(name)
    return float(raw) if raw else None


SCAN_ACCESS_TIMEOUT = _optional_seconds("SCAN_ACCESS_TIMEOUT")
SCAN_DECODE_TIMEOUT = _optional_seconds("SCAN_DECODE_TIMEOUT")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
