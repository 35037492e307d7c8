from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(ts: datetime) -> datetime:
    """Naive datetimes are taken to be UTC so every instant compares cleanly."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def to_iso(ts: datetime) -> str:
    return as_utc(ts).isoformat()


def from_iso(value: str) -> datetime:
    return as_utc(datetime.fromisoformat(value))


def format_quantity(kg: float) -> str:
    return f"{kg:g}kg"


def format_conditions(temperature_c: Optional[float], duration: Optional[str]) -> str:
    parts = []
    if temperature_c is not None:
        parts.append(f"{temperature_c:g}°C")
    if duration:
        parts.append(duration)
    return f" ({', '.join(parts)})" if parts else ""
