from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils import as_utc


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def _aware(cls, v: datetime) -> datetime:
        return as_utc(v)


# ---------- Events ----------
class HarvestEvent(_Event):
    farmer: str
    plant_type: str
    quantity_kg: float = Field(..., gt=0)
    location: str


class LabTestEvent(_Event):
    test_type: str
    result: str
    lab_id: str
    recorded_by: Optional[str] = None


class ProcessingStepEvent(_Event):
    step_type: str
    processor: str
    description: str
    temperature_c: Optional[float] = None
    duration: Optional[str] = None
    recorded_by: Optional[str] = None


class TransportEvent(_Event):
    from_location: str
    to_location: str
    transporter_id: str
    vehicle_id: Optional[str] = None
    recorded_by: Optional[str] = None


class BatchRecord(BaseModel):
    """Read-only snapshot of everything recorded against one batch."""

    model_config = ConfigDict(frozen=True)

    batch_id: str
    harvest: HarvestEvent
    lab_tests: Tuple[LabTestEvent, ...] = ()
    processing_steps: Tuple[ProcessingStepEvent, ...] = ()
    transport_events: Tuple[TransportEvent, ...] = ()


# ---------- Timeline ----------
class TimelineCategory(str, Enum):
    HARVEST = "Harvest"
    LAB_TEST = "LabTest"
    PROCESSING = "Processing"
    TRANSPORT = "Transport"


class TimelineEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: TimelineCategory
    timestamp: datetime
    title: str
    description: str
    location: Optional[str] = None


# ---------- API bodies ----------
class CreateBatch(BaseModel):
    batch_id: str = Field(..., min_length=1, max_length=64)
    farmer: str
    plant_type: str
    quantity_kg: float = Field(..., gt=0)
    location: str
    timestamp: Optional[datetime] = None

    @field_validator("batch_id")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("batch_id must not be blank")
        return v


class AddLabTest(BaseModel):
    test_type: str
    result: str
    lab_id: str
    timestamp: Optional[datetime] = None


class AddProcessingStep(BaseModel):
    step_type: str
    processor: str
    description: str
    temperature_c: Optional[float] = None
    duration: Optional[str] = None
    timestamp: Optional[datetime] = None


class AddTransportEvent(BaseModel):
    from_location: str
    to_location: str
    transporter_id: str
    vehicle_id: Optional[str] = None
    timestamp: Optional[datetime] = None


class ScanBody(BaseModel):
    raw: str


class BatchView(BaseModel):
    batch_id: str
    payload: str
    harvest: HarvestEvent
    lab_tests: List[LabTestEvent]
    processing_steps: List[ProcessingStepEvent]
    transport_events: List[TransportEvent]
    timeline: List[TimelineEntry]


class BatchList(BaseModel):
    items: List[str]
    total: int
