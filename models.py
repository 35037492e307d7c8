from typing import Optional

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Float, Integer, String, Text, ForeignKey
from database import Base

class Batch(Base):
    __tablename__ = "batches"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    batch_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    farmer: Mapped[str] = mapped_column(String(255))
    plant_type: Mapped[str] = mapped_column(String(255))
    quantity_kg: Mapped[float] = mapped_column(Float)
    location: Mapped[str] = mapped_column(String(255))
    timestamp: Mapped[str] = mapped_column(String(40))
    lab_tests: Mapped[list["LabTest"]] = relationship(
        "LabTest", back_populates="batch", order_by="LabTest.id")
    processing_steps: Mapped[list["ProcessingStep"]] = relationship(
        "ProcessingStep", back_populates="batch", order_by="ProcessingStep.id")
    transport_events: Mapped[list["TransportLeg"]] = relationship(
        "TransportLeg", back_populates="batch", order_by="TransportLeg.id")

class LabTest(Base):
    __tablename__ = "lab_tests"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    batch_pk: Mapped[int] = mapped_column(Integer, ForeignKey("batches.id"), index=True)
    test_type: Mapped[str] = mapped_column(String(255))
    result: Mapped[str] = mapped_column(Text)
    lab_id: Mapped[str] = mapped_column(String(255))
    timestamp: Mapped[str] = mapped_column(String(40))
    recorded_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    batch: Mapped[Batch] = relationship("Batch", back_populates="lab_tests")

class ProcessingStep(Base):
    __tablename__ = "processing_steps"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    batch_pk: Mapped[int] = mapped_column(Integer, ForeignKey("batches.id"), index=True)
    step_type: Mapped[str] = mapped_column(String(255))
    processor: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text)
    temperature_c: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    duration: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    timestamp: Mapped[str] = mapped_column(String(40))
    recorded_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    batch: Mapped[Batch] = relationship("Batch", back_populates="processing_steps")

class TransportLeg(Base):
    __tablename__ = "transport_events"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    batch_pk: Mapped[int] = mapped_column(Integer, ForeignKey("batches.id"), index=True)
    from_location: Mapped[str] = mapped_column(String(255))
    to_location: Mapped[str] = mapped_column(String(255))
    transporter_id: Mapped[str] = mapped_column(String(255))
    vehicle_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    timestamp: Mapped[str] = mapped_column(String(40))
    recorded_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    batch: Mapped[Batch] = relationship("Batch", back_populates="transport_events")
