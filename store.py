"""Batch record providers.

Both providers implement the same append-only contract: ``register`` creates a
batch together with its harvest, the ``append_*`` operations add one event to
the end of one sequence, and ``lookup`` returns an immutable
:class:`~schemas.BatchRecord` snapshot. Nothing is ever removed.
"""
import logging
import threading
from typing import Dict, List, Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from database import Base
from exceptions import DuplicateBatch, EmptyIdentifier, NotFound, StoreFault, UnknownBatch
from models import Batch, LabTest, ProcessingStep, TransportLeg
from schemas import (
    BatchRecord,
    HarvestEvent,
    LabTestEvent,
    ProcessingStepEvent,
    TransportEvent,
)
from utils import from_iso, to_iso

logger = logging.getLogger(__name__)


def _require_id(batch_id: str) -> None:
    if not batch_id or not batch_id.strip():
        raise EmptyIdentifier()


class BatchStore(Protocol):
    def register(self, batch_id: str, harvest: HarvestEvent) -> None: ...

    def append_lab_test(self, batch_id: str, event: LabTestEvent) -> None: ...

    def append_processing_step(self, batch_id: str, event: ProcessingStepEvent) -> None: ...

    def append_transport_event(self, batch_id: str, event: TransportEvent) -> None: ...

    def lookup(self, batch_id: str) -> BatchRecord: ...

    def identifiers(self) -> List[str]: ...


# ---------- In-memory ----------
class _Entry:
    __slots__ = ("harvest", "lab_tests", "processing_steps", "transport_events", "lock")

    def __init__(self, harvest: HarvestEvent):
        self.harvest = harvest
        self.lab_tests: List[LabTestEvent] = []
        self.processing_steps: List[ProcessingStepEvent] = []
        self.transport_events: List[TransportEvent] = []
        self.lock = threading.Lock()


class InMemoryBatchStore:
    """Thread-safe store kept in process memory. Lost on restart."""

    def __init__(self):
        self._batches: Dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._batches)

    def identifiers(self) -> List[str]:
        with self._lock:
            return list(self._batches)

    def register(self, batch_id: str, harvest: HarvestEvent) -> None:
        _require_id(batch_id)
        with self._lock:
            if batch_id in self._batches:
                raise DuplicateBatch(batch_id)
            self._batches[batch_id] = _Entry(harvest)
        logger.info("registered batch %s", batch_id)

    def _entry(self, batch_id: str) -> _Entry:
        with self._lock:
            entry = self._batches.get(batch_id)
        if entry is None:
            raise UnknownBatch(batch_id)
        return entry

    def _append(self, batch_id: str, field: str, event) -> None:
        entry = self._entry(batch_id)
        with entry.lock:
            getattr(entry, field).append(event)
        logger.debug("appended %s to batch %s", type(event).__name__, batch_id)

    def append_lab_test(self, batch_id: str, event: LabTestEvent) -> None:
        self._append(batch_id, "lab_tests", event)

    def append_processing_step(self, batch_id: str, event: ProcessingStepEvent) -> None:
        self._append(batch_id, "processing_steps", event)

    def append_transport_event(self, batch_id: str, event: TransportEvent) -> None:
        self._append(batch_id, "transport_events", event)

    def lookup(self, batch_id: str) -> BatchRecord:
        with self._lock:
            entry = self._batches.get(batch_id)
        if entry is None:
            raise NotFound(batch_id)
        with entry.lock:
            return BatchRecord(
                batch_id=batch_id,
                harvest=entry.harvest,
                lab_tests=tuple(entry.lab_tests),
                processing_steps=tuple(entry.processing_steps),
                transport_events=tuple(entry.transport_events),
            )


# ---------- SQLAlchemy ----------
class SqlBatchStore:
    """Store backed by the relational tables in :mod:`models`.

    Each operation runs in its own session and transaction, so an append is
    atomic with respect to its batch.
    """

    def __init__(self, session_factory, engine=None):
        self._session_factory = session_factory
        if engine is not None:
            Base.metadata.create_all(bind=engine)

    def _session(self) -> Session:
        return self._session_factory()

    @staticmethod
    def _find(db: Session, batch_id: str):
        return db.scalar(select(Batch).where(Batch.batch_id == batch_id))

    def identifiers(self) -> List[str]:
        try:
            with self._session() as db:
                return list(db.scalars(select(Batch.batch_id).order_by(Batch.id.asc())))
        except SQLAlchemyError as e:
            raise StoreFault() from e

    def register(self, batch_id: str, harvest: HarvestEvent) -> None:
        _require_id(batch_id)
        try:
            with self._session() as db:
                if self._find(db, batch_id):
                    raise DuplicateBatch(batch_id)
                db.add(Batch(
                    batch_id=batch_id,
                    farmer=harvest.farmer,
                    plant_type=harvest.plant_type,
                    quantity_kg=harvest.quantity_kg,
                    location=harvest.location,
                    timestamp=to_iso(harvest.timestamp),
                ))
                db.commit()
        except IntegrityError as e:
            raise DuplicateBatch(batch_id) from e
        except SQLAlchemyError as e:
            raise StoreFault() from e
        logger.info("registered batch %s", batch_id)

    def _append(self, batch_id: str, build) -> None:
        try:
            with self._session() as db:
                batch = self._find(db, batch_id)
                if batch is None:
                    raise UnknownBatch(batch_id)
                db.add(build(batch.id))
                db.commit()
        except SQLAlchemyError as e:
            raise StoreFault() from e

    def append_lab_test(self, batch_id: str, event: LabTestEvent) -> None:
        self._append(batch_id, lambda pk: LabTest(
            batch_pk=pk,
            test_type=event.test_type,
            result=event.result,
            lab_id=event.lab_id,
            timestamp=to_iso(event.timestamp),
            recorded_by=event.recorded_by,
        ))

    def append_processing_step(self, batch_id: str, event: ProcessingStepEvent) -> None:
        self._append(batch_id, lambda pk: ProcessingStep(
            batch_pk=pk,
            step_type=event.step_type,
            processor=event.processor,
            description=event.description,
            temperature_c=event.temperature_c,
            duration=event.duration,
            timestamp=to_iso(event.timestamp),
            recorded_by=event.recorded_by,
        ))

    def append_transport_event(self, batch_id: str, event: TransportEvent) -> None:
        self._append(batch_id, lambda pk: TransportLeg(
            batch_pk=pk,
            from_location=event.from_location,
            to_location=event.to_location,
            transporter_id=event.transporter_id,
            vehicle_id=event.vehicle_id,
            timestamp=to_iso(event.timestamp),
            recorded_by=event.recorded_by,
        ))

    def lookup(self, batch_id: str) -> BatchRecord:
        try:
            with self._session() as db:
                batch = self._find(db, batch_id)
                if batch is None:
                    raise NotFound(batch_id)
                return _to_record(batch)
        except SQLAlchemyError as e:
            raise StoreFault() from e


def _to_record(batch: Batch) -> BatchRecord:
    return BatchRecord(
        batch_id=batch.batch_id,
        harvest=HarvestEvent(
            farmer=batch.farmer,
            plant_type=batch.plant_type,
            quantity_kg=batch.quantity_kg,
            location=batch.location,
            timestamp=from_iso(batch.timestamp),
        ),
        lab_tests=tuple(LabTestEvent(
            test_type=t.test_type,
            result=t.result,
            lab_id=t.lab_id,
            timestamp=from_iso(t.timestamp),
            recorded_by=t.recorded_by,
        ) for t in batch.lab_tests),
        processing_steps=tuple(ProcessingStepEvent(
            step_type=p.step_type,
            processor=p.processor,
            description=p.description,
            temperature_c=p.temperature_c,
            duration=p.duration,
            timestamp=from_iso(p.timestamp),
            recorded_by=p.recorded_by,
        ) for p in batch.processing_steps),
        transport_events=tuple(TransportEvent(
            from_location=t.from_location,
            to_location=t.to_location,
            transporter_id=t.transporter_id,
            vehicle_id=t.vehicle_id,
            timestamp=from_iso(t.timestamp),
            recorded_by=t.recorded_by,
        ) for t in batch.transport_events),
    )

