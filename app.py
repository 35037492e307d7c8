import logging
from datetime import timedelta
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware

import codec
from config import LOG_FORMAT, LOG_LEVEL, STORE_BACKEND
from database import SessionLocal, engine
from exceptions import (
    DuplicateBatch,
    EmptyIdentifier,
    HerbTraceError,
    InvalidPayloadFormat,
    NotFound,
    StoreFault,
    UnknownBatch,
)
from lookup import LookupController, LookupState
from schemas import (
    AddLabTest,
    AddProcessingStep,
    AddTransportEvent,
    BatchList,
    BatchRecord,
    BatchView,
    CreateBatch,
    HarvestEvent,
    LabTestEvent,
    ProcessingStepEvent,
    ScanBody,
    TimelineEntry,
    TransportEvent,
)
from store import BatchStore, InMemoryBatchStore, SqlBatchStore
from timeline import aggregate
from utils import utcnow

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
logger = logging.getLogger(__name__)

app = FastAPI(title="HerbTrace", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------- Store ----------
def build_store() -> BatchStore:
    if STORE_BACKEND == "sql":
        return SqlBatchStore(SessionLocal, engine)
    return InMemoryBatchStore()

store = build_store()

def get_store() -> BatchStore:
    return store

# ---------- Helpers ----------
STATUS_CODES = {
    DuplicateBatch: 400,
    EmptyIdentifier: 400,
    UnknownBatch: 404,
    NotFound: 404,
    InvalidPayloadFormat: 422,
    StoreFault: 503,
}

def _http_error(e: HerbTraceError) -> HTTPException:
    return HTTPException(status_code=STATUS_CODES.get(type(e), 500), detail=e.message)

def _lookup(db: BatchStore, batch_id: str) -> BatchRecord:
    try:
        return db.lookup(batch_id)
    except HerbTraceError as e:
        raise _http_error(e)

def _view(record: BatchRecord, timeline=None) -> BatchView:
    return BatchView(
        batch_id=record.batch_id,
        payload=codec.encode(record.batch_id),
        harvest=record.harvest,
        lab_tests=list(record.lab_tests),
        processing_steps=list(record.processing_steps),
        transport_events=list(record.transport_events),
        timeline=timeline if timeline is not None else aggregate(record),
    )

async def _search(db: BatchStore, batch_id: str) -> BatchView:
    ctl = LookupController(db)
    try:
        state = await ctl.search(batch_id)
    except EmptyIdentifier as e:
        raise _http_error(e)
    if state is LookupState.FOUND:
        return _view(ctl.record, ctl.timeline)
    raise _http_error(ctl.error)

# ---------- APIs: one batch ----------
@app.post("/api/batches", response_model=BatchView, status_code=201)
def register_batch(body: CreateBatch, db: BatchStore = Depends(get_store)):
    harvest = HarvestEvent(
        farmer=body.farmer,
        plant_type=body.plant_type,
        quantity_kg=body.quantity_kg,
        location=body.location,
        timestamp=body.timestamp or utcnow(),
    )
    try:
        db.register(body.batch_id, harvest)
    except HerbTraceError as e:
        raise _http_error(e)
    return _view(_lookup(db, body.batch_id))

@app.post("/api/batches/{batch_id}/lab-tests")
def add_lab_test(batch_id: str, body: AddLabTest, db: BatchStore = Depends(get_store),
                 x_actor: Optional[str] = Header(None)):
    event = LabTestEvent(**body.model_dump(exclude={"timestamp"}),
                         timestamp=body.timestamp or utcnow(), recorded_by=x_actor)
    try:
        db.append_lab_test(batch_id, event)
    except HerbTraceError as e:
        raise _http_error(e)
    return {"status": "ok"}

@app.post("/api/batches/{batch_id}/processing-steps")
def add_processing_step(batch_id: str, body: AddProcessingStep, db: BatchStore = Depends(get_store),
                        x_actor: Optional[str] = Header(None)):
    event = ProcessingStepEvent(**body.model_dump(exclude={"timestamp"}),
                                timestamp=body.timestamp or utcnow(), recorded_by=x_actor)
    try:
        db.append_processing_step(batch_id, event)
    except HerbTraceError as e:
        raise _http_error(e)
    return {"status": "ok"}

@app.post("/api/batches/{batch_id}/transport-events")
def add_transport_event(batch_id: str, body: AddTransportEvent, db: BatchStore = Depends(get_store),
                        x_actor: Optional[str] = Header(None)):
    event = TransportEvent(**body.model_dump(exclude={"timestamp"}),
                           timestamp=body.timestamp or utcnow(), recorded_by=x_actor)
    try:
        db.append_transport_event(batch_id, event)
    except HerbTraceError as e:
        raise _http_error(e)
    return {"status": "ok"}

@app.get("/api/batches/{batch_id}", response_model=BatchView)
def get_batch(batch_id: str, db: BatchStore = Depends(get_store)):
    return _view(_lookup(db, batch_id))

@app.get("/api/batches/{batch_id}/timeline", response_model=list[TimelineEntry])
def get_timeline(batch_id: str, db: BatchStore = Depends(get_store)):
    return aggregate(_lookup(db, batch_id))

@app.get("/api/batches/{batch_id}/qrcode")
def batch_qrcode(batch_id: str, db: BatchStore = Depends(get_store)):
    _lookup(db, batch_id)
    png = codec.render_qr(codec.encode(batch_id))
    return Response(content=png, media_type="image/png")

# ---------- Listing, search & scan ----------
@app.get("/api/batches", response_model=BatchList)
def list_batches(db: BatchStore = Depends(get_store)):
    try:
        items = db.identifiers()
    except HerbTraceError as e:
        raise _http_error(e)
    return BatchList(items=items, total=len(items))

@app.get("/api/search", response_model=BatchView)
async def search(batch_id: str = Query("", description="batch ID as typed by the user"),
                 db: BatchStore = Depends(get_store)):
    return await _search(db, batch_id)

@app.post("/api/scan", response_model=BatchView)
async def scan(body: ScanBody, db: BatchStore = Depends(get_store)):
    try:
        batch_id = codec.decode(body.raw)
    except InvalidPayloadFormat as e:
        raise _http_error(e)
    return await _search(db, batch_id)

# ---------- Demo data ----------
@app.get("/api/seed")
def seed(db: BatchStore = Depends(get_store)):
    default_id = "BATCH_001"
    if default_id in db.identifiers():
        return {"status": "exists", "batch_id": default_id}

    now = utcnow()
    days_ago = lambda n: now - timedelta(days=n)

    db.register(default_id, HarvestEvent(
        farmer="Green Valley Farms",
        plant_type="Echinacea Purpurea",
        quantity_kg=500,
        location="Oregon, USA (45.5152°N, 122.6784°W)",
        timestamp=days_ago(30),
    ))
    db.append_lab_test(default_id, LabTestEvent(
        test_type="Purity Analysis", result="99.2% Pure",
        lab_id="BioLab Sciences", timestamp=days_ago(25)))
    db.append_lab_test(default_id, LabTestEvent(
        test_type="Heavy Metals", result="Below Detection Limits",
        lab_id="SafeTest Labs", timestamp=days_ago(23)))
    db.append_processing_step(default_id, ProcessingStepEvent(
        step_type="Extraction", processor="HerbTech Processing",
        description="CO2 supercritical extraction", temperature_c=31,
        timestamp=days_ago(20)))
    db.append_processing_step(default_id, ProcessingStepEvent(
        step_type="Standardization", processor="Quality Herb Co.",
        description="Standardized to 4% Echinacoside content", timestamp=days_ago(18)))
    db.append_transport_event(default_id, TransportEvent(
        from_location="Green Valley Farms", to_location="HerbTech Processing",
        transporter_id="NaturalTrans Inc.", timestamp=days_ago(22)))
    db.append_transport_event(default_id, TransportEvent(
        from_location="HerbTech Processing", to_location="Distribution Center",
        transporter_id="EcoLogistics", timestamp=days_ago(15)))
    logger.info("seeded demo batch %s", default_id)
    return {"status": "seeded", "batch_id": default_id}
