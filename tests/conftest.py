from datetime import datetime, timedelta, timezone

import pytest

from database import make_engine, make_session_factory
from schemas import HarvestEvent, LabTestEvent, ProcessingStepEvent, TransportEvent
from store import InMemoryBatchStore, SqlBatchStore

T0 = datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)


def at(days: float = 0, hours: float = 0) -> datetime:
    return T0 + timedelta(days=days, hours=hours)


def harvest(ts=None, **kw) -> HarvestEvent:
    data = dict(
        farmer="Green Valley Farms",
        plant_type="Echinacea Purpurea",
        quantity_kg=500,
        location="Oregon, USA",
        timestamp=ts or T0,
    )
    data.update(kw)
    return HarvestEvent(**data)


def lab_test(ts, test_type="Purity Analysis", **kw) -> LabTestEvent:
    data = dict(test_type=test_type, result="99.2% Pure", lab_id="BioLab Sciences", timestamp=ts)
    data.update(kw)
    return LabTestEvent(**data)


def processing(ts, step_type="Extraction", **kw) -> ProcessingStepEvent:
    data = dict(step_type=step_type, processor="HerbTech Processing",
                description="CO2 supercritical extraction", timestamp=ts)
    data.update(kw)
    return ProcessingStepEvent(**data)


def transport(ts, **kw) -> TransportEvent:
    data = dict(from_location="Green Valley Farms", to_location="HerbTech Processing",
                transporter_id="NaturalTrans Inc.", timestamp=ts)
    data.update(kw)
    return TransportEvent(**data)


@pytest.fixture
def memory_store():
    return InMemoryBatchStore()


@pytest.fixture
def sql_store():
    engine = make_engine("sqlite://")
    yield SqlBatchStore(make_session_factory(engine), engine)
    engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def any_store(request):
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def seeded_store(memory_store):
    memory_store.register("BATCH_001", harvest())
    memory_store.append_lab_test("BATCH_001", lab_test(at(5)))
    memory_store.append_processing_step("BATCH_001", processing(at(10)))
    memory_store.append_transport_event("BATCH_001", transport(at(8)))
    return memory_store


@pytest.fixture
def sql_file_store(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'herbtrace.db'}")
    yield SqlBatchStore(make_session_factory(engine), engine)
    engine.dispose()
