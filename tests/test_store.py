"""Tests for the batch record providers."""
from concurrent.futures import ThreadPoolExecutor

import pytest

from exceptions import DuplicateBatch, EmptyIdentifier, NotFound, UnknownBatch
from tests.conftest import T0, at, harvest, lab_test, processing, transport


class TestBatchStore:
    """Contract shared by the in-memory and SQL stores."""

    def test_register_creates_empty_sequences(self, any_store):
        any_store.register("BATCH_001", harvest())
        record = any_store.lookup("BATCH_001")

        assert record.batch_id == "BATCH_001"
        assert record.harvest.farmer == "Green Valley Farms"
        assert record.harvest.timestamp == T0
        assert record.lab_tests == ()
        assert record.processing_steps == ()
        assert record.transport_events == ()

    def test_register_twice_is_rejected(self, any_store):
        any_store.register("BATCH_001", harvest())
        with pytest.raises(DuplicateBatch):
            any_store.register("BATCH_001", harvest(farmer="Someone Else"))
        assert any_store.lookup("BATCH_001").harvest.farmer == "Green Valley Farms"

    @pytest.mark.parametrize("blank", ["", "   "])
    def test_register_blank_identifier(self, any_store, blank):
        with pytest.raises(EmptyIdentifier):
            any_store.register(blank, harvest())
        assert any_store.identifiers() == []

    def test_identifiers_are_case_sensitive(self, any_store):
        any_store.register("BATCH_001", harvest())
        any_store.register("batch_001", harvest())
        assert sorted(any_store.identifiers()) == ["BATCH_001", "batch_001"]

    @pytest.mark.parametrize("method,event", [
        ("append_lab_test", lab_test(T0)),
        ("append_processing_step", processing(T0)),
        ("append_transport_event", transport(T0)),
    ])
    def test_append_to_unknown_batch(self, any_store, method, event):
        with pytest.raises(UnknownBatch):
            getattr(any_store, method)("BATCH_404", event)

    def test_lookup_missing_batch(self, any_store):
        with pytest.raises(NotFound) as exc:
            any_store.lookup("BATCH_999")
        assert "BATCH_999" in exc.value.message

    def test_appends_keep_call_order(self, any_store):
        any_store.register("BATCH_001", harvest())
        # deliberately not chronological
        any_store.append_lab_test("BATCH_001", lab_test(at(9), "Heavy Metals"))
        any_store.append_lab_test("BATCH_001", lab_test(at(2), "Purity Analysis"))
        any_store.append_processing_step(
            "BATCH_001", processing(at(3), temperature_c=31, duration="2h", recorded_by="proc-1"))
        any_store.append_transport_event("BATCH_001", transport(at(4), vehicle_id="TRK-7"))

        record = any_store.lookup("BATCH_001")
        assert [t.test_type for t in record.lab_tests] == ["Heavy Metals", "Purity Analysis"]
        assert record.processing_steps[0].temperature_c == 31
        assert record.processing_steps[0].duration == "2h"
        assert record.processing_steps[0].recorded_by == "proc-1"
        assert record.transport_events[0].vehicle_id == "TRK-7"
        assert record.transport_events[0].timestamp == at(4)

    def test_lookup_is_a_snapshot(self, any_store):
        any_store.register("BATCH_001", harvest())
        before = any_store.lookup("BATCH_001")
        any_store.append_lab_test("BATCH_001", lab_test(at(1)))

        assert before.lab_tests == ()
        assert len(any_store.lookup("BATCH_001").lab_tests) == 1


class TestInMemoryConcurrency:

    def test_concurrent_appends_lose_nothing(self, memory_store):
        memory_store.register("BATCH_001", harvest())
        events = [lab_test(at(hours=i), f"Test {i}") for i in range(100)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda e: memory_store.append_lab_test("BATCH_001", e), events))

        stored = memory_store.lookup("BATCH_001").lab_tests
        assert len(stored) == 100
        assert sorted(t.test_type for t in stored) == sorted(e.test_type for e in events)

    def test_concurrent_registration_only_one_wins(self, memory_store):
        def attempt(i):
            try:
                memory_store.register("BATCH_001", harvest(farmer=f"Farm {i}"))
                return True
            except DuplicateBatch:
                return False

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(attempt, range(20)))

        assert results.count(True) == 1
        assert len(memory_store) == 1


class TestSqlConcurrency:

    def test_concurrent_appends_lose_nothing(self, sql_file_store):
        sql_file_store.register("BATCH_001", harvest())
        events = [lab_test(at(hours=i), f"Test {i}") for i in range(100)]

        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(lambda e: sql_file_store.append_lab_test("BATCH_001", e), events))

        stored = sql_file_store.lookup("BATCH_001").lab_tests
        assert len(stored) == 100
        assert sorted(t.test_type for t in stored) == sorted(e.test_type for e in events)
