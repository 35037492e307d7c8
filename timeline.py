from typing import List

from schemas import BatchRecord, TimelineCategory, TimelineEntry
from utils import format_conditions, format_quantity

# Same-instant entries keep this order.
CATEGORY_PRECEDENCE = {
    TimelineCategory.HARVEST: 0,
    TimelineCategory.LAB_TEST: 1,
    TimelineCategory.PROCESSING: 2,
    TimelineCategory.TRANSPORT: 3,
}


def aggregate(record: BatchRecord) -> List[TimelineEntry]:
    """Merge every event of a batch into one chronologically ordered timeline.

    Entries are sorted by timestamp. Ties fall back to category precedence and
    then to append order, so the result is deterministic for a given record.
    """
    h = record.harvest
    entries = [TimelineEntry(
        category=TimelineCategory.HARVEST,
        timestamp=h.timestamp,
        title="Harvested",
        description=f"{format_quantity(h.quantity_kg)} of {h.plant_type} harvested by {h.farmer}",
        location=h.location,
    )]

    for test in record.lab_tests:
        entries.append(TimelineEntry(
            category=TimelineCategory.LAB_TEST,
            timestamp=test.timestamp,
            title=test.test_type,
            description=f"Result: {test.result} ({test.lab_id})",
        ))

    for step in record.processing_steps:
        entries.append(TimelineEntry(
            category=TimelineCategory.PROCESSING,
            timestamp=step.timestamp,
            title=step.step_type,
            description=f"{step.description} by {step.processor}"
                        + format_conditions(step.temperature_c, step.duration),
        ))

    for leg in record.transport_events:
        vehicle = f" (vehicle {leg.vehicle_id})" if leg.vehicle_id else ""
        entries.append(TimelineEntry(
            category=TimelineCategory.TRANSPORT,
            timestamp=leg.timestamp,
            title="Transported",
            description=f"From {leg.from_location} to {leg.to_location} by {leg.transporter_id}{vehicle}",
            location=leg.to_location,
        ))

    # sorted() is stable, so append order survives within a category
    return sorted(entries, key=lambda e: (e.timestamp, CATEGORY_PRECEDENCE[e.category]))
