"""
Allocation Event Handlers

Subscribers registered on the message bus when the app is ready. They run
after the allocation transaction has committed.
"""

import logging

import structlog

from apps.bulk_bookings.domain import events

logger = logging.getLogger(__name__)
audit_logger = structlog.get_logger("apps.bulk_bookings.audit")

AUDITED_EVENTS = (
    events.ChunkPurchased,
    events.SpotsAllocated,
    events.SpotsReleased,
    events.ChunkStatusChanged,
    events.AssignmentCreated,
    events.AssignmentUpdated,
    events.AssignmentDeleted,
    events.AssignmentStatusChanged,
    events.UsageRecorded,
)


def write_audit_record(event):
    """One structured audit record per committed event"""
    audit_logger.info("allocation.committed", **event.to_dict())


def log_chunk_status_change(event: events.ChunkStatusChanged):
    if event.new_status == "full":
        logger.info(f"Bulk booking chunk {event.chunk_id} is fully assigned")
    elif event.new_status == "expired":
        logger.info(f"Bulk booking chunk {event.chunk_id} has expired")


def register_event_handlers(bus):
    for event_type in AUDITED_EVENTS:
        bus.register_event_handler(event_type, write_audit_record)
    bus.register_event_handler(events.ChunkStatusChanged, log_chunk_status_change)
