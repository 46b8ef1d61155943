"""Celery tasks for bulk bookings."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore

from .application.command_handlers import Allocator
from .exceptions import AllocationError
from .models import BulkBookingChunk
from .services import ChunkInventory

logger = logging.getLogger(__name__)


# ============================================================================
# PERIODIC TASKS (run by Celery Beat)
# ============================================================================

@shared_task(name="bulk_bookings.expire_lapsed_assignments")
def expire_lapsed_assignments() -> dict[str, int]:
    """
    Expire assignments whose last valid day has passed.

    Releases the spots of the active ones and recomputes their chunks.
    Runs every hour through Celery Beat.

    Returns:
        dict: {"expired": number of expired assignments}
    """
    expired = Allocator().expire_lapsed_assignments()
    logger.info(f"Expired {expired} lapsed assignments")
    return {"expired": expired}


@shared_task(name="bulk_bookings.expire_lapsed_chunks")
def expire_lapsed_chunks() -> dict[str, int]:
    """
    Mark chunks whose validity window has passed as Expired.

    Runs every hour through Celery Beat, after the assignment sweep.

    Returns:
        dict: {"expired": number of expired chunks}
    """
    expired = ChunkInventory().expire_lapsed_chunks()
    logger.info(f"Expired {expired} lapsed bulk booking chunks")
    return {"expired": expired}


@shared_task(name="bulk_bookings.reconcile_chunk_usage")
def reconcile_chunk_usage() -> dict[str, int]:
    """
    Recompute the counters of every non-expired chunk from its assignments.

    Runs nightly. A chunk that cannot be reconciled is logged and skipped.

    Returns:
        dict: {"reconciled": chunks processed, "failed": chunks skipped}
    """
    inventory = ChunkInventory()
    reconciled = failed = 0

    chunk_ids = BulkBookingChunk.objects.exclude(
        status=BulkBookingChunk.Status.EXPIRED
    ).values_list("pk", flat=True)

    for chunk_id in list(chunk_ids):
        try:
            inventory.recompute_usage(chunk_id)
            reconciled += 1
        except AllocationError as exc:
            failed += 1
            logger.error(f"Could not reconcile chunk {chunk_id}: {exc}")

    logger.info(f"Reconciled {reconciled} chunks, {failed} failed")
    return {"reconciled": reconciled, "failed": failed}
