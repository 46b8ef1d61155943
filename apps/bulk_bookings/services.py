"""Chunk inventory: purchased capacity pools and their derived counters."""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable

from django.conf import settings  # type: ignore
from django.contrib.auth import get_user_model  # type: ignore
from django.db import transaction  # type: ignore
from django.db.models import F  # type: ignore
from django.db.utils import NotSupportedError, OperationalError  # type: ignore
from django.utils import timezone  # type: ignore

from apps.finances.services import record_bulk_booking_purchase
from shared.application.uow import DjangoUnitOfWork
from shared.domain.value_objects import ValidityWindow

from .domain.capacity import ChunkCapacity, ChunkStatus
from .domain.events import ChunkPurchased
from .exceptions import AllocationBusyError, ConflictError, NotFoundError, ValidationError
from .models import BulkBookingChunk, SubBooking, VehicleType

logger = logging.getLogger(__name__)


def _lock_queryset_if_possible(queryset):
    """Apply select_for_update when inside transaction.atomic()."""

    if not transaction.get_connection().in_atomic_block:
        return queryset

    try:
        return queryset.select_for_update()
    except NotSupportedError:
        return queryset


def _bound_lock_wait() -> None:
    """Limit how long PostgreSQL waits for a chunk lock in this transaction."""

    connection = transaction.get_connection()
    if connection.vendor != "postgresql" or not connection.in_atomic_block:
        return

    timeout_ms = int(getattr(settings, "ALLOCATION_LOCK_TIMEOUT_MS", 0) or 0)
    if timeout_ms <= 0:
        return

    with connection.cursor() as cursor:
        cursor.execute("SELECT set_config('lock_timeout', %s, true)", [f"{timeout_ms}ms"])


class ChunkInventory:
    """
    Owns purchased chunks and the counters derived from their sub-bookings.

    ``used_spots``, ``available_spots`` and ``status`` of a chunk are written
    only by ``apply_delta`` and ``recompute_usage``, both of which expect the
    chunk to be locked through ``lock`` in the current transaction.
    """

    def __init__(self, today: Callable[[], date] = timezone.localdate):
        self.today = today

    # ----- purchase -----

    def create_chunk(
        self,
        owner_id: int,
        parking_name: str,
        chunk_name: str,
        company: str,
        total_spots: int,
        valid_from: date,
        valid_to: date,
        vehicle_type: str = VehicleType.CAR,
        remarks: str = "",
        price_per_day=None,
    ) -> BulkBookingChunk:
        """Record a purchased chunk together with its purchase transaction."""

        for field, value in (
            ("parking_name", parking_name),
            ("chunk_name", chunk_name),
            ("company", company),
        ):
            if not value or not str(value).strip():
                raise ValidationError(field, "This field is required.")

        if isinstance(total_spots, bool) or not isinstance(total_spots, int) or total_spots < 1:
            raise ValidationError("total_spots", "A bulk booking needs at least one spot")

        if valid_from is None or valid_to is None:
            raise ValidationError("valid_from" if valid_from is None else "valid_to", "This field is required.")
        if not ValidityWindow(valid_from, valid_to).is_well_formed:
            raise ValidationError("valid_to", "End date must not be before start date")

        if vehicle_type not in VehicleType.values:
            raise ValidationError("vehicle_type", f"Unknown vehicle type: {vehicle_type}")

        if not get_user_model().objects.filter(pk=owner_id).exists():
            raise NotFoundError(f"User {owner_id} not found")

        with DjangoUnitOfWork() as uow:
            chunk = BulkBookingChunk.objects.create(
                owner_id=owner_id,
                parking_name=parking_name.strip(),
                chunk_name=chunk_name.strip(),
                company=company.strip(),
                vehicle_type=vehicle_type,
                total_spots=total_spots,
                used_spots=0,
                available_spots=total_spots,
                valid_from=valid_from,
                valid_to=valid_to,
                status=BulkBookingChunk.Status.ACTIVE,
                remarks=remarks or "",
            )
            chunk.assign_access_code()
            chunk.save(update_fields=["access_code"])

            record_bulk_booking_purchase(chunk, price_per_day=price_per_day)

            uow.record(ChunkPurchased(
                aggregate_id=chunk.pk,
                chunk_id=chunk.pk,
                owner_id=owner_id,
                total_spots=total_spots,
                valid_from=valid_from,
                valid_to=valid_to,
            ))

        logger.info(f"Bulk booking chunk {chunk.pk} purchased by user {owner_id}: {total_spots} spots")
        return chunk

    # ----- queries -----

    def get(self, chunk_id: int) -> BulkBookingChunk:
        chunk = BulkBookingChunk.objects.filter(pk=chunk_id).first()
        if chunk is None:
            raise NotFoundError(f"Bulk booking {chunk_id} not found", chunk_id=chunk_id)
        return chunk

    def list_for_owner(self, owner_id: int):
        return BulkBookingChunk.objects.owned_by(owner_id).order_by("-purchase_date", "-pk")

    def list_available(self, owner_id: int):
        """Chunks the owner can still assign from today."""
        return self.list_for_owner(owner_id).available(self.today())

    def resolve_access_code(self, code: str) -> BulkBookingChunk:
        chunk = BulkBookingChunk.objects.filter(access_code=(code or "").strip().lower()).first()
        if chunk is None:
            raise NotFoundError("No bulk booking matches this access code")
        return chunk

    # ----- capacity -----

    @staticmethod
    def capacity_of(chunk: BulkBookingChunk) -> ChunkCapacity:
        return ChunkCapacity(
            id=chunk.pk,
            owner_id=chunk.owner_id,
            total_spots=chunk.total_spots,
            used_spots=chunk.used_spots,
            window=chunk.window,
            status=ChunkStatus(chunk.status),
        )

    def lock(self, chunk_id: int) -> tuple[BulkBookingChunk, ChunkCapacity]:
        """
        Lock the chunk row for the rest of the transaction.

        Raises:
            NotFoundError: no such chunk
            AllocationBusyError: the lock was not granted in time
        """
        try:
            _bound_lock_wait()
            queryset = _lock_queryset_if_possible(BulkBookingChunk.objects.filter(pk=chunk_id))
            chunk = queryset.first()
        except OperationalError as exc:
            logger.warning(f"Timed out waiting for the lock on bulk booking chunk {chunk_id}")
            raise AllocationBusyError(chunk_id=chunk_id) from exc

        if chunk is None:
            raise NotFoundError(f"Bulk booking {chunk_id} not found", chunk_id=chunk_id)
        return chunk, self.capacity_of(chunk)

    def apply_delta(self, capacity: ChunkCapacity, delta: int) -> None:
        """
        Move the stored counters by ``delta`` spots with a guarded UPDATE.

        The row only changes if the chunk still has room for a positive delta
        (or enough spots in use for a negative one).

        Raises:
            ConflictError: the guard matched no row
        """
        if delta == 0:
            return

        queryset = BulkBookingChunk.objects.filter(pk=capacity.id)
        if delta > 0:
            queryset = queryset.filter(used_spots__lte=F("total_spots") - delta)
        else:
            queryset = queryset.filter(used_spots__gte=-delta)

        updated = queryset.update(
            used_spots=F("used_spots") + delta,
            available_spots=F("available_spots") - delta,
            updated_at=timezone.now(),
        )
        if updated == 0:
            logger.warning(f"Guarded update of chunk {capacity.id} by {delta} spots matched no row")
            raise ConflictError(chunk_id=capacity.id)

    def recompute_usage(
        self,
        chunk_id: int,
        *,
        capacity: ChunkCapacity | None = None,
        today: date | None = None,
    ) -> BulkBookingChunk:
        """
        Derive used/available/status of a chunk from its active sub-bookings.

        Pass ``capacity`` when the chunk is already locked by the caller;
        otherwise the chunk is locked here in its own transaction.
        """
        if capacity is not None:
            return self._store_usage(capacity, today)

        with DjangoUnitOfWork() as uow:
            _, capacity = self.lock(chunk_id)
            chunk = self._store_usage(capacity, today)
            uow.collect_events(capacity)
        return chunk

    def expire_lapsed_chunks(self, today: date | None = None) -> int:
        """Mark every chunk whose last valid day has passed as Expired."""
        today = today or self.today()
        expired = 0

        for chunk_id in list(BulkBookingChunk.objects.lapsed(today).values_list("pk", flat=True)):
            with DjangoUnitOfWork() as uow:
                _, capacity = self.lock(chunk_id)
                if not capacity.is_expired:
                    self._store_usage(capacity, today)
                    uow.collect_events(capacity)
                    expired += 1

        if expired:
            logger.info(f"Expired {expired} bulk booking chunks lapsed before {today}")
        return expired

    def _store_usage(self, capacity: ChunkCapacity, today: date | None) -> BulkBookingChunk:
        active_spots = SubBooking.objects.active_spots(capacity.id)
        capacity.reconcile(active_spots, today or self.today())

        BulkBookingChunk.objects.filter(pk=capacity.id).update(
            used_spots=capacity.used_spots,
            available_spots=capacity.available_spots,
            status=capacity.status.value,
            updated_at=timezone.now(),
        )
        return BulkBookingChunk.objects.get(pk=capacity.id)
