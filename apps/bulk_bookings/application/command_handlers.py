"""
Allocation Command Handlers

The use cases of the allocation engine. Each handler runs in one unit of
work: the chunk row is locked first, the request is validated against the
locked state, and the counters are moved with a guarded update before the
chunk is recomputed from its active sub-bookings.

Commands:
- CreateAssignmentCommand: hand spots of a chunk to a customer
- UpdateAssignmentCommand: change spots, dates, notes or customer
- DeleteAssignmentCommand: remove an assignment and release its spots
- SuspendAssignmentCommand / ReinstateAssignmentCommand: Active <-> Suspended
- ExpireLapsedAssignmentsCommand: expire assignments whose period has ended

Lock order is always chunk row first, then sub-booking rows.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
import logging

import structlog
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction

from shared.application.uow import DjangoUnitOfWork
from apps.bulk_bookings.domain.events import (
    AssignmentCreated,
    AssignmentDeleted,
    AssignmentStatusChanged,
    AssignmentUpdated,
)
from apps.bulk_bookings.domain.policy import AssignmentPolicy
from apps.bulk_bookings.domain.references import ChunkRef, Unresolved
from apps.bulk_bookings.exceptions import (
    AllocationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from apps.bulk_bookings.models import SubBooking
from apps.bulk_bookings.services import ChunkInventory, _lock_queryset_if_possible

logger = logging.getLogger(__name__)
audit_logger = structlog.get_logger("apps.bulk_bookings.audit")


# ===== Commands =====

@dataclass
class CreateAssignmentCommand:
    """
    Command to assign spots of a chunk to a customer

    ``idempotency_key`` makes a retried request return the assignment
    created by the first attempt instead of allocating twice.
    """
    bulk_booking: ChunkRef
    owner_id: int
    customer_id: int
    assigned_spots: int | None
    valid_from: date | None
    valid_to: date | None
    notes: str | None = ''
    idempotency_key: str | None = None
    allow_any_owner: bool = False


@dataclass
class UpdateAssignmentCommand:
    """Partial update; ``None`` keeps the current value"""
    sub_booking_id: int
    owner_id: int
    assigned_spots: int | None = None
    valid_from: date | None = None
    valid_to: date | None = None
    notes: str | None = None
    customer_id: int | None = None
    allow_any_owner: bool = False


@dataclass
class DeleteAssignmentCommand:
    sub_booking_id: int
    owner_id: int
    allow_any_owner: bool = False


@dataclass
class SuspendAssignmentCommand:
    sub_booking_id: int
    owner_id: int
    allow_any_owner: bool = False


@dataclass
class ReinstateAssignmentCommand:
    sub_booking_id: int
    owner_id: int
    allow_any_owner: bool = False


@dataclass
class ExpireLapsedAssignmentsCommand:
    """Run by Celery beat; ``today`` defaults to the local date"""
    today: date | None = None


# ===== Command Handlers =====

@contextmanager
def audited(operation: str, **ids):
    """Log every rejected mutation with the chunk and sub-booking involved"""
    try:
        yield
    except AllocationError as exc:
        fields = {**ids, **{k: v for k, v in exc.audit_fields().items() if v is not None}}
        audit_logger.warning("allocation.rejected", operation=operation, reason=exc.message, **fields)
        raise


class AssignmentHandler:
    """Shared lookups for the sub-booking handlers"""

    def __init__(self, inventory: ChunkInventory, policy: AssignmentPolicy):
        self.inventory = inventory
        self.policy = policy

    def _chunk_id_of(self, sub_booking_id: int) -> int:
        chunk_id = (
            SubBooking.objects.filter(pk=sub_booking_id)
            .values_list("bulk_booking_id", flat=True)
            .first()
        )
        if chunk_id is None:
            raise NotFoundError(
                f"Assignment {sub_booking_id} not found", sub_booking_id=sub_booking_id
            )
        return chunk_id

    def _lock_sub_booking(self, sub_booking_id: int, chunk_id: int) -> SubBooking:
        """Lock the sub-booking row; the chunk must already be locked"""
        queryset = _lock_queryset_if_possible(
            SubBooking.objects.filter(pk=sub_booking_id, bulk_booking_id=chunk_id)
        )
        sub_booking = queryset.first()
        if sub_booking is None:
            raise NotFoundError(
                f"Assignment {sub_booking_id} not found",
                chunk_id=chunk_id, sub_booking_id=sub_booking_id,
            )
        return sub_booking

    @staticmethod
    def _ensure_owner(chunk, command, sub_booking_id=None):
        if command.allow_any_owner or chunk.owner_id == command.owner_id:
            return
        raise PermissionDeniedError(
            "This bulk booking belongs to another coordinator",
            chunk_id=chunk.pk, sub_booking_id=sub_booking_id,
        )

    @staticmethod
    def _customer(customer_id, chunk_id=None, sub_booking_id=None):
        if customer_id is None:
            raise ValidationError(
                "customer", "This field is required.",
                chunk_id=chunk_id, sub_booking_id=sub_booking_id,
            )
        customer = get_user_model().objects.customers().filter(pk=customer_id).first()
        if customer is None:
            raise NotFoundError(
                f"Customer {customer_id} not found",
                chunk_id=chunk_id, sub_booking_id=sub_booking_id,
            )
        return customer

    @staticmethod
    def _ensure_not_lapsed(sub_booking: SubBooking, today: date):
        if sub_booking.window.has_lapsed(today):
            raise ValidationError(
                "status",
                "The assignment period has ended",
                chunk_id=sub_booking.bulk_booking_id, sub_booking_id=sub_booking.pk,
            )

    def _status_event(self, sub_booking: SubBooking, old_status: str) -> AssignmentStatusChanged:
        return AssignmentStatusChanged(
            aggregate_id=sub_booking.pk,
            sub_booking_id=sub_booking.pk,
            chunk_id=sub_booking.bulk_booking_id,
            old_status=old_status,
            new_status=sub_booking.status,
        )


class CreateAssignmentHandler(AssignmentHandler):
    """
    Handler for CreateAssignment command

    Validation order: chunk exists and is open, chunk is owned by the
    caller, spot count, dates, window containment, customer. Nothing is
    written until every check has passed.
    """

    def handle(self, command: CreateAssignmentCommand) -> SubBooking:
        with audited("create_assignment", chunk_id=command.bulk_booking.chunk_id):
            return self._create(command)

    def _replay(self, command: CreateAssignmentCommand, **scope) -> SubBooking | None:
        """Sub-booking stored earlier under the same idempotency key, if any"""
        if not command.idempotency_key:
            return None
        existing = SubBooking.objects.filter(
            idempotency_key=command.idempotency_key, **scope
        ).first()
        if existing is not None:
            logger.info(
                f"Replaying assignment {existing.pk} for idempotency key {command.idempotency_key}"
            )
        return existing

    def _create(self, command: CreateAssignmentCommand) -> SubBooking:
        today = self.inventory.today()

        # Keys are unique per chunk owner, which may differ from the caller
        early_scope = {"bulk_booking_id": command.bulk_booking.chunk_id}
        if not command.allow_any_owner:
            early_scope["owner_id"] = command.owner_id
        replay = self._replay(command, **early_scope)
        if replay is not None:
            return replay

        with DjangoUnitOfWork() as uow:
            chunk, capacity = self.inventory.lock(command.bulk_booking.chunk_id)
            capacity.ensure_open(today)
            self._ensure_owner(chunk, command)

            # A concurrent retry may have committed while we waited for the lock
            replay = self._replay(command, owner_id=chunk.owner_id)
            if replay is not None:
                return replay

            window = self.policy.check(
                chunk_window=capacity.window,
                available=capacity.available_spots,
                assigned_spots=command.assigned_spots,
                valid_from=command.valid_from,
                valid_to=command.valid_to,
                chunk_id=chunk.pk,
            )
            customer = self._customer(command.customer_id, chunk_id=chunk.pk)

            sub_booking = SubBooking(
                bulk_booking=chunk,
                owner_id=chunk.owner_id,
                assigned_spots=command.assigned_spots,
                valid_from=window.valid_from,
                valid_to=window.valid_to,
                notes=self.policy.check_notes(command.notes),
                parking_location=chunk.parking_name,
                idempotency_key=command.idempotency_key or None,
            )
            sub_booking.snapshot_customer(customer)
            try:
                with transaction.atomic():
                    sub_booking.save()
            except IntegrityError as exc:
                replay = self._replay(command, owner_id=chunk.owner_id)
                if replay is not None:
                    return replay
                raise ConflictError(chunk_id=chunk.pk) from exc

            sub_booking.assign_access_code()
            sub_booking.save(update_fields=["access_code"])

            capacity.allocate(sub_booking.pk, sub_booking.assigned_spots)
            self.inventory.apply_delta(capacity, sub_booking.assigned_spots)
            self.inventory.recompute_usage(chunk.pk, capacity=capacity, today=today)

            uow.collect_events(capacity)
            uow.record(AssignmentCreated(
                aggregate_id=sub_booking.pk,
                sub_booking_id=sub_booking.pk,
                chunk_id=chunk.pk,
                customer_id=customer.pk,
                assigned_spots=sub_booking.assigned_spots,
            ))

        logger.info(
            f"Assigned {sub_booking.assigned_spots} spots of chunk {chunk.pk} "
            f"to customer {customer.pk} (assignment {sub_booking.pk})"
        )
        return sub_booking


class UpdateAssignmentHandler(AssignmentHandler):
    """
    Handler for UpdateAssignment command

    An active assignment's own spots count as available during the
    re-check, so shrinking or keeping the size always fits.
    """

    def handle(self, command: UpdateAssignmentCommand) -> SubBooking:
        with audited("update_assignment", sub_booking_id=command.sub_booking_id):
            return self._update(command)

    def _update(self, command: UpdateAssignmentCommand) -> SubBooking:
        today = self.inventory.today()
        chunk_id = self._chunk_id_of(command.sub_booking_id)

        with DjangoUnitOfWork() as uow:
            chunk, capacity = self.inventory.lock(chunk_id)
            sub_booking = self._lock_sub_booking(command.sub_booking_id, chunk_id)
            self._ensure_owner(chunk, command, sub_booking.pk)

            if sub_booking.status == SubBooking.Status.EXPIRED:
                raise ValidationError(
                    "status", "Expired assignments cannot be edited",
                    chunk_id=chunk_id, sub_booking_id=sub_booking.pk,
                )
            capacity.ensure_open(today)

            old_spots = sub_booking.assigned_spots
            new_spots = old_spots if command.assigned_spots is None else command.assigned_spots
            window = self.policy.check(
                chunk_window=capacity.window,
                available=capacity.available_spots + sub_booking.held_spots,
                assigned_spots=new_spots,
                valid_from=command.valid_from or sub_booking.valid_from,
                valid_to=command.valid_to or sub_booking.valid_to,
                chunk_id=chunk_id,
                sub_booking_id=sub_booking.pk,
            )

            if command.customer_id is not None and command.customer_id != sub_booking.customer_id:
                sub_booking.snapshot_customer(
                    self._customer(command.customer_id, chunk_id=chunk_id, sub_booking_id=sub_booking.pk)
                )

            sub_booking.assigned_spots = new_spots
            sub_booking.valid_from = window.valid_from
            sub_booking.valid_to = window.valid_to
            if command.notes is not None:
                sub_booking.notes = self.policy.check_notes(command.notes)
            sub_booking.save()

            if sub_booking.consumes_capacity:
                delta = new_spots - old_spots
                if delta > 0:
                    capacity.allocate(sub_booking.pk, delta)
                elif delta < 0:
                    capacity.release(sub_booking.pk, -delta)
                self.inventory.apply_delta(capacity, delta)
            self.inventory.recompute_usage(chunk_id, capacity=capacity, today=today)

            uow.collect_events(capacity)
            uow.record(AssignmentUpdated(
                aggregate_id=sub_booking.pk,
                sub_booking_id=sub_booking.pk,
                chunk_id=chunk_id,
                old_assigned_spots=old_spots,
                new_assigned_spots=new_spots,
            ))

        return sub_booking


class DeleteAssignmentHandler(AssignmentHandler):
    """Handler for DeleteAssignment command; an Expired chunk stays Expired"""

    def handle(self, command: DeleteAssignmentCommand) -> int:
        with audited("delete_assignment", sub_booking_id=command.sub_booking_id):
            return self._delete(command)

    def _delete(self, command: DeleteAssignmentCommand) -> int:
        today = self.inventory.today()
        chunk_id = self._chunk_id_of(command.sub_booking_id)

        with DjangoUnitOfWork() as uow:
            chunk, capacity = self.inventory.lock(chunk_id)
            sub_booking = self._lock_sub_booking(command.sub_booking_id, chunk_id)
            self._ensure_owner(chunk, command, sub_booking.pk)

            released = sub_booking.held_spots
            sub_booking_id = sub_booking.pk
            sub_booking.delete()

            if released:
                capacity.release(sub_booking_id, released)
                self.inventory.apply_delta(capacity, -released)
            self.inventory.recompute_usage(chunk_id, capacity=capacity, today=today)

            uow.collect_events(capacity)
            uow.record(AssignmentDeleted(
                aggregate_id=sub_booking_id,
                sub_booking_id=sub_booking_id,
                chunk_id=chunk_id,
                released_spots=released,
            ))

        logger.info(f"Assignment {sub_booking_id} deleted, {released} spots back to chunk {chunk_id}")
        return released


class SuspendAssignmentHandler(AssignmentHandler):
    """Active -> Suspended; the spots go back to the chunk"""

    def handle(self, command: SuspendAssignmentCommand) -> SubBooking:
        with audited("suspend_assignment", sub_booking_id=command.sub_booking_id):
            return self._suspend(command)

    def _suspend(self, command: SuspendAssignmentCommand) -> SubBooking:
        today = self.inventory.today()
        chunk_id = self._chunk_id_of(command.sub_booking_id)

        with DjangoUnitOfWork() as uow:
            chunk, capacity = self.inventory.lock(chunk_id)
            sub_booking = self._lock_sub_booking(command.sub_booking_id, chunk_id)
            self._ensure_owner(chunk, command, sub_booking.pk)

            if sub_booking.status != SubBooking.Status.ACTIVE:
                raise ValidationError(
                    "status", "Only active assignments can be suspended",
                    chunk_id=chunk_id, sub_booking_id=sub_booking.pk,
                )
            self._ensure_not_lapsed(sub_booking, today)

            old_status = sub_booking.status
            sub_booking.status = SubBooking.Status.SUSPENDED
            sub_booking.save(update_fields=["status", "updated_at"])

            capacity.release(sub_booking.pk, sub_booking.assigned_spots)
            self.inventory.apply_delta(capacity, -sub_booking.assigned_spots)
            self.inventory.recompute_usage(chunk_id, capacity=capacity, today=today)

            uow.collect_events(capacity)
            uow.record(self._status_event(sub_booking, old_status))

        return sub_booking


class ReinstateAssignmentHandler(AssignmentHandler):
    """Suspended -> Active; capacity and dates are checked again"""

    def handle(self, command: ReinstateAssignmentCommand) -> SubBooking:
        with audited("reinstate_assignment", sub_booking_id=command.sub_booking_id):
            return self._reinstate(command)

    def _reinstate(self, command: ReinstateAssignmentCommand) -> SubBooking:
        today = self.inventory.today()
        chunk_id = self._chunk_id_of(command.sub_booking_id)

        with DjangoUnitOfWork() as uow:
            chunk, capacity = self.inventory.lock(chunk_id)
            sub_booking = self._lock_sub_booking(command.sub_booking_id, chunk_id)
            self._ensure_owner(chunk, command, sub_booking.pk)

            if sub_booking.status != SubBooking.Status.SUSPENDED:
                raise ValidationError(
                    "status", "Only suspended assignments can be reinstated",
                    chunk_id=chunk_id, sub_booking_id=sub_booking.pk,
                )
            capacity.ensure_open(today)
            self._ensure_not_lapsed(sub_booking, today)
            self.policy.check(
                chunk_window=capacity.window,
                available=capacity.available_spots,
                assigned_spots=sub_booking.assigned_spots,
                valid_from=sub_booking.valid_from,
                valid_to=sub_booking.valid_to,
                chunk_id=chunk_id,
                sub_booking_id=sub_booking.pk,
            )

            old_status = sub_booking.status
            sub_booking.status = SubBooking.Status.ACTIVE
            sub_booking.save(update_fields=["status", "updated_at"])

            capacity.allocate(sub_booking.pk, sub_booking.assigned_spots)
            self.inventory.apply_delta(capacity, sub_booking.assigned_spots)
            self.inventory.recompute_usage(chunk_id, capacity=capacity, today=today)

            uow.collect_events(capacity)
            uow.record(self._status_event(sub_booking, old_status))

        return sub_booking


class ExpireLapsedAssignmentsHandler(AssignmentHandler):
    """
    Expire every Active or Suspended assignment whose last day has passed

    Works chunk by chunk, one transaction each, so a failing chunk does not
    hold back the others.
    """

    def handle(self, command: ExpireLapsedAssignmentsCommand) -> int:
        today = command.today or self.inventory.today()
        chunk_ids = list(
            SubBooking.objects.lapsed(today)
            .values_list("bulk_booking_id", flat=True)
            .distinct()
        )

        expired = 0
        for chunk_id in chunk_ids:
            try:
                with audited("expire_lapsed_assignments", chunk_id=chunk_id):
                    expired += self._expire_chunk(chunk_id, today)
            except AllocationError:
                logger.warning(f"Skipping chunk {chunk_id} while expiring lapsed assignments")

        if expired:
            logger.info(f"Expired {expired} assignments lapsed before {today}")
        return expired

    def _expire_chunk(self, chunk_id: int, today: date) -> int:
        with DjangoUnitOfWork() as uow:
            _, capacity = self.inventory.lock(chunk_id)
            lapsed = list(
                _lock_queryset_if_possible(
                    SubBooking.objects.filter(bulk_booking_id=chunk_id).lapsed(today).order_by("pk")
                )
            )

            released = 0
            for sub_booking in lapsed:
                old_status = sub_booking.status
                if sub_booking.consumes_capacity:
                    capacity.release(sub_booking.pk, sub_booking.assigned_spots)
                    released += sub_booking.assigned_spots
                sub_booking.status = SubBooking.Status.EXPIRED
                sub_booking.save(update_fields=["status", "updated_at"])
                uow.record(self._status_event(sub_booking, old_status))

            self.inventory.apply_delta(capacity, -released)
            self.inventory.recompute_usage(chunk_id, capacity=capacity, today=today)
            uow.collect_events(capacity)

        return len(lapsed)


# ===== Facade =====

class Allocator:
    """
    Entry point to the allocation use cases

    Owns one handler per command; ``register`` wires them into a message
    bus so the API can dispatch commands without knowing the handlers.
    """

    def __init__(self, inventory: ChunkInventory | None = None, policy: AssignmentPolicy | None = None):
        self.inventory = inventory or ChunkInventory()
        self.policy = policy or AssignmentPolicy()
        self.handlers = {
            CreateAssignmentCommand: CreateAssignmentHandler(self.inventory, self.policy),
            UpdateAssignmentCommand: UpdateAssignmentHandler(self.inventory, self.policy),
            DeleteAssignmentCommand: DeleteAssignmentHandler(self.inventory, self.policy),
            SuspendAssignmentCommand: SuspendAssignmentHandler(self.inventory, self.policy),
            ReinstateAssignmentCommand: ReinstateAssignmentHandler(self.inventory, self.policy),
            ExpireLapsedAssignmentsCommand: ExpireLapsedAssignmentsHandler(self.inventory, self.policy),
        }

    def register(self, bus):
        for command_type, handler in self.handlers.items():
            bus.register_command_handler(command_type, handler.handle, replace=True)

    def dispatch(self, command):
        return self.handlers[type(command)].handle(command)

    def create_assignment(
        self,
        bulk_booking_id: int,
        owner_id: int,
        customer_id: int,
        assigned_spots: int | None,
        valid_from: date | None,
        valid_to: date | None,
        notes: str | None = '',
        idempotency_key: str | None = None,
    ) -> SubBooking:
        return self.dispatch(CreateAssignmentCommand(
            bulk_booking=Unresolved(bulk_booking_id),
            owner_id=owner_id,
            customer_id=customer_id,
            assigned_spots=assigned_spots,
            valid_from=valid_from,
            valid_to=valid_to,
            notes=notes,
            idempotency_key=idempotency_key,
        ))

    def update_assignment(self, sub_booking_id: int, owner_id: int, **changes) -> SubBooking:
        return self.dispatch(UpdateAssignmentCommand(
            sub_booking_id=sub_booking_id, owner_id=owner_id, **changes
        ))

    def delete_assignment(self, sub_booking_id: int, owner_id: int) -> int:
        return self.dispatch(DeleteAssignmentCommand(sub_booking_id=sub_booking_id, owner_id=owner_id))

    def suspend_assignment(self, sub_booking_id: int, owner_id: int) -> SubBooking:
        return self.dispatch(SuspendAssignmentCommand(sub_booking_id=sub_booking_id, owner_id=owner_id))

    def reinstate_assignment(self, sub_booking_id: int, owner_id: int) -> SubBooking:
        return self.dispatch(ReinstateAssignmentCommand(sub_booking_id=sub_booking_id, owner_id=owner_id))

    def expire_lapsed_assignments(self, today: date | None = None) -> int:
        return self.dispatch(ExpireLapsedAssignmentsCommand(today=today))
