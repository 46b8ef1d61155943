"""Tests for the allocation use cases (create, update, delete, suspend, expire)."""

from datetime import timedelta

import pytest
from django.db.models import Sum

from apps.bulk_bookings.application.command_handlers import (
    Allocator,
    CreateAssignmentCommand,
    ExpireLapsedAssignmentsCommand,
)
from apps.bulk_bookings.domain.references import Resolved, Unresolved
from apps.bulk_bookings.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from apps.bulk_bookings.models import BulkBookingChunk, SubBooking
from apps.bulk_bookings.services import ChunkInventory

from .conftest import TODAY
from .helpers import make_chunk, make_coordinator, make_customer, make_user


def assign(allocator, chunk, customer, spots, *, valid_from=None, valid_to=None, **extra):
    return allocator.create_assignment(
        bulk_booking_id=chunk.pk,
        owner_id=chunk.owner_id,
        customer_id=customer.pk,
        assigned_spots=spots,
        valid_from=valid_from or chunk.valid_from,
        valid_to=valid_to or chunk.valid_to,
        **extra,
    )


def assert_capacity_invariant(chunk):
    chunk.refresh_from_db()
    active = chunk.sub_bookings.filter(status=SubBooking.Status.ACTIVE).aggregate(
        total=Sum("assigned_spots")
    )["total"] or 0
    assert chunk.used_spots == active
    assert chunk.available_spots == chunk.total_spots - chunk.used_spots >= 0


@pytest.mark.django_db
class TestAllocationLifecycle:
    def test_allocate_reject_shrink_delete(self, allocator, chunk, customer):
        # 4 of 10 spots
        sub_booking = assign(allocator, chunk, customer, 4)
        chunk.refresh_from_db()
        assert chunk.available_spots == 6
        assert_capacity_invariant(chunk)

        # 7 more do not fit, nothing changes
        with pytest.raises(ValidationError, match="Cannot assign more than 6 available spots"):
            assign(allocator, chunk, customer, 7)
        chunk.refresh_from_db()
        assert chunk.available_spots == 6
        assert SubBooking.objects.count() == 1

        # shrink to 2
        allocator.update_assignment(sub_booking.pk, chunk.owner_id, assigned_spots=2)
        chunk.refresh_from_db()
        assert chunk.available_spots == 8
        assert_capacity_invariant(chunk)

        # delete, back to 10 and Active
        allocator.delete_assignment(sub_booking.pk, chunk.owner_id)
        chunk.refresh_from_db()
        assert chunk.available_spots == 10
        assert chunk.status == BulkBookingChunk.Status.ACTIVE


@pytest.mark.django_db
class TestCreateAssignment:
    def test_snapshots_customer_and_location(self, allocator, chunk, customer):
        sub_booking = assign(allocator, chunk, customer, 1, notes="  Gate B  ")

        assert sub_booking.customer_name == "Dana Lee"
        assert sub_booking.customer_email == customer.email
        assert sub_booking.parking_location == chunk.parking_name
        assert sub_booking.notes == "Gate B"
        assert sub_booking.status == SubBooking.Status.ACTIVE
        assert len(sub_booking.access_code) == 64

    def test_exactly_available_fills_chunk(self, allocator, chunk, customer):
        assign(allocator, chunk, customer, 10)

        chunk.refresh_from_db()
        assert chunk.available_spots == 0
        assert chunk.status == BulkBookingChunk.Status.FULL

    def test_one_over_available_is_rejected(self, allocator, chunk, customer):
        assign(allocator, chunk, customer, 6)

        with pytest.raises(ValidationError) as excinfo:
            assign(allocator, chunk, customer, 5)

        assert excinfo.value.field == "assigned_spots"
        assert excinfo.value.chunk_id == chunk.pk
        assert_capacity_invariant(chunk)

    def test_full_chunk_rejects_any_allocation(self, allocator, chunk, customer):
        assign(allocator, chunk, customer, 10)

        with pytest.raises(ValidationError, match="Cannot assign more than 0 available spots"):
            assign(allocator, chunk, customer, 1)

    @pytest.mark.parametrize(
        "start_offset, end_offset, field",
        [
            (-1, 5, "valid_from"),
            (0, 30, "valid_to"),
        ],
    )
    def test_window_must_be_inside_chunk(self, allocator, chunk, customer, start_offset, end_offset, field):
        with pytest.raises(ValidationError) as excinfo:
            assign(
                allocator, chunk, customer, 1,
                valid_from=chunk.valid_from + timedelta(days=start_offset),
                valid_to=chunk.valid_from + timedelta(days=end_offset),
            )
        assert excinfo.value.field == field
        assert not SubBooking.objects.exists()

    def test_window_equal_to_chunk_is_accepted(self, allocator, chunk, customer):
        sub_booking = assign(allocator, chunk, customer, 1)
        assert sub_booking.window == chunk.window

    def test_inverted_window(self, allocator, chunk, customer):
        with pytest.raises(ValidationError, match="must not be before"):
            assign(
                allocator, chunk, customer, 1,
                valid_from=chunk.valid_from + timedelta(days=3),
                valid_to=chunk.valid_from + timedelta(days=2),
            )

    def test_missing_spot_count(self, allocator, chunk, customer):
        with pytest.raises(ValidationError) as excinfo:
            assign(allocator, chunk, customer, None)
        assert excinfo.value.field == "assigned_spots"

    def test_unknown_chunk(self, allocator, coordinator, customer):
        with pytest.raises(NotFoundError):
            allocator.create_assignment(
                bulk_booking_id=999,
                owner_id=coordinator.pk,
                customer_id=customer.pk,
                assigned_spots=1,
                valid_from=TODAY,
                valid_to=TODAY,
            )

    def test_unknown_customer(self, allocator, chunk, coordinator):
        with pytest.raises(NotFoundError, match="Customer"):
            assign(allocator, chunk, coordinator, 1)
        chunk.refresh_from_db()
        assert chunk.used_spots == 0

    def test_expired_chunk(self, allocator, chunk, customer):
        BulkBookingChunk.objects.filter(pk=chunk.pk).update(status=BulkBookingChunk.Status.EXPIRED)

        with pytest.raises(ValidationError, match="has expired"):
            assign(allocator, chunk, customer, 1)

    def test_chunk_of_another_coordinator(self, allocator, chunk, customer):
        intruder = make_coordinator()

        with pytest.raises(PermissionDeniedError):
            allocator.create_assignment(
                bulk_booking_id=chunk.pk,
                owner_id=intruder.pk,
                customer_id=customer.pk,
                assigned_spots=1,
                valid_from=chunk.valid_from,
                valid_to=chunk.valid_to,
            )

    def test_idempotency_key_replays_first_result(self, allocator, chunk, customer):
        first = assign(allocator, chunk, customer, 3, idempotency_key="retry-1")
        second = assign(allocator, chunk, customer, 3, idempotency_key="retry-1")

        assert first.pk == second.pk
        chunk.refresh_from_db()
        assert chunk.used_spots == 3

    def test_idempotency_key_replays_for_admin_caller(self, allocator, chunk, customer):
        admin = make_user(role="admin")

        def create():
            return allocator.dispatch(CreateAssignmentCommand(
                bulk_booking=Unresolved(chunk.pk),
                owner_id=admin.pk,
                customer_id=customer.pk,
                assigned_spots=2,
                valid_from=chunk.valid_from,
                valid_to=chunk.valid_to,
                idempotency_key="admin-retry",
                allow_any_owner=True,
            ))

        first = create()
        second = create()

        assert first.pk == second.pk
        assert first.owner_id == chunk.owner_id
        assert SubBooking.objects.filter(idempotency_key="admin-retry").count() == 1
        chunk.refresh_from_db()
        assert chunk.used_spots == 2

    def test_idempotency_key_is_not_shared_across_coordinators(self, allocator, chunk, customer, inventory):
        other = make_coordinator()
        other_chunk = make_chunk(other, total_spots=5, valid_from=TODAY, inventory=inventory)
        first = assign(allocator, chunk, customer, 1, idempotency_key="same-key")
        second = assign(allocator, other_chunk, customer, 1, idempotency_key="same-key")

        assert first.pk != second.pk
        assert second.bulk_booking_id == other_chunk.pk

    def test_accepts_resolved_chunk_reference(self, allocator, chunk, customer):
        sub_booking = allocator.dispatch(CreateAssignmentCommand(
            bulk_booking=Resolved(chunk),
            owner_id=chunk.owner_id,
            customer_id=customer.pk,
            assigned_spots=2,
            valid_from=chunk.valid_from,
            valid_to=chunk.valid_to,
        ))
        assert sub_booking.bulk_booking_id == chunk.pk


@pytest.mark.django_db
class TestUpdateAssignment:
    def test_growing_uses_own_spots_as_available(self, allocator, chunk, customer):
        sub_booking = assign(allocator, chunk, customer, 4)
        assign(allocator, chunk, customer, 6)

        allocator.update_assignment(sub_booking.pk, chunk.owner_id, assigned_spots=4)
        with pytest.raises(ValidationError, match="Cannot assign more than 4 available spots"):
            allocator.update_assignment(sub_booking.pk, chunk.owner_id, assigned_spots=5)
        assert_capacity_invariant(chunk)

    def test_grow_into_free_spots(self, allocator, chunk, customer):
        sub_booking = assign(allocator, chunk, customer, 4)

        allocator.update_assignment(sub_booking.pk, chunk.owner_id, assigned_spots=10)

        chunk.refresh_from_db()
        assert chunk.status == BulkBookingChunk.Status.FULL
        assert_capacity_invariant(chunk)

    def test_partial_update_keeps_other_fields(self, allocator, chunk, customer):
        sub_booking = assign(allocator, chunk, customer, 2, notes="first")
        new_end = chunk.valid_from + timedelta(days=5)

        updated = allocator.update_assignment(sub_booking.pk, chunk.owner_id, valid_to=new_end)

        assert updated.valid_to == new_end
        assert updated.valid_from == chunk.valid_from
        assert updated.assigned_spots == 2
        assert updated.notes == "first"

    def test_dates_must_stay_inside_chunk(self, allocator, chunk, customer):
        sub_booking = assign(allocator, chunk, customer, 2)

        with pytest.raises(ValidationError) as excinfo:
            allocator.update_assignment(
                sub_booking.pk, chunk.owner_id, valid_to=chunk.valid_to + timedelta(days=1)
            )
        assert excinfo.value.field == "valid_to"
        assert excinfo.value.sub_booking_id == sub_booking.pk

    def test_changing_customer_refreshes_snapshot(self, allocator, chunk, customer):
        sub_booking = assign(allocator, chunk, customer, 2)
        other = make_customer(username="Robin", email="robin@example.com")

        updated = allocator.update_assignment(sub_booking.pk, chunk.owner_id, customer_id=other.pk)

        assert updated.customer_id == other.pk
        assert updated.customer_name == "Robin"
        assert updated.customer_email == "robin@example.com"

    def test_suspended_assignment_does_not_move_counters(self, allocator, chunk, customer):
        sub_booking = assign(allocator, chunk, customer, 2)
        allocator.suspend_assignment(sub_booking.pk, chunk.owner_id)

        allocator.update_assignment(sub_booking.pk, chunk.owner_id, assigned_spots=5)

        chunk.refresh_from_db()
        assert chunk.used_spots == 0
        assert_capacity_invariant(chunk)

    def test_expired_assignment_is_read_only(self, allocator, chunk, customer):
        sub_booking = assign(allocator, chunk, customer, 2)
        SubBooking.objects.filter(pk=sub_booking.pk).update(status=SubBooking.Status.EXPIRED)

        with pytest.raises(ValidationError, match="Expired assignments cannot be edited"):
            allocator.update_assignment(sub_booking.pk, chunk.owner_id, assigned_spots=1)

    def test_unknown_assignment(self, allocator, coordinator):
        with pytest.raises(NotFoundError):
            allocator.update_assignment(404, coordinator.pk, assigned_spots=1)


@pytest.mark.django_db
class TestDeleteAssignment:
    def test_delete_twice_credits_once(self, allocator, chunk, customer):
        sub_booking = assign(allocator, chunk, customer, 3)
        assign(allocator, chunk, customer, 2)

        assert allocator.delete_assignment(sub_booking.pk, chunk.owner_id) == 3
        with pytest.raises(NotFoundError):
            allocator.delete_assignment(sub_booking.pk, chunk.owner_id)

        chunk.refresh_from_db()
        assert chunk.available_spots == 8
        assert_capacity_invariant(chunk)

    def test_create_then_delete_restores_counts(self, allocator, chunk, customer):
        before = (chunk.used_spots, chunk.available_spots, chunk.status)

        sub_booking = assign(allocator, chunk, customer, 10)
        allocator.delete_assignment(sub_booking.pk, chunk.owner_id)

        chunk.refresh_from_db()
        assert (chunk.used_spots, chunk.available_spots, chunk.status) == before

    def test_full_chunk_reopens(self, allocator, chunk, customer):
        sub_booking = assign(allocator, chunk, customer, 10)

        allocator.delete_assignment(sub_booking.pk, chunk.owner_id)

        chunk.refresh_from_db()
        assert chunk.status == BulkBookingChunk.Status.ACTIVE

    def test_expired_chunk_stays_expired(self, allocator, chunk, customer):
        sub_booking = assign(allocator, chunk, customer, 4)
        BulkBookingChunk.objects.filter(pk=chunk.pk).update(status=BulkBookingChunk.Status.EXPIRED)

        allocator.delete_assignment(sub_booking.pk, chunk.owner_id)

        chunk.refresh_from_db()
        assert chunk.status == BulkBookingChunk.Status.EXPIRED
        assert chunk.available_spots == 10

    def test_other_coordinator_cannot_delete(self, allocator, chunk, customer):
        sub_booking = assign(allocator, chunk, customer, 4)

        with pytest.raises(PermissionDeniedError):
            allocator.delete_assignment(sub_booking.pk, make_coordinator().pk)
        assert SubBooking.objects.filter(pk=sub_booking.pk).exists()


@pytest.mark.django_db
class TestSuspendAndReinstate:
    def test_suspend_releases_and_reinstate_reclaims(self, allocator, chunk, customer):
        sub_booking = assign(allocator, chunk, customer, 4)

        allocator.suspend_assignment(sub_booking.pk, chunk.owner_id)
        chunk.refresh_from_db()
        assert chunk.available_spots == 10
        assert_capacity_invariant(chunk)

        allocator.reinstate_assignment(sub_booking.pk, chunk.owner_id)
        chunk.refresh_from_db()
        assert chunk.available_spots == 6
        assert_capacity_invariant(chunk)

    def test_reinstate_needs_free_spots(self, allocator, chunk, customer):
        sub_booking = assign(allocator, chunk, customer, 4)
        allocator.suspend_assignment(sub_booking.pk, chunk.owner_id)
        assign(allocator, chunk, customer, 8)

        with pytest.raises(ValidationError, match="Cannot assign more than 2 available spots"):
            allocator.reinstate_assignment(sub_booking.pk, chunk.owner_id)

        sub_booking.refresh_from_db()
        assert sub_booking.status == SubBooking.Status.SUSPENDED

    def test_only_active_can_be_suspended(self, allocator, chunk, customer):
        sub_booking = assign(allocator, chunk, customer, 1)
        allocator.suspend_assignment(sub_booking.pk, chunk.owner_id)

        with pytest.raises(ValidationError, match="Only active"):
            allocator.suspend_assignment(sub_booking.pk, chunk.owner_id)

        active = assign(allocator, chunk, customer, 1)
        with pytest.raises(ValidationError, match="Only suspended"):
            allocator.reinstate_assignment(active.pk, chunk.owner_id)

    def test_cannot_suspend_after_period_ended(self, chunk, customer, inventory):
        sub_booking = assign(Allocator(inventory), chunk, customer, 1, valid_to=chunk.valid_from)
        later = Allocator(ChunkInventory(today=lambda: chunk.valid_from + timedelta(days=1)))

        with pytest.raises(ValidationError, match="period has ended"):
            later.suspend_assignment(sub_booking.pk, chunk.owner_id)


@pytest.mark.django_db
class TestExpireLapsedAssignments:
    def test_lapsed_assignments_expire_and_release(self, allocator, chunk, customer):
        short = assign(
            allocator, chunk, customer, 3,
            valid_to=chunk.valid_from + timedelta(days=2),
        )
        suspended = assign(
            allocator, chunk, customer, 2,
            valid_to=chunk.valid_from + timedelta(days=2),
        )
        allocator.suspend_assignment(suspended.pk, chunk.owner_id)
        long = assign(allocator, chunk, customer, 4)

        expired = allocator.dispatch(
            ExpireLapsedAssignmentsCommand(today=chunk.valid_from + timedelta(days=3))
        )

        assert expired == 2
        short.refresh_from_db()
        suspended.refresh_from_db()
        long.refresh_from_db()
        assert short.status == SubBooking.Status.EXPIRED
        assert suspended.status == SubBooking.Status.EXPIRED
        assert long.status == SubBooking.Status.ACTIVE
        chunk.refresh_from_db()
        assert chunk.used_spots == 4
        assert_capacity_invariant(chunk)

    def test_nothing_to_expire(self, allocator, chunk, customer):
        assign(allocator, chunk, customer, 1)
        assert allocator.expire_lapsed_assignments(today=chunk.valid_to) == 0
