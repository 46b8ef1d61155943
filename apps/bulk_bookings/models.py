"""Bulk booking models for ParkWise."""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.domain.value_objects import ValidityWindow


def access_code_for(**payload) -> str:
    """SHA-256 of the canonical JSON payload, used as a scannable access code."""
    raw = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class VehicleType(models.TextChoices):
    CAR = "car", _("Car")
    BICYCLE = "bicycle", _("Bicycle")
    TRUCK = "truck", _("Truck")


class BulkBookingChunkQuerySet(models.QuerySet):
    def owned_by(self, owner_id: int):
        return self.filter(owner_id=owner_id)

    def available(self, today):
        return self.filter(
            status=BulkBookingChunk.Status.ACTIVE,
            available_spots__gt=0,
            valid_to__gte=today,
        )

    def lapsed(self, today):
        return self.exclude(status=BulkBookingChunk.Status.EXPIRED).filter(valid_to__lt=today)


class BulkBookingChunk(models.Model):
    """Parking capacity bought in bulk by an event coordinator."""

    class Status(models.TextChoices):
        ACTIVE = "active", _("Active")
        FULL = "full", _("Full")
        EXPIRED = "expired", _("Expired")

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="bulk_booking_chunks",
    )
    purchase_date = models.DateTimeField(default=timezone.now)
    parking_name = models.CharField(max_length=255)
    chunk_name = models.CharField(max_length=255)
    company = models.CharField(max_length=255)
    vehicle_type = models.CharField(
        max_length=20,
        choices=VehicleType.choices,
        default=VehicleType.CAR,
    )
    total_spots = models.PositiveIntegerField()
    used_spots = models.PositiveIntegerField(default=0)
    available_spots = models.PositiveIntegerField()
    valid_from = models.DateField()
    valid_to = models.DateField()
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.ACTIVE,
    )
    remarks = models.TextField(blank=True)
    access_code = models.CharField(max_length=64, blank=True, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BulkBookingChunkQuerySet.as_manager()

    class Meta:
        verbose_name = _("Bulk booking chunk")
        verbose_name_plural = _("Bulk booking chunks")
        ordering = ["-purchase_date"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_spots__gte=1),
                name="chunk_total_spots_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(used_spots__lte=models.F("total_spots")),
                name="chunk_used_within_total",
            ),
            models.CheckConstraint(
                condition=models.Q(available_spots=models.F("total_spots") - models.F("used_spots")),
                name="chunk_available_matches_used",
            ),
            models.CheckConstraint(
                condition=models.Q(valid_to__gte=models.F("valid_from")),
                name="chunk_valid_dates",
            ),
        ]
        indexes = [
            models.Index(fields=["owner", "status"], name="chunk_owner_status_idx"),
            models.Index(fields=["access_code"], name="chunk_access_code_idx"),
            models.Index(fields=["valid_to"], name="chunk_valid_to_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.chunk_name} @ {self.parking_name} ({self.used_spots}/{self.total_spots})"

    @property
    def window(self) -> ValidityWindow:
        return ValidityWindow(self.valid_from, self.valid_to)

    @property
    def is_expired(self) -> bool:
        return self.status == self.Status.EXPIRED

    def assign_access_code(self) -> str:
        self.access_code = access_code_for(id=str(self.pk), type="bulkbooking")
        return self.access_code


class SubBookingQuerySet(models.QuerySet):
    def active(self):
        return self.filter(status=SubBooking.Status.ACTIVE)

    def owned_by(self, owner_id: int):
        return self.filter(owner_id=owner_id)

    def lapsed(self, today):
        return self.filter(
            status__in=[SubBooking.Status.ACTIVE, SubBooking.Status.SUSPENDED],
            valid_to__lt=today,
        )

    def active_spots(self, chunk_id: int) -> int:
        """Spots held by the active sub-bookings of one chunk."""
        total = self.filter(bulk_booking_id=chunk_id).active().aggregate(
            total=models.Sum("assigned_spots")
        )["total"]
        return total or 0


class SubBooking(models.Model):
    """Slice of a chunk assigned to one customer."""

    class Status(models.TextChoices):
        ACTIVE = "active", _("Active")
        SUSPENDED = "suspended", _("Suspended")
        EXPIRED = "expired", _("Expired")

    bulk_booking = models.ForeignKey(
        BulkBookingChunk,
        on_delete=models.PROTECT,
        related_name="sub_bookings",
    )
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="owned_sub_bookings",
    )
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="sub_bookings",
    )
    customer_name = models.CharField(max_length=255, blank=True)
    customer_email = models.EmailField(blank=True)
    parking_location = models.CharField(max_length=255, blank=True)
    assigned_spots = models.PositiveIntegerField()
    valid_from = models.DateField()
    valid_to = models.DateField()
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.ACTIVE,
    )
    usage_time = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text=_("Accumulated hours of use."),
    )
    last_access_date = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    access_code = models.CharField(max_length=64, blank=True, editable=False)
    idempotency_key = models.CharField(max_length=64, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SubBookingQuerySet.as_manager()

    class Meta:
        verbose_name = _("Sub-booking")
        verbose_name_plural = _("Sub-bookings")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(assigned_spots__gte=1),
                name="sub_booking_spots_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(valid_to__gte=models.F("valid_from")),
                name="sub_booking_valid_dates",
            ),
            models.UniqueConstraint(
                fields=["owner", "idempotency_key"],
                condition=models.Q(idempotency_key__isnull=False),
                name="sub_booking_unique_idempotency_key",
            ),
        ]
        indexes = [
            models.Index(fields=["bulk_booking", "status"], name="sub_booking_chunk_status_idx"),
            models.Index(fields=["owner", "status"], name="sub_booking_owner_status_idx"),
            models.Index(fields=["valid_to"], name="sub_booking_valid_to_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.customer_name or self.customer_id}: {self.assigned_spots} spots"

    @property
    def window(self) -> ValidityWindow:
        return ValidityWindow(self.valid_from, self.valid_to)

    @property
    def consumes_capacity(self) -> bool:
        return self.status == self.Status.ACTIVE

    @property
    def held_spots(self) -> int:
        """Spots this sub-booking currently takes from its chunk."""
        return self.assigned_spots if self.consumes_capacity else 0

    def snapshot_customer(self, customer) -> None:
        self.customer = customer
        self.customer_name = customer.display_name
        self.customer_email = customer.email

    def assign_access_code(self) -> str:
        self.access_code = access_code_for(
            id=str(self.pk),
            type="subbulkbooking",
            bulk_booking=str(self.bulk_booking_id),
            customer=str(self.customer_id),
        )
        return self.access_code
