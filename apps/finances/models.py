"""Financial domain models for ParkWise."""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class TransactionQuerySet(models.QuerySet):
    def completed(self):
        return self.filter(status=Transaction.Status.COMPLETED)

    def since(self, moment):
        return self.filter(date__gte=moment)

    def for_coordinator(self, owner_id: int):
        """Transactions paid by the coordinator or tied to one of their chunks."""
        return self.filter(models.Q(user_id=owner_id) | models.Q(chunk__owner_id=owner_id))


class Transaction(models.Model):
    """One entry of the platform transaction log."""

    class Type(models.TextChoices):
        BOOKING = "booking", _("Booking")
        BILLING = "billing", _("Billing")
        BULK_BOOKING = "bulkbooking", _("Bulk booking")
        ADMIN = "admin", _("Admin")

    class Status(models.TextChoices):
        COMPLETED = "completed", _("Completed")
        PENDING = "pending", _("Pending")
        FAILED = "failed", _("Failed")
        REFUNDED = "refunded", _("Refunded")

    type = models.CharField(max_length=20, choices=Type.choices)
    chunk = models.ForeignKey(
        "bulk_bookings.BulkBookingChunk",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="transactions",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="transactions",
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    method = models.CharField(max_length=50, default="Credit Card")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    date = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TransactionQuerySet.as_manager()

    class Meta:
        verbose_name = _("Transaction")
        verbose_name_plural = _("Transactions")
        ordering = ["-date"]
        indexes = [
            models.Index(fields=["type", "status", "date"], name="finances_type_status_date_idx"),
        ]

    def __str__(self) -> str:
        return f"Transaction {self.pk} ({self.type}, {self.status})"
