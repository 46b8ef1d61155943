"""Usage tracking for sub-bookings.

Utilisation is informational: it feeds the dashboard and never touches the
capacity counters of a chunk.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from django.db.models import F, Max, Sum  # type: ignore
from django.utils import timezone  # type: ignore

from shared.application.uow import DjangoUnitOfWork

from .domain.events import UsageRecorded
from .exceptions import NotFoundError, ValidationError
from .models import SubBooking

logger = logging.getLogger(__name__)

# SubBooking.usage_time is DecimalField(max_digits=10, decimal_places=2)
USAGE_TIME_LIMIT = Decimal("99999999.99")
HOURS_QUANTUM = Decimal("0.01")


class UsageTracker:
    """Records hours of use and last access per sub-booking."""

    def record_usage(self, sub_booking_id: int, hours=1) -> SubBooking:
        try:
            hours = Decimal(str(hours))
        except (InvalidOperation, ValueError) as exc:
            raise ValidationError("hours", "A number of hours is required.", sub_booking_id=sub_booking_id) from exc
        if hours.is_finite() and hours <= USAGE_TIME_LIMIT:
            hours = hours.quantize(HOURS_QUANTUM)
        if not hours.is_finite() or hours <= 0:
            raise ValidationError("hours", "Hours must be greater than zero", sub_booking_id=sub_booking_id)
        if hours > USAGE_TIME_LIMIT:
            raise ValidationError(
                "hours", f"Hours must not exceed {USAGE_TIME_LIMIT}", sub_booking_id=sub_booking_id
            )

        with DjangoUnitOfWork() as uow:
            updated = SubBooking.objects.filter(
                pk=sub_booking_id, usage_time__lte=USAGE_TIME_LIMIT - hours
            ).update(
                usage_time=F("usage_time") + hours,
                last_access_date=timezone.now(),
            )
            if not updated:
                if SubBooking.objects.filter(pk=sub_booking_id).exists():
                    raise ValidationError(
                        "hours",
                        f"Recorded usage cannot exceed {USAGE_TIME_LIMIT} hours",
                        sub_booking_id=sub_booking_id,
                    )
                raise NotFoundError(f"Assignment {sub_booking_id} not found", sub_booking_id=sub_booking_id)
            uow.record(UsageRecorded(aggregate_id=sub_booking_id, sub_booking_id=sub_booking_id, hours=hours))

        logger.debug(f"Recorded {hours}h of use on assignment {sub_booking_id}")
        return SubBooking.objects.get(pk=sub_booking_id)

    def usage_summary(self, owner_id: int) -> dict[int, dict]:
        """Per customer of the owner: active spots, total hours and last access."""
        rows = (
            SubBooking.objects.owned_by(owner_id)
            .order_by()
            .values("customer_id")
            .annotate(hours=Sum("usage_time"), last_access=Max("last_access_date"))
        )
        active = dict(
            SubBooking.objects.owned_by(owner_id)
            .active()
            .order_by()
            .values("customer_id")
            .annotate(spots=Sum("assigned_spots"))
            .values_list("customer_id", "spots")
        )
        return {
            row["customer_id"]: {
                "assigned_spots": active.get(row["customer_id"], 0) or 0,
                "hours": row["hours"] or Decimal("0"),
                "last_access": row["last_access"],
            }
            for row in rows
        }
