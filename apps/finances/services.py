"""Transaction log services."""

from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.utils import timezone  # type: ignore

from .models import Transaction

logger = logging.getLogger(__name__)


def price_per_day_for(vehicle_type: str) -> Decimal:
    """Daily price of one spot for a vehicle type, from settings."""
    prices = getattr(settings, "BULK_BOOKING_PRICE_PER_DAY", {})
    return Decimal(str(prices.get(vehicle_type, 0)))


def bulk_booking_amount(price_per_day: Decimal, total_spots: int, days: int) -> Decimal:
    """Purchase price of a chunk: every spot, every valid day (at least one)."""
    return (Decimal(price_per_day) * total_spots * max(1, days)).quantize(Decimal("0.01"))


def record_bulk_booking_purchase(chunk, price_per_day: Decimal | None = None) -> Transaction:
    """Record the completed purchase of a capacity chunk.

    A pricing problem never blocks the purchase itself: the amount falls
    back to zero and the problem is logged.
    """
    try:
        if price_per_day is None:
            price_per_day = price_per_day_for(chunk.vehicle_type)
        amount = bulk_booking_amount(price_per_day, chunk.total_spots, len(chunk.window))
    except (ArithmeticError, TypeError, ValueError) as exc:
        logger.warning(f"Could not price bulk booking chunk {chunk.pk}: {exc}")
        amount = Decimal("0.00")

    transaction = Transaction.objects.create(
        type=Transaction.Type.BULK_BOOKING,
        chunk=chunk,
        user_id=chunk.owner_id,
        amount=amount,
        status=Transaction.Status.COMPLETED,
    )
    logger.info(f"Transaction {transaction.pk} recorded for bulk booking chunk {chunk.pk}: {amount}")
    return transaction


def transactions_for_coordinator(owner_id: int | None, days: int | None = None):
    """Transaction log of a coordinator (everyone when owner_id is None),
    optionally limited to a trailing window of days."""
    qs = Transaction.objects.select_related("chunk", "user")
    if owner_id is not None:
        qs = qs.for_coordinator(owner_id)
    if days:
        qs = qs.since(timezone.now() - timedelta(days=days))
    return qs
