"""Dashboard aggregation.

The summary is composed from three independent sources: the coordinator's
chunks, the customer directory and the transaction log. A source that fails
contributes an empty section and an error log line; the summary itself is
always produced.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Iterable

from django.conf import settings  # type: ignore
from django.contrib.auth import get_user_model  # type: ignore
from django.utils import timezone  # type: ignore

from apps.bulk_bookings.models import BulkBookingChunk
from apps.bulk_bookings.usage import UsageTracker
from apps.finances.models import Transaction
from apps.finances.services import transactions_for_coordinator

logger = logging.getLogger(__name__)

CUSTOMER_SECTION_SIZE = 10
RECENT_TRANSACTIONS_SIZE = 5


def load_chunks(owner_id: int) -> Iterable[dict]:
    return BulkBookingChunk.objects.owned_by(owner_id).order_by("-purchase_date", "-pk").values(
        "id",
        "parking_name",
        "chunk_name",
        "total_spots",
        "available_spots",
        "used_spots",
        "status",
    )


def load_customers() -> Iterable[dict]:
    return [
        {"id": customer.pk, "name": customer.display_name, "email": customer.email}
        for customer in get_user_model().objects.customers().order_by("email")
    ]


def load_transactions(owner_id: int, since: datetime) -> Iterable[dict]:
    return transactions_for_coordinator(owner_id).since(since).values(
        "id",
        "date",
        "amount",
        "type",
        "status",
        "chunk__parking_name",
        "user__email",
    )


def load_usage(owner_id: int) -> dict:
    return UsageTracker().usage_summary(owner_id)


@dataclass
class DashboardSources:
    """Where the dashboard reads from; tests swap in their own callables."""

    chunks: Callable[[int], Iterable[dict]] = load_chunks
    customers: Callable[[], Iterable[dict]] = load_customers
    transactions: Callable[[int, datetime], Iterable[dict]] = load_transactions
    usage: Callable[[int], dict] = load_usage


class DashboardAggregator:
    """Builds the coordinator dashboard summary."""

    def __init__(
        self,
        sources: DashboardSources | None = None,
        *,
        window_days: int | None = None,
        low_inventory_ratio: float | None = None,
        clock: Callable[[], datetime] = timezone.now,
    ):
        self.sources = sources or DashboardSources()
        self.window_days = window_days or getattr(settings, "DASHBOARD_TRANSACTION_WINDOW_DAYS", 30)
        if low_inventory_ratio is None:
            low_inventory_ratio = getattr(settings, "DASHBOARD_LOW_INVENTORY_RATIO", 0.2)
        self.low_inventory_ratio = Decimal(str(low_inventory_ratio))
        self.clock = clock

    def _fetch(self, section: str, loader: Callable, *args, default=None):
        try:
            return loader(*args)
        except Exception:
            logger.error(f"Dashboard source '{section}' failed, showing it empty", exc_info=True)
            return [] if default is None else default

    def get_summary(self, coordinator_id: int) -> dict:
        since = self.clock() - timedelta(days=self.window_days)

        chunks = list(self._fetch("chunks", self.sources.chunks, coordinator_id))
        customers = list(self._fetch("customers", self.sources.customers))
        transactions = list(self._fetch("transactions", self.sources.transactions, coordinator_id, since))
        usage = self._fetch("usage", self.sources.usage, coordinator_id, default={})

        total_purchased = sum(chunk["total_spots"] for chunk in chunks)
        total_available = sum(chunk["available_spots"] for chunk in chunks)

        recent = [
            row for row in transactions
            if row["type"] == Transaction.Type.BULK_BOOKING
            and row["status"] == Transaction.Status.COMPLETED
            and row["date"] >= since
        ]
        recent.sort(key=lambda row: row["date"], reverse=True)
        total_revenue = sum((Decimal(str(row["amount"])) for row in recent), Decimal("0"))

        return {
            "metrics": {
                "total_purchased_spots": total_purchased,
                "total_available_spots": total_available,
                "total_revenue": total_revenue,
                "total_customers": len({customer["id"] for customer in customers}),
            },
            "parking_locations": [
                {
                    "id": chunk["id"],
                    "name": chunk["parking_name"],
                    "chunk_name": chunk["chunk_name"],
                    "total_spots": chunk["total_spots"],
                    "available_spots": chunk["available_spots"],
                    "used_spots": chunk["used_spots"],
                    "status": chunk["status"],
                }
                for chunk in chunks
            ],
            "customers": [
                {
                    "id": customer["id"],
                    "name": customer["name"],
                    "email": customer["email"],
                    "assigned_spots": usage.get(customer["id"], {}).get("assigned_spots", 0),
                    "last_access": usage.get(customer["id"], {}).get("last_access"),
                }
                for customer in customers[:CUSTOMER_SECTION_SIZE]
            ],
            "recent_transactions": [
                {
                    "id": row["id"],
                    "date": row["date"].date().isoformat(),
                    "amount": row["amount"],
                    "location": row.get("chunk__parking_name") or "Unknown location",
                    "customer": row.get("user__email") or "Unknown customer",
                    "status": row["status"],
                }
                for row in recent[:RECENT_TRANSACTIONS_SIZE]
            ],
            "alerts": self._alerts(total_purchased, total_available, len(recent)),
        }

    def _alerts(self, total_purchased: int, total_available: int, recent_count: int) -> list[dict]:
        alerts = []
        if total_available < self.low_inventory_ratio * total_purchased:
            alerts.append({
                "id": "low-inventory",
                "message": "Low parking inventory - consider purchasing more spots",
                "severity": "medium",
            })
        if recent_count > 0:
            alerts.append({
                "id": "recent-transactions",
                "message": f"{recent_count} new transactions this month",
                "severity": "low",
            })
        return alerts
