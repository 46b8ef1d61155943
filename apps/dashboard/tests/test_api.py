from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bulk_bookings.application.command_handlers import Allocator
from apps.bulk_bookings.tests.helpers import make_chunk, make_coordinator, make_customer, make_user


class DashboardSummaryAPITests(APITestCase):
    def setUp(self) -> None:
        today = timezone.localdate()
        self.coordinator = make_coordinator()
        self.customer = make_customer()
        chunk = make_chunk(
            self.coordinator,
            total_spots=10,
            valid_from=today,
            valid_to=today + timedelta(days=1),
            vehicle_type="bicycle",
        )
        make_chunk(self.coordinator, total_spots=20, valid_from=today, valid_to=today)
        Allocator().create_assignment(
            chunk.pk, self.coordinator.pk, self.customer.pk, 4, chunk.valid_from, chunk.valid_to
        )
        self.url = reverse("dashboard-summary")

    def test_summary_for_current_coordinator(self) -> None:
        self.client.force_authenticate(self.coordinator)

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        metrics = response.data["metrics"]
        self.assertEqual(metrics["total_purchased_spots"], 30)
        self.assertEqual(metrics["total_available_spots"], 26)
        # 10 spots x 2 days x 2.00 + 20 spots x 1 day x 10.00
        self.assertEqual(metrics["total_revenue"], Decimal("240.00"))
        self.assertEqual(len(response.data["recent_transactions"]), 2)
        entry = next(row for row in response.data["customers"] if row["id"] == self.customer.pk)
        self.assertEqual(entry["assigned_spots"], 4)

    def test_admin_can_view_another_coordinator(self) -> None:
        self.client.force_authenticate(make_user(role="admin"))

        response = self.client.get(self.url, {"coordinator": self.coordinator.pk})

        self.assertEqual(response.data["metrics"]["total_purchased_spots"], 30)

    def test_coordinator_parameter_is_ignored_for_coordinators(self) -> None:
        self.client.force_authenticate(make_coordinator())

        response = self.client.get(self.url, {"coordinator": self.coordinator.pk})

        self.assertEqual(response.data["metrics"]["total_purchased_spots"], 0)
        self.assertEqual(response.data["alerts"], [])

    def test_customers_are_forbidden(self) -> None:
        self.client.force_authenticate(self.customer)

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
