"""API tests for bulk booking chunks and assignments."""

from __future__ import annotations

from datetime import timedelta
from unittest import mock

from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bulk_bookings.exceptions import AllocationBusyError, ConflictError
from apps.bulk_bookings.models import BulkBookingChunk, SubBooking
from apps.bulk_bookings.services import ChunkInventory

from .helpers import make_chunk, make_coordinator, make_customer, make_user


class BulkBookingAPITestCase(APITestCase):
    def setUp(self) -> None:
        self.today = timezone.localdate()
        self.coordinator = make_coordinator()
        self.customer = make_customer(username="Sam")
        self.chunk = make_chunk(
            self.coordinator,
            total_spots=10,
            valid_from=self.today,
            valid_to=self.today + timedelta(days=9),
        )
        self.client.force_authenticate(self.coordinator)

    def create_assignment(self, spots, **extra):
        payload = {
            "bulk_booking": self.chunk.pk,
            "customer": self.customer.pk,
            "assigned_spots": spots,
            "valid_from": self.chunk.valid_from.isoformat(),
            "valid_to": self.chunk.valid_to.isoformat(),
        }
        headers = extra.pop("headers", {})
        payload.update(extra)
        return self.client.post(reverse("assignment-list"), payload, format="json", headers=headers)


class ChunkAPITests(BulkBookingAPITestCase):
    def test_purchase_chunk(self) -> None:
        payload = {
            "parking_name": "Stadium East",
            "chunk_name": "Cup final",
            "company": "Acme Events",
            "vehicle_type": "car",
            "total_spots": 25,
            "valid_from": self.today.isoformat(),
            "valid_to": (self.today + timedelta(days=1)).isoformat(),
        }

        response = self.client.post(reverse("chunk-list"), payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["available_spots"], 25)
        self.assertEqual(response.data["status"], "active")
        self.assertEqual(response.data["owner_id"], self.coordinator.pk)

    def test_purchase_with_inverted_window(self) -> None:
        payload = {
            "parking_name": "Stadium East",
            "chunk_name": "Cup final",
            "company": "Acme Events",
            "total_spots": 5,
            "valid_from": self.today.isoformat(),
            "valid_to": (self.today - timedelta(days=1)).isoformat(),
        }

        response = self.client.post(reverse("chunk-list"), payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("valid_to", response.data)

    def test_list_only_own_chunks(self) -> None:
        make_chunk(make_coordinator(), valid_from=self.today)

        response = self.client.get(reverse("chunk-list"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row["id"] for row in response.data], [self.chunk.pk])

    def test_admin_lists_chunks_by_owner(self) -> None:
        admin = make_user(role="admin")
        self.client.force_authenticate(admin)

        response = self.client.get(reverse("chunk-list"), {"owner": self.coordinator.pk})

        self.assertEqual([row["id"] for row in response.data], [self.chunk.pk])

    def test_available_chunks(self) -> None:
        full = make_chunk(self.coordinator, total_spots=1, valid_from=self.today)
        BulkBookingChunk.objects.filter(pk=full.pk).update(used_spots=1, available_spots=0, status="full")

        response = self.client.get(reverse("chunk-available"))

        self.assertEqual([row["id"] for row in response.data], [self.chunk.pk])

    def test_resolve_access_code(self) -> None:
        response = self.client.post(
            reverse("chunk-resolve-code"), {"code": self.chunk.access_code}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["id"], self.chunk.pk)

        response = self.client.post(reverse("chunk-resolve-code"), {"code": "nope"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_customers_cannot_manage_chunks(self) -> None:
        self.client.force_authenticate(self.customer)

        response = self.client.get(reverse("chunk-list"))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_requires_authentication(self) -> None:
        self.client.force_authenticate(None)

        response = self.client.get(reverse("chunk-list"))

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class AssignmentAPITests(BulkBookingAPITestCase):
    def test_create_assignment(self) -> None:
        response = self.create_assignment(4, notes="VIP")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["bulk_booking"], self.chunk.pk)
        self.assertEqual(response.data["customer_name"], "Sam")
        self.chunk.refresh_from_db()
        self.assertEqual(self.chunk.available_spots, 6)

    def test_over_capacity_is_a_field_error(self) -> None:
        self.create_assignment(4)

        response = self.create_assignment(7)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {"assigned_spots": ["Cannot assign more than 6 available spots"]})

    def test_missing_dates_are_reported(self) -> None:
        response = self.create_assignment(1, valid_from=None)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("valid_from", response.data)

    def test_unknown_chunk_is_404(self) -> None:
        response = self.create_assignment(1, bulk_booking=987654)

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_foreign_chunk_is_403(self) -> None:
        self.client.force_authenticate(make_coordinator())

        response = self.create_assignment(1)

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_idempotency_key_header(self) -> None:
        headers = {"Idempotency-Key": "abc-123"}

        first = self.create_assignment(2, headers=headers)
        second = self.create_assignment(2, headers=headers)

        self.assertEqual(first.data["id"], second.data["id"])
        self.assertEqual(SubBooking.objects.count(), 1)
        self.chunk.refresh_from_db()
        self.assertEqual(self.chunk.used_spots, 2)

    def test_lost_race_is_409_with_refetch_link(self) -> None:
        created = self.create_assignment(2)
        url = reverse("assignment-detail", args=[created.data["id"]])

        lost_race = ConflictError(chunk_id=self.chunk.pk)
        with mock.patch.object(ChunkInventory, "apply_delta", side_effect=lost_race):
            response = self.client.patch(url, {"assigned_spots": 5}, format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["code"], "capacity_conflict")
        self.assertEqual(response.data["detail"], "Spots no longer available. Refresh and retry.")
        self.assertTrue(response.data["refetch"].endswith(reverse("chunk-detail", args=[self.chunk.pk])))
        self.chunk.refresh_from_db()
        self.assertEqual(self.chunk.used_spots, 2)

    def test_lock_timeout_is_503(self) -> None:
        with mock.patch.object(
            ChunkInventory, "lock", side_effect=AllocationBusyError(chunk_id=self.chunk.pk)
        ):
            response = self.create_assignment(1)

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response.data["retryable"], "manual")

    def test_patch_and_delete(self) -> None:
        created = self.create_assignment(4)
        url = reverse("assignment-detail", args=[created.data["id"]])

        response = self.client.patch(url, {"assigned_spots": 2, "notes": "moved"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["assigned_spots"], 2)
        self.assertEqual(response.data["notes"], "moved")

        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        self.chunk.refresh_from_db()
        self.assertEqual(self.chunk.available_spots, 10)
        self.assertEqual(self.chunk.status, "active")

    def test_put_is_not_allowed(self) -> None:
        created = self.create_assignment(1)
        url = reverse("assignment-detail", args=[created.data["id"]])

        response = self.client.put(url, {"assigned_spots": 2}, format="json")

        self.assertEqual(response.status_code, status.HTTP_405_METHOD_NOT_ALLOWED)

    def test_suspend_and_reinstate(self) -> None:
        created = self.create_assignment(3)
        pk = created.data["id"]

        response = self.client.post(reverse("assignment-suspend", args=[pk]))
        self.assertEqual(response.data["status"], "suspended")
        self.chunk.refresh_from_db()
        self.assertEqual(self.chunk.available_spots, 10)

        response = self.client.post(reverse("assignment-reinstate", args=[pk]))
        self.assertEqual(response.data["status"], "active")
        self.chunk.refresh_from_db()
        self.assertEqual(self.chunk.available_spots, 7)

    def test_record_usage(self) -> None:
        created = self.create_assignment(1)

        response = self.client.post(
            reverse("assignment-record-usage", args=[created.data["id"]]), {"hours": "1.5"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["usage_time"], "1.50")
        self.assertIsNotNone(response.data["last_access_date"])

    def test_filters_and_expand(self) -> None:
        other_customer = make_customer()
        self.create_assignment(1)
        self.create_assignment(2, customer=other_customer.pk)

        response = self.client.get(
            reverse("assignment-list"), {"customer": other_customer.pk, "expand": "chunk"}
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]["assigned_spots"], 2)
        self.assertEqual(response.data[0]["bulk_booking"]["id"], self.chunk.pk)
        self.assertEqual(response.data[0]["bulk_booking"]["available_spots"], 7)

    def test_other_coordinators_assignments_are_hidden(self) -> None:
        created = self.create_assignment(1)
        self.client.force_authenticate(make_coordinator())

        listing = self.client.get(reverse("assignment-list"))
        detail = self.client.get(reverse("assignment-detail", args=[created.data["id"]]))

        self.assertEqual(listing.data, [])
        self.assertEqual(detail.status_code, status.HTTP_404_NOT_FOUND)

    def test_non_numeric_ids_are_not_found(self) -> None:
        base = reverse("assignment-list")

        for method in ("get", "patch", "delete"):
            response = getattr(self.client, method)(f"{base}abc/")
            self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND, method)

        response = self.client.post(f"{base}abc/suspend/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        response = self.client.get(f"{reverse('chunk-list')}abc/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_admin_retry_with_idempotency_key(self) -> None:
        self.client.force_authenticate(make_user(role="admin"))
        headers = {"Idempotency-Key": "k-1"}

        first = self.create_assignment(2, headers=headers)
        second = self.create_assignment(2, headers=headers)

        self.assertEqual(first.status_code, status.HTTP_201_CREATED, first.data)
        self.assertEqual(second.status_code, status.HTTP_201_CREATED, second.data)
        self.assertEqual(first.data["id"], second.data["id"])
        self.assertEqual(first.data["owner_id"], self.coordinator.pk)
        self.assertEqual(SubBooking.objects.count(), 1)
        self.chunk.refresh_from_db()
        self.assertEqual(self.chunk.used_spots, 2)
