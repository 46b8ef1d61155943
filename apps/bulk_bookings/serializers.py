"""Serializers for the bulk booking API.

Input serializers only parse and type-check the payload; presence and
range rules for spots and dates are applied by the allocation engine so
that API callers and internal callers see the same messages.
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers  # type: ignore

from .domain.references import Resolved, Unresolved
from .models import BulkBookingChunk, SubBooking, VehicleType


class ChunkSerializer(serializers.ModelSerializer):
    """Read representation of a purchased chunk."""

    owner_id = serializers.ReadOnlyField(source="owner.id")

    class Meta:
        model = BulkBookingChunk
        fields = [
            "id",
            "owner_id",
            "purchase_date",
            "parking_name",
            "chunk_name",
            "company",
            "vehicle_type",
            "total_spots",
            "used_spots",
            "available_spots",
            "valid_from",
            "valid_to",
            "status",
            "remarks",
            "access_code",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ChunkSummarySerializer(serializers.ModelSerializer):
    """Compact chunk shown inside an expanded assignment."""

    class Meta:
        model = BulkBookingChunk
        fields = [
            "id",
            "parking_name",
            "chunk_name",
            "total_spots",
            "available_spots",
            "valid_from",
            "valid_to",
            "status",
        ]
        read_only_fields = fields


class ChunkCreateSerializer(serializers.Serializer):
    parking_name = serializers.CharField(max_length=255)
    chunk_name = serializers.CharField(max_length=255)
    company = serializers.CharField(max_length=255)
    vehicle_type = serializers.ChoiceField(choices=VehicleType.choices, default=VehicleType.CAR)
    total_spots = serializers.IntegerField()
    valid_from = serializers.DateField()
    valid_to = serializers.DateField()
    remarks = serializers.CharField(required=False, allow_blank=True, default="")
    price_per_day = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        required=False,
        allow_null=True,
        min_value=Decimal("0"),
    )


class AccessCodeSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=64)


class SubBookingSerializer(serializers.ModelSerializer):
    """Read representation of an assignment.

    ``bulk_booking`` is the chunk id, or the chunk itself when the view
    passes ``expand_chunk`` in the context (``?expand=chunk``).
    """

    bulk_booking = serializers.SerializerMethodField()
    customer_id = serializers.ReadOnlyField(source="customer.id")
    owner_id = serializers.ReadOnlyField(source="owner.id")

    class Meta:
        model = SubBooking
        fields = [
            "id",
            "bulk_booking",
            "owner_id",
            "customer_id",
            "customer_name",
            "customer_email",
            "parking_location",
            "assigned_spots",
            "valid_from",
            "valid_to",
            "status",
            "usage_time",
            "last_access_date",
            "notes",
            "access_code",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_bulk_booking(self, obj: SubBooking):  # type: ignore
        if self.context.get("expand_chunk"):
            ref = Resolved(obj.bulk_booking)
        else:
            ref = Unresolved(obj.bulk_booking_id)
        return ref.to_representation(lambda chunk: ChunkSummarySerializer(chunk).data)


class AssignmentCreateSerializer(serializers.Serializer):
    bulk_booking = serializers.IntegerField()
    customer = serializers.IntegerField()
    assigned_spots = serializers.IntegerField(required=False, allow_null=True)
    valid_from = serializers.DateField(required=False, allow_null=True)
    valid_to = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class AssignmentUpdateSerializer(serializers.Serializer):
    customer = serializers.IntegerField(required=False)
    assigned_spots = serializers.IntegerField(required=False)
    valid_from = serializers.DateField(required=False)
    valid_to = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True)


class RecordUsageSerializer(serializers.Serializer):
    hours = serializers.DecimalField(max_digits=8, decimal_places=2, required=False, default=Decimal("1"))
