"""Admin registration for bulk bookings.

Capacity counters are read only here; they are maintained by the
allocation engine.
"""

from __future__ import annotations

from django.contrib import admin

from .models import BulkBookingChunk, SubBooking


class SubBookingInline(admin.TabularInline):
    model = SubBooking
    fk_name = "bulk_booking"
    extra = 0
    can_delete = False
    fields = ("customer_name", "customer_email", "assigned_spots", "valid_from", "valid_to", "status")
    readonly_fields = fields
    show_change_link = True


@admin.register(BulkBookingChunk)
class BulkBookingChunkAdmin(admin.ModelAdmin):
    list_display = (
        "chunk_name",
        "parking_name",
        "owner",
        "company",
        "total_spots",
        "used_spots",
        "available_spots",
        "valid_from",
        "valid_to",
        "status",
    )
    list_filter = ("status", "vehicle_type", "valid_from", "valid_to")
    search_fields = ("chunk_name", "parking_name", "company", "owner__email")
    readonly_fields = (
        "used_spots",
        "available_spots",
        "status",
        "access_code",
        "created_at",
        "updated_at",
    )
    inlines = [SubBookingInline]


@admin.register(SubBooking)
class SubBookingAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "bulk_booking",
        "customer_name",
        "assigned_spots",
        "valid_from",
        "valid_to",
        "status",
        "usage_time",
        "last_access_date",
    )
    list_filter = ("status", "valid_from", "valid_to")
    search_fields = ("customer_name", "customer_email", "bulk_booking__chunk_name")
    readonly_fields = (
        "bulk_booking",
        "owner",
        "assigned_spots",
        "status",
        "usage_time",
        "last_access_date",
        "access_code",
        "idempotency_key",
        "created_at",
        "updated_at",
    )
